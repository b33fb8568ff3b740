"""Tests for the Last.fm connector against a mocked HTTP transport."""

from datetime import timedelta
import json
from urllib.parse import parse_qsl

import httpx
import pytest

from scrobblesync.domain.entities import AuthSession
from scrobblesync.domain.exceptions import ApiError, AuthError, AuthFailureReason
from scrobblesync.infrastructure.connectors import lastfm_codec as codec
from scrobblesync.infrastructure.connectors.lastfm import LastFMConnector

SESSION = AuthSession(session_key="sk-123", username="listener")


class MemoryCredentialStore:
    """In-memory CredentialStore for tests."""

    def __init__(self, session=None):
        self.session = session
        self.saved = []
        self.cleared = False

    def load(self):
        return self.session

    def save(self, session):
        self.saved.append(session)
        self.session = session

    def clear(self):
        self.cleared = True
        self.session = None


class StaticAuthFlow:
    def __init__(self, token="tok-1"):
        self.token = token
        self.calls = []

    async def obtain_token(self, auth_url, callback_url):
        self.calls.append((auth_url, callback_url))
        return self.token


def form(request: httpx.Request) -> dict[str, str]:
    return dict(parse_qsl(request.content.decode(), keep_blank_values=True))


def accept_all(request: httpx.Request) -> httpx.Response:
    count = sum(1 for key in form(request) if key.startswith("track["))
    items = [{"ignoredMessage": {"code": "0", "#text": ""}} for _ in range(count)]
    return httpx.Response(
        200,
        json={
            "scrobbles": {
                "@attr": {"accepted": count, "ignored": 0},
                "scrobble": items[0] if count == 1 else items,
            }
        },
    )


def make_connector(handler, session=SESSION, **kwargs) -> LastFMConnector:
    kwargs.setdefault("batch_size", 50)
    return LastFMConnector(
        api_key="key",
        api_secret="secret",
        credential_store=MemoryCredentialStore(session),
        callback_url="http://localhost:8888/cb",
        base_url="https://ws.example.test/2.0/",
        auth_url="https://www.example.test/api/auth/",
        timeout=5.0,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


@pytest.fixture
def records(make_record, now):
    return [
        make_record(f"Track {i}", "Artist", timestamp=now - timedelta(minutes=i))
        for i in range(120)
    ]


class TestScrobbleBatching:
    """Chunking, signing and per-batch failure isolation."""

    async def test_120_records_are_sent_as_50_50_20(self, records):
        batch_sizes = []

        def handler(request):
            batch_sizes.append(sum(1 for k in form(request) if k.startswith("track[")))
            return accept_all(request)

        connector = make_connector(handler)
        result = await connector.scrobble(records)
        await connector.close()

        assert batch_sizes == [50, 50, 20]
        assert result.accepted + result.ignored == 120
        assert len(result.outcomes) == 120
        assert [o.record_id for o in result.outcomes] == [r.id for r in records]

    async def test_failed_batch_only_fails_its_own_records(self, records):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 2:
                return httpx.Response(500, text="upstream down")
            return accept_all(request)

        connector = make_connector(handler)
        result = await connector.scrobble(records)
        await connector.close()

        assert len(calls) == 3
        assert result.accepted + result.ignored == 120 - 50
        failed = [o for o in result.outcomes if not o.accepted]
        assert len(failed) == 50
        assert {o.record_id for o in failed} == {r.id for r in records[50:100]}
        assert failed[0].error_message == "Request failed with status 500"

    async def test_api_error_body_fails_the_batch(self, records):
        def handler(request):
            return httpx.Response(
                403, json={"error": 9, "message": "Invalid session key"}
            )

        connector = make_connector(handler)
        result = await connector.scrobble(records[:3])
        await connector.close()

        assert result.accepted == 0
        assert [o.error_message for o in result.outcomes] == [
            "Last.fm error 9: Invalid session key"
        ] * 3

    async def test_network_error_fails_the_batch(self, records):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        connector = make_connector(handler)
        result = await connector.scrobble(records[:2])
        await connector.close()

        assert result.failed == 2
        assert result.outcomes[0].error_message.startswith("Request failed")

    async def test_invalid_json_fails_the_batch(self, records):
        connector = make_connector(lambda request: httpx.Response(200, text="<html>"))
        result = await connector.scrobble(records[:1])
        await connector.close()

        assert result.outcomes[0].error_message == "Invalid response from Last.fm"

    async def test_request_is_signed_form_post(self, records):
        seen = []

        def handler(request):
            seen.append(request)
            return accept_all(request)

        connector = make_connector(handler)
        await connector.scrobble(records[:2])
        await connector.close()

        request = seen[0]
        assert request.method == "POST"
        assert request.headers["content-type"] == "application/x-www-form-urlencoded"
        params = form(request)
        assert params["sk"] == "sk-123"
        assert params["format"] == "json"
        unsigned = {k: v for k, v in params.items() if k not in ("api_sig", "format")}
        assert params["api_sig"] == codec.build_api_sig(unsigned, "secret")

    async def test_batch_size_is_capped_at_50(self):
        connector = make_connector(accept_all, batch_size=500)

        assert connector.batch_size == 50

    async def test_scrobble_requires_session(self, records):
        connector = make_connector(accept_all, session=None)

        with pytest.raises(AuthError) as exc_info:
            await connector.scrobble(records[:1])

        assert exc_info.value.reason == AuthFailureReason.NOT_AUTHENTICATED

    async def test_empty_input_makes_no_request(self):
        calls = []
        connector = make_connector(lambda r: calls.append(r) or accept_all(r))

        result = await connector.scrobble([])

        assert calls == []
        assert result.outcomes == []


class TestAuthentication:
    """Web auth handshake and session lifecycle."""

    async def test_get_session_exchanges_and_stores(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(
                200,
                json={"session": {"name": "listener", "key": "sk-new", "subscriber": 0}},
            )

        connector = make_connector(handler, session=None)
        session = await connector.get_session("tok-1")
        await connector.close()

        params = dict(seen[0].url.params)
        assert seen[0].method == "GET"
        assert params["method"] == "auth.getSession"
        assert params["token"] == "tok-1"
        assert params["api_sig"] == codec.build_api_sig(
            {"api_key": "key", "method": "auth.getSession", "token": "tok-1"}, "secret"
        )
        assert session.session_key == "sk-new"
        assert connector.is_authenticated
        assert connector.username == "listener"
        assert connector.credential_store.saved == [session]

    async def test_rejected_token_raises_api_error(self):
        def handler(request):
            return httpx.Response(
                403, json={"error": 4, "message": "Unauthorized Token"}
            )

        connector = make_connector(handler, session=None)

        with pytest.raises(ApiError):
            await connector.get_session("bad")
        await connector.close()

        assert not connector.is_authenticated

    async def test_authenticate_runs_flow_then_exchanges(self):
        def handler(request):
            return httpx.Response(
                200, json={"session": {"name": "listener", "key": "sk", "subscriber": 1}}
            )

        flow = StaticAuthFlow("tok-9")
        connector = make_connector(handler, session=None, auth_flow=flow)
        session = await connector.authenticate()
        await connector.close()

        auth_url, callback = flow.calls[0]
        assert auth_url.startswith("https://www.example.test/api/auth/?api_key=key")
        assert callback == "http://localhost:8888/cb"
        assert session.subscriber is True
        assert connector.is_authenticating is False

    async def test_authenticate_ignores_concurrent_attempt(self):
        connector = make_connector(accept_all, session=None, auth_flow=StaticAuthFlow())
        connector.is_authenticating = True

        assert await connector.authenticate() is None

    async def test_authenticate_resets_flag_on_failure(self):
        class CancelledFlow:
            async def obtain_token(self, auth_url, callback_url):
                raise AuthError(AuthFailureReason.USER_CANCELLED)

        connector = make_connector(accept_all, session=None, auth_flow=CancelledFlow())

        with pytest.raises(AuthError):
            await connector.authenticate()

        assert connector.is_authenticating is False

    async def test_stored_session_is_restored(self):
        connector = make_connector(accept_all)

        assert connector.is_authenticated
        assert connector.status_description == "@listener"

    async def test_sign_out_clears_store(self):
        connector = make_connector(accept_all)

        connector.sign_out()

        assert not connector.is_authenticated
        assert connector.credential_store.cleared
        assert connector.status_description == "Not connected"

    async def test_session_key_is_not_in_repr(self):
        connector = make_connector(accept_all)

        assert "sk-123" not in repr(connector)
        assert "sk-123" not in json.dumps(repr(SESSION))
