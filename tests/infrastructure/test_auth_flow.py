"""Tests for the console Last.fm auth flow."""

import io

import pytest
from rich.console import Console

from scrobblesync.domain.exceptions import AuthError, AuthFailureReason
from scrobblesync.infrastructure.connectors.auth_flow import ConsoleAuthFlow

AUTH_URL = "https://www.last.fm/api/auth/?api_key=key&cb=http%3A%2F%2Flocalhost%2Fcb"
CALLBACK = "http://localhost/cb"


def make_flow(prompt) -> tuple[ConsoleAuthFlow, io.StringIO]:
    output = io.StringIO()
    flow = ConsoleAuthFlow(
        console=Console(file=output, width=200), open_browser=False, prompt=prompt
    )
    return flow, output


class TestConsoleAuthFlow:
    async def test_token_from_pasted_redirect(self):
        flow, output = make_flow(lambda: f"{CALLBACK}?token=tok-42")

        assert await flow.obtain_token(AUTH_URL, CALLBACK) == "tok-42"
        assert AUTH_URL in output.getvalue()

    async def test_bare_token_is_accepted(self):
        flow, _ = make_flow(lambda: "tok-42\n")

        assert await flow.obtain_token(AUTH_URL, CALLBACK) == "tok-42"

    @pytest.mark.parametrize("answer", ["", "   "])
    async def test_empty_answer_cancels(self, answer):
        flow, _ = make_flow(lambda: answer)

        with pytest.raises(AuthError) as exc_info:
            await flow.obtain_token(AUTH_URL, CALLBACK)

        assert exc_info.value.reason == AuthFailureReason.USER_CANCELLED

    async def test_closed_input_cancels(self):
        def closed():
            raise EOFError

        flow, _ = make_flow(closed)

        with pytest.raises(AuthError) as exc_info:
            await flow.obtain_token(AUTH_URL, CALLBACK)

        assert exc_info.value.reason == AuthFailureReason.USER_CANCELLED

    async def test_redirect_without_token(self):
        flow, _ = make_flow(lambda: f"{CALLBACK}?error=denied")

        with pytest.raises(AuthError) as exc_info:
            await flow.obtain_token(AUTH_URL, CALLBACK)

        assert exc_info.value.reason == AuthFailureReason.NO_TOKEN

    async def test_browser_is_opened(self, monkeypatch):
        opened = []
        monkeypatch.setattr(
            "scrobblesync.infrastructure.connectors.auth_flow.webbrowser.open",
            lambda url: opened.append(url) or True,
        )
        flow = ConsoleAuthFlow(
            console=Console(file=io.StringIO()), prompt=lambda: "tok-1"
        )

        await flow.obtain_token(AUTH_URL, CALLBACK)

        assert opened == [AUTH_URL]
