"""Wire format for the Last.fm web service.

Pure functions that build signed request parameters and turn Last.fm JSON
responses into domain objects. No I/O happens here; the HTTP client in
:mod:`scrobblesync.infrastructure.connectors.lastfm` calls into this module.

Signing rule (https://www.last.fm/api/authspec): sort every parameter except
``format``/``callback`` by key, concatenate ``key + value`` pairs, append the
shared secret and take the hex MD5 of the UTF-8 bytes.
"""

from collections.abc import Iterable, Mapping, Sequence
import hashlib
from typing import Any
from urllib.parse import parse_qs, quote, urlencode, urlsplit

from scrobblesync.domain.entities import (
    AuthSession,
    PlayRecord,
    SubmissionResult,
    TrackOutcome,
    to_unix,
)
from scrobblesync.domain.exceptions import (
    ApiError,
    AuthError,
    AuthFailureReason,
    TransportError,
)

SIGNING_SKIP = frozenset({"format", "callback", "api_sig"})

# Query-allowed characters minus "+", "&" and "=", which must be escaped
# inside form values.
FORM_SAFE_CHARS = "!$'()*,;:@/?"

IGNORED_CODE_MESSAGES = {
    1: "Artist was ignored",
    2: "Track was ignored",
    3: "Timestamp too old",
    4: "Timestamp too new",
    5: "Daily scrobble limit exceeded",
}

Params = Mapping[str, str] | Iterable[tuple[str, str]]


def _items(params: Params) -> list[tuple[str, str]]:
    if isinstance(params, Mapping):
        return list(params.items())
    return list(params)


# =============================================================================
# SIGNING
# =============================================================================


def signature_base(params: Params, secret: str) -> str:
    """The exact string that gets hashed for ``api_sig``."""
    items = sorted(
        ((k, v) for k, v in _items(params) if k not in SIGNING_SKIP),
        key=lambda kv: kv[0],
    )
    return "".join(k + v for k, v in items) + secret


def build_api_sig(params: Params, secret: str) -> str:
    """Compute the Last.fm request signature."""
    base = signature_base(params, secret)
    # MD5 is mandated by the Last.fm API, not used for security here
    return hashlib.md5(base.encode("utf-8"), usedforsecurity=False).hexdigest()


def sign(params: Params, secret: str) -> list[tuple[str, str]]:
    """Return params with ``api_sig`` and ``format=json`` appended."""
    items = _items(params)
    return [*items, ("api_sig", build_api_sig(items, secret)), ("format", "json")]


# =============================================================================
# ENCODING
# =============================================================================


def percent_encode(value: str) -> str:
    """Percent-encode a form value (spaces become %20, ``+&=`` are escaped)."""
    return quote(value, safe=FORM_SAFE_CHARS)


def encode_form(params: Params) -> str:
    """Build an ``application/x-www-form-urlencoded`` body."""
    return "&".join(f"{key}={percent_encode(value)}" for key, value in _items(params))


def build_auth_url(auth_url: str, api_key: str, callback_url: str) -> str:
    """URL the user opens to grant access; Last.fm redirects to ``callback_url``."""
    parts = urlsplit(auth_url)
    if not api_key or parts.scheme not in ("http", "https") or not parts.netloc:
        raise AuthError(AuthFailureReason.INVALID_URL, auth_url)
    separator = "&" if parts.query else "?"
    return auth_url + separator + urlencode({"api_key": api_key, "cb": callback_url})


def extract_token(callback: str) -> str:
    """Pull the one-time token out of the redirect URL (or accept a bare token)."""
    value = callback.strip()
    if not value:
        raise AuthError(AuthFailureReason.NO_TOKEN)

    if "token=" in value:
        query = urlsplit(value).query or value.split("?", 1)[-1]
        tokens = parse_qs(query).get("token")
        if tokens and tokens[0]:
            return tokens[0]
        raise AuthError(AuthFailureReason.NO_TOKEN)

    if "://" in value or any(ch.isspace() for ch in value):
        raise AuthError(AuthFailureReason.NO_TOKEN)
    return value


def session_params(api_key: str, token: str) -> list[tuple[str, str]]:
    return [
        ("api_key", api_key),
        ("method", "auth.getSession"),
        ("token", token),
    ]


def scrobble_params(
    records: Sequence[PlayRecord], api_key: str, session_key: str
) -> list[tuple[str, str]]:
    """Unsigned track.scrobble parameters for one batch."""
    params = [
        ("api_key", api_key),
        ("method", "track.scrobble"),
        ("sk", session_key),
    ]
    for index, record in enumerate(records):
        params.append((f"artist[{index}]", record.artist_name))
        params.append((f"track[{index}]", record.track_name))
        params.append((f"timestamp[{index}]", str(to_unix(record.timestamp))))
        params.append((f"album[{index}]", record.album_name))
        if record.duration is not None:
            params.append((f"duration[{index}]", str(int(record.duration))))
    return params


# =============================================================================
# DECODING
# =============================================================================


def describe_ignored_code(code: int) -> str | None:
    """Human readable reason for a Last.fm ignored code (None when accepted)."""
    if code == 0:
        return None
    return IGNORED_CODE_MESSAGES.get(code, f"Unknown error (code {code})")


def raise_for_api_error(data: Mapping[str, Any]) -> None:
    if "error" in data:
        try:
            code = int(data["error"])
        except (TypeError, ValueError):
            code = -1
        raise ApiError(code, str(data.get("message") or "Unknown error"))


def parse_session_response(data: Any) -> AuthSession:
    """Decode an auth.getSession response."""
    if not isinstance(data, Mapping):
        raise TransportError("Invalid response from Last.fm")
    raise_for_api_error(data)

    session = data.get("session")
    if not isinstance(session, Mapping) or not session.get("key"):
        raise TransportError("Invalid response from Last.fm")

    return AuthSession(
        session_key=str(session["key"]),
        username=str(session.get("name") or ""),
        subscriber=bool(int(session.get("subscriber") or 0)),
    )


def normalize_scrobble_items(raw: Any) -> list[Mapping[str, Any]]:
    """Last.fm sends one object for a single scrobble and an array otherwise."""
    if isinstance(raw, list):
        items = raw
    elif isinstance(raw, Mapping):
        items = [raw]
    else:
        raise TransportError("Expected array or single scrobble item")

    if not all(isinstance(item, Mapping) for item in items):
        raise TransportError("Expected array or single scrobble item")
    return items


def _ignored_code(item: Mapping[str, Any]) -> int:
    message = item.get("ignoredMessage") or {}
    try:
        return int(message.get("code", 0))
    except (TypeError, ValueError):
        return 0


def outcome_for(record: PlayRecord, ignored_code: int) -> TrackOutcome:
    return TrackOutcome(
        track_name=record.track_name,
        artist_name=record.artist_name,
        accepted=ignored_code == 0,
        ignored_code=ignored_code,
        error_message=describe_ignored_code(ignored_code),
        source_id=record.source_id,
        record_id=record.id,
    )


def failed_outcome(record: PlayRecord, message: str) -> TrackOutcome:
    return TrackOutcome(
        track_name=record.track_name,
        artist_name=record.artist_name,
        accepted=False,
        ignored_code=0,
        error_message=message,
        source_id=record.source_id,
        record_id=record.id,
    )


def failed_result(records: Sequence[PlayRecord], message: str) -> SubmissionResult:
    """Result for a batch that never got a verdict."""
    return SubmissionResult(
        accepted=0,
        ignored=0,
        outcomes=[failed_outcome(record, message) for record in records],
    )


def parse_scrobble_response(
    data: Any, records: Sequence[PlayRecord]
) -> SubmissionResult:
    """Decode a track.scrobble response for the given batch.

    Verdicts are matched to ``records`` by position. Records without a
    verdict in the response come back as failed outcomes.
    """
    if not isinstance(data, Mapping):
        raise TransportError("Invalid response from Last.fm")
    raise_for_api_error(data)

    scrobbles = data.get("scrobbles")
    if not isinstance(scrobbles, Mapping):
        raise TransportError("Invalid response from Last.fm")

    items = normalize_scrobble_items(scrobbles.get("scrobble"))
    attr = scrobbles.get("@attr") or {}

    outcomes = [
        outcome_for(record, _ignored_code(item))
        for record, item in zip(records, items, strict=False)
    ]
    outcomes.extend(
        failed_outcome(record, "No result returned for this track")
        for record in records[len(outcomes) :]
    )

    try:
        accepted = int(attr.get("accepted", 0))
        ignored = int(attr.get("ignored", 0))
    except (TypeError, ValueError):
        accepted = sum(1 for outcome in outcomes if outcome.accepted)
        ignored = len(items) - accepted

    return SubmissionResult(accepted=accepted, ignored=ignored, outcomes=outcomes)
