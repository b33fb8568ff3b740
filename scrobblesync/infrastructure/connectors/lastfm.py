"""Last.fm scrobble-submission connector.

This module talks to the Last.fm web service over ``httpx``: the web auth
handshake (``auth.getSession``) and batched ``track.scrobble`` submissions.
Request signing and response decoding live in
:mod:`scrobblesync.infrastructure.connectors.lastfm_codec`.

Key components:
- LastFMConnector: owns the authenticated session and submits plays

The connector is the only holder of the Last.fm session key. Callers see
``is_authenticated`` and ``username`` and nothing else.
"""

from collections.abc import Sequence
from typing import Any, ClassVar

from attrs import define, field
import httpx
from toolz import partition_all

from scrobblesync.config import get_logger, redact, resilient_operation, settings
from scrobblesync.domain.entities import AuthSession, PlayRecord, SubmissionResult
from scrobblesync.domain.exceptions import (
    ApiError,
    AuthError,
    AuthFailureReason,
    TransportError,
)
from scrobblesync.domain.repositories import CredentialStore, WebAuthFlow
from scrobblesync.infrastructure.connectors import lastfm_codec as codec

# Get contextual logger with service binding
logger = get_logger(__name__).bind(service="lastfm")

MAX_BATCH_SIZE = 50


@define(slots=True)
class LastFMConnector:
    """Last.fm API connector for authentication and scrobbling."""

    api_key: str = field(factory=lambda: settings.credentials.lastfm_key)
    api_secret: str = field(
        factory=lambda: settings.credentials.lastfm_secret, repr=False
    )
    credential_store: CredentialStore | None = field(default=None, repr=False)
    auth_flow: WebAuthFlow | None = field(default=None, repr=False)
    callback_url: str = field(factory=lambda: settings.credentials.lastfm_callback_url)
    base_url: str = field(factory=lambda: settings.api.lastfm_base_url)
    auth_url: str = field(factory=lambda: settings.api.lastfm_auth_url)
    batch_size: int = field(factory=lambda: settings.api.lastfm_batch_size)
    timeout: float = field(factory=lambda: settings.api.lastfm_timeout)
    transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False)

    is_authenticating: bool = field(default=False, init=False)
    _session: AuthSession | None = field(default=None, init=False, repr=False)
    _client: httpx.AsyncClient | None = field(default=None, init=False, repr=False)
    connector_name: str = "lastfm"

    USER_AGENT: ClassVar[str] = "ScrobbleSync/0.1.0 (Play history sync)"

    def __attrs_post_init__(self) -> None:
        """Restore a previously stored session, if there is one."""
        self.batch_size = max(1, min(self.batch_size, MAX_BATCH_SIZE))
        if self.credential_store is None:
            return

        stored = self.credential_store.load()
        if stored is not None:
            self._session = stored
            logger.info(f"Found stored Last.fm session for @{stored.username}")
        else:
            logger.debug("No stored Last.fm session found")

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    @property
    def username(self) -> str:
        return self._session.username if self._session else ""

    @property
    def status_description(self) -> str:
        if self.is_authenticating:
            return "Connecting..."
        if self._session is not None:
            return f"@{self._session.username}"
        return "Not connected"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self.transport,
                headers={"User-Agent": self.USER_AGENT},
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    async def authenticate(self) -> AuthSession | None:
        """Run the web auth flow and exchange the token for a session.

        Returns None without doing anything if an authentication attempt is
        already in progress.

        Raises:
            AuthError: The flow was cancelled or produced no usable token
            ApiError: Last.fm rejected the token exchange
            TransportError: The exchange request failed
            PersistenceError: The session could not be stored
        """
        if self.is_authenticating:
            logger.debug("Already authenticating, ignoring request")
            return None
        if self.auth_flow is None:
            raise AuthError(AuthFailureReason.AUTH_FAILED, "no auth flow configured")

        self.is_authenticating = True
        try:
            auth_url = codec.build_auth_url(
                self.auth_url, self.api_key, self.callback_url
            )
            logger.debug(f"Starting Last.fm web auth with key {redact(self.api_key)}")
            token = await self.auth_flow.obtain_token(auth_url, self.callback_url)
            logger.debug(f"Got token {redact(token)}, exchanging for session")
            return await self.get_session(token)
        finally:
            self.is_authenticating = False

    @resilient_operation("lastfm_get_session")
    async def get_session(self, token: str) -> AuthSession:
        """Exchange a one-time token for a session key and store it."""
        params = codec.sign(
            codec.session_params(self.api_key, token), self.api_secret
        )
        data = await self._request("GET", params=params)
        session = codec.parse_session_response(data)

        if self.credential_store is not None:
            self.credential_store.save(session)

        self._session = session
        logger.info(f"Last.fm session established for @{session.username}")
        return session

    def sign_out(self) -> None:
        """Forget the session and delete stored credentials."""
        if self.credential_store is not None:
            self.credential_store.clear()
        self._session = None
        logger.info("Signed out of Last.fm")

    # -------------------------------------------------------------------------
    # Scrobbling
    # -------------------------------------------------------------------------

    async def scrobble(self, records: Sequence[PlayRecord]) -> SubmissionResult:
        """Submit plays in batches and return one outcome per record, in order.

        A batch that fails at the transport or API level turns into failed
        outcomes for its own records only; other batches are unaffected.
        """
        if self._session is None:
            raise AuthError(AuthFailureReason.NOT_AUTHENTICATED)

        if not records:
            logger.debug("No tracks to scrobble")
            return SubmissionResult()

        logger.info(f"Scrobbling {len(records)} tracks")
        result = SubmissionResult()
        for number, batch in enumerate(partition_all(self.batch_size, records), 1):
            logger.debug(f"Processing batch {number}: {len(batch)} tracks")
            try:
                batch_result = await self._scrobble_batch(batch, self._session)
            except (TransportError, ApiError) as e:
                logger.warning(f"Scrobble batch {number} failed: {e}")
                batch_result = codec.failed_result(batch, str(e))
            result = result.merge(batch_result)

        logger.info(
            f"Scrobble complete: {result.accepted} accepted, {result.ignored} ignored",
            failed=result.failed,
        )
        return result

    async def _scrobble_batch(
        self, batch: Sequence[PlayRecord], session: AuthSession
    ) -> SubmissionResult:
        params = codec.sign(
            codec.scrobble_params(batch, self.api_key, session.session_key),
            self.api_secret,
        )
        data = await self._request("POST", content=codec.encode_form(params))
        return codec.parse_scrobble_response(data, batch)

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        params: list[tuple[str, str]] | None = None,
        content: str | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            TransportError: Network failure, non-200 status or invalid JSON
        """
        client = self._get_client()
        headers = (
            {"Content-Type": "application/x-www-form-urlencoded"} if content else None
        )
        try:
            response = await client.request(
                method, self.base_url, params=params, content=content, headers=headers
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Request failed: {e}") from e

        logger.debug(f"Last.fm responded {response.status_code}")

        if response.status_code != 200:
            # Last.fm reports API errors with 4xx codes and a JSON body
            try:
                data = response.json()
            except ValueError:
                data = None
            if isinstance(data, dict) and "error" in data:
                codec.raise_for_api_error(data)
            raise TransportError(
                f"Request failed with status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise TransportError("Invalid response from Last.fm") from e
