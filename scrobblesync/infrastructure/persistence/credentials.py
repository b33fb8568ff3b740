"""File-backed storage for the Last.fm session."""

import json
import os
from pathlib import Path

from attrs import define, field

from scrobblesync.config import get_logger, settings
from scrobblesync.domain.entities import AuthSession
from scrobblesync.domain.exceptions import PersistenceError

logger = get_logger(__name__)


@define(slots=True)
class FileCredentialStore:
    """Keeps the session in a JSON file readable only by its owner."""

    path: Path = field(
        factory=lambda: settings.credentials.credentials_file, converter=Path
    )

    def load(self) -> AuthSession | None:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return AuthSession(
                session_key=data["session_key"],
                username=data["username"],
                subscriber=bool(data.get("subscriber", False)),
            )
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable credentials file {self.path}: {e}")
            return None

    def save(self, session: AuthSession) -> None:
        """Write the session atomically.

        Raises:
            PersistenceError: The file could not be written
        """
        payload = {
            "session_key": session.session_key,
            "username": session.username,
            "subscriber": session.subscriber,
        }
        tmp = self.path.with_suffix(".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f)
            tmp.replace(self.path)
        except OSError as e:
            raise PersistenceError(f"Could not save credentials: {e}") from e
        logger.debug(f"Saved Last.fm session for @{session.username}")

    def clear(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Could not delete credentials: {e}") from e
