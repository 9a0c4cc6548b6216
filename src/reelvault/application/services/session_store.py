"""Browser session management.

Sessions live in memory and are lost on restart. Session ids handed to clients
are signed with the configured session store key, so a forged or truncated
cookie never matches a session.
"""

import hashlib
import hmac
import secrets
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from reelvault.config import ConfigStore


@dataclass
class Session:
    """One authenticated browser session."""

    session_id: str
    username: str
    expires_at: datetime
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def is_expired(self) -> bool:
        return datetime.now(UTC) >= self.expires_at


class SessionStore:
    """In-memory session store keyed by signed session ids."""

    def __init__(self, secret_key: str, max_age_seconds: int) -> None:
        # A new system has no key yet; an ephemeral one is fine until setup
        # completes because the store is rebuilt after setup anyway.
        self._secret = (secret_key or secrets.token_hex(32)).encode()
        self._max_age = timedelta(seconds=max_age_seconds)
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: ConfigStore) -> "SessionStore":
        return cls(config.get_session_store_key(), config.get_max_session_age())

    def _sign(self, session_id: str) -> str:
        digest = hmac.new(self._secret, session_id.encode(), hashlib.sha256).hexdigest()
        return f"{session_id}.{digest}"

    def _unsign(self, token: str) -> str | None:
        session_id, _, _signature = token.rpartition(".")
        if not session_id:
            return None
        if not hmac.compare_digest(self._sign(session_id), token):
            return None
        return session_id

    def create_session(self, username: str) -> str:
        """Create a session and return the signed token for the cookie."""
        session_id = secrets.token_urlsafe(32)
        session = Session(
            session_id=session_id,
            username=username,
            expires_at=datetime.now(UTC) + self._max_age,
        )
        with self._lock:
            self._sessions[session_id] = session
        return self._sign(session_id)

    def get_session(self, token: str) -> Session | None:
        """Look up a live session by its signed token."""
        session_id = self._unsign(token)
        if session_id is None:
            return None

        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None and session.is_expired():
                del self._sessions[session_id]
                return None
            return session

    def delete_session(self, token: str) -> bool:
        session_id = self._unsign(token)
        if session_id is None:
            return False
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
