"""Legacy (SOAP) session handle.

The legacy transport has no notion of expiry. A SessionHandle is created by an
explicit login and held until a call made with it is rejected, at which point
the caller invalidates it and logs in again.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime

from cx_sdk.domain.errors import (
    AuthenticationError,
    InvalidCredentials,
    LegacyServiceError,
    TransportError,
)
from cx_sdk.domain.interfaces import LegacyApi
from cx_sdk.domain.models import SessionHandle

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class LegacySessionBridge:
    """Owns the SessionHandle used by the legacy transport."""

    def __init__(
        self,
        api: LegacyApi,
        username: str | None = None,
        password: str | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._api = api
        self._username = username
        self._password = password
        self._clock = clock
        self._lock = threading.Lock()
        self._session: SessionHandle | None = None

    def login(self, username: str, password: str) -> SessionHandle:
        """Authenticate against the legacy service and hold the new session.

        Raises:
            InvalidCredentials: on any remote failure. The underlying error is
                logged here and not exposed to the caller.
        """
        try:
            session_id = self._api.login(username, password)
        except (AuthenticationError, LegacyServiceError, TransportError) as err:
            logger.error("Legacy login failed for %s: %s", username, err, exc_info=True)
            raise InvalidCredentials(f"Legacy login failed for {username}") from None

        handle = SessionHandle(id=session_id, created_at=self._clock())
        with self._lock:
            self._session = handle
        logger.info("Legacy session established for %s", username)
        return handle

    def current_session(self) -> SessionHandle | None:
        return self._session

    def ensure_session(self) -> SessionHandle:
        """Return the held session, logging in with the configured principal if none."""
        session = self._session
        if session is not None:
            return session
        if not self._username or not self._password:
            raise InvalidCredentials("No legacy session and no configured credentials to log in")
        return self.login(self._username, self._password)

    def invalidate(self) -> None:
        """Forget the held session after the service rejected it."""
        with self._lock:
            self._session = None
