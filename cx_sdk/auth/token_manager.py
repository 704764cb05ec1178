"""Bearer credential lifecycle for the REST transport.

One AuthTokenManager is built per configured principal and shared by every
thread that talks to the platform. It hands out the current Credential and,
when that is missing or expired, performs exactly one renewal no matter how
many callers notice at the same time: the first caller starts the fetch and
publishes an in-flight future; the rest wait on that future and receive the
same Credential (or the same InvalidCredentials error).

The lock only guards reference swaps. It is never held across the network
call, so renewal never blocks callers that already hold a valid Credential.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future
from datetime import UTC, datetime, timedelta

from cx_sdk.domain.errors import (
    AuthenticationError,
    InvalidCredentials,
    RemoteOperationFailed,
    TransportError,
)
from cx_sdk.domain.interfaces import ModernApi
from cx_sdk.domain.models import Credential
from cx_sdk.security.redaction import mask_token

logger = logging.getLogger(__name__)

DEFAULT_MARGIN_SECONDS = 500
"""Credentials are treated as expired this many seconds before the server says."""

DEFAULT_CLIENT_ID = "resource_owner_client"
DEFAULT_SCOPE = "sast_rest_api"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AuthTokenManager:
    """Owns and renews the bearer Credential used by the REST transport."""

    def __init__(
        self,
        api: ModernApi,
        username: str,
        password: str,
        client_id: str = DEFAULT_CLIENT_ID,
        client_secret: str | None = None,
        scope: str = DEFAULT_SCOPE,
        margin_seconds: int = DEFAULT_MARGIN_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if margin_seconds <= 0:
            raise ValueError(f"margin_seconds must be positive, got {margin_seconds}")
        self._api = api
        self._username = username
        self._password = password
        self._client_id = client_id
        self._client_secret = client_secret
        self._scope = scope
        self._margin = timedelta(seconds=margin_seconds)
        self._clock = clock

        self._lock = threading.Lock()
        self._credential: Credential | None = None
        self._inflight: Future[Credential] | None = None

    # ── Public API ────────────────────────────────────────────────────────────

    def current(self) -> Credential | None:
        """Return the held Credential without validating or renewing it."""
        return self._credential

    def ensure_valid(self) -> Credential:
        """Return a valid Credential, renewing it at most once if needed."""
        with self._lock:
            credential = self._credential
            if credential is not None and not credential.is_expired(self._clock()):
                return credential
            owner = self._inflight is None
            if owner:
                self._inflight = Future()
            flight = self._inflight

        if not owner:
            logger.debug("Credential renewal already in flight; waiting for it")
            return flight.result()

        logger.debug("Credential absent or expired; renewing")
        try:
            credential = self.fetch(self._username, self._password, self._scope)
        except BaseException as exc:
            self._land(flight)
            flight.set_exception(exc)
            raise
        self._land(flight)
        flight.set_result(credential)
        return credential

    def fetch(self, username: str, password: str, scope: str | None = None) -> Credential:
        """Unconditionally obtain and store a new Credential.

        Raises:
            InvalidCredentials: the exchange failed for any reason, including an
                unreachable server or an empty response. Nothing is stored.
        """
        scope = scope or self._scope
        try:
            grant = self._api.token_exchange(
                username, password, self._client_id, self._client_secret, scope
            )
        except (AuthenticationError, RemoteOperationFailed, TransportError) as err:
            logger.error(
                "Error occurred while obtaining access token, possibly incorrect credentials: %s",
                err,
            )
            raise InvalidCredentials(f"Unable to obtain access token for {username}") from err

        if grant is None or not grant.access_token:
            logger.error("Token exchange for %s returned no usable response", username)
            raise InvalidCredentials(f"Unable to obtain access token for {username}")

        issued_at = self._clock()
        credential = Credential(
            value=grant.access_token,
            issued_at=issued_at,
            expires_at=issued_at + timedelta(seconds=grant.expires_in) - self._margin,
        )
        with self._lock:
            self._credential = credential
        logger.info(
            "Obtained access token %s for %s, valid until %s",
            mask_token(credential.value),
            username,
            credential.expires_at.isoformat(),
        )
        return credential

    def invalidate(self) -> None:
        """Drop the held Credential so the next ensure_valid() renews."""
        with self._lock:
            self._credential = None

    def auth_headers(self) -> dict[str, str]:
        """Authorization header for the current (renewed if needed) Credential."""
        credential = self.ensure_valid()
        return {"Authorization": f"Bearer {credential.value}"}

    # ── Internal helpers ──────────────────────────────────────────────────────

    def _land(self, flight: Future[Credential]) -> None:
        with self._lock:
            if self._inflight is flight:
                self._inflight = None
