"""Failure translation shared by the administration entry points.

Administrative calls are single request/response exchanges that are never
retried, so a dropped connection or a rejected credential is as final for the
caller as a remote refusal. Both surface as RemoteOperationFailed, chained to
the transport error that caused them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

from cx_sdk.auth.token_manager import AuthTokenManager
from cx_sdk.domain.errors import AuthenticationError, RemoteOperationFailed, TransportError
from cx_sdk.domain.models import Credential

logger = logging.getLogger(__name__)

T = TypeVar("T")


def rest_call(auth: AuthTokenManager, what: str, call: Callable[[Credential], T]) -> T:
    """Run one REST call with a valid Credential.

    Raises:
        InvalidCredentials: no Credential could be obtained.
        RemoteOperationFailed: the call failed, was refused, or was not authorized.
    """
    credential = auth.ensure_valid()
    try:
        return call(credential)
    except (AuthenticationError, TransportError) as err:
        logger.error("%s failed: %s", what, err)
        raise RemoteOperationFailed(f"{what} failed: {err}") from err
