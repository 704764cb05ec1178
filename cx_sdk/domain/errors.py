"""Exception taxonomy for the SAST client.

Every error raised by this package derives from CxError so callers can catch
the whole family in one place. Only TransportError is considered transient.
"""

from __future__ import annotations

from cx_sdk.domain.models import ReportState, ScanState


class CxError(Exception):
    """Base class for all client errors."""


class InvalidCredentials(CxError):
    """Authentication failed or a credential could not be obtained."""


class AuthenticationError(CxError):
    """The remote platform rejected the credential or session (401/403)."""


class TransportError(CxError):
    """Connection failure, timeout, or server-side (5xx) error. Transient."""


class RemoteOperationFailed(CxError):
    """A remote call completed but reported failure, or returned an unusable body."""


class LegacyServiceError(RemoteOperationFailed):
    """The legacy SOAP service returned an unsuccessful result."""


class InvalidStateError(CxError):
    """A scan or report handle is not in the state an operation requires."""


class OperationCancelled(CxError):
    """A wait was cancelled by the caller before reaching a terminal state."""


class PollingTimeout(CxError):
    """A polling loop exceeded its wall-clock deadline."""

    def __init__(self, message: str, elapsed: float = 0.0) -> None:
        super().__init__(message)
        self.elapsed = elapsed


class ScanTimeout(PollingTimeout):
    """The scan did not reach a terminal state before the deadline."""


class ReportTimeout(PollingTimeout):
    """The report was not generated before the deadline."""


class ScanFailed(CxError):
    """The scan reached the Failed or Canceled terminal state."""

    def __init__(self, scan_id: int, state: ScanState) -> None:
        super().__init__(f"Scan {scan_id} ended in state {state.name}")
        self.scan_id = scan_id
        self.state = state


class ReportFailed(CxError):
    """Report generation reached the Failed terminal state."""

    def __init__(self, report_id: int, state: ReportState = ReportState.FAILED) -> None:
        super().__init__(f"Report {report_id} ended in state {state.name}")
        self.report_id = report_id
        self.state = state
