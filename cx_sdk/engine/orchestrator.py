"""Scan orchestrator: drive one scan from creation to filtered results.

The lifecycle is a forward-only state machine:

  scan:   CREATED → QUEUED → SCANNING → FINISHED | FAILED | CANCELED
  report: REQUESTED → CREATED | FAILED

Each step asks the AuthTokenManager for a valid Credential right before the
call, so long scans survive token expiry. Any fatal error aborts the whole
run; there is no partial ScanResult.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import Path

from cx_sdk.adapters.xml_report import ParsedReport, parse_report, parse_report_file
from cx_sdk.auth.token_manager import AuthTokenManager
from cx_sdk.domain.errors import (
    InvalidStateError,
    PollingTimeout,
    RemoteOperationFailed,
    ReportFailed,
    ReportTimeout,
    ScanFailed,
    ScanTimeout,
)
from cx_sdk.domain.interfaces import ModernApi
from cx_sdk.domain.models import (
    Filter,
    ReportHandle,
    ReportState,
    ScanHandle,
    ScanRequest,
    ScanResult,
    ScanState,
    ScanSummary,
    Severity,
)
from cx_sdk.engine.filters import filtered_result, validate_filters
from cx_sdk.engine.polling import CancelToken, Poller, PollPolicy

logger = logging.getLogger(__name__)

DEFAULT_SCAN_POLICY = PollPolicy(interval=20.0, timeout=120 * 60.0)
DEFAULT_REPORT_POLICY = PollPolicy(interval=5.0, timeout=300.0)


class ScanOrchestrator:
    """Composes the REST transport and the token manager into scan runs.

    Safe to share between threads: the only shared state is the Credential,
    which the AuthTokenManager guards. Handles are per call.
    """

    def __init__(
        self,
        api: ModernApi,
        auth: AuthTokenManager,
        scan_policy: PollPolicy = DEFAULT_SCAN_POLICY,
        report_policy: PollPolicy = DEFAULT_REPORT_POLICY,
        parser: Callable[[bytes], ParsedReport] = parse_report,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._api = api
        self._auth = auth
        self._scan_policy = scan_policy
        self._report_policy = report_policy
        self._parser = parser
        self._clock = clock

    # ── Scan ──────────────────────────────────────────────────────────────────

    def create_scan(self, request: ScanRequest) -> ScanHandle:
        """Launch a scan for the request's project. Returns a CREATED handle."""
        credential = self._auth.ensure_valid()
        scan_id = self._api.create_scan(credential, request)
        logger.info("Created scan %s for project %s", scan_id, request.project_id)
        return ScanHandle(scan_id=scan_id)

    def poll_scan_status(self, handle: ScanHandle) -> ScanState:
        """Query the scan status once and fold it into the handle."""
        credential = self._auth.ensure_valid()
        code = self._api.scan_status(credential, handle.scan_id)
        observed = ScanState.from_status_code(code)
        if observed is None:
            logger.warning("Unknown status code %s for scan %s; ignoring", code, handle.scan_id)
        elif handle.advance(observed):
            logger.info("Scan %s is now %s", handle.scan_id, handle.state.name)
        elif observed is not handle.state:
            logger.warning(
                "Ignoring out-of-order status %s for scan %s (current %s)",
                observed.name,
                handle.scan_id,
                handle.state.name,
            )
        return handle.state

    def wait_for_completion(
        self,
        handle: ScanHandle,
        policy: PollPolicy | None = None,
        cancel: CancelToken | None = None,
    ) -> ScanHandle:
        """Block until the scan is terminal.

        Raises:
            ScanTimeout: the policy's timeout elapsed first.
            ScanFailed: the scan ended FAILED or CANCELED.
            OperationCancelled: cancel fired.
        """
        poller = Poller(policy or self._scan_policy, cancel=cancel, clock=self._clock)
        try:
            poller.run(
                lambda: self.poll_scan_status(handle),
                lambda state: state.terminal,
                f"scan {handle.scan_id}",
            )
        except PollingTimeout as err:
            logger.error(
                "Scan %s did not finish in time (last state %s)", handle.scan_id, handle.state.name
            )
            raise ScanTimeout(str(err), elapsed=err.elapsed) from err

        if handle.state is not ScanState.FINISHED:
            logger.error("Scan %s ended %s", handle.scan_id, handle.state.name)
            raise ScanFailed(handle.scan_id, handle.state)
        return handle

    # ── Report ────────────────────────────────────────────────────────────────

    def request_report(self, handle: ScanHandle) -> ReportHandle:
        """Ask for an XML report of a FINISHED scan."""
        if handle.state is not ScanState.FINISHED:
            raise InvalidStateError(
                f"Cannot request a report for scan {handle.scan_id} in state {handle.state.name}"
            )
        credential = self._auth.ensure_valid()
        report_id = self._api.create_report(credential, handle.scan_id)
        logger.info("Requested report %s for scan %s", report_id, handle.scan_id)
        return ReportHandle.for_scan(handle, report_id)

    def poll_report_status(self, report: ReportHandle) -> ReportState:
        credential = self._auth.ensure_valid()
        code = self._api.report_status(credential, report.report_id)
        observed = ReportState.from_status_code(code)
        if observed is None:
            logger.warning("Unknown status code %s for report %s; ignoring", code, report.report_id)
        elif report.advance(observed):
            logger.info("Report %s is now %s", report.report_id, report.state.name)
        elif observed is not report.state:
            logger.warning(
                "Ignoring status %s for report %s (already %s)",
                observed.name,
                report.report_id,
                report.state.name,
            )
        return report.state

    def wait_for_report_ready(
        self,
        report: ReportHandle,
        policy: PollPolicy | None = None,
        cancel: CancelToken | None = None,
    ) -> ReportHandle:
        """Block until the report is generated.

        Raises:
            ReportTimeout: the policy's timeout elapsed first.
            ReportFailed: generation failed remotely.
            OperationCancelled: cancel fired.
        """
        poller = Poller(policy or self._report_policy, cancel=cancel, clock=self._clock)
        try:
            poller.run(
                lambda: self.poll_report_status(report),
                lambda state: state.terminal,
                f"report {report.report_id}",
            )
        except PollingTimeout as err:
            logger.error("Report %s was not generated in time", report.report_id)
            raise ReportTimeout(str(err), elapsed=err.elapsed) from err

        if report.state is not ReportState.CREATED:
            raise ReportFailed(report.report_id, report.state)
        return report

    def fetch_result(self, report: ReportHandle, filters: list[Filter] | None = None) -> ScanResult:
        """Download a generated report and return its filtered findings."""
        if report.state is not ReportState.CREATED:
            raise InvalidStateError(
                f"Report {report.report_id} is not ready (state {report.state.name})"
            )
        credential = self._auth.ensure_valid()
        content = self._api.report_content(credential, report.report_id)
        parsed = self._parser(content)
        result = filtered_result(report.scan_id, parsed.project_name, parsed.findings, filters)
        logger.info(
            "Report %s: %d finding(s), %d after filtering",
            report.report_id,
            len(parsed.findings),
            result.summary.total,
        )
        return result

    def fetch_result_for_scan(
        self,
        scan_id: int,
        filters: list[Filter] | None = None,
        report_policy: PollPolicy | None = None,
        cancel: CancelToken | None = None,
    ) -> ScanResult:
        """Generate, wait for and download the report of an existing scan.

        Raises:
            InvalidStateError: the scan has not finished.
        """
        validate_filters(filters)
        handle = ScanHandle(scan_id=scan_id)
        self.poll_scan_status(handle)
        report = self.request_report(handle)
        self.wait_for_report_ready(report, policy=report_policy, cancel=cancel)
        return self.fetch_result(report, filters)

    # ── Existing scans ────────────────────────────────────────────────────────

    def get_last_scan_id(self, project_id: int) -> int | None:
        """Id of the project's most recent finished scan, or None if it has none."""
        scan_id = self._api.get_last_scan_id(self._auth.ensure_valid(), project_id)
        if scan_id is None:
            logger.info("Project %s has no finished scan", project_id)
        return scan_id

    def scan_exists(self, project_id: int) -> bool:
        """True when the project already has a scan queued or running."""
        queued = self._api.get_queued_scans(self._auth.ensure_valid(), project_id)
        for scan_id, code in queued.items():
            state = ScanState.from_status_code(code)
            if state is not None and not state.terminal:
                logger.info("Project %s has scan %s in state %s", project_id, scan_id, state.name)
                return True
        return False

    def latest_scan_results(
        self,
        project_id: int,
        filters: list[Filter] | None = None,
        report_policy: PollPolicy | None = None,
        cancel: CancelToken | None = None,
    ) -> ScanResult:
        """Filtered results of the project's most recent finished scan.

        Raises:
            RemoteOperationFailed: the project has no finished scan.
        """
        validate_filters(filters)
        scan_id = self.get_last_scan_id(project_id)
        if scan_id is None:
            raise RemoteOperationFailed(f"Project {project_id} has no finished scan")
        return self.fetch_result_for_scan(
            scan_id, filters, report_policy=report_policy, cancel=cancel
        )

    def get_scan_summary(self, scan_id: int) -> ScanSummary:
        """Per-severity result counts of a scan, as computed by the platform."""
        counts = self._api.get_scan_statistics(self._auth.ensure_valid(), scan_id)
        by_severity = {sev: counts.get(sev, 0) for sev in Severity}
        return ScanSummary(
            scan_id=scan_id,
            project_name=None,
            total=sum(by_severity.values()),
            by_severity=by_severity,
        )

    def latest_scan_summary(self, project_id: int) -> ScanSummary:
        """Summary of the project's most recent finished scan.

        Raises:
            RemoteOperationFailed: the project has no finished scan.
        """
        scan_id = self.get_last_scan_id(project_id)
        if scan_id is None:
            raise RemoteOperationFailed(f"Project {project_id} has no finished scan")
        return self.get_scan_summary(scan_id)

    def delete_scan(self, scan_id: int) -> None:
        logger.info("Deleting scan %s", scan_id)
        self._api.delete_scan(self._auth.ensure_valid(), scan_id)

    # ── Composite ─────────────────────────────────────────────────────────────

    def run_scan_and_report(
        self,
        request: ScanRequest,
        filters: list[Filter] | None = None,
        scan_policy: PollPolicy | None = None,
        report_policy: PollPolicy | None = None,
        cancel: CancelToken | None = None,
    ) -> ScanResult:
        """Create a scan, wait for it, generate its report and return the result.

        Filters are checked before anything is sent, so an unknown severity
        raises ValueError without launching a scan.
        """
        validate_filters(filters)
        handle = self.create_scan(request)
        self.wait_for_completion(handle, policy=scan_policy, cancel=cancel)
        report = self.request_report(handle)
        self.wait_for_report_ready(report, policy=report_policy, cancel=cancel)
        return self.fetch_result(report, filters)


def read_report_file(path: Path, filters: list[Filter] | None = None) -> ScanResult:
    """Filtered results of a report saved on disk. No remote call is made.

    The scan id and project name are taken from the report itself.
    """
    parsed = parse_report_file(path)
    result = filtered_result(parsed.scan_id, parsed.project_name, parsed.findings, filters)
    logger.info(
        "Report file %s: %d finding(s), %d after filtering",
        path,
        len(parsed.findings),
        result.summary.total,
    )
    return result
