"""Tests for domain models: state ordering, handles, severities."""

from __future__ import annotations

import pytest

from cx_sdk.domain.models import (
    ReportHandle,
    ReportState,
    ScanHandle,
    ScanState,
    Severity,
)


class TestScanState:
    @pytest.mark.parametrize(
        ("code", "state"),
        [
            (1, ScanState.CREATED),
            (2, ScanState.CREATED),
            (10, ScanState.CREATED),
            (3, ScanState.QUEUED),
            (4, ScanState.SCANNING),
            (6, ScanState.SCANNING),
            (7, ScanState.FINISHED),
            (8, ScanState.CANCELED),
            (9, ScanState.FAILED),
        ],
    )
    def test_status_code_mapping(self, code: int, state: ScanState) -> None:
        assert ScanState.from_status_code(code) is state

    def test_unknown_status_code_is_none(self) -> None:
        assert ScanState.from_status_code(1001) is None

    def test_terminal_states(self) -> None:
        terminal = {s for s in ScanState if s.terminal}
        assert terminal == {ScanState.FINISHED, ScanState.FAILED, ScanState.CANCELED}


class TestScanHandleAdvance:
    def test_moves_forward_through_states(self) -> None:
        handle = ScanHandle(scan_id=5)
        assert handle.advance(ScanState.QUEUED)
        assert handle.advance(ScanState.SCANNING)
        assert handle.advance(ScanState.FINISHED)
        assert handle.state is ScanState.FINISHED

    def test_may_skip_states(self) -> None:
        handle = ScanHandle(scan_id=5)
        assert handle.advance(ScanState.FINISHED)
        assert handle.state is ScanState.FINISHED

    def test_regression_is_ignored(self) -> None:
        handle = ScanHandle(scan_id=5, state=ScanState.SCANNING)
        assert not handle.advance(ScanState.QUEUED)
        assert handle.state is ScanState.SCANNING

    def test_same_state_is_not_a_change(self) -> None:
        handle = ScanHandle(scan_id=5, state=ScanState.QUEUED)
        assert not handle.advance(ScanState.QUEUED)

    def test_terminal_state_is_final(self) -> None:
        handle = ScanHandle(scan_id=5, state=ScanState.FAILED)
        assert not handle.advance(ScanState.FINISHED)
        assert handle.state is ScanState.FAILED


class TestReportHandle:
    def test_for_finished_scan(self) -> None:
        scan = ScanHandle(scan_id=5, state=ScanState.FINISHED)
        report = ReportHandle.for_scan(scan, 77)
        assert report.report_id == 77
        assert report.scan_id == 5
        assert report.state is ReportState.REQUESTED

    @pytest.mark.parametrize(
        "state", [ScanState.CREATED, ScanState.SCANNING, ScanState.FAILED, ScanState.CANCELED]
    )
    def test_rejects_unfinished_scan(self, state: ScanState) -> None:
        with pytest.raises(ValueError):
            ReportHandle.for_scan(ScanHandle(scan_id=5, state=state), 77)

    def test_report_state_is_final_once_terminal(self) -> None:
        report = ReportHandle(report_id=77, scan_id=5)
        assert report.advance(ReportState.CREATED)
        assert not report.advance(ReportState.FAILED)
        assert report.state is ReportState.CREATED

    def test_report_status_codes(self) -> None:
        assert ReportState.from_status_code(1) is ReportState.REQUESTED
        assert ReportState.from_status_code(2) is ReportState.CREATED
        assert ReportState.from_status_code(3) is ReportState.FAILED
        assert ReportState.from_status_code(42) is None


class TestSeverity:
    def test_ordering(self) -> None:
        assert Severity.INFO < Severity.LOW < Severity.MEDIUM < Severity.HIGH

    def test_parse_is_case_insensitive(self) -> None:
        assert Severity.parse("High") is Severity.HIGH
        assert Severity.parse("MEDIUM") is Severity.MEDIUM

    def test_parse_information_and_unknown(self) -> None:
        assert Severity.parse("Information") is Severity.INFO
        assert Severity.parse("bogus") is Severity.INFO
        assert Severity.parse(None) is Severity.INFO
