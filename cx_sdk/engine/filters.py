"""Finding filters and result summaries.

Filters of the same type are alternatives (OR); filters of different types
must all hold (AND). With no filters every finding is kept. Comparisons are
case-insensitive. A severity filter naming no known severity raises
ValueError instead of matching nothing.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable

from cx_sdk.domain.models import (
    Filter,
    Finding,
    FilterType,
    ScanResult,
    ScanSummary,
    Severity,
)


def apply_filters(findings: Iterable[Finding], filters: Iterable[Filter] | None) -> list[Finding]:
    """Return the findings that satisfy the filters, in input order."""
    grouped = _group(filters)
    if not grouped:
        return list(findings)

    return [
        finding
        for finding in findings
        if all(_matches(finding, ftype, values) for ftype, values in grouped.items())
    ]


def validate_filters(filters: Iterable[Filter] | None) -> None:
    """Raise ValueError for a filter that names no known value."""
    _group(filters)


def filtered_result(
    scan_id: int | None,
    project_name: str | None,
    findings: Iterable[Finding],
    filters: Iterable[Filter] | None,
) -> ScanResult:
    """Apply the filters and summarize what is left."""
    kept = apply_filters(findings, filters)
    return ScanResult(findings=tuple(kept), summary=summarize(scan_id, project_name, kept))


def summarize(
    scan_id: int | None, project_name: str | None, findings: list[Finding]
) -> ScanSummary:
    counts: dict[Severity, int] = {sev: 0 for sev in Severity}
    for finding in findings:
        counts[finding.severity] += 1
    return ScanSummary(
        scan_id=scan_id,
        project_name=project_name,
        total=len(findings),
        by_severity=counts,
    )


def _matches(finding: Finding, ftype: FilterType, values: set[str]) -> bool:
    if ftype is FilterType.SEVERITY:
        return finding.severity.value in values
    if ftype is FilterType.CATEGORY:
        return finding.query.lower() in values or finding.category.lower() in values
    if ftype is FilterType.CWE:
        return finding.cwe is not None and _normalize(ftype, finding.cwe) in values
    if ftype is FilterType.STATUS:
        return finding.status is not None and finding.status.lower() in values
    return False


def _normalize(ftype: FilterType, value: str) -> str:
    text = value.strip().lower()
    if ftype is FilterType.SEVERITY:
        return _severity(value, text)
    if ftype is FilterType.CWE and text.startswith("cwe-"):
        return text[4:]
    return text


def _severity(raw: str, text: str) -> str:
    if text == "information":
        return Severity.INFO.value
    try:
        return Severity(text).value
    except ValueError:
        raise ValueError(f"Unknown severity {raw!r}") from None


def _group(filters: Iterable[Filter] | None) -> dict[FilterType, set[str]]:
    grouped: dict[FilterType, set[str]] = defaultdict(set)
    for f in filters or []:
        grouped[f.type].add(_normalize(f.type, f.value))
    return grouped
