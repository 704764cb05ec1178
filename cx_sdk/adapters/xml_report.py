"""XML scan report parser.

Reads the platform's XML report and normalizes it into domain Findings.

Report format:
- Root element CxXMLResults carries ProjectName and ScanId attributes; a
  missing or non-numeric ScanId is read as None
- Each Query element is one rule: id, name, group, cweId, Severity
- Each Result under a Query is one finding: NodeId, FileName, Line, Status,
  Severity (may override the query's), FalsePositive
- Results flagged FalsePositive="True" are dropped
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path

from cx_sdk.domain.errors import RemoteOperationFailed
from cx_sdk.domain.models import Finding, Severity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParsedReport:
    project_name: str | None
    scan_id: int | None
    findings: list[Finding]


def _parse_int(raw: str | None) -> int | None:
    try:
        return int(raw) if raw else None
    except ValueError:
        return None


def _is_false_positive(result: ET.Element) -> bool:
    return (result.get("FalsePositive") or "").strip().lower() == "true"


def _to_finding(query: ET.Element, result: ET.Element) -> Finding:
    severity_raw = result.get("Severity") or query.get("Severity")
    cwe = query.get("cweId")
    return Finding(
        id=result.get("NodeId") or "",
        query=query.get("name", ""),
        category=query.get("group", ""),
        severity=Severity.parse(severity_raw),
        file_name=result.get("FileName", ""),
        line=_parse_int(result.get("Line")),
        cwe=cwe if cwe and cwe != "0" else None,
        status=result.get("Status"),
    )


def parse_report(content: bytes | str) -> ParsedReport:
    """Parse raw report content.

    Raises:
        RemoteOperationFailed: the content is not a well-formed XML report.
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as err:
        raise RemoteOperationFailed(f"Report content is not valid XML: {err}") from err

    if root.tag != "CxXMLResults":
        raise RemoteOperationFailed(f"Unexpected report root element <{root.tag}>")

    findings: list[Finding] = []
    skipped = 0
    for query in root.iter("Query"):
        for result in query.iter("Result"):
            if _is_false_positive(result):
                skipped += 1
                continue
            findings.append(_to_finding(query, result))

    if skipped:
        logger.debug("Dropped %d false-positive result(s)", skipped)

    return ParsedReport(
        project_name=root.get("ProjectName"),
        scan_id=_parse_int(root.get("ScanId")),
        findings=findings,
    )


def parse_report_file(path: Path) -> ParsedReport:
    """Parse a report previously saved to disk.

    Raises:
        FileNotFoundError: the file does not exist.
        RemoteOperationFailed: the file is not a well-formed XML report.
    """
    logger.debug("Reading report from %s", path)
    return parse_report(path.read_bytes())
