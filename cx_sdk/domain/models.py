"""Core domain models for the SAST client.

These models have ZERO dependencies on transports, configuration, or the CLI.
They use the platform vocabulary: Credential, Scan, Report, Finding, Team.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

# ─── Authentication ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TokenGrant:
    """Raw token-exchange response, before any expiry arithmetic."""

    access_token: str
    expires_in: int
    """Declared lifetime in seconds."""


@dataclass(frozen=True)
class Credential:
    """Short-lived bearer credential for the modern transport.

    expires_at is already shortened by the safety margin, so it is strictly
    earlier than the expiry the server declared.
    """

    value: str
    issued_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class SessionHandle:
    """Legacy transport session. No expiry: valid until a call rejects it."""

    id: str
    created_at: datetime


# ─── Scans & reports ──────────────────────────────────────────────────────────


class ScanState(Enum):
    """Lifecycle of a remote scan. Ordered; the last three are terminal."""

    CREATED = "created"
    QUEUED = "queued"
    SCANNING = "scanning"
    FINISHED = "finished"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def rank(self) -> int:
        return _SCAN_RANK[self]

    @property
    def terminal(self) -> bool:
        return self in (ScanState.FINISHED, ScanState.FAILED, ScanState.CANCELED)

    @classmethod
    def from_status_code(cls, code: int) -> ScanState | None:
        """Map a remote scan status id to a state. None for unknown codes."""
        return _SCAN_STATUS_CODES.get(code)


_SCAN_RANK = {
    ScanState.CREATED: 0,
    ScanState.QUEUED: 1,
    ScanState.SCANNING: 2,
    ScanState.FINISHED: 3,
    ScanState.FAILED: 3,
    ScanState.CANCELED: 3,
}

# 1 New, 2 PreScan, 3 Queued, 4 Scanning, 6 PostScan, 7 Finished,
# 8 Canceled, 9 Failed, 10 SourcePullingAndDeployment
_SCAN_STATUS_CODES = {
    1: ScanState.CREATED,
    2: ScanState.CREATED,
    10: ScanState.CREATED,
    3: ScanState.QUEUED,
    4: ScanState.SCANNING,
    6: ScanState.SCANNING,
    7: ScanState.FINISHED,
    8: ScanState.CANCELED,
    9: ScanState.FAILED,
}


class ReportState(Enum):
    """Lifecycle of report generation. CREATED means ready to download."""

    REQUESTED = "requested"
    CREATED = "created"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self is not ReportState.REQUESTED

    @classmethod
    def from_status_code(cls, code: int) -> ReportState | None:
        return {1: cls.REQUESTED, 2: cls.CREATED, 3: cls.FAILED}.get(code)


@dataclass(frozen=True)
class ScanRequest:
    """Everything needed to launch one scan. Supplied by the caller."""

    project_id: int
    preset_id: int
    engine_config_id: int
    comment: str = ""
    source_locator: str | None = None
    """Git URL, path to a zip archive, or None if the project already has source."""

    branch: str | None = None
    incremental: bool = False
    public: bool = True
    force_scan: bool = True


@dataclass
class ScanHandle:
    """A launched scan and the furthest state observed for it."""

    scan_id: int
    state: ScanState = ScanState.CREATED

    def advance(self, observed: ScanState) -> bool:
        """Move forward to the observed state. Returns True if the state changed.

        Regressions and any change after a terminal state are ignored.
        """
        if self.state.terminal or observed.rank < self.state.rank:
            return False
        if observed is self.state:
            return False
        self.state = observed
        return True


@dataclass
class ReportHandle:
    """A report generation request tied to a finished scan."""

    report_id: int
    scan_id: int
    state: ReportState = ReportState.REQUESTED

    @classmethod
    def for_scan(cls, scan: ScanHandle, report_id: int) -> ReportHandle:
        """Build a handle for a report of a scan. The scan must be FINISHED."""
        if scan.state is not ScanState.FINISHED:
            raise ValueError(
                f"Report requires a finished scan; scan {scan.scan_id} is {scan.state.name}"
            )
        return cls(report_id=report_id, scan_id=scan.scan_id)

    def advance(self, observed: ReportState) -> bool:
        if self.state.terminal or observed is self.state:
            return False
        self.state = observed
        return True


# ─── Findings & results ───────────────────────────────────────────────────────


class Severity(Enum):
    """Finding severity as reported by the platform."""

    INFO = "info"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    def __lt__(self, other: Severity) -> bool:
        _order = [Severity.INFO, Severity.LOW, Severity.MEDIUM, Severity.HIGH]
        return _order.index(self) < _order.index(other)

    @classmethod
    def parse(cls, raw: str | None) -> Severity:
        """Case-insensitive parse; 'Information' and unknown values map to INFO."""
        text = (raw or "").strip().lower()
        if text.startswith("info"):
            return cls.INFO
        try:
            return cls(text)
        except ValueError:
            return cls.INFO


@dataclass(frozen=True)
class Finding:
    """A single result node from a scan report."""

    id: str
    query: str
    """Query (rule) name, e.g. 'SQL_Injection'."""

    category: str
    """Query group, e.g. 'Java_High_Risk'."""

    severity: Severity
    file_name: str
    line: int | None = None
    cwe: str | None = None
    status: str | None = None
    """'New' or 'Recurrent'."""


class FilterType(Enum):
    SEVERITY = "severity"
    CATEGORY = "category"
    CWE = "cwe"
    STATUS = "status"


@dataclass(frozen=True)
class Filter:
    """Keep findings whose attribute of the given type equals value."""

    type: FilterType
    value: str


@dataclass(frozen=True)
class ScanSummary:
    scan_id: int | None
    """None for a report read from a file that carries no scan id."""

    project_name: str | None
    total: int
    by_severity: dict[Severity, int]


@dataclass(frozen=True)
class ScanResult:
    """Filtered findings of one scan. Produced once, never mutated."""

    findings: tuple[Finding, ...]
    summary: ScanSummary


# ─── Administration ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Team:
    id: str
    name: str
    full_name: str
    parent_id: str | None = None


@dataclass(frozen=True)
class Role:
    id: int
    name: str


@dataclass(frozen=True)
class RoleLdapMapping:
    id: int
    role_id: int
    ldap_server_id: int
    group_dn: str


@dataclass(frozen=True)
class LdapGroupMapping:
    """Team ↔ directory group association as held by the legacy service."""

    ldap_server_id: int
    group_dn: str
    group_name: str


@dataclass(frozen=True)
class Project:
    id: int
    name: str
    team_id: str
    public: bool = True
    custom_fields: dict[str, str] = field(default_factory=dict, repr=False)


@dataclass(frozen=True)
class NamedEntity:
    """Preset or engine configuration: an (id, name) pair."""

    id: int
    name: str
