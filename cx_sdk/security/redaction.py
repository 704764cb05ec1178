"""Redaction utilities for keeping secrets out of log records."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

_REDACTED = "[REDACTED]"

_SENSITIVE_KEY_PATTERN = re.compile(
    r"(?i)^(?:password|passwd|client_secret|secret|access_token|refresh_token|"
    r"token|authorization|session_?id|api[-_]?key)$"
)

_TEXT_REDACTIONS: list[tuple[re.Pattern[str], str]] = [
    (
        re.compile(r"(https?://[^/\s:@]+:)[^@\s/]+@", re.IGNORECASE),
        r"\1[REDACTED]@",
    ),
    (
        re.compile(r"(?i)\b(bearer\s+)[A-Za-z0-9._~+/=-]+"),
        r"\1[REDACTED]",
    ),
    (
        re.compile(
            r"(?i)\b((?:password|passwd|client_secret|access_token|refresh_token)=)[^&\s]+"
        ),
        r"\1[REDACTED]",
    ),
    (
        re.compile(r'(?i)("(?:password|client_secret|access_token|refresh_token)"\s*:\s*)"[^"]*"'),
        r'\1"[REDACTED]"',
    ),
    (
        re.compile(r"(?i)(<(?:\w+:)?(?:pass|password|session_?id)>)[^<]*(</)"),
        r"\1[REDACTED]\2",
    ),
]


def redact_text(text: str) -> str:
    """Mask tokens, passwords and session ids inside free text or bodies."""
    redacted = text
    for pattern, replacement in _TEXT_REDACTIONS:
        redacted = pattern.sub(replacement, redacted)
    return redacted


def redact_mapping(data: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of a form payload or header map with secret values masked."""
    return {
        key: _REDACTED if _SENSITIVE_KEY_PATTERN.match(str(key)) else value
        for key, value in data.items()
    }


def mask_token(value: str | None, keep: int = 4) -> str:
    """Show only the last few characters of a token, for correlation in logs."""
    if not value:
        return "<none>"
    if len(value) <= keep * 2:
        return "…"
    return "…" + value[-keep:]
