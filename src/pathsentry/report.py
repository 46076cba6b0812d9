"""
Sanitization report and display utilities.

Formats reports for CLI output and JSON export.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from pathsentry.config import INPUT_FILESYSTEM_ERRNOS, PREVIEW_MAX_CHARS
from pathsentry.document import Location, format_location
from pathsentry.errors import ErrorKind


def preview(value: Any, limit: int = PREVIEW_MAX_CHARS) -> str:
    """Single-line, length-capped rendering of an untrusted value for logs."""
    text = value if isinstance(value, str) else repr(value)
    text = text.replace("\r", "\\r").replace("\n", "\\n").replace("\x00", "\\0")
    # Lone surrogates cannot be written to a UTF-8 terminal or log file
    text = text.encode("utf-8", "backslashreplace").decode("utf-8")
    if len(text) > limit:
        return text[: limit - 1] + "…"
    return text


@dataclass(frozen=True)
class AcceptedPath:
    """A candidate that passed every check and was rewritten."""

    location: Location
    original: str
    normalized: str
    resolved_absolute: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "location": format_location(self.location),
            "original": self.original,
            "normalized": self.normalized,
            "resolved_absolute": self.resolved_absolute,
        }


@dataclass(frozen=True)
class RejectedPath:
    """A candidate that failed; its value in the clone is untouched."""

    location: Location
    original: Any
    reason: ErrorKind
    detail: str = ""
    errno: Optional[int] = None

    @property
    def is_infrastructure(self) -> bool:
        """FilesystemError not provoked by the candidate string itself."""
        return self.reason.is_infrastructure and self.errno not in INPUT_FILESYSTEM_ERRNOS

    def to_dict(self) -> dict[str, Any]:
        return {
            "location": format_location(self.location),
            "original": self.original,
            "reason": self.reason.value,
            "detail": self.detail,
            "errno": self.errno,
        }


@dataclass
class SanitizationReport:
    """Outcome of one sanitize() call."""

    sanitized_document: Any
    accepted: list[AcceptedPath] = field(default_factory=list)
    rejected: list[RejectedPath] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return len(self.rejected) == 0

    @property
    def has_infrastructure_errors(self) -> bool:
        """Any rejection caused by the host filesystem rather than the input."""
        return any(r.is_infrastructure for r in self.rejected)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "accepted": [a.to_dict() for a in self.accepted],
            "rejected": [r.to_dict() for r in self.rejected],
            "sanitized_document": self.sanitized_document,
        }


def format_report_summary(report: SanitizationReport) -> str:
    """Format a report as a human-readable summary string."""
    lines = [
        f"Accepted: {len(report.accepted)}",
        f"Rejected: {len(report.rejected)}",
        "",
    ]

    for a in report.accepted:
        lines.append(f"  ✓ {format_location(a.location)}: {preview(a.normalized)}")

    for r in report.rejected:
        lines.append(f"  ✗ {format_location(r.location)}: {r.reason.value}")
        lines.append(f"    └─ {preview(r.original)}")
        if r.detail:
            lines.append(f"    └─ {r.detail}")

    return "\n".join(lines)
