"""
pathsentry — path containment and JSON path sanitization.

Resolves untrusted path strings against a base directory, following every
symlink, and rewrites the accepted ones into a sanitized copy of the JSON
document that carried them.
"""

__version__ = "0.1.0"

from pathsentry.errors import ConfigurationError, ErrorKind, PathRejected
from pathsentry.resolver import (
    ResolvedPath,
    canonical_base,
    ensure_regular_file,
    has_allowed_extension,
    resolve_under,
    verify_content_type,
)
from pathsentry.report import AcceptedPath, RejectedPath, SanitizationReport
from pathsentry.sanitizer import (
    SanitizeOptions,
    discover_candidates,
    sanitize,
    sanitize_async,
)

__all__ = [
    "__version__",
    "AcceptedPath",
    "ConfigurationError",
    "ErrorKind",
    "PathRejected",
    "RejectedPath",
    "ResolvedPath",
    "SanitizationReport",
    "SanitizeOptions",
    "canonical_base",
    "discover_candidates",
    "ensure_regular_file",
    "has_allowed_extension",
    "resolve_under",
    "sanitize",
    "sanitize_async",
    "verify_content_type",
]
