"""
Error kinds and exceptions.

Two families:
- PathRejected: a single candidate failed. Always recovered by the
  sanitizer and recorded in the report.
- ConfigurationError: the call itself cannot proceed (missing base
  directory, bad options). Raised before any candidate is processed.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Why a candidate path was rejected."""

    INVALID_INPUT = "InvalidInput"
    URL_OR_ABSOLUTE_REJECTED = "UrlOrAbsoluteRejected"
    PARENT_DIRECTORY_ESCAPES_BASE = "ParentDirectoryEscapesBase"
    RESOLVED_PATH_ESCAPES_BASE = "ResolvedPathEscapesBase"
    EXTENSION_NOT_ALLOWED = "ExtensionNotAllowed"
    FILE_MISSING_OR_NOT_REGULAR = "FileMissingOrNotRegular"
    CONTENT_NOT_RECOGNIZED_AS_IMAGE = "ContentNotRecognizedAsImage"
    FILESYSTEM_ERROR = "FilesystemError"

    @property
    def is_infrastructure(self) -> bool:
        """
        True when this kind can point at the host rather than the input.

        FilesystemError is refined per rejection by its errno, see
        RejectedPath.is_infrastructure.
        """
        return self is ErrorKind.FILESYSTEM_ERROR


class PathRejected(Exception):
    """A candidate path failed one of the containment or content checks."""

    def __init__(self, kind: ErrorKind, detail: str, errno: int | None = None) -> None:
        super().__init__(f"{kind.value}: {detail}")
        self.kind = kind
        self.detail = detail
        self.errno = errno


class ConfigurationError(ValueError):
    """Invalid call-level configuration (base directory, options, settings file)."""
