"""
Path containment — resolve untrusted path strings under a base directory.

Threat model:
- Path traversal ('../', absolute paths pointing elsewhere)
- Symlink escapes (a link inside the base pointing outside it)
- Prefix confusion (/data/images2 is not inside /data/images)
- Renamed payloads (arbitrary bytes with an image extension)
- URLs smuggled into path fields

Everything is decided on the canonical (realpath) form. A target that does
not exist yet is judged by its canonical parent chain.
"""

import os
import re
import stat
from dataclasses import dataclass
from typing import Any, Iterable

from PIL import Image, UnidentifiedImageError

from pathsentry.config import (
    MAX_CANDIDATE_BYTES,
    SUPPORTED_IMAGE_FORMATS,
    URL_SCHEME_PATTERN,
)
from pathsentry.errors import ConfigurationError, ErrorKind, PathRejected

_URL_RE = re.compile(URL_SCHEME_PATTERN)
_LEADING_DOT_SLASH_RE = re.compile(r"^(\./)+")


@dataclass(frozen=True)
class ResolvedPath:
    """A candidate proven to live under the base directory."""

    canonical_absolute: str
    base_relative_posix: str
    existed: bool


def byte_length(value: str) -> int:
    """UTF-8 length; lone surrogates from JSON escapes count as 3 bytes."""
    return len(value.encode("utf-8", "surrogatepass"))


def is_url_like(value: str) -> bool:
    return bool(_URL_RE.match(value))


def canonical_base(base_dir: Any) -> str:
    """
    Canonicalize the base directory once per call.

    Raises ConfigurationError: a bad base is a caller mistake, never a
    per-candidate rejection.
    """
    if not isinstance(base_dir, (str, os.PathLike)) or not os.fspath(base_dir):
        raise ConfigurationError("A base directory is required.")

    try:
        real = os.path.realpath(base_dir, strict=True)
    except OSError as e:
        raise ConfigurationError(f"Base directory cannot be resolved: {base_dir} ({e})") from e

    if not os.path.isdir(real):
        raise ConfigurationError(f"Base directory is not a directory: {base_dir}")

    return real


def is_within(path: str, base: str) -> bool:
    """
    True if `path` is `base` or nested under it.

    Both arguments must already be canonical. The separator boundary is
    enforced: '/data/images2' is not within '/data/images'.
    """
    path_cmp = os.path.normcase(path)
    base_cmp = os.path.normcase(base)
    if path_cmp == base_cmp:
        return True
    prefix = base_cmp if base_cmp.endswith(os.sep) else base_cmp + os.sep
    return path_cmp.startswith(prefix)


def _check_input(candidate: Any) -> None:
    if not isinstance(candidate, str):
        raise PathRejected(
            ErrorKind.INVALID_INPUT, f"Path must be a string, got {type(candidate).__name__}"
        )
    if not candidate:
        raise PathRejected(ErrorKind.INVALID_INPUT, "Path is empty")
    if "\x00" in candidate:
        raise PathRejected(ErrorKind.INVALID_INPUT, "NUL byte in path")
    try:
        os.fsencode(candidate)
    except UnicodeEncodeError as e:
        # Lone surrogates from JSON \ud800 escapes have no filesystem form
        raise PathRejected(
            ErrorKind.INVALID_INPUT, f"Path cannot be encoded for the filesystem: {e.reason}"
        ) from e
    if byte_length(candidate) > MAX_CANDIDATE_BYTES:
        raise PathRejected(
            ErrorKind.INVALID_INPUT, f"Path longer than {MAX_CANDIDATE_BYTES} bytes"
        )


def normalize_separators(candidate: str) -> str:
    """Backslashes to '/', leading './' segments stripped."""
    return _LEADING_DOT_SLASH_RE.sub("", candidate.replace("\\", "/"))


def _check_lexical(candidate: Any) -> None:
    _check_input(candidate)
    if is_url_like(candidate):
        raise PathRejected(
            ErrorKind.URL_OR_ABSOLUTE_REJECTED, "Absolute paths and URLs are not allowed"
        )


def resolve_under(base_dir: str, candidate: Any) -> ResolvedPath:
    """
    Resolve `candidate` under `base_dir` and prove containment.

    Absolute candidates are not rejected outright: they are taken as the
    literal target and must pass the same containment check.

    Raises:
        PathRejected: with the ErrorKind describing the failure.
        ConfigurationError: if `base_dir` is not an existing directory.
    """
    # A bad base is fatal and wins over any per-candidate rejection
    base_real = canonical_base(base_dir)
    return resolve_canonical(base_real, candidate)


def resolve_canonical(base_real: str, candidate: Any) -> ResolvedPath:
    """resolve_under() for a base already passed through canonical_base()."""
    _check_lexical(candidate)
    normalized = normalize_separators(candidate)

    if os.path.isabs(normalized):
        intended = normalized
    else:
        intended = os.path.join(base_real, *normalized.split("/"))

    try:
        real = os.path.realpath(intended, strict=True)
        existed = True
    except FileNotFoundError:
        real = None
        existed = False
    except OSError as e:
        raise PathRejected(ErrorKind.FILESYSTEM_ERROR, str(e), errno=e.errno) from e

    if existed:
        if not is_within(real, base_real):
            raise PathRejected(
                ErrorKind.RESOLVED_PATH_ESCAPES_BASE, "Resolved path escapes base directory"
            )
    else:
        # Non-strict realpath resolves every existing component, dangling
        # symlinks included, and appends the missing tail unresolved.
        real = os.path.realpath(intended)
        parent_real = os.path.dirname(real)
        if not is_within(parent_real, base_real) or not is_within(real, base_real):
            raise PathRejected(
                ErrorKind.PARENT_DIRECTORY_ESCAPES_BASE, "Parent directory escapes base"
            )

    rel = os.path.relpath(real, base_real)
    return ResolvedPath(
        canonical_absolute=real,
        base_relative_posix=rel.replace(os.sep, "/"),
        existed=existed,
    )


def has_allowed_extension(path: str, allowed_extensions: Iterable[str]) -> bool:
    """Case-insensitive exact match of the path's suffix against the allowlist."""
    ext = os.path.splitext(path)[1].lower()
    if not ext:
        return False
    return ext in {e.lower() for e in allowed_extensions}


def ensure_regular_file(path: str) -> None:
    """Stat `path` (following symlinks) and require a plain file."""
    try:
        st = os.stat(path)
    except (FileNotFoundError, NotADirectoryError) as e:
        raise PathRejected(ErrorKind.FILE_MISSING_OR_NOT_REGULAR, "File does not exist") from e
    except OSError as e:
        raise PathRejected(ErrorKind.FILESYSTEM_ERROR, str(e), errno=e.errno) from e

    if not stat.S_ISREG(st.st_mode):
        raise PathRejected(ErrorKind.FILE_MISSING_OR_NOT_REGULAR, "Not a regular file")


def verify_content_type(path: str) -> str:
    """
    Parse the file's image structure and return the detected format.

    Defeats renamed payloads: the bytes must decode as one of
    SUPPORTED_IMAGE_FORMATS regardless of the extension.
    """
    try:
        with Image.open(path) as img:
            fmt = img.format
            img.verify()
    except (FileNotFoundError, PermissionError, IsADirectoryError) as e:
        raise PathRejected(ErrorKind.FILESYSTEM_ERROR, str(e), errno=e.errno) from e
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        SyntaxError,
        ValueError,
    ) as e:
        raise PathRejected(
            ErrorKind.CONTENT_NOT_RECOGNIZED_AS_IMAGE, f"Not a recognized image: {e}"
        ) from e

    if fmt not in SUPPORTED_IMAGE_FORMATS:
        raise PathRejected(
            ErrorKind.CONTENT_NOT_RECOGNIZED_AS_IMAGE, f"Unsupported image format: {fmt}"
        )
    return fmt
