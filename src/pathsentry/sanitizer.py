"""
JSON path sanitizer — find path strings in a document, prove each one,
and rewrite the accepted ones into a clone.

Discovery modes:
- Targeted: only values under configured keys / key patterns.
- Heuristic: every string leaf that looks like a path or URL.

Per candidate: resolve under the base → extension allowlist on the
resolved path → regular file (optional) → image content (optional).
Rejections are recorded, never raised; the clone keeps the original value
at rejected locations.
"""

import asyncio
import logging
import os
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from pathsentry.config import (
    DEFAULT_ALLOWED_EXTENSIONS,
    DEFAULT_MAX_WORKERS,
    DEFAULT_OUTPUT_FORM,
    DEFAULT_REQUIRE_EXISTENCE,
    DEFAULT_VERIFY_CONTENT,
    MAX_CANDIDATE_BYTES,
)
from pathsentry.document import (
    ROOT,
    Field,
    Index,
    JsonKind,
    Location,
    clone,
    format_location,
    iter_strings,
    kind_of,
    members,
    set_at,
)
from pathsentry.errors import ConfigurationError, ErrorKind, PathRejected
from pathsentry.report import AcceptedPath, RejectedPath, SanitizationReport, preview
from pathsentry.resolver import (
    ResolvedPath,
    byte_length,
    canonical_base,
    ensure_regular_file,
    has_allowed_extension,
    is_url_like,
    resolve_canonical,
    verify_content_type,
)

logger = logging.getLogger(__name__)

_OUTPUT_FORMS = ("absolute", "relative")


def _as_tuple(value: Any, name: str) -> tuple:
    # A bare string would otherwise be split into characters
    if value is None:
        return ()
    if isinstance(value, (str, re.Pattern)):
        return (value,)
    try:
        return tuple(value)
    except TypeError as e:
        raise ConfigurationError(f"{name} must be a sequence") from e


@dataclass
class SanitizeOptions:
    """Per-call sanitizer configuration. Validated on construction."""

    base_directory: Union[str, "os.PathLike[str]"]
    allowed_extensions: tuple[str, ...] = DEFAULT_ALLOWED_EXTENSIONS
    selection_keys: tuple[str, ...] = ()
    selection_key_patterns: tuple[Union[str, re.Pattern], ...] = ()
    require_existence: bool = DEFAULT_REQUIRE_EXISTENCE
    verify_content: bool = DEFAULT_VERIFY_CONTENT
    output_form: str = DEFAULT_OUTPUT_FORM
    max_workers: int = DEFAULT_MAX_WORKERS

    compiled_patterns: tuple[re.Pattern, ...] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.base_directory:
            raise ConfigurationError("base_directory is required")

        if self.output_form not in _OUTPUT_FORMS:
            raise ConfigurationError(
                f"output_form must be one of {_OUTPUT_FORMS}, got {self.output_form!r}"
            )

        if (
            isinstance(self.max_workers, bool)
            or not isinstance(self.max_workers, int)
            or self.max_workers < 1
        ):
            raise ConfigurationError(f"max_workers must be a positive int, got {self.max_workers!r}")

        exts = _as_tuple(self.allowed_extensions, "allowed_extensions")
        if not all(isinstance(e, str) for e in exts):
            raise ConfigurationError("allowed_extensions must be strings")
        undotted = [e for e in exts if not e.startswith(".")]
        if undotted:
            raise ConfigurationError(f"allowed_extensions must start with '.': {undotted}")
        self.allowed_extensions = tuple(e.lower() for e in exts)

        keys = _as_tuple(self.selection_keys, "selection_keys")
        if not all(isinstance(k, str) for k in keys):
            raise ConfigurationError("selection_keys must be strings")
        self.selection_keys = keys

        self.selection_key_patterns = _as_tuple(
            self.selection_key_patterns, "selection_key_patterns"
        )
        compiled = []
        for pattern in self.selection_key_patterns:
            try:
                compiled.append(re.compile(pattern))
            except (re.error, TypeError) as e:
                raise ConfigurationError(f"Invalid key pattern {pattern!r}: {e}") from e
        self.compiled_patterns = tuple(compiled)

    @property
    def targeted(self) -> bool:
        return bool(self.selection_keys or self.selection_key_patterns)

    def key_selected(self, key: str) -> bool:
        if key in self.selection_keys:
            return True
        return any(rx.search(key) for rx in self.compiled_patterns)


@dataclass(frozen=True)
class Candidate:
    """A string found in the document that must be validated as a path."""

    location: Location
    raw_value: str


@dataclass(frozen=True)
class Accepted:
    candidate: Candidate
    resolved: ResolvedPath
    normalized: str


@dataclass(frozen=True)
class Rejected:
    candidate: Candidate
    reason: ErrorKind
    detail: str
    errno: Optional[int] = None


Outcome = Union[Accepted, Rejected]


# ──────────────────────────────────────────────
# Discovery
# ──────────────────────────────────────────────


def is_path_like(value: Any, allowed_extensions: tuple[str, ...] = ()) -> bool:
    """Heuristic: separators, an allowed extension, or a URL."""
    if not isinstance(value, str):
        return False
    if not value or byte_length(value) > MAX_CANDIDATE_BYTES:
        return False

    # URLs are flagged so the resolver can reject them explicitly
    if is_url_like(value):
        return True

    if "/" in value or "\\" in value:
        return True

    lowered = value.lower()
    return any(lowered.endswith(ext.lower()) for ext in allowed_extensions)


def _discover_targeted(document: Any, options: SanitizeOptions) -> list[Candidate]:
    candidates: list[Candidate] = []
    # Entries are either ("visit", location, node) or ("emit", candidate)
    stack: list[tuple] = [("visit", ROOT, document)]

    while stack:
        entry = stack.pop()
        if entry[0] == "emit":
            candidates.append(entry[1])
            continue

        _, location, node = entry
        kind = kind_of(node)
        if kind is JsonKind.ARRAY:
            stack.extend(
                ("visit", location + (Index(i),), node[i]) for i in reversed(range(len(node)))
            )
        elif kind is JsonKind.OBJECT:
            pending = []
            for key, value in members(node):
                here = location + (Field(key),)
                if options.key_selected(key):
                    value_kind = kind_of(value)
                    if value_kind is JsonKind.STRING:
                        pending.append(("emit", Candidate(here, value)))
                    elif value_kind is JsonKind.ARRAY:
                        for i, item in enumerate(value):
                            if kind_of(item) is JsonKind.STRING:
                                pending.append(("emit", Candidate(here + (Index(i),), item)))
                # Matched or not, nested structures are still searched
                pending.append(("visit", here, value))
            stack.extend(reversed(pending))

    return candidates


def _discover_heuristic(document: Any, options: SanitizeOptions) -> list[Candidate]:
    return [
        Candidate(location, value)
        for location, value in iter_strings(document)
        if is_path_like(value, options.allowed_extensions)
    ]


def discover_candidates(document: Any, options: SanitizeOptions) -> list[Candidate]:
    """
    Collect path candidates in document order.

    Targeted mode when any selection key or pattern is configured,
    heuristic mode otherwise. No filesystem access.
    """
    if options.targeted:
        return _discover_targeted(document, options)
    return _discover_heuristic(document, options)


# ──────────────────────────────────────────────
# Validation
# ──────────────────────────────────────────────


def _output_value(resolved: ResolvedPath, output_form: str) -> str:
    if output_form == "relative":
        return resolved.base_relative_posix
    return resolved.canonical_absolute.replace(os.sep, "/")


def validate_candidate(
    candidate: Candidate, base_real: str, options: SanitizeOptions
) -> Outcome:
    """
    Run every check for one candidate. Never raises PathRejected.

    `base_real` must come from canonical_base().
    """
    try:
        resolved = resolve_canonical(base_real, candidate.raw_value)

        # Enforce on the real target, not the raw string
        if not has_allowed_extension(resolved.canonical_absolute, options.allowed_extensions):
            ext = os.path.splitext(resolved.canonical_absolute)[1] or "(none)"
            raise PathRejected(ErrorKind.EXTENSION_NOT_ALLOWED, f"Extension not allowed: {ext}")

        if options.require_existence:
            ensure_regular_file(resolved.canonical_absolute)
            if options.verify_content:
                verify_content_type(resolved.canonical_absolute)

    except PathRejected as e:
        return Rejected(candidate, e.kind, e.detail, e.errno)

    return Accepted(candidate, resolved, _output_value(resolved, options.output_form))


def _validate_all(
    candidates: list[Candidate], base_real: str, options: SanitizeOptions
) -> list[Outcome]:
    if options.max_workers == 1 or len(candidates) <= 1:
        return [validate_candidate(c, base_real, options) for c in candidates]

    workers = min(options.max_workers, len(candidates))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="pathsentry") as pool:
        # map() yields in submission order, i.e. discovery order
        return list(pool.map(lambda c: validate_candidate(c, base_real, options), candidates))


def _assemble(document: Any, outcomes: list[Outcome]) -> SanitizationReport:
    accepted: list[AcceptedPath] = []
    rejected: list[RejectedPath] = []

    for outcome in outcomes:
        location = outcome.candidate.location
        original = outcome.candidate.raw_value

        if isinstance(outcome, Accepted):
            document = set_at(document, location, outcome.normalized)
            accepted.append(
                AcceptedPath(
                    location=location,
                    original=original,
                    normalized=outcome.normalized,
                    resolved_absolute=outcome.resolved.canonical_absolute,
                )
            )
            logger.debug(
                "Path accepted at %s: %s -> %s",
                format_location(location),
                preview(original),
                outcome.normalized,
            )
        else:
            rejected.append(
                RejectedPath(
                    location=location,
                    original=original,
                    reason=outcome.reason,
                    detail=outcome.detail,
                    errno=outcome.errno,
                )
            )
            logger.warning(
                "Path validation failed at %s: %s (%s); value=%r",
                format_location(location),
                outcome.reason.value,
                outcome.detail,
                preview(original),
            )

    logger.info("Sanitized document: %d accepted, %d rejected", len(accepted), len(rejected))
    return SanitizationReport(sanitized_document=document, accepted=accepted, rejected=rejected)


def sanitize(document: Any, options: SanitizeOptions) -> SanitizationReport:
    """
    Validate every path candidate in `document` and return a report.

    The input is never mutated. report.sanitized_document is a deep clone
    with accepted values rewritten per options.output_form.

    Raises:
        ConfigurationError: base directory missing or not a directory.
        TypeError: the document holds values JSON cannot represent.
    """
    base_real = canonical_base(options.base_directory)
    snapshot = clone(document)

    candidates = discover_candidates(snapshot, options)
    logger.debug(
        "Found %d candidate(s) in %s mode under %s",
        len(candidates),
        "targeted" if options.targeted else "heuristic",
        base_real,
    )

    outcomes = _validate_all(candidates, base_real, options)
    return _assemble(snapshot, outcomes)


async def sanitize_async(document: Any, options: SanitizeOptions) -> SanitizationReport:
    """
    sanitize() for asyncio callers.

    Filesystem checks run in worker threads, at most options.max_workers
    at a time. If the awaiting task is cancelled no report is produced;
    threads already running finish on their own and write nothing.
    """
    base_real = await asyncio.to_thread(canonical_base, options.base_directory)
    snapshot = clone(document)
    candidates = discover_candidates(snapshot, options)

    semaphore = asyncio.Semaphore(options.max_workers)

    async def _one(candidate: Candidate) -> Outcome:
        async with semaphore:
            return await asyncio.to_thread(validate_candidate, candidate, base_real, options)

    outcomes = await asyncio.gather(*(_one(c) for c in candidates))
    return _assemble(snapshot, list(outcomes))
