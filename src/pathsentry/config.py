"""
Constants, defaults and the settings file model.

All limits and default values live here. The engine never reads runtime
configuration from this module: callers build a SanitizeOptions per call,
either directly or from a settings file via load_settings().
"""

import errno
import json
from pathlib import Path
from typing import Final, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from pathsentry.errors import ConfigurationError

# ──────────────────────────────────────────────
# Input limits
# ──────────────────────────────────────────────

MAX_CANDIDATE_BYTES: Final[int] = 4096

# Lexical URL test, applied before any path interpretation
URL_SCHEME_PATTERN: Final[str] = r"^[A-Za-z]+://"

# ──────────────────────────────────────────────
# Extensions & content
# ──────────────────────────────────────────────

DEFAULT_ALLOWED_EXTENSIONS: Final[tuple[str, ...]] = (".jpg", ".jpeg", ".png", ".webp")

# Pillow format names accepted by the content check
SUPPORTED_IMAGE_FORMATS: Final[frozenset[str]] = frozenset(
    {"JPEG", "PNG", "WEBP", "GIF", "TIFF", "BMP"}
)

# ──────────────────────────────────────────────
# Discovery presets (targeted mode)
# ──────────────────────────────────────────────

PRESET_SELECTION_KEYS: Final[tuple[str, ...]] = (
    "image",
    "images",
    "thumbnail",
    "background",
    "path",
)

PRESET_SELECTION_KEY_PATTERNS: Final[tuple[str, ...]] = (
    r"(?i)image",
    r"(?i)thumb",
    r"(?i)background",
    r"(?i)photo",
    r"(?i)path",
)

# ──────────────────────────────────────────────
# Sanitizer defaults
# ──────────────────────────────────────────────

OutputForm = Literal["absolute", "relative"]

DEFAULT_OUTPUT_FORM: Final[str] = "absolute"
DEFAULT_REQUIRE_EXISTENCE: Final[bool] = True
DEFAULT_VERIFY_CONTENT: Final[bool] = True
DEFAULT_MAX_WORKERS: Final[int] = 8

# Report previews
PREVIEW_MAX_CHARS: Final[int] = 120

# FilesystemError errnos the candidate string itself can provoke.
# Any other errno blames the host.
INPUT_FILESYSTEM_ERRNOS: Final[frozenset[int]] = frozenset(
    {errno.ENOTDIR, errno.ELOOP, errno.ENAMETOOLONG}
)


# ──────────────────────────────────────────────
# Settings file
# ──────────────────────────────────────────────


class SanitizerSettings(BaseModel):
    """
    On-disk sanitizer configuration (JSON).

    Mirrors SanitizeOptions. Relative base directories are resolved against
    the settings file's own directory by load_settings().
    """

    model_config = ConfigDict(extra="forbid")

    base_directory: str
    allowed_extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_EXTENSIONS)
    )
    selection_keys: list[str] = Field(default_factory=list)
    selection_key_patterns: list[str] = Field(default_factory=list)
    require_existence: bool = DEFAULT_REQUIRE_EXISTENCE
    verify_content: bool = DEFAULT_VERIFY_CONTENT
    output_form: OutputForm = "absolute"
    max_workers: int = Field(default=DEFAULT_MAX_WORKERS, ge=1)

    @field_validator("base_directory")
    @classmethod
    def _base_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("base_directory must not be empty")
        return v

    @field_validator("allowed_extensions")
    @classmethod
    def _dotted_extensions(cls, v: list[str]) -> list[str]:
        bad = [ext for ext in v if not ext.startswith(".")]
        if bad:
            raise ValueError(f"extensions must start with '.': {bad}")
        return v

    def to_options(self, **overrides):
        """Build a SanitizeOptions, letting explicit overrides win."""
        from pathsentry.sanitizer import SanitizeOptions

        values = {
            "base_directory": self.base_directory,
            "allowed_extensions": tuple(self.allowed_extensions),
            "selection_keys": tuple(self.selection_keys),
            "selection_key_patterns": tuple(self.selection_key_patterns),
            "require_existence": self.require_existence,
            "verify_content": self.verify_content,
            "output_form": self.output_form,
            "max_workers": self.max_workers,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return SanitizeOptions(**values)


def load_settings(path: Path) -> SanitizerSettings:
    """
    Load and validate a settings file.

    Raises ConfigurationError if the file is missing, not JSON, or does
    not match the SanitizerSettings model.
    """
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigurationError(f"Settings file not found: {path}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read settings file {path}: {e}") from e

    try:
        settings = SanitizerSettings.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings in {path}: {e}") from e

    base = Path(settings.base_directory)
    if not base.is_absolute():
        settings.base_directory = str(path.resolve().parent / base)

    return settings
