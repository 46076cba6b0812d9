"""Tests for the settings file model and loader."""

import json
from pathlib import Path

import pytest

from pathsentry.config import DEFAULT_ALLOWED_EXTENSIONS, SanitizerSettings, load_settings
from pathsentry.errors import ConfigurationError
from pathsentry.sanitizer import SanitizeOptions


def _write(path: Path, data) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestLoadSettings:
    """Tests for load_settings()."""

    def test_minimal(self, tmp_path: Path) -> None:
        settings = load_settings(_write(tmp_path / "s.json", {"base_directory": "/srv/img"}))
        assert settings.allowed_extensions == list(DEFAULT_ALLOWED_EXTENSIONS)
        assert settings.require_existence is True
        assert settings.output_form == "absolute"

    def test_relative_base_is_anchored_to_file(self, tmp_path: Path) -> None:
        (tmp_path / "conf").mkdir()
        settings = load_settings(_write(tmp_path / "conf" / "s.json", {"base_directory": "img"}))
        assert Path(settings.base_directory) == (tmp_path / "conf").resolve() / "img"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            load_settings(tmp_path / "nope.json")

    def test_not_json(self, tmp_path: Path) -> None:
        bad = tmp_path / "s.json"
        bad.write_text("base_directory = 'x'", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Cannot read settings"):
            load_settings(bad)

    @pytest.mark.parametrize(
        "data",
        [
            {},
            {"base_directory": "   "},
            {"base_directory": "/x", "allowed_extensions": ["png"]},
            {"base_directory": "/x", "output_form": "windows"},
            {"base_directory": "/x", "max_workers": 0},
            {"base_directory": "/x", "unknown": True},
        ],
    )
    def test_invalid_settings(self, tmp_path: Path, data) -> None:
        with pytest.raises(ConfigurationError, match="Invalid settings"):
            load_settings(_write(tmp_path / "s.json", data))


class TestToOptions:
    """Tests for SanitizerSettings.to_options()."""

    def test_carries_every_field(self, image_root: Path) -> None:
        settings = SanitizerSettings(
            base_directory=str(image_root),
            allowed_extensions=[".gif"],
            selection_keys=["image"],
            selection_key_patterns=["thumb"],
            require_existence=False,
            verify_content=False,
            output_form="relative",
            max_workers=2,
        )
        opts = settings.to_options()
        assert isinstance(opts, SanitizeOptions)
        assert opts.allowed_extensions == (".gif",)
        assert opts.selection_keys == ("image",)
        assert opts.selection_key_patterns == ("thumb",)
        assert opts.require_existence is False
        assert opts.verify_content is False
        assert opts.output_form == "relative"
        assert opts.max_workers == 2

    def test_overrides_win_and_none_is_ignored(self, image_root: Path) -> None:
        settings = SanitizerSettings(base_directory=str(image_root), output_form="relative")
        opts = settings.to_options(output_form="absolute", max_workers=None)
        assert opts.output_form == "absolute"
        assert opts.max_workers == settings.max_workers
