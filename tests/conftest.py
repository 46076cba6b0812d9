"""Shared test fixtures for pathsentry."""

import os
import sys
from pathlib import Path

import pytest
from PIL import Image

# Fix ModuleNotFoundError when running locally without editable install
sys.path.insert(0, str(Path(__file__).parents[1] / "src"))


def make_symlink(link: Path, target: Path) -> Path:
    """Create a symlink or skip the test where the platform forbids it."""
    try:
        os.symlink(target, link, target_is_directory=target.is_dir())
    except (OSError, NotImplementedError) as e:
        pytest.skip(f"symlinks unavailable: {e}")
    return link


def write_image(path: Path, fmt: str = "PNG", color: str = "red") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", (4, 4), color).save(path, format=fmt)
    return path


@pytest.fixture
def image_root(tmp_path: Path) -> Path:
    """
    Base directory with a small image tree.

    images/
      ok.jpg            real JPEG
      pets/cat.png      real PNG
      fake.png          text payload with an image extension
      docs/notes.txt    non-image file
      album.png/        directory named like an image
    """
    root = tmp_path / "images"
    root.mkdir()
    write_image(root / "ok.jpg", fmt="JPEG", color="blue")
    write_image(root / "pets" / "cat.png")
    (root / "fake.png").write_text("<?php system($_GET['c']); ?>", encoding="utf-8")
    (root / "docs").mkdir()
    (root / "docs" / "notes.txt").write_text("notes", encoding="utf-8")
    (root / "album.png").mkdir()
    return root


@pytest.fixture
def base_real(image_root: Path) -> str:
    """Canonical form of image_root (tmp dirs may sit behind a symlink)."""
    return os.path.realpath(image_root)


@pytest.fixture
def outside_dir(tmp_path: Path) -> Path:
    """A directory next to the base holding a real image."""
    outside = tmp_path / "outside"
    write_image(outside / "secret.png", color="green")
    return outside


@pytest.fixture
def sibling_dir(tmp_path: Path) -> Path:
    """images2/ shares a string prefix with images/ but is not inside it."""
    sibling = tmp_path / "images2"
    write_image(sibling / "x.png")
    return sibling
