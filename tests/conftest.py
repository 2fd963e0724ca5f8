"""Pytest configuration and shared fixtures."""

from pathlib import Path
from typing import Callable

import pytest
from PIL import Image

from framecast.models.capture import CaptureOptions, FrameRecord, frame_filename
from framecast.models.config import RunConfig


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def run_config() -> RunConfig:
    """A config built from an empty environment."""
    return RunConfig.from_env({})


@pytest.fixture
def capture_options(tmp_path: Path) -> CaptureOptions:
    """Capture options for a small local entry."""
    entry = tmp_path / "site" / "index.html"
    entry.parent.mkdir(parents=True)
    entry.write_text("<html><body></body></html>")
    return CaptureOptions(
        entry=str(entry),
        out_dir=tmp_path / "frames",
        total_frames=3,
        fps=30,
        width=64,
        height=48,
    )


# ============================================================================
# Image Fixtures
# ============================================================================


def write_png(path: Path, size: tuple[int, int] = (8, 8), color=(255, 0, 0, 255)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGBA", size, color).save(path, format="PNG")
    return path


@pytest.fixture
def make_png() -> Callable[..., Path]:
    """Factory writing a solid-color PNG."""
    return write_png


@pytest.fixture
def frame_sequence(tmp_path: Path) -> Callable[..., list[FrameRecord]]:
    """Factory writing N distinct frame files into a directory."""

    def _make(directory: Path, count: int, size: tuple[int, int] = (8, 8)) -> list[FrameRecord]:
        records = []
        for i in range(count):
            path = write_png(directory / frame_filename(i), size, (i * 40 % 256, 0, 0, 255))
            records.append(FrameRecord(frame=i, path=str(path)))
        return records

    return _make
