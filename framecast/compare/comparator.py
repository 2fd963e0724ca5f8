"""Frame sequence comparator — per-frame perceptual diff against a baseline sequence."""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image
from pixelmatch.contrib.PIL import pixelmatch

from framecast.errors import FrameDimensionMismatchError
from framecast.models.regression import FrameMismatch, RegressionSummary

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.1


def list_frames(directory: Path) -> list[str]:
    """PNG filenames in *directory*, sorted lexicographically.

    Frame names are fixed-width zero-padded, so lexicographic order is frame order.
    A missing directory is an empty sequence.
    """
    if not directory.is_dir():
        logger.warning("Frame directory %s does not exist; treating it as empty", directory)
        return []
    return sorted(
        p.name for p in directory.iterdir()
        if p.is_file() and p.suffix.lower() == ".png"
    )


def _load_rgba(path: Path) -> Image.Image:
    with Image.open(path) as img:
        return img.convert("RGBA")


def compare_frame(
    actual_path: Path,
    baseline_path: Path,
    threshold: float = DEFAULT_THRESHOLD,
    diff_path: Path | None = None,
) -> FrameMismatch:
    """Compare one frame pair. Raises FrameDimensionMismatchError on size mismatch."""
    actual = _load_rgba(actual_path)
    baseline = _load_rgba(baseline_path)
    if actual.size != baseline.size:
        raise FrameDimensionMismatchError(actual_path.name, actual.size, baseline.size)

    width, height = actual.size
    total = width * height
    diff_image = Image.new("RGBA", actual.size) if diff_path is not None else None
    different = pixelmatch(actual, baseline, diff_image, threshold=threshold, includeAA=False)

    written: str | None = None
    if diff_image is not None and different > 0:
        diff_path.parent.mkdir(parents=True, exist_ok=True)
        diff_image.save(diff_path, format="PNG")
        written = str(diff_path)

    return FrameMismatch(
        frame=actual_path.name,
        different_pixels=different,
        total_pixels=total,
        mismatch_ratio=different / total if total else 0.0,
        diff_path=written,
    )


def compare_frame_sequences(
    actual_dir: str | Path,
    baseline_dir: str | Path,
    diff_dir: str | Path | None = None,
    threshold: float = DEFAULT_THRESHOLD,
) -> RegressionSummary:
    """Compare every frame present in both directories.

    This only measures; deciding pass/fail against a tolerance is up to the caller.
    """
    if not 0 <= threshold <= 1:
        raise ValueError(f"threshold must be between 0 and 1, got {threshold}")
    actual_dir = Path(actual_dir)
    baseline_dir = Path(baseline_dir)
    diff_root = Path(diff_dir) if diff_dir is not None else None

    actual_frames = list_frames(actual_dir)
    baseline_frames = list_frames(baseline_dir)
    actual_set = set(actual_frames)
    baseline_set = set(baseline_frames)

    common = [name for name in actual_frames if name in baseline_set]
    missing_in_actual = [name for name in baseline_frames if name not in actual_set]
    missing_in_baseline = [name for name in actual_frames if name not in baseline_set]

    logger.info("Comparing %d frames (%s vs %s)", len(common), actual_dir, baseline_dir)
    diffs: list[FrameMismatch] = []
    for name in common:
        mismatch = compare_frame(
            actual_dir / name,
            baseline_dir / name,
            threshold=threshold,
            diff_path=diff_root / name if diff_root is not None else None,
        )
        if mismatch.different_pixels:
            logger.debug("%s: %d/%d pixels differ", name,
                         mismatch.different_pixels, mismatch.total_pixels)
        diffs.append(mismatch)

    ratios = [d.mismatch_ratio for d in diffs]
    summary = RegressionSummary(
        diffs=diffs,
        missing_in_actual=missing_in_actual,
        missing_in_baseline=missing_in_baseline,
        total_compared=len(diffs),
        max_mismatch=max(ratios) if ratios else 0.0,
        average_mismatch=sum(ratios) / len(ratios) if ratios else 0.0,
    )
    if missing_in_actual or missing_in_baseline:
        logger.warning("Frame sets differ: %d missing in actual, %d missing in baseline",
                       len(missing_in_actual), len(missing_in_baseline))
    return summary
