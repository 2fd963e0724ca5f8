"""Placeholder frames for hosts that cannot run a browser at all."""

from __future__ import annotations

import logging
import shutil

from PIL import Image

from framecast.models.capture import CaptureOptions, FrameRecord

logger = logging.getLogger(__name__)


def write_placeholder_frames(
    options: CaptureOptions,
    color: tuple[int, int, int] = (0, 0, 0),
) -> list[FrameRecord]:
    """Write one solid-color frame and copy it to every frame index."""
    options.out_dir.mkdir(parents=True, exist_ok=True)
    if options.total_frames == 0:
        return []

    first = options.frame_path(0)
    Image.new("RGB", (options.width, options.height), color).save(first, format="PNG")
    records = [FrameRecord(frame=0, path=str(first))]

    for index in range(1, options.total_frames):
        path = options.frame_path(index)
        shutil.copyfile(first, path)
        records.append(FrameRecord(frame=index, path=str(path)))

    logger.debug("Wrote %d placeholder frames to %s", len(records), options.out_dir)
    return records
