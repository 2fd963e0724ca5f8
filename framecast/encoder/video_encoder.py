"""ffmpeg wrapper that turns a PNG sequence into a video file."""

from __future__ import annotations

import asyncio
import logging
import shutil
from fractions import Fraction
from pathlib import Path

from framecast.errors import EncoderError, EncoderNotFoundError
from framecast.models.capture import FRAME_FFMPEG_PATTERN
from framecast.models.config import EncodeOptions, RunConfig

logger = logging.getLogger(__name__)

STDERR_TAIL_LINES = 15

# Largest denominator ffmpeg keeps when it parses a frame rate
MAX_RATE_DENOMINATOR = 1_001_000


def frame_pattern(out_dir: str | Path) -> str:
    """ffmpeg input pattern matching the capture driver's frame filenames."""
    return str(Path(out_dir) / FRAME_FFMPEG_PATTERN)


def format_frame_rate(fps: float) -> str:
    """Exact ffmpeg rate: an integer, or a rational such as ``24000/1001``."""
    if float(fps).is_integer():
        return str(int(fps))
    rate = Fraction(fps).limit_denominator(MAX_RATE_DENOMINATOR)
    return f"{rate.numerator}/{rate.denominator}"


def locate_ffmpeg(config: RunConfig | None = None) -> str:
    configured = config.ffmpeg_path if config else None
    if configured:
        path = Path(configured)
        if path.is_file():
            return str(path)
        found = shutil.which(configured)
        if found:
            return found
        raise EncoderNotFoundError(f"Configured ffmpeg binary not found: {configured}")
    found = shutil.which("ffmpeg")
    if not found:
        raise EncoderNotFoundError("ffmpeg binary not found on PATH (set FFMPEG_PATH to override)")
    return found


def build_ffmpeg_command(ffmpeg: str, options: EncodeOptions) -> list[str]:
    cmd = [
        ffmpeg,
        "-hide_banner",
        "-loglevel", "error",
        "-framerate", format_frame_rate(options.fps),
        "-i", options.input_pattern,
        "-c:v", options.codec,
        "-pix_fmt", options.resolved_pixel_format,
    ]
    if options.frame_count is not None:
        # Stale frames past the end of this run must not be encoded
        cmd += ["-frames:v", str(options.frame_count)]
    cmd += ["-y", str(options.output_file)]
    return cmd


async def encode_video(options: EncodeOptions, config: RunConfig | None = None) -> Path:
    """Encode ``options.input_pattern`` into ``options.output_file``."""
    ffmpeg = locate_ffmpeg(config)
    cmd = build_ffmpeg_command(ffmpeg, options)
    options.output_file.parent.mkdir(parents=True, exist_ok=True)

    logger.info("Encoding %s -> %s (%s, %s, %g fps)",
                options.input_pattern, options.output_file,
                options.codec, options.resolved_pixel_format, options.fps)
    logger.debug("ffmpeg command: %s", " ".join(cmd))

    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise EncoderError(f"Could not start ffmpeg ({ffmpeg}): {e}") from e

    _, stderr = await proc.communicate()
    if proc.returncode != 0:
        lines = (stderr or b"").decode(errors="replace").strip().splitlines()
        detail = "\n".join(lines[-STDERR_TAIL_LINES:]) or "no output"
        raise EncoderError(f"ffmpeg exited with code {proc.returncode}: {detail}")

    logger.info("Encoded %s (%d bytes)", options.output_file, options.output_file.stat().st_size)
    return options.output_file
