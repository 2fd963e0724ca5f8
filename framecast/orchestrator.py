"""Pipeline orchestrator — coordinates render, encode, manifest and compare stages."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from pathlib import Path
from typing import Any, Iterator, Optional

from pydantic import BaseModel, Field

from framecast.capture.driver import CaptureDriver
from framecast.compare.comparator import DEFAULT_THRESHOLD, compare_frame_sequences
from framecast.compare.report import write_regression_report
from framecast.encoder.video_encoder import encode_video, frame_pattern
from framecast.errors import PipelineStepError
from framecast.manifest.builder import write_release_manifest
from framecast.models.capture import CaptureOptions, FrameRecord
from framecast.models.config import EncodeOptions, RunConfig
from framecast.models.manifest import ManifestRequest, ReleaseManifest
from framecast.models.regression import RegressionSummary

logger = logging.getLogger(__name__)

DEFAULT_PLUGINS = ["@vis/renderer-pixi", "@vis/audio", "@vis/timeline"]


class PipelineRequest(BaseModel):
    capture: CaptureOptions
    video_file: Optional[Path] = None
    codec: str = "libx264"
    pixel_format: Optional[str] = None
    seed: str = "demo"
    manifest_path: Optional[Path] = None
    plugins: Optional[list[str]] = Field(default_factory=lambda: list(DEFAULT_PLUGINS))
    metadata: Optional[dict[str, Any]] = None

    @property
    def resolved_video_file(self) -> Path:
        return self.video_file or self.capture.out_dir / "loop.mp4"

    @property
    def resolved_manifest_path(self) -> Path:
        return self.manifest_path or self.capture.out_dir / "manifest.json"


class PipelineResult(BaseModel):
    frames: list[FrameRecord]
    video_file: Path
    manifest_path: Path
    manifest: ReleaseManifest
    duration_seconds: float


@contextlib.contextmanager
def _step(name: str) -> Iterator[None]:
    """Log a stage and prefix any failure with its label."""
    logger.info("--- %s ---", name)
    stage_start = time.time()
    try:
        yield
    except PipelineStepError:
        raise
    except Exception as e:
        logger.error("Step %s failed: %s", name, e)
        raise PipelineStepError(name, e) from e
    logger.info("--- %s complete in %.1fs ---", name, time.time() - stage_start)


class Orchestrator:
    """Runs the render → encode → manifest pipeline and the compare workflow."""

    def __init__(self, config: RunConfig | None = None):
        self.config = config or RunConfig.from_env()
        self.driver = CaptureDriver(self.config)

    # --- render ---

    async def _render(self, options: CaptureOptions) -> list[FrameRecord]:
        with _step("render"):
            return await self.driver.capture(options)

    def run_render_only(self, options: CaptureOptions) -> list[FrameRecord]:
        """Capture frames only."""
        return asyncio.run(self._render(options))

    # --- encode ---

    async def _encode(self, options: EncodeOptions) -> Path:
        with _step("encode"):
            return await encode_video(options, self.config)

    def run_encode_only(self, options: EncodeOptions) -> Path:
        """Encode an existing frame sequence."""
        return asyncio.run(self._encode(options))

    # --- render + encode + manifest ---

    async def _run_pipeline(self, request: PipelineRequest) -> PipelineResult:
        start = time.time()
        capture = request.capture
        logger.info("=== Starting pipeline for %s ===", capture.entry)

        frames = await self._render(capture)

        video_file = await self._encode(EncodeOptions(
            input_pattern=frame_pattern(capture.out_dir),
            output_file=request.resolved_video_file,
            fps=capture.fps,
            codec=request.codec,
            pixel_format=request.pixel_format,
            frame_count=len(frames),
        ))

        manifest_path = request.resolved_manifest_path
        with _step("manifest"):
            manifest = await write_release_manifest(ManifestRequest(
                frames=frames,
                video_file=video_file,
                fps=capture.fps,
                duration_ms=capture.total_frames / capture.fps * 1000,
                seed=request.seed,
                output_path=manifest_path,
                plugins=request.plugins,
                metadata=request.metadata,
            ))

        duration = time.time() - start
        logger.info("=== Pipeline complete in %.1fs ===", duration)
        return PipelineResult(
            frames=frames,
            video_file=video_file,
            manifest_path=manifest_path,
            manifest=manifest,
            duration_seconds=round(duration, 2),
        )

    def run_full_pipeline(self, request: PipelineRequest) -> PipelineResult:
        """Execute render → encode → manifest."""
        return asyncio.run(self._run_pipeline(request))

    # --- compare ---

    def run_compare(
        self,
        actual_dir: str | Path,
        baseline_dir: str | Path,
        diff_dir: str | Path | None = None,
        threshold: float = DEFAULT_THRESHOLD,
        report_path: str | Path | None = None,
        fail_above: float | None = None,
    ) -> RegressionSummary:
        """Compare a captured sequence against a baseline sequence."""
        with _step("compare"):
            summary = compare_frame_sequences(actual_dir, baseline_dir, diff_dir, threshold)
            if report_path is not None:
                write_regression_report(summary, Path(report_path), fail_above)
        return summary
