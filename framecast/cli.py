"""CLI entry point for framecast."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from framecast.compare.comparator import DEFAULT_THRESHOLD
from framecast.encoder.video_encoder import frame_pattern
from framecast.errors import FramecastError
from framecast.models.capture import CaptureOptions
from framecast.models.config import EncodeOptions, RunConfig
from framecast.orchestrator import DEFAULT_PLUGINS, Orchestrator, PipelineRequest

console = Console()

DEFAULT_ENTRY = "apps/demo/dist/index.html"
DEFAULT_FRAMES_DIR = "artifacts/frames"
DEFAULT_BASELINE_DIR = "artifacts/baseline"


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _fail(message: str) -> None:
    console.print(f"[red]{escape(message)}[/red]")
    sys.exit(1)


def _orchestrator(ctx: click.Context, **overrides) -> Orchestrator:
    config_path: Optional[str] = ctx.obj.get("config_path")
    try:
        if config_path:
            cfg = RunConfig.load(config_path)
            for key, value in overrides.items():
                if value is not None:
                    setattr(cfg, key, value)
        else:
            cfg = RunConfig.from_env(**overrides)
    except FileNotFoundError as e:
        _fail(str(e))
    except ValidationError as e:
        _fail(f"Invalid configuration: {e}")
    return Orchestrator(cfg)


def _capture_options(entry, out_dir, frames, fps, width, height) -> CaptureOptions:
    try:
        return CaptureOptions(
            entry=entry, out_dir=Path(out_dir), total_frames=frames,
            fps=fps, width=width, height=height,
        )
    except ValidationError as e:
        _fail(f"Invalid capture options: {e}")


def capture_arguments(func):
    """Shared positional entry/out-dir and sizing options for render and pipeline."""
    decorators = [
        click.argument("entry", default=DEFAULT_ENTRY),
        click.argument("out_dir", default=DEFAULT_FRAMES_DIR),
        click.option("--frames", "-n", default=360, show_default=True, type=int, help="Total frames"),
        click.option("--fps", default=60.0, show_default=True, type=float, help="Frames per second"),
        click.option("--width", default=1080, show_default=True, type=int),
        click.option("--height", default=1920, show_default=True, type=int),
        click.option("--no-placeholder-fallback", is_flag=True,
                     help="Fail instead of writing placeholder frames when the browser cannot start"),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--config", "-c", "config_path", default=None, help="Optional JSON config file")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: Optional[str]) -> None:
    """Deterministic frame capture, encoding and regression tooling."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.command()
@capture_arguments
@click.pass_context
def render(ctx, entry, out_dir, frames, fps, width, height, no_placeholder_fallback) -> None:
    """Render ENTRY to a PNG sequence in OUT_DIR."""
    options = _capture_options(entry, out_dir, frames, fps, width, height)
    orchestrator = _orchestrator(ctx, allow_placeholder=False if no_placeholder_fallback else None)
    try:
        records = orchestrator.run_render_only(options)
    except FramecastError as e:
        _fail(f"Offline render failed: {e}")
    console.print(f"[green]Rendered {len(records)} frames to[/green] [blue]{out_dir}[/blue]")


@cli.command()
@click.argument("pattern", default=frame_pattern(DEFAULT_FRAMES_DIR))
@click.argument("output", default="artifacts/output.mp4")
@click.option("--fps", default=60.0, show_default=True, type=float, help="Input frame rate")
@click.option("--codec", type=click.Choice(["libx264", "prores_ks"]), default="libx264", show_default=True)
@click.option("--pix-fmt", "pixel_format", default=None, help="Output pixel format")
@click.option("--frames", "-n", "frame_count", default=None, type=int,
              help="Encode at most this many frames")
@click.pass_context
def encode(ctx, pattern, output, fps, codec, pixel_format, frame_count) -> None:
    """Encode frames matching PATTERN into OUTPUT with ffmpeg."""
    try:
        options = EncodeOptions(
            input_pattern=pattern, output_file=Path(output), fps=fps,
            codec=codec, pixel_format=pixel_format, frame_count=frame_count,
        )
    except ValidationError as e:
        _fail(f"Invalid encode options: {e}")
    try:
        path = _orchestrator(ctx).run_encode_only(options)
    except FramecastError as e:
        _fail(f"ffmpeg export failed: {e}")
    console.print(f"[green]Encoded video:[/green] [blue]{path}[/blue]")


@cli.command()
@capture_arguments
@click.option("--video", "video_file", default=None, help="Video path (default OUT_DIR/loop.mp4)")
@click.option("--codec", type=click.Choice(["libx264", "prores_ks"]), default="libx264", show_default=True)
@click.option("--pix-fmt", "pixel_format", default=None, help="Output pixel format")
@click.option("--seed", default="demo", show_default=True, help="Seed identifier recorded in the manifest")
@click.option("--plugin", "plugins", multiple=True, help="Plugin identifier (repeatable)")
@click.option("--manifest", "manifest_path", default=None, help="Manifest path (default OUT_DIR/manifest.json)")
@click.pass_context
def pipeline(ctx, entry, out_dir, frames, fps, width, height, no_placeholder_fallback,
             video_file, codec, pixel_format, seed, plugins, manifest_path) -> None:
    """Render, encode and write a release manifest in one run."""
    request = PipelineRequest(
        capture=_capture_options(entry, out_dir, frames, fps, width, height),
        video_file=Path(video_file) if video_file else None,
        codec=codec,
        pixel_format=pixel_format,
        seed=seed,
        manifest_path=Path(manifest_path) if manifest_path else None,
        plugins=list(plugins) if plugins else list(DEFAULT_PLUGINS),
    )
    orchestrator = _orchestrator(ctx, allow_placeholder=False if no_placeholder_fallback else None)
    try:
        result = orchestrator.run_full_pipeline(request)
    except FramecastError as e:
        _fail(f"Pipeline run failed: {e}")

    console.print("\n[bold green]Pipeline Complete[/bold green]")
    table = Table(title="Release")
    table.add_column("Artifact", style="bold")
    table.add_column("Value")
    table.add_row("Frames", f"{len(result.frames)} in {out_dir}")
    table.add_row("Video", f"{result.video_file} ({result.manifest.video.size} bytes)")
    table.add_row("Video hash", result.manifest.video.hash)
    table.add_row("Manifest", str(result.manifest_path))
    table.add_row("Duration", f"{result.duration_seconds}s")
    console.print(table)


@cli.command()
@click.argument("actual_dir", default=DEFAULT_FRAMES_DIR)
@click.argument("baseline_dir", default=DEFAULT_BASELINE_DIR)
@click.option("--diff-dir", default=None, help="Write diff images for changed frames here")
@click.option("--threshold", default=DEFAULT_THRESHOLD, show_default=True, type=float,
              help="Per-pixel color distance threshold (0-1)")
@click.option("--fail-above", default=None, type=float,
              help="Exit 1 when the max mismatch ratio exceeds this value")
@click.option("--report", "report_path", default=None, help="Write a JSON summary here")
@click.pass_context
def compare(ctx, actual_dir, baseline_dir, diff_dir, threshold, fail_above, report_path) -> None:
    """Compare ACTUAL_DIR frames against BASELINE_DIR frames."""
    try:
        summary = _orchestrator(ctx).run_compare(
            actual_dir, baseline_dir, diff_dir=diff_dir, threshold=threshold,
            report_path=report_path, fail_above=fail_above,
        )
    except (FramecastError, ValueError) as e:
        _fail(f"Frame comparison failed: {e}")

    console.print(f"Compared {summary.total_compared} frames.")
    if summary.missing_in_actual:
        console.print(f"[yellow]Missing in actual:[/yellow] {', '.join(summary.missing_in_actual)}")
    if summary.missing_in_baseline:
        console.print(f"[yellow]Missing in baseline:[/yellow] {', '.join(summary.missing_in_baseline)}")

    changed = summary.changed_frames
    if changed:
        table = Table(title="Changed Frames")
        table.add_column("Frame", style="bold")
        table.add_column("Mismatch")
        table.add_column("Diff")
        for diff in changed:
            table.add_row(diff.frame, f"{diff.mismatch_ratio:.3%}", diff.diff_path or "")
        console.print(table)

    console.print(
        f"Max mismatch {summary.max_mismatch:.3%}, average {summary.average_mismatch:.3%}"
    )
    if fail_above is not None and summary.exceeds(fail_above):
        _fail(
            f"Frame mismatch {summary.max_mismatch:.5f} exceeds threshold {fail_above:.5f}. "
            "Marking run as failed."
        )


if __name__ == "__main__":
    cli()
