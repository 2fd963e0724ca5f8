"""Release manifest builder — content hashes and sizes for every artifact of a run."""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import os
import time
from pathlib import Path

from framecast.models.manifest import (
    ArtifactDescriptor,
    FrameArtifact,
    ManifestRequest,
    ReleaseManifest,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


def hash_file(path: str | Path, algorithm: str = "sha256") -> str:
    """Stream *path* through hashlib and return the hex digest."""
    digest = hashlib.new(algorithm)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def relative_to_manifest(path: str | Path, manifest_dir: Path) -> str:
    """POSIX path of *path* relative to the manifest's directory."""
    rel = os.path.relpath(Path(path).resolve(), manifest_dir.resolve())
    return Path(rel).as_posix()


def _describe(path: Path, manifest_dir: Path, algorithm: str) -> ArtifactDescriptor:
    if not path.is_file():
        raise FileNotFoundError(f"Artifact not found: {path}")
    return ArtifactDescriptor(
        path=relative_to_manifest(path, manifest_dir),
        hash=hash_file(path, algorithm),
        size=path.stat().st_size,
    )


async def build_release_manifest(request: ManifestRequest) -> ReleaseManifest:
    """Hash the video and every frame concurrently and assemble the manifest."""
    manifest_dir = request.output_path.parent
    algorithm = request.hash_algorithm
    hashlib.new(algorithm)  # fail fast on an unknown algorithm

    video_task = asyncio.to_thread(_describe, Path(request.video_file), manifest_dir, algorithm)
    frame_tasks = [
        asyncio.to_thread(_describe, Path(record.path), manifest_dir, algorithm)
        for record in request.frames
    ]
    video, *frame_descriptors = await asyncio.gather(video_task, *frame_tasks)

    frames = [
        FrameArtifact(frame=record.frame, **descriptor.model_dump())
        for record, descriptor in zip(request.frames, frame_descriptors)
    ]
    return ReleaseManifest(
        generated_at=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        hash_algorithm=algorithm,
        fps=request.fps,
        duration_ms=request.duration_ms,
        total_frames=len(frames),
        seed=request.seed,
        video=video,
        frames=frames,
        plugins=request.plugins,
        metadata=request.metadata,
    )


def save_manifest(manifest: ReleaseManifest, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(manifest.to_json_dict(), f, indent=2)
    logger.info("Wrote release manifest (%d frames) to %s", manifest.total_frames, path)


async def write_release_manifest(request: ManifestRequest) -> ReleaseManifest:
    """Build the manifest and write it to ``request.output_path``."""
    request.output_path.parent.mkdir(parents=True, exist_ok=True)
    manifest = await build_release_manifest(request)
    save_manifest(manifest, request.output_path)
    return manifest


def load_manifest(path: str | Path) -> ReleaseManifest:
    with open(path) as f:
        return ReleaseManifest.model_validate(json.load(f))
