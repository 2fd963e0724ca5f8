"""Release manifest data structures."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from framecast.models.capture import FrameRecord

MANIFEST_SCHEMA_VERSION = 1
DEFAULT_HASH_ALGORITHM = "sha256"


class ArtifactDescriptor(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    path: str  # relative to the manifest's directory
    hash: str
    size: int


class FrameArtifact(ArtifactDescriptor):
    frame: int


class ReleaseManifest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    schema_version: int = MANIFEST_SCHEMA_VERSION
    generated_at: str
    hash_algorithm: str = DEFAULT_HASH_ALGORITHM
    fps: float
    duration_ms: float
    total_frames: int
    seed: str
    video: ArtifactDescriptor
    frames: list[FrameArtifact] = Field(default_factory=list)
    plugins: Optional[list[str]] = None
    metadata: Optional[dict[str, Any]] = None

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class ManifestRequest(BaseModel):
    frames: list[FrameRecord]
    video_file: Path
    fps: float = Field(gt=0)
    duration_ms: float = Field(ge=0)
    seed: str
    output_path: Path
    plugins: Optional[list[str]] = None
    metadata: Optional[dict[str, Any]] = None
    hash_algorithm: str = DEFAULT_HASH_ALGORITHM
