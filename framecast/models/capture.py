"""Capture data structures: launch profiles, attempts, options and frame records."""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

FRAME_FILENAME_TEMPLATE = "frame-{index:05d}.png"
FRAME_FFMPEG_PATTERN = "frame-%05d.png"

_REMOTE_ENTRY = re.compile(r"^https?://", re.IGNORECASE)


def frame_filename(index: int) -> str:
    return FRAME_FILENAME_TEMPLATE.format(index=index)


class HeadlessMode(str, Enum):
    SHELL = "shell"
    NEW = "new"
    TRUE = "true"
    FALSE = "false"


class LaunchProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str
    args: tuple[str, ...] = ()
    ignore_default_args: tuple[str, ...] = ()


class CaptureAttempt(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: HeadlessMode
    profile: LaunchProfile

    @property
    def label(self) -> str:
        return f"{self.mode.value}/{self.profile.description}"


class FrameRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    frame: int = Field(ge=0)
    path: str


class CaptureOptions(BaseModel):
    entry: str
    out_dir: Path
    total_frames: int = Field(ge=0)
    fps: float = Field(gt=0)
    width: int = Field(default=1080, gt=0)
    height: int = Field(default=1920, gt=0)
    remote: Optional[bool] = None
    profiles: Optional[list[LaunchProfile]] = None

    @field_validator("entry")
    @classmethod
    def entry_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("entry must not be empty")
        return v.strip()

    @model_validator(mode="after")
    def detect_remote(self) -> "CaptureOptions":
        if self.remote is None:
            self.remote = bool(_REMOTE_ENTRY.match(self.entry))
        return self

    @property
    def viewport(self) -> dict:
        return {"width": self.width, "height": self.height}

    def frame_path(self, index: int) -> Path:
        return self.out_dir / frame_filename(index)
