"""Frame comparison results."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class FrameMismatch(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    frame: str
    different_pixels: int
    total_pixels: int
    mismatch_ratio: float
    diff_path: Optional[str] = None


class RegressionSummary(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    diffs: list[FrameMismatch] = Field(default_factory=list)
    missing_in_actual: list[str] = Field(default_factory=list)
    missing_in_baseline: list[str] = Field(default_factory=list)
    total_compared: int = 0
    max_mismatch: float = 0.0
    average_mismatch: float = 0.0

    @property
    def changed_frames(self) -> list[FrameMismatch]:
        return [d for d in self.diffs if d.mismatch_ratio > 0]

    def exceeds(self, threshold: float) -> bool:
        return self.max_mismatch > threshold
