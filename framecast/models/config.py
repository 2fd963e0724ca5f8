"""Run configuration — environment overrides resolved once per pipeline run."""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path
from typing import Mapping, Optional, Union

from pydantic import BaseModel, Field, PrivateAttr, field_validator

from framecast.errors import TIMEOUT_ENV_VAR
from framecast.models.capture import HeadlessMode

logger = logging.getLogger(__name__)

HEADLESS_ENV_VAR = "FRAMECAST_HEADLESS_MODE"
PLACEHOLDER_ENV_VAR = "FRAMECAST_ALLOW_PLACEHOLDER"
FFMPEG_ENV_VAR = "FFMPEG_PATH"

DEFAULT_PROTOCOL_TIMEOUT_MS = 120_000

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def default_headless_modes(platform: str | None = None) -> list[HeadlessMode]:
    """Platform default ordering: new headless is more stable on macOS."""
    platform = platform or sys.platform
    if platform == "darwin":
        return [HeadlessMode.NEW, HeadlessMode.SHELL]
    return [HeadlessMode.SHELL, HeadlessMode.NEW]


class RunConfig(BaseModel):
    # Raw override values; resolved lazily so invalid input only warns once
    headless_mode: Optional[str] = None
    protocol_timeout: Optional[Union[int, str]] = None

    allow_placeholder: bool = True
    placeholder_color: tuple[int, int, int] = (0, 0, 0)

    ffmpeg_path: Optional[str] = None

    # Hosted page contract
    ready_global: str = "__vis_ready"
    render_global: str = "__vis_renderFrame"

    _warned: set = PrivateAttr(default_factory=set)
    _timeout_ms: Optional[int] = PrivateAttr(default=None)

    @field_validator("placeholder_color")
    @classmethod
    def check_color(cls, v: tuple[int, int, int]) -> tuple[int, int, int]:
        if any(c < 0 or c > 255 for c in v):
            raise ValueError("placeholder_color channels must be within 0-255")
        return v

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides) -> "RunConfig":
        """Build a config from environment variables, with explicit overrides on top."""
        env = os.environ if environ is None else environ
        data: dict = {
            "headless_mode": env.get(HEADLESS_ENV_VAR) or None,
            "protocol_timeout": env.get(TIMEOUT_ENV_VAR) or None,
            "ffmpeg_path": env.get(FFMPEG_ENV_VAR) or None,
        }
        placeholder = (env.get(PLACEHOLDER_ENV_VAR) or "").strip().lower()
        if placeholder in _FALSY:
            data["allow_placeholder"] = False
        elif placeholder in _TRUTHY:
            data["allow_placeholder"] = True
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**data)

    def warn_once(self, key: str, msg: str, *args) -> None:
        if key in self._warned:
            return
        self._warned.add(key)
        logger.warning(msg, *args)

    @property
    def protocol_timeout_ms(self) -> int:
        if self._timeout_ms is None:
            self._timeout_ms = self._resolve_timeout()
        return self._timeout_ms

    def _resolve_timeout(self) -> int:
        raw = self.protocol_timeout
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return DEFAULT_PROTOCOL_TIMEOUT_MS
        try:
            value = int(str(raw).strip())
        except ValueError:
            value = 0
        if value <= 0:
            self.warn_once(
                "protocol_timeout",
                "Ignoring invalid %s=%r; expected a positive integer of milliseconds. Using %d.",
                TIMEOUT_ENV_VAR, raw, DEFAULT_PROTOCOL_TIMEOUT_MS,
            )
            return DEFAULT_PROTOCOL_TIMEOUT_MS
        return value

    def headless_modes(self, platform: str | None = None) -> list[HeadlessMode]:
        """Headless modes to try, in order."""
        raw = (self.headless_mode or "").strip().lower()
        if not raw:
            return default_headless_modes(platform)
        if raw in _TRUTHY:
            return [HeadlessMode.TRUE]
        if raw in _FALSY:
            return [HeadlessMode.FALSE]
        try:
            return [HeadlessMode(raw)]
        except ValueError:
            self.warn_once(
                "headless_mode",
                "Unknown %s=%r; expected shell, new, true or false. Using platform default.",
                HEADLESS_ENV_VAR, self.headless_mode,
            )
            return default_headless_modes(platform)

    @classmethod
    def load(cls, path: str | Path, environ: Mapping[str, str] | None = None) -> "RunConfig":
        """Load config from a JSON file; environment values fill unset keys."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls.from_env(environ, **data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2)


class EncodeOptions(BaseModel):
    input_pattern: str
    output_file: Path
    fps: float = Field(default=60, gt=0)
    codec: str = "libx264"
    pixel_format: Optional[str] = None
    # Encode at most this many frames; None takes every file matching the pattern
    frame_count: Optional[int] = Field(default=None, ge=0)

    @field_validator("codec")
    @classmethod
    def known_codec(cls, v: str) -> str:
        if v not in ("libx264", "prores_ks"):
            raise ValueError(f"Unsupported codec '{v}'; expected libx264 or prores_ks")
        return v

    @property
    def resolved_pixel_format(self) -> str:
        if self.pixel_format:
            return self.pixel_format
        return "yuv422p10le" if self.codec == "prores_ks" else "yuv420p"
