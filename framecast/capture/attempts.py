"""Capture retry policy — launch profiles, the ordered attempt plan, and error classification.

The policy is data: ``build_attempt_plan`` lists every (headless mode, launch
profile) pair in the order they are tried, and ``classify_capture_error`` maps a
failure to what the retry loop does next. Neither needs a browser to test.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Iterable, Sequence

from playwright.async_api import Error as PlaywrightError

from framecast.errors import FramecastConfigError, NativeDependencyError
from framecast.models.capture import CaptureAttempt, HeadlessMode, LaunchProfile


GPU_PROFILE = LaunchProfile(
    description="gpu",
    args=(
        "--enable-gpu",
        "--ignore-gpu-blocklist",
        "--use-gl=angle",
        "--use-angle=opengl",
        "--disable-software-rasterizer",
        "--disable-dev-shm-usage",
    ),
)

SWIFTSHADER_PROFILE = LaunchProfile(
    description="swiftshader",
    args=(
        "--use-gl=angle",
        "--use-angle=swiftshader",
        "--enable-unsafe-swiftshader",
        "--ignore-gpu-blocklist",
        "--disable-dev-shm-usage",
    ),
)

SOFTWARE_PROFILE = LaunchProfile(
    description="software",
    args=(
        "--disable-gpu",
        "--disable-gpu-compositing",
        "--disable-dev-shm-usage",
    ),
    ignore_default_args=("--enable-unsafe-swiftshader",),
)

DEFAULT_LAUNCH_PROFILES: tuple[LaunchProfile, ...] = (
    GPU_PROFILE,
    SWIFTSHADER_PROFILE,
    SOFTWARE_PROFILE,
)


class AttemptOutcome(str, Enum):
    NEXT_PROFILE = "next_profile"
    NEXT_MODE = "next_mode"
    PLACEHOLDER = "placeholder"
    FATAL = "fatal"


_RENDERER_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"could not be auto-?detected",
        r"could not auto-?detect",
        r"failed to create (?:a )?webgl",
        r"webgl.*(?:not supported|unavailable|context lost)",
        r"angle.*(?:initialize|display)",
        r"egl_?(?:not_initialized|bad_)",
        r"gpu process (?:isn't usable|exited unexpectedly)",
    )
]

_NATIVE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"error while loading shared libraries",
        r"cannot open shared object file",
        r"undefined symbol",
        r"symbol lookup error",
        r"inconsistency detected by ld\.so",
        r"host system is missing dependencies",
    )
]


def build_attempt_plan(
    modes: Iterable[HeadlessMode],
    profiles: Sequence[LaunchProfile] = DEFAULT_LAUNCH_PROFILES,
) -> list[CaptureAttempt]:
    """Every (mode, profile) pair, mode-major."""
    return [CaptureAttempt(mode=mode, profile=profile) for mode in modes for profile in profiles]


def _error_text(exc: BaseException) -> str:
    parts = []
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        parts.append(str(current))
        current = current.__cause__ or current.__context__
    return "\n".join(parts)


def is_native_dependency_error(exc: BaseException) -> bool:
    text = _error_text(exc)
    return any(p.search(text) for p in _NATIVE_PATTERNS)


def is_renderer_detection_error(exc: BaseException) -> bool:
    text = _error_text(exc)
    return any(p.search(text) for p in _RENDERER_PATTERNS)


def classify_capture_error(exc: BaseException) -> AttemptOutcome:
    """Decide what the retry loop does after *exc* ended an attempt."""
    if isinstance(exc, FramecastConfigError):
        return AttemptOutcome.FATAL
    if isinstance(exc, NativeDependencyError) or is_native_dependency_error(exc):
        return AttemptOutcome.PLACEHOLDER
    if is_renderer_detection_error(exc):
        return AttemptOutcome.NEXT_PROFILE
    if isinstance(exc, PlaywrightError):
        return AttemptOutcome.NEXT_MODE
    if isinstance(exc, OSError) and not isinstance(exc, (TimeoutError, ConnectionError)):
        # Disk errors writing frames fail the same way under any profile
        return AttemptOutcome.FATAL
    return AttemptOutcome.NEXT_MODE


def launch_kwargs(attempt: CaptureAttempt, timeout_ms: int) -> dict:
    """Keyword arguments for ``playwright.chromium.launch`` for one attempt."""
    kwargs: dict = {
        "headless": attempt.mode is not HeadlessMode.FALSE,
        "args": list(attempt.profile.args),
        "timeout": timeout_ms,
    }
    if attempt.profile.ignore_default_args:
        kwargs["ignore_default_args"] = list(attempt.profile.ignore_default_args)
    if attempt.mode is HeadlessMode.NEW:
        # The full chromium channel runs new headless instead of headless shell
        kwargs["channel"] = "chromium"
    return kwargs
