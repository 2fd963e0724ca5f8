"""Exception hierarchy shared by every pipeline stage."""

from __future__ import annotations

import re

TIMEOUT_ENV_VAR = "FRAMECAST_PROTOCOL_TIMEOUT"

_TIMEOUT_PATTERN = re.compile(r"timeout|timed out", re.IGNORECASE)


class FramecastError(Exception):
    """Base class for all errors raised by framecast."""


class FramecastConfigError(FramecastError):
    """Misconfiguration that no retry can fix."""


class EntryNotFoundError(FramecastConfigError):
    pass


class EntryBuildError(FramecastConfigError):
    pass


class EncoderNotFoundError(FramecastConfigError):
    pass


class CaptureError(FramecastError):
    pass


class PageReadinessError(CaptureError):
    """The hosted page never signalled readiness."""


class NativeDependencyError(CaptureError):
    """The host is missing shared libraries the browser needs."""


class CaptureFailedError(CaptureError):
    """Every capture attempt failed; carries the per-attempt errors."""

    def __init__(self, message: str, attempt_errors: list[tuple[str, BaseException]] | None = None):
        super().__init__(message)
        self.attempt_errors = attempt_errors or []


class EncoderError(FramecastError):
    pass


class FrameDimensionMismatchError(FramecastError):
    def __init__(self, frame: str, actual_size: tuple[int, int], baseline_size: tuple[int, int]):
        super().__init__(
            f"Frame {frame} has mismatched dimensions: "
            f"actual {actual_size[0]}x{actual_size[1]}, "
            f"baseline {baseline_size[0]}x{baseline_size[1]}"
        )
        self.frame = frame
        self.actual_size = actual_size
        self.baseline_size = baseline_size


class PipelineStepError(FramecastError):
    """Wraps a failure with the label of the pipeline step that raised it."""

    def __init__(self, step: str, cause: BaseException):
        super().__init__(f"[{step}] {cause}")
        self.step = step
        self.cause = cause


def is_timeout_message(message: str) -> bool:
    return bool(_TIMEOUT_PATTERN.search(message or ""))


def with_timeout_hint(message: str, timeout_ms: int) -> str:
    """Append the timeout override hint to timeout-shaped messages."""
    if not is_timeout_message(message):
        return message
    return (
        f"{message} (set {TIMEOUT_ENV_VAR} to raise the limit; "
        f"current value {timeout_ms} ms)"
    )
