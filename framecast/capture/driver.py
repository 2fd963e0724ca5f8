"""Capture driver — renders a deterministic PNG sequence from a hosted page.

The page is loaded once per attempt; every frame is rendered by calling the
page's render entry point with the frame's timestamp and then screenshotted.
Attempts walk the (headless mode, launch profile) plan from ``attempts.py``:

1. renderer auto-detection failures move on to the next launch profile
2. any other browser failure abandons the current headless mode
3. missing native libraries stop browser attempts and write placeholder frames
4. configuration errors propagate immediately
"""

from __future__ import annotations

import contextlib
import logging
import time
from pathlib import Path

from playwright.async_api import Playwright, async_playwright

from framecast.errors import CaptureFailedError, NativeDependencyError, with_timeout_hint
from framecast.models.capture import CaptureAttempt, CaptureOptions, FrameRecord
from framecast.models.config import RunConfig

from .attempts import (
    DEFAULT_LAUNCH_PROFILES,
    AttemptOutcome,
    build_attempt_plan,
    classify_capture_error,
)
from .page_contract import PageContract
from .placeholder import write_placeholder_frames
from .session import CaptureSession
from .static_server import StaticEntryServer
from .workspace import ensure_entry_built

logger = logging.getLogger(__name__)


class CaptureDriver:
    """Produces ``options.total_frames`` FrameRecords, falling back across attempts."""

    def __init__(self, config: RunConfig | None = None, contract: PageContract | None = None):
        self.config = config or RunConfig.from_env()
        self.contract = contract or PageContract(
            ready_global=self.config.ready_global,
            render_global=self.config.render_global,
        )

    def attempt_plan(self, options: CaptureOptions) -> list[CaptureAttempt]:
        profiles = options.profiles or list(DEFAULT_LAUNCH_PROFILES)
        return build_attempt_plan(self.config.headless_modes(), profiles)

    async def capture(self, options: CaptureOptions) -> list[FrameRecord]:
        start = time.time()
        options.out_dir.mkdir(parents=True, exist_ok=True)

        entry_path: Path | None = None
        if not options.remote:
            entry_path = await ensure_entry_built(Path(options.entry))

        plan = self.attempt_plan(options)
        timeout_ms = self.config.protocol_timeout_ms
        logger.info(
            "Capturing %d frames at %g fps (%dx%d) from %s",
            options.total_frames, options.fps, options.width, options.height, options.entry,
        )

        errors: list[tuple[str, BaseException]] = []
        skip_mode = None
        async with async_playwright() as p:
            for attempt in plan:
                if attempt.mode == skip_mode:
                    continue
                try:
                    records = await self._run_attempt(p, attempt, options, entry_path, timeout_ms)
                except Exception as e:
                    errors.append((attempt.label, e))
                    outcome = classify_capture_error(e)
                    logger.warning("Capture attempt %s failed (%s): %s",
                                   attempt.label, outcome.value, _first_line(e))
                    if outcome is AttemptOutcome.FATAL:
                        raise
                    if outcome is AttemptOutcome.PLACEHOLDER:
                        return self._placeholder(options, e)
                    if outcome is AttemptOutcome.NEXT_MODE:
                        skip_mode = attempt.mode
                    continue

                logger.info("Captured %d frames with %s in %.1fs",
                            len(records), attempt.label, time.time() - start)
                return records

        raise self._exhausted(errors, timeout_ms)

    async def _run_attempt(
        self,
        playwright: Playwright,
        attempt: CaptureAttempt,
        options: CaptureOptions,
        entry_path: Path | None,
        timeout_ms: int,
    ) -> list[FrameRecord]:
        with contextlib.ExitStack() as stack:
            if entry_path is not None:
                server = stack.enter_context(StaticEntryServer(entry_path))
                url = server.entry_url
            else:
                url = options.entry
            async with CaptureSession(playwright, attempt, options, self.contract, timeout_ms) as session:
                await session.navigate(url)
                return await session.capture_frames()

    def _placeholder(self, options: CaptureOptions, error: BaseException) -> list[FrameRecord]:
        if not self.config.allow_placeholder:
            raise NativeDependencyError(
                f"Browser cannot start on this host and placeholder frames are disabled: {error}"
            ) from error
        logger.warning(
            "Browser cannot run on this host (%s); writing %d placeholder frames instead",
            _first_line(error), options.total_frames,
        )
        return write_placeholder_frames(options, self.config.placeholder_color)

    @staticmethod
    def _exhausted(errors: list[tuple[str, BaseException]], timeout_ms: int) -> CaptureFailedError:
        if not errors:
            return CaptureFailedError("No capture attempts were configured")
        label, last = errors[-1]
        summary = "\n".join(f"  {lbl}: {_first_line(err)}" for lbl, err in errors)
        message = with_timeout_hint(
            f"All capture attempts failed; last ({label}): {last}\nAttempts:\n{summary}",
            timeout_ms,
        )
        error = CaptureFailedError(message, errors)
        error.__cause__ = last
        return error


def _first_line(error: BaseException) -> str:
    text = str(error).strip()
    return text.splitlines()[0] if text else type(error).__name__

