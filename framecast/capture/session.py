"""Capture session — one browser process and page for a single capture attempt."""

from __future__ import annotations

import logging
from pathlib import Path

from playwright.async_api import Browser, Error as PlaywrightError, Page, Playwright

from framecast.errors import PageReadinessError, with_timeout_hint
from framecast.models.capture import CaptureAttempt, CaptureOptions, FrameRecord

from .attempts import launch_kwargs
from .page_contract import PageContract

logger = logging.getLogger(__name__)

# Frames between INFO progress lines; everything else goes to DEBUG
PROGRESS_EVERY = 60


class CaptureSession:
    """Owns the browser, the page and the diagnostics collected during one attempt.

    Use as an async context manager; the browser is closed on exit whether or
    not capture succeeded.
    """

    def __init__(
        self,
        playwright: Playwright,
        attempt: CaptureAttempt,
        options: CaptureOptions,
        contract: PageContract,
        timeout_ms: int,
    ):
        self.playwright = playwright
        self.attempt = attempt
        self.options = options
        self.contract = contract
        self.timeout_ms = timeout_ms
        self.browser: Browser | None = None
        self.page: Page | None = None
        self.diagnostics: list[str] = []

    async def __aenter__(self) -> "CaptureSession":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def open(self) -> None:
        logger.debug("Launching chromium (%s)", self.attempt.label)
        self.browser = await self.playwright.chromium.launch(
            **launch_kwargs(self.attempt, self.timeout_ms)
        )
        self.page = await self.browser.new_page(
            viewport=self.options.viewport, device_scale_factor=1,
        )
        self.page.set_default_timeout(self.timeout_ms)
        self.page.set_default_navigation_timeout(self.timeout_ms)
        self.setup_listeners(self.page)

    def setup_listeners(self, page: Page) -> None:
        """Collect console errors and uncaught page errors."""
        page.on("console", self._on_console)
        page.on("pageerror", lambda err: self.diagnostics.append(f"[pageerror] {err}"))

    def _on_console(self, msg) -> None:
        if msg.type == "error":
            self.diagnostics.append(f"[console.error] {msg.text}")

    async def navigate(self, url: str) -> None:
        """Load *url* and wait for the hosted page to report readiness."""
        page = self._require_page()
        logger.info("Loading %s", url)
        await page.goto(url, wait_until="networkidle")
        try:
            await self.contract.wait_until_ready(page, self.timeout_ms)
        except PlaywrightError as e:
            if self.diagnostics:
                raise PageReadinessError(
                    "Page reported errors before becoming ready:\n" + "\n".join(self.diagnostics)
                ) from e
            raise PageReadinessError(
                with_timeout_hint(f"Page never became ready: {e}", self.timeout_ms)
            ) from e

    async def capture_frames(self) -> list[FrameRecord]:
        """Render and screenshot every frame in order."""
        page = self._require_page()
        opts = self.options
        records: list[FrameRecord] = []
        for index in range(opts.total_frames):
            time_ms = index / opts.fps * 1000
            await self.contract.render_frame(page, time_ms)
            path = opts.frame_path(index)
            await page.screenshot(path=str(path), type="png")
            records.append(FrameRecord(frame=index, path=str(path)))
            if (index + 1) % PROGRESS_EVERY == 0:
                logger.info("Captured %d/%d frames", index + 1, opts.total_frames)
            else:
                logger.debug("Captured frame %d at %.2fms -> %s", index, time_ms, Path(path).name)
        return records

    async def close(self) -> None:
        page, self.page = self.page, None
        browser, self.browser = self.browser, None
        if page is not None:
            try:
                await page.close()
            except PlaywrightError as e:
                logger.debug("Page close failed (%s): %s", self.attempt.label, e)
        if browser is not None:
            try:
                await browser.close()
            except PlaywrightError as e:
                logger.debug("Browser close failed (%s): %s", self.attempt.label, e)

    def _require_page(self) -> Page:
        if self.page is None:
            raise RuntimeError("Capture session is not open")
        return self.page
