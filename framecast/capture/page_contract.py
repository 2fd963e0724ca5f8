"""The capability a hosted page offers to the capture driver."""

from __future__ import annotations

from playwright.async_api import Page


_READY_CHECK = """([readyName, renderName]) =>
    window[readyName] === true || typeof window[renderName] === 'function'"""

_RENDER_CALL = """async ([renderName, ms]) => {
    const fn = window[renderName];
    if (typeof fn === 'function') {
        await fn(ms);
    }
}"""


class PageContract:
    """Readiness check plus a frame-render call, addressed by global names.

    A page is ready once ``window[ready_global] === true`` or
    ``window[render_global]`` is callable. Rendering awaits
    ``window[render_global](timeMs)``; a page without the callable renders nothing.
    """

    def __init__(self, ready_global: str = "__vis_ready", render_global: str = "__vis_renderFrame"):
        self.ready_global = ready_global
        self.render_global = render_global

    async def wait_until_ready(self, page: Page, timeout_ms: int) -> None:
        await page.wait_for_function(
            _READY_CHECK, arg=[self.ready_global, self.render_global], timeout=timeout_ms,
        )

    async def render_frame(self, page: Page, time_ms: float) -> None:
        await page.evaluate(_RENDER_CALL, [self.render_global, time_ms])
