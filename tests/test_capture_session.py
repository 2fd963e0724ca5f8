"""Tests for a single capture session against a mocked Playwright page."""

from unittest.mock import AsyncMock, Mock

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from framecast.capture.attempts import GPU_PROFILE
from framecast.capture.page_contract import PageContract
from framecast.capture.session import CaptureSession
from framecast.errors import PageReadinessError
from framecast.models.capture import CaptureAttempt, HeadlessMode


def make_page() -> AsyncMock:
    page = AsyncMock()
    page.on = Mock()
    page.set_default_timeout = Mock()
    page.set_default_navigation_timeout = Mock()
    return page


def make_playwright(page: AsyncMock) -> tuple[Mock, AsyncMock]:
    browser = AsyncMock()
    browser.new_page = AsyncMock(return_value=page)
    playwright = Mock()
    playwright.chromium.launch = AsyncMock(return_value=browser)
    return playwright, browser


@pytest.fixture
def attempt() -> CaptureAttempt:
    return CaptureAttempt(mode=HeadlessMode.SHELL, profile=GPU_PROFILE)


class TestOpen:
    """Tests for browser launch and page setup."""

    @pytest.mark.asyncio
    async def test_launch_and_viewport(self, attempt, capture_options):
        page = make_page()
        playwright, browser = make_playwright(page)

        async with CaptureSession(playwright, attempt, capture_options, PageContract(), 7000):
            pass

        launch_kwargs = playwright.chromium.launch.call_args.kwargs
        assert launch_kwargs["timeout"] == 7000
        assert "--enable-gpu" in launch_kwargs["args"]
        browser.new_page.assert_awaited_once_with(
            viewport={"width": 64, "height": 48}, device_scale_factor=1,
        )
        page.set_default_timeout.assert_called_once_with(7000)
        page.set_default_navigation_timeout.assert_called_once_with(7000)

    @pytest.mark.asyncio
    async def test_browser_closed_on_exit(self, attempt, capture_options):
        page = make_page()
        playwright, browser = make_playwright(page)

        with pytest.raises(RuntimeError):
            async with CaptureSession(playwright, attempt, capture_options, PageContract(), 1000):
                raise RuntimeError("boom")

        page.close.assert_awaited_once()
        browser.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_survives_dead_browser(self, attempt, capture_options):
        page = make_page()
        page.close = AsyncMock(side_effect=PlaywrightError("Target closed"))
        playwright, browser = make_playwright(page)

        session = CaptureSession(playwright, attempt, capture_options, PageContract(), 1000)
        await session.open()
        await session.close()

        browser.close.assert_awaited_once()
        assert session.browser is None


class TestListeners:
    """Tests for diagnostics collection."""

    def test_collects_console_errors_and_page_errors(self, attempt, capture_options):
        session = CaptureSession(Mock(), attempt, capture_options, PageContract(), 1000)
        callbacks = {}
        page = Mock()
        page.on = Mock(side_effect=lambda event, cb: callbacks.update({event: cb}))

        session.setup_listeners(page)

        error = Mock()
        error.type = "error"
        error.text = "Uncaught ReferenceError: PIXI is not defined"
        info = Mock()
        info.type = "log"
        info.text = "engine booted"
        callbacks["console"](error)
        callbacks["console"](info)
        callbacks["pageerror"](ValueError("shader compile failed"))

        assert session.diagnostics == [
            "[console.error] Uncaught ReferenceError: PIXI is not defined",
            "[pageerror] shader compile failed",
        ]


class TestNavigate:
    """Tests for page load and readiness."""

    @pytest.mark.asyncio
    async def test_waits_for_network_idle_then_ready(self, attempt, capture_options):
        page = make_page()
        playwright, _ = make_playwright(page)
        session = CaptureSession(playwright, attempt, capture_options, PageContract(), 5000)
        await session.open()

        await session.navigate("http://127.0.0.1:1/index.html")

        page.goto.assert_awaited_once_with("http://127.0.0.1:1/index.html", wait_until="networkidle")
        page.wait_for_function.assert_awaited_once()
        kwargs = page.wait_for_function.call_args.kwargs
        assert kwargs["arg"] == ["__vis_ready", "__vis_renderFrame"]
        assert kwargs["timeout"] == 5000

    @pytest.mark.asyncio
    async def test_readiness_timeout_without_diagnostics(self, attempt, capture_options):
        page = make_page()
        page.wait_for_function = AsyncMock(side_effect=PlaywrightTimeoutError("Timeout 5000ms exceeded."))
        playwright, _ = make_playwright(page)
        session = CaptureSession(playwright, attempt, capture_options, PageContract(), 5000)
        await session.open()

        with pytest.raises(PageReadinessError) as exc_info:
            await session.navigate("http://x")

        message = str(exc_info.value)
        assert "Timeout 5000ms exceeded" in message
        assert "FRAMECAST_PROTOCOL_TIMEOUT" in message

    @pytest.mark.asyncio
    async def test_readiness_failure_surfaces_page_errors(self, attempt, capture_options):
        page = make_page()
        page.wait_for_function = AsyncMock(side_effect=PlaywrightTimeoutError("Timeout 5000ms exceeded."))
        playwright, _ = make_playwright(page)
        session = CaptureSession(playwright, attempt, capture_options, PageContract(), 5000)
        await session.open()
        session.diagnostics.append("[pageerror] Cannot read properties of undefined")

        with pytest.raises(PageReadinessError) as exc_info:
            await session.navigate("http://x")

        message = str(exc_info.value)
        assert "Cannot read properties of undefined" in message
        assert "Timeout" not in message


class TestCaptureFrames:
    """Tests for the per-frame render/screenshot loop."""

    @pytest.mark.asyncio
    async def test_frames_in_order_with_timestamps(self, attempt, capture_options):
        page = make_page()
        playwright, _ = make_playwright(page)
        session = CaptureSession(playwright, attempt, capture_options, PageContract(), 5000)
        await session.open()

        records = await session.capture_frames()

        assert [r.frame for r in records] == [0, 1, 2]
        assert [r.path for r in records] == [
            str(capture_options.out_dir / f"frame-0000{i}.png") for i in range(3)
        ]
        times = [c.args[1][1] for c in page.evaluate.call_args_list]
        assert times == pytest.approx([0.0, 1000 / 30, 2000 / 30])
        shots = [c.kwargs["path"] for c in page.screenshot.call_args_list]
        assert shots == [r.path for r in records]

    @pytest.mark.asyncio
    async def test_render_uses_configured_global(self, attempt, capture_options):
        page = make_page()
        playwright, _ = make_playwright(page)
        contract = PageContract(render_global="renderAt")
        session = CaptureSession(playwright, attempt, capture_options, contract, 5000)
        await session.open()

        await session.capture_frames()

        assert page.evaluate.call_args_list[0].args[1] == ["renderAt", 0.0]

    @pytest.mark.asyncio
    async def test_zero_frames(self, attempt, capture_options):
        capture_options.total_frames = 0
        page = make_page()
        playwright, _ = make_playwright(page)
        session = CaptureSession(playwright, attempt, capture_options, PageContract(), 5000)
        await session.open()

        assert await session.capture_frames() == []
        page.screenshot.assert_not_called()

    @pytest.mark.asyncio
    async def test_capture_requires_open_session(self, attempt, capture_options):
        session = CaptureSession(Mock(), attempt, capture_options, PageContract(), 5000)
        with pytest.raises(RuntimeError):
            await session.capture_frames()
