"""BrowserManager: Playwright launcher that follows the browser projection."""

import logging
import time
from pathlib import Path

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from tunebot.config.bus import ConfigBus, Subscription
from tunebot.config.models import BrowserView
from tunebot.config.store import ConfigStore
from tunebot.errors import InitializationFault

logger = logging.getLogger(__name__)

# Hides the most common automation markers from page scripts.
STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
window.chrome = window.chrome || { runtime: {} };
"""


def context_options(view: BrowserView) -> dict:
    """Keyword arguments for Browser.new_context() derived from view."""
    options: dict = {
        "viewport": view.viewport,
        "ignore_https_errors": view.ignore_https_errors,
    }
    if view.user_agent:
        options["user_agent"] = view.user_agent
    if view.video_dir:
        options["record_video_dir"] = view.video_dir
        options["record_video_size"] = view.viewport
    return options


class BrowserManager:
    """Launches on demand (or at start with autostart) and relaunches a running
    browser whenever a new projection arrives. A failed relaunch keeps the
    previous browser."""

    def __init__(
        self,
        store: ConfigStore,
        bus: ConfigBus,
        screenshot_dir: Path,
        autostart: bool = False,
    ) -> None:
        self._store = store
        self._bus = bus
        self._screenshot_dir = screenshot_dir
        self._autostart = autostart
        self._view: BrowserView | None = None
        self._active_view: BrowserView | None = None
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._subscription: Subscription | None = None
        self.last_fault: InitializationFault | None = None

    @property
    def running(self) -> bool:
        return self._browser is not None

    @property
    def active_view(self) -> BrowserView | None:
        """Projection the running browser was launched with."""
        return self._active_view

    async def start(self) -> None:
        await self._store.wait_until_ready()
        self._view = self._store.get_browser_view()
        self._subscription = self._bus.subscribe_browser(self._on_change, "browser_manager")
        if self._autostart:
            try:
                await self.launch()
            except InitializationFault as e:
                self.last_fault = e
                logger.error("Browser autostart failed: %s", e)

    async def stop(self) -> None:
        if self._subscription:
            self._subscription.unsubscribe()
            self._subscription = None
        await self._close(self._browser)
        self._browser = None
        self._context = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

    async def launch(self, view: BrowserView | None = None) -> None:
        """(Re)launch with view (default: latest projection). Raises InitializationFault."""
        view = view or self._view or self._store.get_browser_view()
        try:
            if self._playwright is None:
                self._playwright = await async_playwright().start()
            browser, context = await self._open(view)
        except Exception as e:
            raise InitializationFault(f"Could not launch {view.browser_name}: {e}") from e
        old = self._browser
        self._browser, self._context, self._active_view = browser, context, view
        self.last_fault = None
        logger.info(
            "Browser launched: %s (headless=%s, %dx%d)",
            view.browser_name,
            view.headless,
            view.viewport_width,
            view.viewport_height,
        )
        await self._close(old)

    async def new_page(self, url: str | None = None) -> Page:
        """Open a page in the current context, launching first if needed."""
        if self._context is None:
            await self.launch()
        if self._context is None or self._active_view is None:
            raise InitializationFault("Browser is not running")
        page = await self._context.new_page()
        if url:
            await page.goto(url)
        if self._active_view.take_initial_screenshot:
            self._screenshot_dir.mkdir(parents=True, exist_ok=True)
            path = self._screenshot_dir / f"initial-{int(time.time() * 1000)}.png"
            await page.screenshot(path=str(path))
            logger.info("Initial screenshot saved to %s", path)
        return page

    async def _open(self, view: BrowserView) -> tuple[Browser, BrowserContext]:
        if self._playwright is None:
            raise InitializationFault("Playwright is not started")
        browser_type = getattr(self._playwright, view.browser_name)
        browser = await browser_type.launch(headless=view.headless, slow_mo=view.slow_mo)
        try:
            context = await browser.new_context(**context_options(view))
            if view.enable_stealth:
                await context.add_init_script(STEALTH_INIT_SCRIPT)
        except Exception:
            await browser.close()
            raise
        return browser, context

    async def _close(self, browser: Browser | None) -> None:
        if browser is None:
            return
        try:
            await browser.close()
        except Exception as e:
            logger.warning("Error closing previous browser: %s", e)

    async def _on_change(self, view: BrowserView) -> None:
        logger.info("Browser configuration changed, reinitializing...")
        self._view = view
        if not self.running:
            return
        try:
            await self.launch(view)
        except InitializationFault as e:
            self.last_fault = e
            logger.error("Relaunch failed, keeping previous browser: %s", e)
