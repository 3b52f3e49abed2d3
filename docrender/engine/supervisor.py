"""Lifecycle management for the shared headless Chromium process.

Exactly one browser is shared by every request. It is launched lazily on
first use, dropped the moment a disconnect is observed and relaunched by
the next caller. Readers of a live browser never take the lock; only a
launch is serialized, so callers arriving during startup wait for the
in-flight launch instead of starting their own.
"""

import asyncio
from collections.abc import Callable
from typing import Any

from playwright.async_api import Browser, Playwright, async_playwright

from docrender.exceptions import EngineUnavailable, ServiceShuttingDown
from docrender.utils.config import EngineConfig
from docrender.utils.logger import get_logger

logger = get_logger(__name__)


class RenderEngineSupervisor:
    """Owns the single shared rendering engine.

    Args:
        config: Browser launch settings.
        driver_factory: Callable returning a Playwright context manager.
            Defaults to ``async_playwright``.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        driver_factory: Callable[[], Any] = async_playwright,
    ) -> None:
        self.config = config or EngineConfig()
        self._driver_factory = driver_factory
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._launch_lock = asyncio.Lock()
        self._closed = False
        self.launch_count = 0

    @property
    def is_running(self) -> bool:
        """Whether a connected browser currently exists. Never launches one."""
        browser = self._browser
        return browser is not None and browser.is_connected()

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def acquire(self) -> Browser:
        """Return the live browser, launching it if necessary.

        Raises:
            ServiceShuttingDown: If the supervisor has been closed.
            EngineUnavailable: If Chromium fails to launch.
        """
        if self._closed:
            raise ServiceShuttingDown("Service is shutting down")

        browser = self._browser
        if browser is not None and browser.is_connected():
            return browser

        async with self._launch_lock:
            if self._closed:
                raise ServiceShuttingDown("Service is shutting down")

            browser = self._browser
            if browser is not None:
                if browser.is_connected():
                    return browser
                logger.warning("Discarding disconnected browser before relaunch")
                self._browser = None

            browser = await self._launch()
            self._browser = browser
            self.launch_count += 1
            logger.info("Chromium launched (launch #%d)", self.launch_count)
            return browser

    async def _launch(self) -> Browser:
        try:
            if self._playwright is None:
                self._playwright = await self._driver_factory().start()
            browser = await self._playwright.chromium.launch(
                headless=self.config.headless,
                chromium_sandbox=self.config.chromium_sandbox,
                args=list(self.config.launch_args),
                timeout=self.config.launch_timeout_ms,
            )
        except Exception as exc:
            logger.error("Chromium launch failed: %s", exc)
            await self._stop_driver()
            raise EngineUnavailable(f"Failed to launch rendering engine: {exc}") from exc

        browser.on("disconnected", self.report_disconnected)
        return browser

    def report_disconnected(self, browser: Browser) -> None:
        """Forget ``browser`` if it is still the shared handle.

        A handle already replaced by a newer launch is left alone. Recovery
        happens lazily on the next ``acquire()``.
        """
        if self._browser is browser:
            logger.warning("Browser disconnected, clearing shared handle")
            self._browser = None

    async def close(self) -> None:
        """Stop accepting work and shut the browser and driver down."""
        self._closed = True
        async with self._launch_lock:
            browser, self._browser = self._browser, None

            if browser is not None:
                try:
                    await browser.close()
                    logger.info("Browser closed")
                except Exception as exc:
                    logger.error("Error closing browser: %s", exc)

            await self._stop_driver()

    async def _stop_driver(self) -> None:
        playwright, self._playwright = self._playwright, None
        if playwright is None:
            return
        try:
            await playwright.stop()
        except Exception as exc:
            logger.error("Error stopping Playwright: %s", exc)
