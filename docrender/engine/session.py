"""A single request's isolated use of the shared browser.

Each session owns one ``BrowserContext`` and its page. The context is
closed on every exit path; failures while closing are logged so they
never mask the outcome of the render itself.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

from playwright.async_api import Browser, BrowserContext, Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from docrender.exceptions import (
    EngineDisconnected,
    RenderFailed,
    RenderTimeout,
    SessionOpenError,
)
from docrender.rendering.footer import FooterMetadata
from docrender.utils.config import MarginConfig, SessionConfig
from docrender.utils.logger import get_logger

from .supervisor import RenderEngineSupervisor

logger = get_logger(__name__)


@dataclass(frozen=True)
class PageOptions:
    """Paper settings handed to the engine's PDF export."""

    format: str = "A4"
    margin: MarginConfig = field(default_factory=MarginConfig)
    print_background: bool = True

    @classmethod
    def from_config(cls, config: SessionConfig) -> "PageOptions":
        return cls(format=config.page_format, margin=config.margin)


class RenderSession:
    """One isolated rendering context bound to one request.

    Use ``RenderSession.open`` to create a session, then ``async with``
    it so ``dispose`` runs however the render ends.
    """

    def __init__(
        self,
        browser: Browser,
        supervisor: RenderEngineSupervisor,
        context: BrowserContext,
        page: Page,
        config: SessionConfig,
    ) -> None:
        self.browser = browser
        self.supervisor = supervisor
        self.context = context
        self.page = page
        self.config = config
        self._disposed = False

    @classmethod
    async def open(
        cls,
        browser: Browser,
        supervisor: RenderEngineSupervisor,
        config: SessionConfig | None = None,
    ) -> "RenderSession":
        """Create a fresh context and page on ``browser``.

        The viewport is deliberately very tall so the whole document is laid
        out before the engine paginates it.

        Raises:
            EngineDisconnected: If the browser died underneath us.
            SessionOpenError: If the context could not be created.
        """
        config = config or SessionConfig()
        context = None
        try:
            context = await browser.new_context(
                viewport={
                    "width": config.viewport_width,
                    "height": config.viewport_height,
                }
            )
            page = await context.new_page()
        except Exception as exc:
            if context is not None:
                await _close_quietly(context)
            if not browser.is_connected():
                supervisor.report_disconnected(browser)
                raise EngineDisconnected(
                    f"Rendering engine disconnected: {exc}"
                ) from exc
            raise SessionOpenError(f"Failed to open rendering context: {exc}") from exc

        return cls(browser, supervisor, context, page, config)

    async def __aenter__(self) -> "RenderSession":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.dispose()

    async def render_markup(self, markup: str, timeout_ms: int | None = None) -> None:
        """Load ``markup`` and wait until the network is idle.

        A short settle delay follows so late style application finishes
        before pagination.

        Raises:
            RenderTimeout: If the page did not settle in time.
            EngineDisconnected: If the browser went away.
            RenderFailed: For any other engine error.
        """
        timeout_ms = timeout_ms if timeout_ms is not None else self.config.render_timeout_ms
        try:
            await self.page.set_content(
                markup, wait_until="networkidle", timeout=timeout_ms
            )
        except Exception as exc:
            raise self._translate(exc, "Loading markup") from exc

        await asyncio.sleep(self.config.settle_delay_ms / 1000)

    async def produce_pdf(
        self, footer: FooterMetadata, page_options: PageOptions | None = None
    ) -> bytes:
        """Paginate the loaded content into a PDF with ``footer`` on every page.

        Raises:
            RenderTimeout: If export exceeded the configured bound.
            EngineDisconnected: If the browser went away.
            RenderFailed: For any other engine error.
        """
        options = page_options or PageOptions.from_config(self.config)
        try:
            return await asyncio.wait_for(
                self.page.pdf(
                    format=options.format,
                    print_background=options.print_background,
                    display_header_footer=True,
                    header_template="<div></div>",
                    footer_template=footer.to_markup(),
                    margin=options.margin.model_dump(),
                    prefer_css_page_size=False,
                ),
                timeout=self.config.pdf_timeout_ms / 1000,
            )
        except Exception as exc:
            raise self._translate(exc, "PDF export") from exc

    def _translate(self, exc: Exception, stage: str) -> RenderFailed:
        if not self.browser.is_connected():
            self.supervisor.report_disconnected(self.browser)
            return EngineDisconnected(f"{stage} failed, rendering engine disconnected")
        if isinstance(exc, (PlaywrightTimeoutError, asyncio.TimeoutError)):
            return RenderTimeout(f"{stage} timed out")
        return RenderFailed(f"{stage} failed: {exc}")

    async def dispose(self) -> None:
        """Close the context. Safe to call more than once."""
        if self._disposed:
            return
        self._disposed = True
        await _close_quietly(self.context)


async def _close_quietly(context: BrowserContext) -> None:
    try:
        await context.close()
    except Exception as exc:
        logger.error("Error closing rendering context: %s", exc)
