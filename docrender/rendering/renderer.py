"""End-to-end render pipeline.

Resolves the template, produces markup and footer, borrows the shared
browser from the supervisor and runs one ``RenderSession`` per request.
Markup is produced before any engine resource is requested, so bad data
never costs a browser context.
"""

import asyncio
import time
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from typing import Any

from pydantic import ValidationError

from docrender.documents.registry import get_entry, validate_document_data
from docrender.engine.session import PageOptions, RenderSession
from docrender.engine.supervisor import RenderEngineSupervisor
from docrender.exceptions import DocumentValidationError, ServiceShuttingDown
from docrender.utils.config import RenderConfig, SessionConfig
from docrender.utils.logger import get_logger

from .footer import build_footer_metadata
from .models import CompanyInfo, DocumentType, PDFArtifact, PrinterInfo, RenderRequest

logger = get_logger(__name__)


def build_render_request(
    document_type: DocumentType, payload: Mapping[str, Any]
) -> RenderRequest:
    """Build a render request from an API-shaped body.

    The body holds the document under its payload key (``invoice``,
    ``paymentVoucher``, ...) alongside optional ``companyInfo`` and
    ``printerInfo`` objects.

    Raises:
        DocumentValidationError: If the document is absent or malformed.
    """
    document_data = validate_document_data(
        document_type, payload.get(document_type.payload_key)
    )
    try:
        company_info = CompanyInfo.model_validate(payload.get("companyInfo") or {})
        raw_printer = payload.get("printerInfo")
        printer_info = PrinterInfo.model_validate(raw_printer) if raw_printer else None
    except ValidationError as exc:
        raise DocumentValidationError(
            f"Invalid companyInfo or printerInfo: {exc.error_count()} error(s)"
        ) from exc

    return RenderRequest(
        document_type=document_type,
        document_data=document_data,
        company_info=company_info,
        printer_info=printer_info,
    )


class DocumentRenderer:
    """Turns validated render requests into PDF artifacts.

    Args:
        supervisor: Owner of the shared browser.
        session_config: Per-session viewport, timeouts and paper settings.
        render_config: Concurrency ceiling and shutdown grace period.
    """

    def __init__(
        self,
        supervisor: RenderEngineSupervisor,
        session_config: SessionConfig | None = None,
        render_config: RenderConfig | None = None,
    ) -> None:
        self.supervisor = supervisor
        self.session_config = session_config or SessionConfig()
        self.render_config = render_config or RenderConfig()
        self.page_options = PageOptions.from_config(self.session_config)

        limit = self.render_config.max_concurrent_sessions
        self._slots = asyncio.Semaphore(limit) if limit > 0 else None
        self._inflight = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._accepting = True

    @property
    def inflight(self) -> int:
        return self._inflight

    @asynccontextmanager
    async def _track(self) -> AsyncIterator[None]:
        if not self._accepting:
            raise ServiceShuttingDown("Service is shutting down")
        self._inflight += 1
        self._idle.clear()
        try:
            if self._slots is None:
                yield
            else:
                async with self._slots:
                    yield
        finally:
            self._inflight -= 1
            if self._inflight == 0:
                self._idle.set()

    async def render(self, request: RenderRequest) -> PDFArtifact:
        """Render one document.

        Raises:
            DocumentValidationError: If the template rejects the data.
            UnknownDocumentType: If the type has no template.
            EngineUnavailable: If the browser cannot be launched.
            RenderFailed: If loading or exporting fails, including timeouts
                and engine disconnects.
        """
        entry = get_entry(request.document_type)
        markup = entry.render(request.document_data, request.company_info)
        footer = build_footer_metadata(request.company_info, request.printer_info)

        async with self._track():
            start = time.perf_counter()
            browser = await self.supervisor.acquire()
            session = await RenderSession.open(
                browser, self.supervisor, self.session_config
            )
            async with session:
                await session.render_markup(markup)
                content = await session.produce_pdf(footer, self.page_options)

        logger.info(
            "Rendered %s %s (%d bytes) in %.2fs",
            request.document_type.value,
            request.document_number,
            len(content),
            time.perf_counter() - start,
        )
        return PDFArtifact(
            content=content,
            document_type=request.document_type,
            document_number=request.document_number,
        )

    async def shutdown(self) -> None:
        """Stop admitting renders, let in-flight ones finish, then close the engine."""
        self._accepting = False
        if self._inflight:
            logger.info("Waiting for %d in-flight render(s) to finish", self._inflight)
            try:
                await asyncio.wait_for(
                    self._idle.wait(), timeout=self.render_config.shutdown_grace_seconds
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "Shutdown grace period elapsed with %d render(s) still running",
                    self._inflight,
                )
        await self.supervisor.close()
