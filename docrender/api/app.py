"""FastAPI application for the document rendering service.

Provides one PDF endpoint per document type, a document type listing and
a health probe. Requests to the PDF endpoints are rate limited per client
and size-capped before any render work starts; failures are reported as
``{"error": ..., "message": ...}`` JSON with a status matching the
failure type.
"""

import io
import re
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Annotated, Any

from fastapi import Body, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from docrender import __version__
from docrender.documents.registry import TEMPLATE_REGISTRY, get_entry
from docrender.engine.supervisor import RenderEngineSupervisor
from docrender.exceptions import DocRenderError
from docrender.rendering.renderer import DocumentRenderer, build_render_request
from docrender.utils.config import AppConfig, load_config
from docrender.utils.logger import get_logger

from .rate_limit import SlidingWindowRateLimiter
from .schemas import (
    DocumentTypeInfo,
    DocumentTypesResponse,
    ErrorResponse,
    HealthResponse,
)

logger = get_logger(__name__)

SERVICE_NAME = "pdf-generator"
PDF_PATH_PREFIX = "/api/pdf/"
MAX_MESSAGE_LENGTH = 300

_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Resource-Policy": "same-site",
}

_PATH_PATTERN = re.compile(r"(?:[A-Za-z]:)?(?:[\\/][\w.\-]+){2,}")


def safe_message(exc: BaseException) -> str | None:
    """Reduce an exception to a single client-safe line.

    Keeps only the first line (engine errors append call logs), redacts
    anything that looks like a filesystem path and caps the length.
    """
    text = str(exc).strip()
    if not text:
        return None
    first_line = text.splitlines()[0]
    return _PATH_PATTERN.sub("<path>", first_line)[:MAX_MESSAGE_LENGTH]


def _error_response(
    status_code: int,
    error: str,
    message: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ErrorResponse(error=error, message=message)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )


def create_app(
    config: AppConfig | None = None,
    supervisor: RenderEngineSupervisor | None = None,
) -> FastAPI:
    """Build the application and its render pipeline.

    Args:
        config: Application configuration. Loaded from file when omitted.
        supervisor: Engine supervisor to use. A new one is created from
            ``config.engine`` when omitted.

    Returns:
        Configured FastAPI application.
    """
    config = config or load_config()
    supervisor = supervisor or RenderEngineSupervisor(config.engine)
    renderer = DocumentRenderer(supervisor, config.session, config.render)
    rate_limiter = SlidingWindowRateLimiter.from_config(config.rate_limit)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "PDF service ready (origins=%s, rate limit=%d/%ds)",
            ",".join(config.server.allowed_origins),
            config.rate_limit.max_requests,
            config.rate_limit.window_seconds,
        )
        yield
        logger.info("Shutdown requested, draining renders and closing engine")
        await renderer.shutdown()

    app = FastAPI(
        title="Document Rendering Service",
        description="Render invoices, receipts, payment vouchers and statements of payment to PDF",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.supervisor = supervisor
    app.state.renderer = renderer
    app.state.rate_limiter = rate_limiter

    async def guard_requests(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        response = _reject_pdf_request(request, config, rate_limiter)
        if response is None:
            response = await call_next(request)
        response.headers.update(_SECURITY_HEADERS)
        return response

    app.middleware("http")(guard_requests)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(DocRenderError)
    async def handle_render_error(request: Request, exc: DocRenderError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        else:
            logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
        return _error_response(exc.status_code, exc.error, safe_message(exc))

    @app.exception_handler(RequestValidationError)
    async def handle_bad_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("%s %s: malformed request body", request.method, request.url.path)
        return _error_response(
            400, "Invalid request body", "Request body must be a JSON object"
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error_response(500, "Internal server error")

    @app.get("/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Return service identity and status. Never starts the engine."""
        return HealthResponse(
            status="ok",
            service=SERVICE_NAME,
            version=__version__,
            timestamp=datetime.now(timezone.utc),
            engine_running=supervisor.is_running,
        )

    @app.get("/api/document-types", response_model=DocumentTypesResponse)
    async def list_document_types() -> DocumentTypesResponse:
        """List the document types this service can render."""
        return DocumentTypesResponse(
            document_types=[
                DocumentTypeInfo(
                    name=entry.document_type.value,
                    slug=entry.document_type.slug,
                    payload_key=entry.document_type.payload_key,
                    title=entry.title,
                    endpoint=f"{PDF_PATH_PREFIX}{entry.document_type.slug}",
                )
                for entry in TEMPLATE_REGISTRY.values()
            ]
        )

    @app.post(
        PDF_PATH_PREFIX + "{document_slug}",
        response_class=StreamingResponse,
        responses={
            200: {"content": {"application/pdf": {}}},
            400: {"model": ErrorResponse},
            404: {"model": ErrorResponse},
            411: {"model": ErrorResponse},
            413: {"model": ErrorResponse},
            429: {"model": ErrorResponse},
            500: {"model": ErrorResponse},
        },
    )
    async def generate_pdf(
        document_slug: str,
        payload: Annotated[dict[str, Any], Body()],
    ) -> StreamingResponse:
        """Render one document to PDF.

        The body carries the document under its payload key, e.g.
        ``{"invoice": {...}, "companyInfo": {...}, "printerInfo": {...}}``.
        """
        document_type = get_entry(document_slug).document_type
        render_request = build_render_request(document_type, payload)

        document_data = render_request.document_data
        items = document_data.get("items")
        logger.info(
            "Generating %s PDF: number=%s items=%d printed_by=%s",
            document_type.value,
            render_request.document_number,
            len(items) if isinstance(items, list) else 0,
            render_request.printer_info.user_name if render_request.printer_info else None,
        )

        artifact = await renderer.render(render_request)
        return StreamingResponse(
            io.BytesIO(artifact.content),
            media_type=artifact.media_type,
            headers={
                "Content-Disposition": f'attachment; filename="{artifact.filename}"'
            },
        )

    return app


def _reject_pdf_request(
    request: Request,
    config: AppConfig,
    rate_limiter: SlidingWindowRateLimiter,
) -> JSONResponse | None:
    """Apply body size and rate limits to PDF requests before routing.

    POST bodies must declare their length, which the server enforces while
    reading, so the size cap cannot be bypassed with a chunked upload.
    """
    if not request.url.path.startswith(PDF_PATH_PREFIX) or request.method == "OPTIONS":
        return None

    content_length = request.headers.get("content-length", "")
    body_size = int(content_length) if content_length.isdigit() else None
    if body_size is None and request.method == "POST":
        return _error_response(
            411, "Length required", "Content-Length header is required"
        )
    if body_size is not None and body_size > config.server.max_body_bytes:
        return _error_response(
            413,
            "Request body too large",
            f"Limit is {config.server.max_body_bytes} bytes",
        )

    client_ip = request.client.host if request.client else "unknown"
    if not rate_limiter.is_allowed(client_ip):
        logger.warning("Rate limited %s on %s", client_ip, request.url.path)
        return _error_response(
            429,
            "Too many PDF generation requests, please try again later.",
            headers={"Retry-After": str(rate_limiter.retry_after(client_ip))},
        )
    return None


app = create_app()
