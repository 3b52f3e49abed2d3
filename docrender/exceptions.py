"""Typed failures raised by the rendering pipeline.

Every error carries the HTTP status and the short ``error`` label the
ingress layer reports, so the API maps failures without inspecting them.
"""


class DocRenderError(Exception):
    """Base class for all document rendering failures."""

    status_code: int = 500
    error: str = "Failed to generate PDF"


class DocumentValidationError(DocRenderError):
    """The request payload is missing or malformed."""

    status_code = 400
    error = "Invalid document data"


class UnknownDocumentType(DocRenderError):
    """The requested document type has no registered template."""

    status_code = 404
    error = "Unknown document type"

    def __init__(self, document_type: str) -> None:
        self.document_type = document_type
        super().__init__(f"Document type '{document_type}' is not supported")


class EngineUnavailable(DocRenderError):
    """The rendering engine could not be launched."""

    status_code = 503
    error = "Rendering engine unavailable"


class ServiceShuttingDown(EngineUnavailable):
    """The service is draining and no longer accepts render work."""

    error = "Service is shutting down"


class SessionOpenError(DocRenderError):
    """A rendering context could not be created on the engine."""

    error = "Failed to open rendering context"


class RenderFailed(DocRenderError):
    """Markup loading or PDF export failed."""


class RenderTimeout(RenderFailed):
    """Markup did not settle, or pagination exceeded its bound."""

    status_code = 504
    error = "PDF generation timed out"


class EngineDisconnected(RenderFailed):
    """The shared engine went away while a render was in flight."""

    status_code = 502
    error = "Rendering engine disconnected"
