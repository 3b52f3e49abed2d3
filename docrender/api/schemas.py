"""Pydantic response schemas for the FastAPI endpoints."""

from datetime import datetime

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    error: str
    message: str | None = None


class DocumentTypeInfo(BaseModel):
    """A renderable document type and how to request it."""

    name: str
    slug: str
    payload_key: str
    title: str
    endpoint: str


class DocumentTypesResponse(BaseModel):
    """Response schema listing renderable document types."""

    document_types: list[DocumentTypeInfo]


class HealthResponse(BaseModel):
    """Response schema for the health check endpoint."""

    status: str
    service: str
    version: str
    timestamp: datetime
    engine_running: bool
