"""Document template registry.

Binds each ``DocumentType`` to the function that turns its data into
HTML. The table is closed: every document type must be registered here,
and a missing entry fails at import time rather than at request time.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from docrender.exceptions import DocumentValidationError, UnknownDocumentType
from docrender.rendering.models import CompanyInfo, DocumentType

from .templates import (
    render_invoice,
    render_payment_voucher,
    render_receipt,
    render_statement_of_payment,
)

TemplateFn = Callable[[Mapping[str, Any], CompanyInfo], str]


@dataclass(frozen=True)
class TemplateEntry:
    """Declarative description of a renderable document type."""

    document_type: DocumentType
    render: TemplateFn
    title: str
    required_fields: tuple[str, ...] = ("documentNumber",)


TEMPLATE_REGISTRY: dict[DocumentType, TemplateEntry] = {
    DocumentType.INVOICE: TemplateEntry(
        document_type=DocumentType.INVOICE,
        render=render_invoice,
        title="Invoice",
    ),
    DocumentType.RECEIPT: TemplateEntry(
        document_type=DocumentType.RECEIPT,
        render=render_receipt,
        title="Receipt",
    ),
    DocumentType.PAYMENT_VOUCHER: TemplateEntry(
        document_type=DocumentType.PAYMENT_VOUCHER,
        render=render_payment_voucher,
        title="Payment Voucher",
    ),
    DocumentType.STATEMENT_OF_PAYMENT: TemplateEntry(
        document_type=DocumentType.STATEMENT_OF_PAYMENT,
        render=render_statement_of_payment,
        title="Statement of Payment",
    ),
}

_unregistered = set(DocumentType) - set(TEMPLATE_REGISTRY)
if _unregistered:
    raise RuntimeError(
        f"Document types without a template: {sorted(_unregistered)}"
    )


def get_entry(document_type: DocumentType | str) -> TemplateEntry:
    """Look up the registry entry for a document type, value or slug.

    Raises:
        UnknownDocumentType: If no template is registered for it.
    """
    if not isinstance(document_type, DocumentType):
        try:
            document_type = DocumentType.parse(document_type)
        except ValueError as exc:
            raise UnknownDocumentType(document_type) from exc
    try:
        return TEMPLATE_REGISTRY[document_type]
    except KeyError as exc:
        raise UnknownDocumentType(document_type.value) from exc


def resolve(document_type: DocumentType | str) -> TemplateFn:
    """Return the template function for a document type."""
    return get_entry(document_type).render


def validate_document_data(document_type: DocumentType, data: Any) -> dict[str, Any]:
    """Check a document payload carries the fields its template needs.

    Raises:
        DocumentValidationError: If the payload is not an object or an
            identifying field is missing or blank.
    """
    if not isinstance(data, Mapping) or not data:
        raise DocumentValidationError(
            f"{get_entry(document_type).title} data is required"
        )

    missing = [
        name
        for name in get_entry(document_type).required_fields
        if data.get(name) is None or not str(data.get(name)).strip()
    ]
    if missing:
        raise DocumentValidationError(
            f"Missing required field(s): {', '.join(missing)}"
        )
    return dict(data)
