"""Domain models shared by the registry, the render pipeline and the API."""

import re
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class DocumentType(StrEnum):
    """Financial document types the service can render."""

    INVOICE = "invoice"
    RECEIPT = "receipt"
    PAYMENT_VOUCHER = "payment_voucher"
    STATEMENT_OF_PAYMENT = "statement_of_payment"

    @property
    def slug(self) -> str:
        """URL path segment and filename prefix, e.g. ``payment-voucher``."""
        return self.value.replace("_", "-")

    @property
    def payload_key(self) -> str:
        """Request body key holding the document data, e.g. ``paymentVoucher``."""
        return to_camel(self.value)

    @classmethod
    def parse(cls, raw: str) -> "DocumentType":
        """Look up a member by value or slug.

        Raises:
            ValueError: If ``raw`` names no member.
        """
        return cls(raw.replace("-", "_"))


class CompanyInfo(BaseModel):
    """Issuing company details printed in the letterhead and footer."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str = ""
    registration_no: str = ""
    registered_office: str = ""
    address: str = ""
    tel: str = ""
    email: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _null_as_blank(cls, value: Any) -> Any:
        """Unset settings arrive as ``null``; they render blank."""
        return "" if value is None else value


class PrinterInfo(BaseModel):
    """Who printed the document, and when."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_name: str | None = None
    print_timestamp: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "printTimestamp", "printDate", "print_timestamp"
        ),
    )
    timezone: str | None = None


@dataclass(frozen=True)
class RenderRequest:
    """A validated request to render one document."""

    document_type: DocumentType
    document_data: dict[str, Any]
    company_info: CompanyInfo
    printer_info: PrinterInfo | None = None

    @property
    def document_number(self) -> str:
        return str(self.document_data["documentNumber"])


@dataclass(frozen=True)
class PDFArtifact:
    """The finished binary document for one request."""

    content: bytes
    document_type: DocumentType
    document_number: str
    media_type: str = "application/pdf"

    @property
    def filename(self) -> str:
        number = _UNSAFE_FILENAME_CHARS.sub("_", self.document_number)
        return f"{self.document_type.slug}-{number}.pdf"
