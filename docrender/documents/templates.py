"""HTML template functions for each financial document type.

Every template function has the signature
``(document_data, company_info) -> str`` and is pure apart from loading
its packaged Jinja2 template. Derived amounts (subtotal, tax, totals,
fees) are computed here with ``Decimal`` before any markup is produced,
so the render pipeline only ever sees finished HTML.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, DecimalException, InvalidOperation
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from docrender.exceptions import DocumentValidationError
from docrender.rendering.models import CompanyInfo
from docrender.utils.logger import get_logger

logger = get_logger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "html"

TWO_PLACES = Decimal("0.01")
MIN_TABLE_ROWS = 5

DEFAULT_COMPANY = {
    "name": "WIF JAPAN SDN BHD",
    "address": "Malaysia Office\nKuala Lumpur, Malaysia",
    "tel": "+60-XXX-XXXXXXX",
    "email": "info@wifjapan.com",
}


def quantize(value: Decimal) -> Decimal:
    """Round a monetary value half-up to two decimal places.

    Raises:
        DocumentValidationError: If the value is too large to represent
            with two decimal places.
    """
    try:
        return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    except DecimalException as exc:
        raise DocumentValidationError(f"Numeric value out of range: {value}") from exc


def format_amount(value: Decimal | int | float | str) -> str:
    """Format an amount with thousands separators and two decimals."""
    return f"{quantize(to_decimal(value)):,.2f}"


def format_number(value: Decimal) -> str:
    """Format a quantity or rate without trailing zeros: ``2``, ``2.5``, ``6``."""
    if value == value.to_integral_value():
        return str(int(value))
    return str(value.normalize())


def to_decimal(value: Any, default: Decimal | None = None) -> Decimal:
    """Convert a JSON number or numeric string to ``Decimal``.

    Raises:
        DocumentValidationError: If the value is not a finite number, or is
            too large to be shown as an amount.
    """
    if value is None or value == "":
        return default if default is not None else Decimal("0")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as exc:
        raise DocumentValidationError(f"Invalid numeric value: {value!r}") from exc
    if not result.is_finite():
        raise DocumentValidationError(f"Invalid numeric value: {value!r}")
    quantize(result)
    return result


def format_date(value: Any) -> str:
    """Format an ISO date or datetime string as ``M/D/YYYY``.

    Unparseable values are shown as given; missing values render blank.
    """
    if not value:
        return ""
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return str(value)
    return f"{parsed.month}/{parsed.day}/{parsed.year}"


_env = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR),
    autoescape=select_autoescape(["html"]),
    undefined=StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
)
_env.filters["money"] = format_amount
_env.filters["number"] = format_number


@dataclass(frozen=True)
class LineItem:
    """A single billed line, amounts already resolved."""

    description: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal


@dataclass(frozen=True)
class Totals:
    """Derived totals for an itemised document."""

    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal


def normalize_items(raw_items: Any) -> list[LineItem]:
    """Resolve raw line items, computing ``amount`` from quantity and unit price when absent."""
    if not isinstance(raw_items, list):
        return []

    items: list[LineItem] = []
    for raw in raw_items:
        if not isinstance(raw, Mapping):
            raise DocumentValidationError("Line items must be objects")
        quantity = to_decimal(raw.get("quantity"), Decimal("0"))
        unit_price = to_decimal(raw.get("unitPrice"), Decimal("0"))
        if raw.get("amount") is None:
            amount = quantity * unit_price
        else:
            amount = to_decimal(raw.get("amount"))
        items.append(
            LineItem(
                description=str(raw.get("description") or ""),
                quantity=quantity,
                unit_price=quantize(unit_price),
                amount=quantize(amount),
            )
        )
    return items


def compute_totals(data: Mapping[str, Any], items: list[LineItem]) -> Totals:
    """Compute subtotal, tax and total, honouring any explicit values in ``data``.

    A zero or missing ``subtotal`` is recomputed from the line items.
    """
    subtotal = to_decimal(data.get("subtotal"))
    if not subtotal:
        subtotal = sum((item.amount for item in items), Decimal("0"))
    tax_rate = to_decimal(data.get("taxRate"))

    if data.get("taxAmount") is None:
        tax_amount = subtotal * tax_rate / 100
    else:
        tax_amount = to_decimal(data.get("taxAmount"))

    if data.get("total") is None:
        total = subtotal + tax_amount
    else:
        total = to_decimal(data.get("total"))

    return Totals(
        subtotal=quantize(subtotal),
        tax_rate=tax_rate,
        tax_amount=quantize(tax_amount),
        total=quantize(total),
    )


def company_view(company_info: CompanyInfo) -> dict[str, str]:
    """Letterhead fields with defaults filled in for blanks."""
    return {
        key: getattr(company_info, key) or default
        for key, default in DEFAULT_COMPANY.items()
    }


def _common_view(data: Mapping[str, Any], company_info: CompanyInfo) -> dict[str, Any]:
    return {
        "company": company_view(company_info),
        "document_number": str(data.get("documentNumber", "")),
        "issue_date": format_date(data.get("createdAt")),
        "status": str(data.get("status") or "issued").lower(),
        "currency": str(data.get("currency") or ""),
        "country": str(data.get("country") or ""),
        "notes": data.get("notes") or None,
    }


def _render(template_name: str, view: Mapping[str, Any]) -> str:
    return _env.get_template(template_name).render(**view)


def render_invoice(document_data: Mapping[str, Any], company_info: CompanyInfo) -> str:
    """Render an invoice with its itemised totals."""
    items = normalize_items(document_data.get("items"))
    totals = compute_totals(document_data, items)
    view = _common_view(document_data, company_info)
    view.update(
        customer_name=str(document_data.get("customerName") or ""),
        customer_address=document_data.get("customerAddress") or None,
        payment_terms=str(document_data.get("paymentTerms") or "Net 30 Days"),
        items=items,
        empty_rows=max(0, MIN_TABLE_ROWS - len(items)),
        totals=totals,
    )
    return _render("invoice.html", view)


def render_receipt(document_data: Mapping[str, Any], company_info: CompanyInfo) -> str:
    """Render a payment receipt."""
    view = _common_view(document_data, company_info)
    view.update(
        amount=quantize(to_decimal(document_data.get("amount"))),
        payer_name=str(
            document_data.get("payerName") or document_data.get("payer") or "N/A"
        ),
        payment_method=str(document_data.get("paymentMethod") or "Bank Transfer"),
        linked_invoice=document_data.get("linkedInvoiceNumber")
        or document_data.get("linkedInvoiceId")
        or None,
    )
    return _render("receipt.html", view)


def render_payment_voucher(
    document_data: Mapping[str, Any], company_info: CompanyInfo
) -> str:
    """Render a payment voucher, itemised when line items are supplied."""
    items = normalize_items(document_data.get("items"))
    totals = compute_totals(document_data, items) if items else None
    if totals is not None:
        amount = totals.total
    else:
        amount = quantize(to_decimal(document_data.get("total") or document_data.get("amount")))

    view = _common_view(document_data, company_info)
    view.update(
        amount=amount,
        payee_name=str(document_data.get("payeeName") or "Not Specified"),
        payee_address=document_data.get("payeeAddress") or None,
        payee_bank_name=document_data.get("payeeBankName") or None,
        payee_bank_account=document_data.get("payeeBankAccount") or None,
        requested_by=str(document_data.get("requestedBy") or "Not Specified"),
        approved_by=document_data.get("approvedBy") or None,
        purpose=str(document_data.get("purpose") or ""),
        items=items,
        empty_rows=0,
        totals=totals,
    )
    view["country"] = view["country"] or "Not Specified"
    return _render("payment_voucher.html", view)


def _transfer_proof(document_data: Mapping[str, Any]) -> str | None:
    proof = document_data.get("transferProofBase64")
    if not proof:
        return None
    if not str(proof).startswith("data:image/"):
        logger.warning(
            "Dropping transfer proof for %s: not an image data URI",
            document_data.get("documentNumber"),
        )
        return None
    return str(proof)


def render_statement_of_payment(
    document_data: Mapping[str, Any], company_info: CompanyInfo
) -> str:
    """Render a statement of payment, including any transaction fee."""
    items = normalize_items(document_data.get("items"))
    totals = compute_totals(document_data, items) if items else None
    amount = quantize(to_decimal(document_data.get("amount") or document_data.get("total")))

    fee = quantize(to_decimal(document_data.get("transactionFee")))
    fee_base = totals.total if totals is not None else amount
    if document_data.get("totalDeducted") is None:
        total_deducted = quantize(fee_base + fee)
    else:
        total_deducted = quantize(to_decimal(document_data.get("totalDeducted")))

    view = _common_view(document_data, company_info)
    view.update(
        amount=amount,
        linked_voucher=str(
            document_data.get("linkedVoucherNumber")
            or document_data.get("linkedVoucherId")
            or "N/A"
        ),
        transaction_reference=str(document_data.get("transactionReference") or "N/A"),
        payment_method=str(document_data.get("paymentMethod") or "Bank Transfer"),
        account_name=document_data.get("accountName") or None,
        items=items,
        empty_rows=0,
        totals=totals,
        fee=fee if fee > 0 else None,
        fee_type=document_data.get("transactionFeeType") or None,
        fee_base=fee_base,
        total_deducted=total_deducted,
        transfer_proof=_transfer_proof(document_data),
        transfer_proof_filename=document_data.get("transferProofFilename") or None,
    )
    return _render("statement_of_payment.html", view)
