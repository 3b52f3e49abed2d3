"""Per-page footer composition.

The footer is handed to Chromium as ``footer_template`` and repeated on
every page. Page numbers are left to the engine through its native
``pageNumber`` and ``totalPages`` substitution classes.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from markupsafe import Markup, escape

from docrender.utils.logger import get_logger

from .models import CompanyInfo, PrinterInfo

logger = get_logger(__name__)

DEFAULT_TIMEZONE = "Asia/Kuala_Lumpur"

# Offset labels are a fixed lookup; everything except Tokyo is reported as UTC+8.
_OFFSET_LABELS = {"Asia/Tokyo": "UTC+9"}
_DEFAULT_OFFSET_LABEL = "UTC+8"
_FALLBACK_ZONE = timezone(timedelta(hours=8))

PAGE_NUMBER_MARKUP = Markup(
    'Page <span class="pageNumber"></span> of <span class="totalPages"></span>'
)

_CONTAINER_STYLE = (
    "width: 100%; font-family: Arial, sans-serif; font-size: 9.5px; "
    "text-align: center; color: #333333; padding: 10px 40px; margin-top: 10px;"
)
_REGISTRATION_STYLE = "margin-bottom: 4px; line-height: 1.4;"
_PRINTED_BY_STYLE = "margin-bottom: 4px; color: #666666; line-height: 1.4;"
_PAGE_NUMBER_STYLE = "margin-top: 4px;"


@dataclass(frozen=True)
class FooterMetadata:
    """Footer lines derived from company and printer details."""

    registration_line: str
    printed_by_line: str | None = None
    page_number_markup: Markup = PAGE_NUMBER_MARKUP

    def to_markup(self) -> str:
        lines = [_div(_REGISTRATION_STYLE, escape(self.registration_line))]
        if self.printed_by_line:
            lines.append(_div(_PRINTED_BY_STYLE, escape(self.printed_by_line)))
        lines.append(_div(_PAGE_NUMBER_STYLE, self.page_number_markup))
        body = "".join(lines)
        return f'<div style="{_CONTAINER_STYLE}">{body}</div>'


def _div(style: str, content: Markup) -> str:
    return f'<div style="{style}">{content}</div>'


def offset_label(tz_name: str | None) -> str:
    """Return the UTC offset label printed for a timezone identifier."""
    return _OFFSET_LABELS.get(tz_name or DEFAULT_TIMEZONE, _DEFAULT_OFFSET_LABEL)


def _resolve_zone(tz_name: str) -> ZoneInfo | timezone:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, formatting in UTC+8", tz_name)
        return _FALLBACK_ZONE


def format_print_time(timestamp: datetime, tz_name: str | None = None) -> tuple[str, str]:
    """Format a print timestamp as en-US date and time strings.

    Naive timestamps are taken to be UTC.

    Args:
        timestamp: Moment the document was printed.
        tz_name: IANA timezone to format in. Defaults to Kuala Lumpur.

    Returns:
        Tuple of (``"Jan 5, 2025"``, ``"02:30 PM"``).
    """
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    local = timestamp.astimezone(_resolve_zone(tz_name or DEFAULT_TIMEZONE))
    date_str = f"{local:%b} {local.day}, {local.year}"
    time_str = local.strftime("%I:%M %p")
    return date_str, time_str


def build_footer_metadata(
    company_info: CompanyInfo, printer_info: PrinterInfo | None = None
) -> FooterMetadata:
    """Derive the footer lines for one request.

    The registration line is always present, blank fields included. The
    printed-by line appears only when both a user name and a timestamp
    are known.
    """
    registration_line = (
        f"Company Registration No: {company_info.registration_no}. "
        f"Registered Office: {company_info.registered_office}"
    )

    printed_by_line = None
    if printer_info and printer_info.user_name and printer_info.print_timestamp:
        date_str, time_str = format_print_time(
            printer_info.print_timestamp, printer_info.timezone
        )
        printed_by_line = (
            f"Printed by {printer_info.user_name} on {date_str} at {time_str} "
            f"({offset_label(printer_info.timezone)})"
        )

    return FooterMetadata(
        registration_line=registration_line,
        printed_by_line=printed_by_line,
    )


def compose_footer(
    company_info: CompanyInfo, printer_info: PrinterInfo | None = None
) -> str:
    """Return the footer markup injected into every rendered page."""
    return build_footer_metadata(company_info, printer_info).to_markup()
