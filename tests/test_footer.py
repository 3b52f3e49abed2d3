"""Tests for per-page footer composition."""

from datetime import datetime, timezone

from docrender.rendering.footer import (
    PAGE_NUMBER_MARKUP,
    FooterMetadata,
    build_footer_metadata,
    compose_footer,
    format_print_time,
    offset_label,
)
from docrender.rendering.models import CompanyInfo, PrinterInfo

PRINTED_AT = datetime(2025, 1, 5, 6, 30, tzinfo=timezone.utc)


class TestFormatPrintTime:
    """Tests for en-US print time formatting."""

    def test_default_zone_is_kuala_lumpur(self) -> None:
        assert format_print_time(PRINTED_AT) == ("Jan 5, 2025", "02:30 PM")

    def test_tokyo(self) -> None:
        assert format_print_time(PRINTED_AT, "Asia/Tokyo") == ("Jan 5, 2025", "03:30 PM")

    def test_naive_timestamp_is_utc(self) -> None:
        naive = datetime(2025, 1, 5, 6, 30)
        assert format_print_time(naive) == format_print_time(PRINTED_AT)

    def test_crosses_midnight(self) -> None:
        late = datetime(2025, 12, 31, 20, 15, tzinfo=timezone.utc)
        assert format_print_time(late) == ("Jan 1, 2026", "04:15 AM")

    def test_unknown_zone_falls_back_to_utc_plus_8(self) -> None:
        assert format_print_time(PRINTED_AT, "Mars/Olympus_Mons") == (
            "Jan 5, 2025",
            "02:30 PM",
        )


class TestOffsetLabel:
    """Tests for the fixed offset label table."""

    def test_tokyo(self) -> None:
        assert offset_label("Asia/Tokyo") == "UTC+9"

    def test_default(self) -> None:
        assert offset_label(None) == "UTC+8"
        assert offset_label("Asia/Kuala_Lumpur") == "UTC+8"

    def test_other_zones_report_utc_plus_8(self) -> None:
        assert offset_label("Europe/London") == "UTC+8"


class TestBuildFooterMetadata:
    """Tests for deriving footer lines from company and printer details."""

    def test_registration_line(self, company_info: CompanyInfo) -> None:
        footer = build_footer_metadata(company_info)
        assert footer.registration_line == (
            "Company Registration No: 202301234567 (1234567-X). "
            "Registered Office: Level 10, Menara KL, Kuala Lumpur"
        )
        assert footer.printed_by_line is None

    def test_blank_company_still_has_registration_line(self) -> None:
        footer = build_footer_metadata(CompanyInfo())
        assert footer.registration_line == (
            "Company Registration No: . Registered Office: "
        )

    def test_printed_by_line(
        self, company_info: CompanyInfo, printer_info: PrinterInfo
    ) -> None:
        footer = build_footer_metadata(company_info, printer_info)
        assert footer.printed_by_line == (
            "Printed by Aiko Tanaka on Jan 5, 2025 at 02:30 PM (UTC+8)"
        )

    def test_printed_by_requires_user_name(self, company_info: CompanyInfo) -> None:
        printer = PrinterInfo(print_timestamp=PRINTED_AT)
        assert build_footer_metadata(company_info, printer).printed_by_line is None

    def test_printed_by_requires_timestamp(self, company_info: CompanyInfo) -> None:
        printer = PrinterInfo(user_name="Aiko Tanaka")
        assert build_footer_metadata(company_info, printer).printed_by_line is None

    def test_legacy_print_date_key(self, company_info: CompanyInfo) -> None:
        printer = PrinterInfo.model_validate(
            {
                "userName": "Kenji",
                "printDate": "2025-01-05T06:30:00Z",
                "timezone": "Asia/Tokyo",
            }
        )
        footer = build_footer_metadata(company_info, printer)
        assert footer.printed_by_line == (
            "Printed by Kenji on Jan 5, 2025 at 03:30 PM (UTC+9)"
        )


class TestFooterMarkup:
    """Tests for the markup handed to the engine."""

    def test_contains_page_number_placeholders(self, company_info: CompanyInfo) -> None:
        markup = compose_footer(company_info)
        assert '<span class="pageNumber"></span>' in markup
        assert '<span class="totalPages"></span>' in markup

    def test_line_order(
        self, company_info: CompanyInfo, printer_info: PrinterInfo
    ) -> None:
        markup = compose_footer(company_info, printer_info)
        registration = markup.index("Company Registration No")
        printed = markup.index("Printed by")
        page = markup.index("pageNumber")
        assert registration < printed < page

    def test_text_is_escaped(self) -> None:
        footer = FooterMetadata(registration_line="<script>alert(1)</script>")
        markup = footer.to_markup()
        assert "<script>" not in markup
        assert "&lt;script&gt;" in markup

    def test_default_page_number_markup(self) -> None:
        footer = FooterMetadata(registration_line="x")
        assert footer.page_number_markup == PAGE_NUMBER_MARKUP


class TestFooterPurity:
    """Tests for deterministic footer composition."""

    def test_same_inputs_same_markup(
        self, company_info: CompanyInfo, printer_info: PrinterInfo
    ) -> None:
        assert compose_footer(company_info, printer_info) == compose_footer(
            company_info, printer_info
        )

    def test_printer_info_adds_only_attribution(
        self, company_info: CompanyInfo, printer_info: PrinterInfo
    ) -> None:
        with_printer = build_footer_metadata(company_info, printer_info)
        without_printer = build_footer_metadata(company_info)
        assert with_printer.registration_line == without_printer.registration_line
        assert with_printer.page_number_markup == without_printer.page_number_markup
        assert without_printer.printed_by_line is None
        assert with_printer.printed_by_line is not None
