"""Shared test fixtures for the document rendering test suite."""

import asyncio
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from docrender.engine.supervisor import RenderEngineSupervisor
from docrender.rendering.models import CompanyInfo, PrinterInfo
from docrender.utils.config import EngineConfig, SessionConfig

PDF_HEADER = b"%PDF-1.4\n"


class FakeEngine:
    """Stands in for Playwright, handing out mock browsers in launch order.

    Each page echoes the markup it was given into its "PDF" so tests can
    tell which request produced which bytes. Set ``launch_error``,
    ``load_error`` or ``pdf_error`` to make the matching step fail, and
    ``launch_delay`` / ``pdf_delay`` to hold a step open. ``crash_next_pdf``
    kills the browser during the next export.
    """

    def __init__(self) -> None:
        self.browsers: list[MagicMock] = []
        self.contexts: list[MagicMock] = []
        self.launch_error: BaseException | None = None
        self.load_error: BaseException | None = None
        self.pdf_error: BaseException | None = None
        self.crash_next_pdf = False
        self.launch_delay = 0.0
        self.pdf_delay = 0.0

        self.playwright = MagicMock()
        self.playwright.chromium.launch = AsyncMock(side_effect=self._launch)
        self.playwright.stop = AsyncMock()
        self.driver = MagicMock()
        self.driver.start = AsyncMock(return_value=self.playwright)
        self.factory = MagicMock(return_value=self.driver)

    def supervisor(self, config: EngineConfig | None = None) -> RenderEngineSupervisor:
        return RenderEngineSupervisor(config, driver_factory=self.factory)

    def disconnect(self, browser: MagicMock) -> None:
        """Mark ``browser`` dead and fire its disconnect handlers."""
        browser.is_connected.return_value = False
        for call in browser.on.call_args_list:
            event, handler = call.args
            if event == "disconnected":
                handler(browser)

    async def _launch(self, **kwargs: Any) -> MagicMock:
        if self.launch_delay:
            await asyncio.sleep(self.launch_delay)
        if self.launch_error is not None:
            raise self.launch_error
        browser = MagicMock()
        browser.is_connected = MagicMock(return_value=True)
        browser.new_context = AsyncMock(side_effect=lambda **kw: self._new_context(browser))
        browser.close = AsyncMock()
        browser.on = MagicMock()
        self.browsers.append(browser)
        return browser

    def _new_context(self, browser: MagicMock) -> MagicMock:
        context = MagicMock()
        context.browser = browser
        context.page = self._new_page(browser)
        context.new_page = AsyncMock(return_value=context.page)
        context.close = AsyncMock()
        self.contexts.append(context)
        return context

    def _new_page(self, browser: MagicMock) -> MagicMock:
        page = MagicMock()
        page.markup = None

        async def set_content(markup: str, **kwargs: Any) -> None:
            if self.load_error is not None:
                raise self.load_error
            page.markup = markup

        async def pdf(**kwargs: Any) -> bytes:
            if self.pdf_delay:
                await asyncio.sleep(self.pdf_delay)
            if self.crash_next_pdf:
                self.crash_next_pdf = False
                self.disconnect(browser)
                raise RuntimeError("Target page, context or browser has been closed")
            if self.pdf_error is not None:
                raise self.pdf_error
            return PDF_HEADER + (page.markup or "").encode()

        page.set_content = AsyncMock(side_effect=set_content)
        page.pdf = AsyncMock(side_effect=pdf)
        return page


@pytest.fixture
def engine() -> FakeEngine:
    """A fresh fake Playwright driver."""
    return FakeEngine()


@pytest.fixture
def session_config() -> SessionConfig:
    """Session settings with the settle delay removed."""
    return SessionConfig(settle_delay_ms=0)


@pytest.fixture
def company_info() -> CompanyInfo:
    return CompanyInfo(
        name="WIF JAPAN SDN BHD",
        registration_no="202301234567 (1234567-X)",
        registered_office="Level 10, Menara KL, Kuala Lumpur",
        address="Level 10, Menara KL\nKuala Lumpur, Malaysia",
        tel="+60-3-1234-5678",
        email="accounts@wifjapan.com",
    )


@pytest.fixture
def printer_info() -> PrinterInfo:
    return PrinterInfo.model_validate(
        {
            "userName": "Aiko Tanaka",
            "printTimestamp": "2025-01-05T06:30:00Z",
            "timezone": "Asia/Kuala_Lumpur",
        }
    )


@pytest.fixture
def invoice_data() -> dict[str, Any]:
    """The canonical two-line invoice: 200.00 subtotal, 6% tax."""
    return {
        "documentNumber": "INV-2025-001",
        "createdAt": "2025-01-05T00:00:00Z",
        "status": "issued",
        "currency": "MYR",
        "country": "Malaysia",
        "customerName": "Acme Trading",
        "customerAddress": "1 Jalan Ampang\nKuala Lumpur",
        "items": [
            {"description": "Consulting", "quantity": 2, "unitPrice": 50, "amount": 100},
            {"description": "Support", "quantity": 1, "unitPrice": 100, "amount": 100},
        ],
        "subtotal": 200,
        "taxRate": 6,
    }


@pytest.fixture
def receipt_data() -> dict[str, Any]:
    return {
        "documentNumber": "RCP-2025-014",
        "createdAt": "2025-02-01",
        "status": "paid",
        "currency": "MYR",
        "country": "Malaysia",
        "amount": 212,
        "payerName": "Acme Trading",
        "paymentMethod": "Bank Transfer",
        "linkedInvoiceNumber": "INV-2025-001",
    }


@pytest.fixture
def voucher_data() -> dict[str, Any]:
    return {
        "documentNumber": "PV-2025-007",
        "createdAt": "2025-03-10",
        "status": "pending",
        "currency": "JPY",
        "payeeName": "Tokyo Office Supplies",
        "payeeBankName": "MUFG",
        "payeeBankAccount": "1234567",
        "requestedBy": "Kenji Sato",
        "purpose": "Office stationery",
        "amount": 15000,
    }


@pytest.fixture
def statement_data() -> dict[str, Any]:
    return {
        "documentNumber": "SOP-2025-003",
        "createdAt": "2025-03-12",
        "status": "completed",
        "currency": "MYR",
        "country": "Malaysia",
        "amount": 1500,
        "linkedVoucherNumber": "PV-2025-007",
        "transactionReference": "TXN-88812",
        "paymentMethod": "Bank Transfer",
        "transactionFee": 2.5,
        "transactionFeeType": "Bank charge",
    }


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def config_dir(project_root: Path) -> Path:
    """Return the configs directory path."""
    return project_root / "configs"
