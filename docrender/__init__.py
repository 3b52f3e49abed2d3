"""Financial document rendering service.

Renders invoices, receipts, payment vouchers and statements of payment
to paginated A4 PDFs through a single supervised headless Chromium
process, behind a rate-limited FastAPI ingress.
"""

__version__ = "0.1.0"
