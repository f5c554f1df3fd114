"""
Invoicing Module.

Invoices bill an explicit selection of approved timesheets of one contract
at the contract's rate, numbered per calendar year.
"""

from bench_modules.invoicing.models import Invoice, InvoiceLineItem, InvoiceStatus
from bench_modules.invoicing.workflows import INVOICE_WORKFLOW

__all__ = [
    "Invoice",
    "InvoiceLineItem",
    "InvoiceStatus",
    "INVOICE_WORKFLOW",
]
