"""
Financial Documents Module.

Invoices (receivables) and bills (payables): line items, taxes, totals,
payments, the posting state machine and ledger posting.  Amounts come
from ``findoc_engines``; posting goes through ``findoc_modules.gl``.
"""

from findoc_modules.documents.models import (
    ActivityRecord,
    ActivityType,
    DocumentKind,
    DocumentStatus,
    FinancialDocument,
    LineItem,
    Payment,
    PostingResult,
    PostingStatus,
    TaxLine,
)
from findoc_modules.documents.workflows import BILL_WORKFLOW, INVOICE_WORKFLOW

__all__ = [
    "ActivityRecord",
    "ActivityType",
    "BILL_WORKFLOW",
    "DocumentKind",
    "DocumentStatus",
    "FinancialDocument",
    "INVOICE_WORKFLOW",
    "LineItem",
    "Payment",
    "PostingResult",
    "PostingStatus",
    "TaxLine",
]
