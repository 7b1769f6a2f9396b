"""
Financial Document Domain Models (``findoc_modules.documents.models``).

Responsibility
--------------
Frozen dataclass value objects for invoices and bills: the document with
its line items and taxes, payments recorded against it, the activity
trail, and the results returned by posting operations.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Consumed by
``DocumentService`` and returned to callers.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``status`` never holds ``OVERDUE``; overdue is derived at read time by
  ``findoc_modules.documents.lifecycle.derive_status``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from findoc_kernel.db.types import ZERO


class DocumentKind(Enum):
    """Receivable (invoice) or payable (bill)."""
    INVOICE = "invoice"
    BILL = "bill"


class DocumentStatus(Enum):
    """Document lifecycle states.

    OVERDUE is a read-time label only and is never stored.
    """
    DRAFT = "draft"
    SENT = "sent"
    PENDING = "pending"
    APPROVED = "approved"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"
    VOID = "void"


class ActivityType(Enum):
    """Entries of the per-document activity trail."""
    DOCUMENT_CREATED = "Document Created"
    DOCUMENT_UPDATED = "Document Updated"
    STATUS_CHANGED = "Status Changed"
    PAYMENT_RECORDED = "Payment Recorded"
    PAYMENT_UPDATED = "Payment Updated"
    PAYMENT_DELETED = "Payment Deleted"
    POSTED_TO_LEDGER = "Posted To Ledger"


@dataclass(frozen=True)
class LineItem:
    """A billable row. ``amount`` is quantity x unit_price, stored redundantly."""
    description: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal
    sort_order: int = 0
    id: UUID | None = None


@dataclass(frozen=True)
class TaxLine:
    """A percentage levy on the subtotal; tax_amount is rounded for display."""
    tax_name: str
    tax_percentage: Decimal
    tax_amount: Decimal
    id: UUID | None = None


@dataclass(frozen=True)
class FinancialDocument:
    """An invoice or bill with its derived amounts."""
    id: UUID
    organization_id: str
    kind: DocumentKind
    document_number: str
    counterparty_id: UUID
    currency: str
    issue_date: date
    due_date: date
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    amount_paid: Decimal = ZERO
    amount_due: Decimal = ZERO
    status: DocumentStatus = DocumentStatus.DRAFT
    line_items: tuple[LineItem, ...] = field(default_factory=tuple)
    taxes: tuple[TaxLine, ...] = field(default_factory=tuple)
    posted_to_ledger: bool = False
    posted_at: datetime | None = None
    journal_entry_id: UUID | None = None
    sent_at: datetime | None = None
    paid_at: datetime | None = None
    cancelled_at: datetime | None = None
    notes: str | None = None
    created_by_id: UUID | None = None
    updated_by_id: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def display_amount_due(self) -> Decimal:
        """Amount due for presentation, never negative."""
        return max(self.amount_due, ZERO)

    @property
    def is_draft(self) -> bool:
        return self.status is DocumentStatus.DRAFT

    def evolve(self, **changes: Any) -> FinancialDocument:
        """Copy with ``changes`` applied."""
        return replace(self, **changes)


@dataclass(frozen=True)
class Payment:
    """A payment recorded against one document."""
    id: UUID
    organization_id: str
    document_id: UUID
    amount: Decimal
    payment_date: date
    method: str | None = None
    reference: str | None = None
    recorded_by_id: UUID | None = None

    def evolve(self, **changes: Any) -> Payment:
        return replace(self, **changes)


@dataclass(frozen=True)
class ActivityRecord:
    """One entry of a document's activity trail."""
    id: UUID
    organization_id: str
    document_id: UUID
    activity_type: ActivityType
    description: str
    performed_by_id: UUID
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None


@dataclass(frozen=True)
class PostingResult:
    """Outcome of ``post_to_ledger``.

    ``already_posted=True`` with ``success=True`` means a previous call
    did the posting; nothing was written this time.
    """
    success: bool
    already_posted: bool
    journal_entry_id: UUID | None = None
    journal_number: str | None = None


@dataclass(frozen=True)
class PostingStatus:
    """Read-only view of a document's ledger posting."""
    posted: bool
    posted_at: datetime | None = None
    journal_number: str | None = None
