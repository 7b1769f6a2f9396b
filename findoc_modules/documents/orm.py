"""
Financial Document ORM Models (``findoc_modules.documents.orm``).

Responsibility
--------------
SQLAlchemy persistence models for invoices and bills.  Maps the frozen
domain dataclasses from ``models.py`` to database tables.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``findoc_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``findoc_kernel``.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from findoc_kernel.db.base import TrackedBase, UUIDString
from findoc_kernel.db.types import round_money
from findoc_modules.documents.models import (
    ActivityRecord,
    ActivityType,
    DocumentKind,
    DocumentStatus,
    FinancialDocument,
    LineItem,
    Payment,
    TaxLine,
)


# ---------------------------------------------------------------------------
# 1. FinancialDocumentModel
# ---------------------------------------------------------------------------


class FinancialDocumentModel(TrackedBase):
    """
    ORM model for invoices and bills.

    Maps to the ``FinancialDocument`` frozen dataclass.  Line items and
    taxes live in child tables.

    Guarantees:
        - (organization_id, kind, counterparty_id, document_number) is unique.
        - Monetary fields use Decimal (Numeric(38,9) via type_annotation_map).
        - status stored as string enum value; never "overdue".
        - posted_to_ledger only moves false -> true, through the
          repository's conditional update.
    """

    __tablename__ = "financial_documents"

    __table_args__ = (
        UniqueConstraint(
            "organization_id",
            "kind",
            "counterparty_id",
            "document_number",
            name="uq_financial_documents_number",
        ),
        Index("idx_financial_documents_org_kind_status", "organization_id", "kind", "status"),
        Index("idx_financial_documents_org_due_date", "organization_id", "due_date"),
        Index("idx_financial_documents_counterparty_id", "counterparty_id"),
    )

    organization_id: Mapped[str] = mapped_column(String(100), nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    document_number: Mapped[str] = mapped_column(String(100), nullable=False)
    counterparty_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total: Mapped[Decimal] = mapped_column(nullable=False)
    amount_paid: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    amount_due: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(50), default="draft")
    posted_to_ledger: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    posted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    journal_entry_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    line_items: Mapped[list["LineItemModel"]] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="LineItemModel.sort_order",
        lazy="selectin",
    )
    taxes: Mapped[list["TaxLineModel"]] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def to_dto(self) -> FinancialDocument:
        """Convert ORM model to frozen dataclass."""
        return FinancialDocument(
            id=self.id,
            organization_id=self.organization_id,
            kind=DocumentKind(self.kind),
            document_number=self.document_number,
            counterparty_id=self.counterparty_id,
            currency=self.currency,
            issue_date=self.issue_date,
            due_date=self.due_date,
            subtotal=round_money(self.subtotal),
            tax_amount=round_money(self.tax_amount),
            total=round_money(self.total),
            amount_paid=round_money(self.amount_paid),
            amount_due=round_money(self.amount_due),
            status=DocumentStatus(self.status),
            line_items=tuple(line.to_dto() for line in self.line_items),
            taxes=tuple(tax.to_dto() for tax in self.taxes),
            posted_to_ledger=self.posted_to_ledger,
            posted_at=self.posted_at,
            journal_entry_id=self.journal_entry_id,
            sent_at=self.sent_at,
            paid_at=self.paid_at,
            cancelled_at=self.cancelled_at,
            notes=self.notes,
            created_by_id=self.created_by_id,
            updated_by_id=self.updated_by_id,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_dto(cls, dto: FinancialDocument, created_by_id: UUID) -> "FinancialDocumentModel":
        """Create ORM model from frozen dataclass."""
        model = cls(
            id=dto.id,
            organization_id=dto.organization_id,
            kind=dto.kind.value,
            created_by_id=created_by_id,
            posted_to_ledger=dto.posted_to_ledger,
            posted_at=dto.posted_at,
            journal_entry_id=dto.journal_entry_id,
        )
        model.apply_dto(dto, created_by_id)
        return model

    def apply_dto(self, dto: FinancialDocument, actor_id: UUID) -> None:
        """
        Copy mutable fields from ``dto``.

        The posting columns are not copied: they change only through
        ``set_posted_if_unset``.  Children are replaced wholesale.
        """
        self.document_number = dto.document_number
        self.counterparty_id = dto.counterparty_id
        self.currency = dto.currency
        self.issue_date = dto.issue_date
        self.due_date = dto.due_date
        self.subtotal = dto.subtotal
        self.tax_amount = dto.tax_amount
        self.total = dto.total
        self.amount_paid = dto.amount_paid
        self.amount_due = dto.amount_due
        self.status = dto.status.value
        self.sent_at = dto.sent_at
        self.paid_at = dto.paid_at
        self.cancelled_at = dto.cancelled_at
        self.notes = dto.notes

        current_lines = tuple(line.to_dto() for line in self.line_items)
        if current_lines != dto.line_items:
            self.line_items = [
                LineItemModel.from_dto(line, actor_id) for line in dto.line_items
            ]
        current_taxes = tuple(tax.to_dto() for tax in self.taxes)
        if current_taxes != dto.taxes:
            self.taxes = [TaxLineModel.from_dto(tax, actor_id) for tax in dto.taxes]

    def __repr__(self) -> str:
        return f"<FinancialDocumentModel {self.kind} {self.document_number} [{self.status}]>"


# ---------------------------------------------------------------------------
# 2. LineItemModel
# ---------------------------------------------------------------------------


class LineItemModel(TrackedBase):
    """
    ORM model for document line items.

    Guarantees:
        - document_id FK to financial_documents.id.
        - amount stored redundantly as quantity x unit_price.
    """

    __tablename__ = "document_line_items"

    __table_args__ = (
        Index("idx_document_line_items_document_id", "document_id"),
    )

    document_id: Mapped[UUID] = mapped_column(
        ForeignKey("financial_documents.id", ondelete="CASCADE"), nullable=False
    )
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    sort_order: Mapped[int] = mapped_column(default=0)

    document: Mapped["FinancialDocumentModel"] = relationship(
        back_populates="line_items",
    )

    def to_dto(self) -> LineItem:
        """Convert ORM model to frozen dataclass."""
        return LineItem(
            id=self.id,
            description=self.description,
            quantity=self.quantity,
            unit_price=self.unit_price,
            amount=self.amount,
            sort_order=self.sort_order,
        )

    @classmethod
    def from_dto(cls, dto: LineItem, created_by_id: UUID) -> "LineItemModel":
        """Create ORM model from frozen dataclass."""
        return cls(
            id=dto.id,
            description=dto.description,
            quantity=dto.quantity,
            unit_price=dto.unit_price,
            amount=dto.amount,
            sort_order=dto.sort_order,
            created_by_id=created_by_id,
        )


# ---------------------------------------------------------------------------
# 3. TaxLineModel
# ---------------------------------------------------------------------------


class TaxLineModel(TrackedBase):
    """ORM model for document tax lines."""

    __tablename__ = "document_taxes"

    __table_args__ = (
        Index("idx_document_taxes_document_id", "document_id"),
    )

    document_id: Mapped[UUID] = mapped_column(
        ForeignKey("financial_documents.id", ondelete="CASCADE"), nullable=False
    )
    tax_name: Mapped[str] = mapped_column(String(100), nullable=False)
    tax_percentage: Mapped[Decimal] = mapped_column(nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False)

    document: Mapped["FinancialDocumentModel"] = relationship(
        back_populates="taxes",
    )

    def to_dto(self) -> TaxLine:
        return TaxLine(
            id=self.id,
            tax_name=self.tax_name,
            tax_percentage=self.tax_percentage,
            tax_amount=round_money(self.tax_amount),
        )

    @classmethod
    def from_dto(cls, dto: TaxLine, created_by_id: UUID) -> "TaxLineModel":
        return cls(
            id=dto.id,
            tax_name=dto.tax_name,
            tax_percentage=dto.tax_percentage,
            tax_amount=dto.tax_amount,
            created_by_id=created_by_id,
        )


# ---------------------------------------------------------------------------
# 4. PaymentModel
# ---------------------------------------------------------------------------


class PaymentModel(TrackedBase):
    """
    ORM model for payments recorded against a document.

    Guarantees:
        - document_id FK to financial_documents.id; a document with
          payments cannot be deleted.
        - created_by_id is the actor who recorded the payment.
    """

    __tablename__ = "document_payments"

    __table_args__ = (
        Index("idx_document_payments_document_id", "document_id"),
        Index("idx_document_payments_org_date", "organization_id", "payment_date"),
    )

    organization_id: Mapped[str] = mapped_column(String(100), nullable=False)
    document_id: Mapped[UUID] = mapped_column(
        ForeignKey("financial_documents.id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def to_dto(self) -> Payment:
        return Payment(
            id=self.id,
            organization_id=self.organization_id,
            document_id=self.document_id,
            amount=round_money(self.amount),
            payment_date=self.payment_date,
            method=self.method,
            reference=self.reference,
            recorded_by_id=self.created_by_id,
        )

    @classmethod
    def from_dto(cls, dto: Payment, created_by_id: UUID) -> "PaymentModel":
        return cls(
            id=dto.id,
            organization_id=dto.organization_id,
            document_id=dto.document_id,
            amount=dto.amount,
            payment_date=dto.payment_date,
            method=dto.method,
            reference=dto.reference,
            created_by_id=created_by_id,
        )


# ---------------------------------------------------------------------------
# 5. DocumentActivityModel
# ---------------------------------------------------------------------------


class DocumentActivityModel(TrackedBase):
    """
    ORM model for the document activity trail.

    No FK to financial_documents: the trail outlives a deleted draft.
    """

    __tablename__ = "document_activity"

    __table_args__ = (
        Index("idx_document_activity_org_document", "organization_id", "document_id"),
    )

    organization_id: Mapped[str] = mapped_column(String(100), nullable=False)
    document_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    activity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    activity_metadata: Mapped[dict] = mapped_column("metadata", JSON, default=dict)

    def to_dto(self) -> ActivityRecord:
        return ActivityRecord(
            id=self.id,
            organization_id=self.organization_id,
            document_id=self.document_id,
            activity_type=ActivityType(self.activity_type),
            description=self.description,
            performed_by_id=self.created_by_id,
            metadata=dict(self.activity_metadata or {}),
            created_at=self.created_at,
        )

    @classmethod
    def from_dto(cls, dto: ActivityRecord) -> "DocumentActivityModel":
        model = cls(
            id=dto.id,
            organization_id=dto.organization_id,
            document_id=dto.document_id,
            activity_type=dto.activity_type.value,
            description=dto.description,
            activity_metadata=dict(dto.metadata),
            created_by_id=dto.performed_by_id,
        )
        if dto.created_at is not None:
            model.created_at = dto.created_at
        return model
