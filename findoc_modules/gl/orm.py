"""
General Ledger ORM Models (``findoc_modules.gl.orm``).

SQLAlchemy persistence for GL accounts, journals and journal lines.

Guarantees:
    - Account codes are unique per organization.
    - Journal numbers are unique per organization.
    - At most one journal per (organization, source, source_id): a posted
      document can never be journalled twice, even if the document-level
      claim were bypassed.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from findoc_kernel.db.base import TrackedBase, UUIDString
from findoc_kernel.db.types import round_money
from findoc_modules.gl.models import (
    AccountType,
    GLAccount,
    JournalEntryRecord,
    JournalLineRecord,
    LineSide,
)


class GLAccountModel(TrackedBase):
    """ORM model for the chart of accounts."""

    __tablename__ = "gl_accounts"

    __table_args__ = (
        UniqueConstraint("organization_id", "code", name="uq_gl_accounts_org_code"),
    )

    organization_id: Mapped[str] = mapped_column(String(100), nullable=False)
    code: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_type: Mapped[str] = mapped_column(String(20), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    def to_dto(self) -> GLAccount:
        return GLAccount(
            id=self.id,
            organization_id=self.organization_id,
            code=self.code,
            name=self.name,
            account_type=AccountType(self.account_type),
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<GLAccountModel {self.code}: {self.name}>"


class JournalEntryModel(TrackedBase):
    """
    Journal header written when a document is posted.

    Guarantees:
        - idempotency_key ("org:source:document_id") is unique.
        - (organization_id, source, source_id) is unique.
    """

    __tablename__ = "gl_journals"

    __table_args__ = (
        UniqueConstraint("organization_id", "journal_number", name="uq_gl_journals_number"),
        UniqueConstraint("organization_id", "source", "source_id", name="uq_gl_journals_source"),
        UniqueConstraint("idempotency_key", name="uq_gl_journals_idempotency"),
        Index("idx_gl_journals_posting_date", "organization_id", "posting_date"),
    )

    organization_id: Mapped[str] = mapped_column(String(100), nullable=False)
    journal_number: Mapped[str] = mapped_column(String(50), nullable=False)
    source: Mapped[str] = mapped_column(String(50), nullable=False)
    source_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    posting_date: Mapped[date] = mapped_column(Date, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    idempotency_key: Mapped[str] = mapped_column(String(300), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="posted")

    lines: Mapped[list["JournalLineModel"]] = relationship(
        back_populates="journal",
        cascade="all, delete-orphan",
        order_by="JournalLineModel.line_number",
        lazy="selectin",
    )

    def to_dto(self) -> JournalEntryRecord:
        return JournalEntryRecord(
            id=self.id,
            organization_id=self.organization_id,
            journal_number=self.journal_number,
            source=self.source,
            source_id=self.source_id,
            posting_date=self.posting_date,
            currency=self.currency,
            description=self.description,
            idempotency_key=self.idempotency_key,
            lines=tuple(line.to_dto() for line in self.lines),
        )


class JournalLineModel(TrackedBase):
    """Debit or credit line; amount is always positive."""

    __tablename__ = "gl_journal_lines"

    __table_args__ = (
        Index("idx_gl_journal_lines_journal", "journal_id"),
        Index("idx_gl_journal_lines_account", "account_id"),
    )

    journal_id: Mapped[UUID] = mapped_column(
        ForeignKey("gl_journals.id"), nullable=False
    )
    account_id: Mapped[UUID] = mapped_column(
        ForeignKey("gl_accounts.id"), nullable=False
    )
    account_code: Mapped[str] = mapped_column(String(20), nullable=False)
    side: Mapped[str] = mapped_column(String(10), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    line_number: Mapped[int] = mapped_column(default=0)
    memo: Mapped[str | None] = mapped_column(String(500), nullable=True)

    journal: Mapped["JournalEntryModel"] = relationship(back_populates="lines")

    def to_dto(self) -> JournalLineRecord:
        return JournalLineRecord(
            account_code=self.account_code,
            side=LineSide(self.side),
            amount=round_money(self.amount),
            line_number=self.line_number,
            memo=self.memo,
        )
