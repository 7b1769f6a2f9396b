"""
Document Repository (``findoc_modules.documents.repository``).

Responsibility
--------------
The typed persistence interface ``DocumentService`` talks to.  Every read
is scoped by organization: a document of another organization is
reported as not found, never as forbidden.

Invariants enforced
-------------------
* ``set_posted_if_unset`` is a single conditional UPDATE on the posted
  flag and the status.  Of any number of concurrent callers exactly one
  sees ``True``.
* ``save`` never writes the posting columns.
* Nothing here commits except ``commit()``; the service decides.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from findoc_kernel.db.types import round_money, to_decimal
from findoc_kernel.exceptions import DocumentNotFoundError, PaymentNotFoundError
from findoc_kernel.logging_config import get_logger
from findoc_kernel.services.sequence_service import SequenceService
from findoc_modules.documents.lifecycle import UNPOSTABLE_STATUSES
from findoc_modules.documents.models import (
    ActivityRecord,
    DocumentKind,
    DocumentStatus,
    FinancialDocument,
    Payment,
)
from findoc_modules.documents.orm import (
    DocumentActivityModel,
    FinancialDocumentModel,
    PaymentModel,
)

logger = get_logger("modules.documents.repository")


class DocumentRepository(ABC):
    """Persistence for financial documents, their payments and activity."""

    @abstractmethod
    def get(
        self,
        organization_id: str,
        document_id: UUID,
        *,
        for_update: bool = False,
    ) -> FinancialDocument:
        """
        Load one document.

        ``for_update=True`` locks the row until the transaction ends.

        Raises:
            DocumentNotFoundError: Unknown id or another organization's id.
        """

    @abstractmethod
    def add(self, document: FinancialDocument, actor_id: UUID) -> FinancialDocument:
        """Insert a new document with its line items and taxes."""

    @abstractmethod
    def save(self, document: FinancialDocument, actor_id: UUID) -> FinancialDocument:
        """Write back header fields, amounts, status, line items and taxes."""

    @abstractmethod
    def delete(self, organization_id: str, document_id: UUID) -> None:
        """Remove a document and its line items and taxes."""

    @abstractmethod
    def list(
        self,
        organization_id: str,
        *,
        kind: DocumentKind | None = None,
        statuses: Iterable[DocumentStatus] | None = None,
        counterparty_id: UUID | None = None,
        due_before: date | None = None,
    ) -> list[FinancialDocument]:
        """Documents of one organization, newest issue date first."""

    @abstractmethod
    def number_in_use(
        self,
        organization_id: str,
        kind: DocumentKind,
        counterparty_id: UUID,
        document_number: str,
    ) -> bool:
        """True when the number is taken for this counterparty."""

    @abstractmethod
    def next_sequence(self, name: str) -> int:
        """Next value of a named counter."""

    @abstractmethod
    def set_posted_if_unset(
        self,
        organization_id: str,
        document_id: UUID,
        posted_at: datetime,
        journal_entry_id: UUID | None = None,
    ) -> bool:
        """
        Atomically flip posted_to_ledger false -> true.

        Draft, cancelled and void documents are never claimed.

        Returns:
            True if this call set the flag, False if it was already set or
            the document is not in a postable status.
        """

    @abstractmethod
    def add_payment(self, payment: Payment, actor_id: UUID) -> Payment:
        """Record a payment."""

    @abstractmethod
    def list_payments(self, organization_id: str, document_id: UUID) -> list[Payment]:
        """Payments of one document, oldest first."""

    def has_payments(self, organization_id: str, document_id: UUID) -> bool:
        return bool(self.list_payments(organization_id, document_id))

    @abstractmethod
    def get_payment(self, organization_id: str, payment_id: UUID) -> Payment:
        """
        Raises:
            PaymentNotFoundError: Unknown id or another organization's id.
        """

    @abstractmethod
    def save_payment(self, payment: Payment, actor_id: UUID) -> Payment:
        """Write back amount, date, method and reference of a payment."""

    @abstractmethod
    def delete_payment(self, organization_id: str, payment_id: UUID) -> None:
        """Remove one payment."""

    def total_paid(self, organization_id: str, document_id: UUID) -> Decimal:
        """Sum of the document's recorded payments."""
        return sum(
            (p.amount for p in self.list_payments(organization_id, document_id)),
            Decimal("0"),
        )

    @abstractmethod
    def add_activity(self, record: ActivityRecord) -> ActivityRecord:
        """Append to the activity trail."""

    @abstractmethod
    def list_activity(self, organization_id: str, document_id: UUID) -> list[ActivityRecord]:
        """Activity trail of one document, oldest first."""

    @abstractmethod
    def commit(self) -> None:
        """Commit the unit of work."""

    @abstractmethod
    def rollback(self) -> None:
        """Discard the unit of work."""


class SqlAlchemyDocumentRepository(DocumentRepository):
    """DocumentRepository on a SQLAlchemy session."""

    def __init__(self, session: Session):
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    def _get_model(
        self,
        organization_id: str,
        document_id: UUID,
        for_update: bool = False,
    ) -> FinancialDocumentModel:
        stmt = select(FinancialDocumentModel).where(
            FinancialDocumentModel.id == document_id,
            FinancialDocumentModel.organization_id == organization_id,
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        model = self._session.execute(stmt).scalar_one_or_none()
        if model is None:
            raise DocumentNotFoundError(str(document_id))
        return model

    def get(
        self,
        organization_id: str,
        document_id: UUID,
        *,
        for_update: bool = False,
    ) -> FinancialDocument:
        return self._get_model(organization_id, document_id, for_update).to_dto()

    def add(self, document: FinancialDocument, actor_id: UUID) -> FinancialDocument:
        model = FinancialDocumentModel.from_dto(document, created_by_id=actor_id)
        self._session.add(model)
        self._session.flush()
        return model.to_dto()

    def save(self, document: FinancialDocument, actor_id: UUID) -> FinancialDocument:
        model = self._get_model(document.organization_id, document.id)
        model.apply_dto(document, actor_id)
        model.updated_by_id = actor_id
        self._session.flush()
        return model.to_dto()

    def delete(self, organization_id: str, document_id: UUID) -> None:
        model = self._get_model(organization_id, document_id)
        self._session.delete(model)
        self._session.flush()

    def list(
        self,
        organization_id: str,
        *,
        kind: DocumentKind | None = None,
        statuses: Iterable[DocumentStatus] | None = None,
        counterparty_id: UUID | None = None,
        due_before: date | None = None,
    ) -> list[FinancialDocument]:
        stmt = select(FinancialDocumentModel).where(
            FinancialDocumentModel.organization_id == organization_id
        )
        if kind is not None:
            stmt = stmt.where(FinancialDocumentModel.kind == kind.value)
        if statuses is not None:
            stmt = stmt.where(
                FinancialDocumentModel.status.in_([s.value for s in statuses])
            )
        if counterparty_id is not None:
            stmt = stmt.where(FinancialDocumentModel.counterparty_id == counterparty_id)
        if due_before is not None:
            stmt = stmt.where(FinancialDocumentModel.due_date < due_before)
        stmt = stmt.order_by(
            FinancialDocumentModel.issue_date.desc(),
            FinancialDocumentModel.document_number,
        )
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    def number_in_use(
        self,
        organization_id: str,
        kind: DocumentKind,
        counterparty_id: UUID,
        document_number: str,
    ) -> bool:
        count = self._session.execute(
            select(func.count())
            .select_from(FinancialDocumentModel)
            .where(
                FinancialDocumentModel.organization_id == organization_id,
                FinancialDocumentModel.kind == kind.value,
                FinancialDocumentModel.counterparty_id == counterparty_id,
                FinancialDocumentModel.document_number == document_number,
            )
        ).scalar_one()
        return count > 0

    def next_sequence(self, name: str) -> int:
        return SequenceService(self._session).next_value(name)

    def set_posted_if_unset(
        self,
        organization_id: str,
        document_id: UUID,
        posted_at: datetime,
        journal_entry_id: UUID | None = None,
    ) -> bool:
        result = self._session.execute(
            update(FinancialDocumentModel)
            .where(
                FinancialDocumentModel.id == document_id,
                FinancialDocumentModel.organization_id == organization_id,
                FinancialDocumentModel.posted_to_ledger.is_(False),
                FinancialDocumentModel.status.notin_(
                    [s.value for s in UNPOSTABLE_STATUSES]
                ),
            )
            .values(
                posted_to_ledger=True,
                posted_at=posted_at,
                journal_entry_id=journal_entry_id,
            )
            .execution_options(synchronize_session="fetch")
        )
        claimed = result.rowcount == 1
        logger.debug(
            "posting_claim",
            extra={"document_id": str(document_id), "claimed": claimed},
        )
        return claimed

    def add_payment(self, payment: Payment, actor_id: UUID) -> Payment:
        model = PaymentModel.from_dto(payment, created_by_id=actor_id)
        self._session.add(model)
        self._session.flush()
        return model.to_dto()

    def list_payments(self, organization_id: str, document_id: UUID) -> list[Payment]:
        models = self._session.execute(
            select(PaymentModel)
            .where(
                PaymentModel.organization_id == organization_id,
                PaymentModel.document_id == document_id,
            )
            .order_by(PaymentModel.payment_date, PaymentModel.created_at)
        ).scalars()
        return [m.to_dto() for m in models]

    def has_payments(self, organization_id: str, document_id: UUID) -> bool:
        count = self._session.execute(
            select(func.count())
            .select_from(PaymentModel)
            .where(
                PaymentModel.organization_id == organization_id,
                PaymentModel.document_id == document_id,
            )
        ).scalar_one()
        return count > 0

    def _get_payment_model(self, organization_id: str, payment_id: UUID) -> PaymentModel:
        model = self._session.execute(
            select(PaymentModel).where(
                PaymentModel.id == payment_id,
                PaymentModel.organization_id == organization_id,
            )
        ).scalar_one_or_none()
        if model is None:
            raise PaymentNotFoundError(str(payment_id))
        return model

    def get_payment(self, organization_id: str, payment_id: UUID) -> Payment:
        return self._get_payment_model(organization_id, payment_id).to_dto()

    def save_payment(self, payment: Payment, actor_id: UUID) -> Payment:
        model = self._get_payment_model(payment.organization_id, payment.id)
        model.amount = payment.amount
        model.payment_date = payment.payment_date
        model.method = payment.method
        model.reference = payment.reference
        model.updated_by_id = actor_id
        self._session.flush()
        return model.to_dto()

    def delete_payment(self, organization_id: str, payment_id: UUID) -> None:
        self._session.delete(self._get_payment_model(organization_id, payment_id))
        self._session.flush()

    def total_paid(self, organization_id: str, document_id: UUID) -> Decimal:
        total = self._session.execute(
            select(func.coalesce(func.sum(PaymentModel.amount), 0)).where(
                PaymentModel.organization_id == organization_id,
                PaymentModel.document_id == document_id,
            )
        ).scalar_one()
        return round_money(to_decimal(total))

    def add_activity(self, record: ActivityRecord) -> ActivityRecord:
        model = DocumentActivityModel.from_dto(record)
        self._session.add(model)
        self._session.flush()
        return model.to_dto()

    def list_activity(self, organization_id: str, document_id: UUID) -> list[ActivityRecord]:
        models = self._session.execute(
            select(DocumentActivityModel)
            .where(
                DocumentActivityModel.organization_id == organization_id,
                DocumentActivityModel.document_id == document_id,
            )
            .order_by(DocumentActivityModel.created_at)
        ).scalars()
        return [m.to_dto() for m in models]

    def commit(self) -> None:
        self._session.commit()

    def rollback(self) -> None:
        self._session.rollback()
