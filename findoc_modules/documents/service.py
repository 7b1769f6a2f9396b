"""
Financial Document Service - Orchestrates invoice and bill operations.

Thin glue layer that:
1. Calls TotalsCalculator for subtotal, tax and total
2. Calls the lifecycle rules for transitions, edit, delete and post checks
3. Calls DocumentRepository for persistence
4. Calls LedgerPoster for the journal written when a document is posted

All computation lives in engines. All state rules live in lifecycle.
This service owns the transaction boundary: it commits on success and
rolls back on any exception before re-raising it.

Usage:
    service = DocumentService.from_session(session)
    invoice = service.create_document(
        ctx, DocumentKind.INVOICE,
        counterparty_id=customer_id, currency="NGN",
        issue_date=date(2024, 3, 1), due_date=date(2024, 3, 31),
        line_items=[{"description": "Consulting", "quantity": 2, "unit_price": "5000"}],
        taxes=[{"tax_name": "VAT", "tax_percentage": "7.5"}],
    )
    service.send(ctx, invoice.id)   # posts to the ledger in the same transaction
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Sequence
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from findoc_config import FinDocConfig, get_active_config
from findoc_engines.totals import TotalsBreakdown, TotalsCalculator, amount_due
from findoc_kernel.db.types import ZERO, round_money, to_decimal, validate_currency
from findoc_kernel.domain.clock import Clock, SystemClock
from findoc_kernel.domain.context import RequestContext
from findoc_kernel.exceptions import PaymentExceedsBalanceError, ValidationError
from findoc_kernel.logging_config import LogContext, get_logger
from findoc_modules.documents.lifecycle import (
    CANCEL_ACTIONS,
    assert_deletable,
    assert_editable,
    assert_payments_adjustable,
    assert_postable,
    derive_status,
    resolve_transition,
    status_after_adjustment,
    status_after_payment,
)
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
from findoc_modules.documents.numbering import format_invoice_number, invoice_sequence_name
from findoc_modules.documents.repository import DocumentRepository, SqlAlchemyDocumentRepository
from findoc_modules.gl.poster import LedgerPoster, SqlAlchemyLedgerPoster

logger = get_logger("modules.documents.service")

# Persisted statuses that can derive to OVERDUE
_OPEN_STATUSES = (
    DocumentStatus.SENT,
    DocumentStatus.PENDING,
    DocumentStatus.APPROVED,
    DocumentStatus.PARTIALLY_PAID,
)


class DocumentService:
    """
    Orchestrates financial document operations.

    Engine composition:
    - TotalsCalculator: line items + taxes -> subtotal / tax_amount / total

    Collaborators:
    - DocumentRepository: documents, payments, activity trail
    - LedgerPoster: balanced journal per posted document

    Every public operation takes an explicit ``RequestContext``; nothing is
    read from ambient request state.
    """

    def __init__(
        self,
        repository: DocumentRepository,
        ledger: LedgerPoster,
        config: FinDocConfig | None = None,
        clock: Clock | None = None,
        config_dir: Path | None = None,
    ):
        self._repo = repository
        self._ledger = ledger
        self._config = config
        self._config_dir = config_dir
        self._org_configs: dict[str, FinDocConfig] = {}
        self._clock = clock or SystemClock()
        self._totals = TotalsCalculator()

    @classmethod
    def from_session(
        cls,
        session: Session,
        config: FinDocConfig | None = None,
        clock: Clock | None = None,
        config_dir: Path | None = None,
    ) -> DocumentService:
        """
        Service whose repository and ledger share one session.

        Without an explicit ``config`` both resolve the configuration set
        scoped to the calling organization.
        """
        return cls(
            repository=SqlAlchemyDocumentRepository(session),
            ledger=SqlAlchemyLedgerPoster(session, config, config_dir=config_dir),
            config=config,
            clock=clock,
            config_dir=config_dir,
        )

    def _config_for(self, ctx: RequestContext) -> FinDocConfig:
        if self._config is not None:
            return self._config
        if ctx.organization_id not in self._org_configs:
            self._org_configs[ctx.organization_id] = get_active_config(
                ctx.organization_id, config_dir=self._config_dir,
            )
        return self._org_configs[ctx.organization_id]

    # =========================================================================
    # Transaction boundary
    # =========================================================================

    @contextmanager
    def _transaction(
        self,
        ctx: RequestContext,
        document_id: UUID | None = None,
    ) -> Iterator[None]:
        with LogContext.bind(
            **ctx.log_fields(),
            document_id=str(document_id) if document_id else None,
        ):
            try:
                yield
                self._repo.commit()
            except Exception:
                self._repo.rollback()
                raise

    # =========================================================================
    # Create / update / delete
    # =========================================================================

    def create_document(
        self,
        ctx: RequestContext,
        kind: DocumentKind | str,
        *,
        counterparty_id: UUID,
        currency: str,
        issue_date: date,
        due_date: date,
        line_items: Sequence[Any],
        taxes: Sequence[Any] = (),
        document_number: str | None = None,
        notes: str | None = None,
    ) -> FinancialDocument:
        """
        Create a DRAFT invoice or bill.

        Invoices are numbered ``{ORG}-{YEAR}-{SEQ}`` unless a number is
        given; bills require the supplier's own number.

        Raises:
            ValidationError: Bad line items, taxes, dates or number.
            InvalidCurrencyError: Unknown currency code.
        """
        kind = DocumentKind(kind)
        with self._transaction(ctx):
            currency = validate_currency(currency)
            _check_dates(issue_date, due_date)
            breakdown = self._totals.breakdown(line_items, taxes)

            if document_number is None and kind is DocumentKind.INVOICE:
                document_number = self._next_invoice_number(ctx)
            document_number = self._check_number(
                ctx, kind, counterparty_id, document_number,
            )

            totals = breakdown.totals
            document = FinancialDocument(
                id=uuid4(),
                organization_id=ctx.organization_id,
                kind=kind,
                document_number=document_number,
                counterparty_id=counterparty_id,
                currency=currency,
                issue_date=issue_date,
                due_date=due_date,
                subtotal=totals.subtotal,
                tax_amount=totals.tax_amount,
                total=totals.total,
                amount_paid=ZERO,
                amount_due=amount_due(totals.total, ZERO),
                status=DocumentStatus.DRAFT,
                line_items=_line_items(breakdown),
                taxes=_tax_lines(breakdown),
                notes=notes,
                created_by_id=ctx.actor_id,
            )
            saved = self._repo.add(document, ctx.actor_id)
            self._record_activity(
                ctx, saved, ActivityType.DOCUMENT_CREATED,
                f"{kind.value.title()} {document_number} created",
                {"total": str(saved.total), "currency": currency},
            )
            logger.info("document_created", extra={
                "document_id": str(saved.id),
                "kind": kind.value,
                "document_number": document_number,
                "total": str(saved.total),
            })
        return saved

    def update_document(
        self,
        ctx: RequestContext,
        document_id: UUID,
        *,
        line_items: Sequence[Any] | None = None,
        taxes: Sequence[Any] | None = None,
        counterparty_id: UUID | None = None,
        currency: str | None = None,
        issue_date: date | None = None,
        due_date: date | None = None,
        document_number: str | None = None,
        notes: str | None = None,
    ) -> FinancialDocument:
        """
        Edit a DRAFT document.  Totals are recomputed when line items or
        taxes change.

        Raises:
            InvalidStateError: The document is no longer a draft.
            ValidationError: Bad line items, taxes, dates or number.
        """
        with self._transaction(ctx, document_id):
            document = self._repo.get(ctx.organization_id, document_id, for_update=True)
            assert_editable(document)

            changes: dict[str, Any] = {}
            if counterparty_id is not None:
                changes["counterparty_id"] = counterparty_id
            if currency is not None:
                changes["currency"] = validate_currency(currency)
            if issue_date is not None:
                changes["issue_date"] = issue_date
            if due_date is not None:
                changes["due_date"] = due_date
            if notes is not None:
                changes["notes"] = notes
            _check_dates(
                changes.get("issue_date", document.issue_date),
                changes.get("due_date", document.due_date),
            )

            if document_number is not None or counterparty_id is not None:
                number = document_number or document.document_number
                party = changes.get("counterparty_id", document.counterparty_id)
                if (number, party) != (document.document_number, document.counterparty_id):
                    changes["document_number"] = self._check_number(
                        ctx, document.kind, party, number,
                    )

            if line_items is not None or taxes is not None:
                breakdown = self._totals.breakdown(
                    document.line_items if line_items is None else line_items,
                    document.taxes if taxes is None else taxes,
                )
                totals = breakdown.totals
                changes.update(
                    line_items=_line_items(breakdown),
                    taxes=_tax_lines(breakdown),
                    subtotal=totals.subtotal,
                    tax_amount=totals.tax_amount,
                    total=totals.total,
                    amount_due=amount_due(totals.total, document.amount_paid),
                )

            saved = self._repo.save(document.evolve(**changes), ctx.actor_id)
            self._record_activity(
                ctx, saved, ActivityType.DOCUMENT_UPDATED,
                f"{saved.kind.value.title()} {saved.document_number} updated",
                {"fields": sorted(changes)},
            )
            logger.info("document_updated", extra={
                "document_id": str(document_id),
                "fields": sorted(changes),
            })
        return saved

    def delete_document(self, ctx: RequestContext, document_id: UUID) -> None:
        """
        Delete a document that was never posted and has no payments.

        Invoices are deletable only as drafts; bills also while pending or
        approved.

        Raises:
            InvalidStateError: Any of the conditions above fails.
        """
        with self._transaction(ctx, document_id):
            document = self._repo.get(ctx.organization_id, document_id, for_update=True)
            assert_deletable(
                document, self._repo.has_payments(ctx.organization_id, document_id),
            )
            self._repo.delete(ctx.organization_id, document_id)
            logger.info("document_deleted", extra={
                "document_id": str(document_id),
                "document_number": document.document_number,
            })

    # =========================================================================
    # Status transitions
    # =========================================================================

    def transition(
        self,
        ctx: RequestContext,
        document_id: UUID,
        action: str,
    ) -> FinancialDocument:
        """
        Apply a workflow action (send, submit, approve, cancel, void).

        ``cancel`` on a bill means ``void``.  When the transition posts an
        entry and ``auto_post_on_issue`` is set, the document is posted to
        the ledger in the same transaction.

        Raises:
            InvalidStateError: Action not allowed from the current status.
            ValidationError: Leaving draft without billable lines.
        """
        if action == "apply_payment":
            raise ValidationError(
                "Payments are applied with record_payment",
                [{"index": None, "field": "action", "message": "use record_payment"}],
            )
        with self._transaction(ctx, document_id):
            document = self._repo.get(ctx.organization_id, document_id, for_update=True)
            if action == "cancel":
                action = CANCEL_ACTIONS[document.kind]

            transition = resolve_transition(document, action)
            new_status = DocumentStatus(transition.to_state)
            now = self._clock.now()

            changes: dict[str, Any] = {"status": new_status}
            if action == "send":
                changes["sent_at"] = now
            if new_status in (DocumentStatus.CANCELLED, DocumentStatus.VOID):
                changes["cancelled_at"] = now

            saved = self._repo.save(document.evolve(**changes), ctx.actor_id)
            self._record_status_change(ctx, saved, document.status, action)

            kind_config = self._config_for(ctx).for_kind(saved.kind.value)
            if transition.posts_entry and kind_config.auto_post_on_issue:
                self._post(ctx, saved)
            result = self._repo.get(ctx.organization_id, document_id)
        return result

    def send(self, ctx: RequestContext, document_id: UUID) -> FinancialDocument:
        """Invoice: draft -> sent."""
        return self.transition(ctx, document_id, "send")

    def submit(self, ctx: RequestContext, document_id: UUID) -> FinancialDocument:
        """Bill: draft -> pending."""
        return self.transition(ctx, document_id, "submit")

    def approve(self, ctx: RequestContext, document_id: UUID) -> FinancialDocument:
        """Bill: draft/pending -> approved."""
        return self.transition(ctx, document_id, "approve")

    def cancel(self, ctx: RequestContext, document_id: UUID) -> FinancialDocument:
        """Invoice -> cancelled, bill -> void."""
        return self.transition(ctx, document_id, "cancel")

    def void(self, ctx: RequestContext, document_id: UUID) -> FinancialDocument:
        return self.transition(ctx, document_id, "void")

    # =========================================================================
    # Payments
    # =========================================================================

    def record_payment(
        self,
        ctx: RequestContext,
        document_id: UUID,
        amount: Any,
        *,
        payment_date: date | None = None,
        method: str | None = None,
        reference: str | None = None,
    ) -> FinancialDocument:
        """
        Record a payment and move the document to partially_paid or paid.

        The document row is locked for the read-modify-write of
        amount_paid.

        Raises:
            ValidationError: Amount not positive or more than two decimals.
            InvalidStateError: Document does not accept payments.
            PaymentExceedsBalanceError: Amount above the amount due where
                overpayment is not allowed (invoices by default).
        """
        value = _payment_amount(amount)
        with self._transaction(ctx, document_id):
            document = self._repo.get(ctx.organization_id, document_id, for_update=True)
            kind_config = self._config_for(ctx).for_kind(document.kind.value)

            new_paid = document.amount_paid + value
            new_status = status_after_payment(
                document, new_paid, kind_config.payment_tolerance,
            )
            due = amount_due(document.total, document.amount_paid)
            if not kind_config.allow_overpayment and value > due:
                raise PaymentExceedsBalanceError(str(document_id), str(value), str(due))

            changes: dict[str, Any] = {
                "amount_paid": new_paid,
                "amount_due": amount_due(document.total, new_paid),
                "status": new_status,
            }
            if new_status is DocumentStatus.PAID:
                changes["paid_at"] = self._clock.now()

            payment = self._repo.add_payment(
                Payment(
                    id=uuid4(),
                    organization_id=ctx.organization_id,
                    document_id=document_id,
                    amount=value,
                    payment_date=payment_date or self._clock.today(),
                    method=method,
                    reference=reference,
                    recorded_by_id=ctx.actor_id,
                ),
                ctx.actor_id,
            )
            saved = self._repo.save(document.evolve(**changes), ctx.actor_id)
            self._record_activity(
                ctx, saved, ActivityType.PAYMENT_RECORDED,
                f"Payment of {value} {saved.currency} recorded",
                {
                    "payment_id": str(payment.id),
                    "amount": str(value),
                    "amount_due": str(saved.amount_due),
                },
            )
            if new_status is not document.status:
                self._record_status_change(ctx, saved, document.status, "apply_payment")
            logger.info("payment_recorded", extra={
                "document_id": str(document_id),
                "amount": str(value),
                "amount_paid": str(new_paid),
                "status": new_status.value,
            })
        return saved

    def list_payments(self, ctx: RequestContext, document_id: UUID) -> list[Payment]:
        self._repo.get(ctx.organization_id, document_id)
        return self._repo.list_payments(ctx.organization_id, document_id)

    def update_payment(
        self,
        ctx: RequestContext,
        payment_id: UUID,
        *,
        amount: Any = None,
        payment_date: date | None = None,
        method: str | None = None,
        reference: str | None = None,
    ) -> FinancialDocument:
        """
        Correct a recorded payment.

        amount_paid is re-summed from the document's payments and the
        status follows it: paid, partially_paid, or back to sent (invoice)
        or approved (bill) when nothing remains paid.

        Raises:
            PaymentNotFoundError: Unknown payment, or another organization's.
            InvalidStateError: The document is cancelled or void.
            ValidationError: Amount not positive or more than two decimals.
            PaymentExceedsBalanceError: The corrected payments exceed the
                total where overpayment is not allowed.
        """
        value = _payment_amount(amount) if amount is not None else None
        with self._transaction(ctx):
            payment = self._repo.get_payment(ctx.organization_id, payment_id)
            document = self._repo.get(
                ctx.organization_id, payment.document_id, for_update=True,
            )
            assert_payments_adjustable(document, "update_payment")

            changes: dict[str, Any] = {}
            if value is not None:
                changes["amount"] = value
            if payment_date is not None:
                changes["payment_date"] = payment_date
            if method is not None:
                changes["method"] = method
            if reference is not None:
                changes["reference"] = reference

            if value is not None:
                others = self._repo.total_paid(ctx.organization_id, document.id) - payment.amount
                kind_config = self._config_for(ctx).for_kind(document.kind.value)
                available = amount_due(document.total, others)
                if not kind_config.allow_overpayment and value > available:
                    raise PaymentExceedsBalanceError(
                        str(document.id), str(value), str(available),
                    )

            updated = self._repo.save_payment(payment.evolve(**changes), ctx.actor_id)
            saved = self._resettle(ctx, document)
            self._record_activity(
                ctx, saved, ActivityType.PAYMENT_UPDATED,
                f"Payment {payment_id} updated",
                {
                    "payment_id": str(payment_id),
                    "old_amount": str(payment.amount),
                    "new_amount": str(updated.amount),
                    "fields": sorted(changes),
                },
            )
            logger.info("payment_updated", extra={
                "document_id": str(document.id),
                "payment_id": str(payment_id),
                "amount": str(updated.amount),
                "amount_paid": str(saved.amount_paid),
                "status": saved.status.value,
            })
        return saved

    def delete_payment(self, ctx: RequestContext, payment_id: UUID) -> FinancialDocument:
        """
        Remove a recorded payment and re-settle its document.

        Raises:
            PaymentNotFoundError: Unknown payment, or another organization's.
            InvalidStateError: The document is cancelled or void.
        """
        with self._transaction(ctx):
            payment = self._repo.get_payment(ctx.organization_id, payment_id)
            document = self._repo.get(
                ctx.organization_id, payment.document_id, for_update=True,
            )
            assert_payments_adjustable(document, "delete_payment")

            self._repo.delete_payment(ctx.organization_id, payment_id)
            saved = self._resettle(ctx, document)
            self._record_activity(
                ctx, saved, ActivityType.PAYMENT_DELETED,
                f"Payment of {payment.amount} {saved.currency} deleted",
                {
                    "payment_id": str(payment_id),
                    "amount": str(payment.amount),
                    "amount_due": str(saved.amount_due),
                },
            )
            logger.info("payment_deleted", extra={
                "document_id": str(document.id),
                "payment_id": str(payment_id),
                "amount": str(payment.amount),
                "amount_paid": str(saved.amount_paid),
                "status": saved.status.value,
            })
        return saved

    def _resettle(self, ctx: RequestContext, document: FinancialDocument) -> FinancialDocument:
        """Re-sum the document's payments and move its status to match."""
        kind_config = self._config_for(ctx).for_kind(document.kind.value)
        new_paid = self._repo.total_paid(ctx.organization_id, document.id)
        new_status = status_after_adjustment(
            document, new_paid, kind_config.payment_tolerance,
        )

        changes: dict[str, Any] = {
            "amount_paid": new_paid,
            "amount_due": amount_due(document.total, new_paid),
            "status": new_status,
        }
        if new_status is DocumentStatus.PAID:
            changes["paid_at"] = document.paid_at or self._clock.now()
        else:
            changes["paid_at"] = None

        saved = self._repo.save(document.evolve(**changes), ctx.actor_id)
        if new_status is not document.status:
            self._record_status_change(ctx, saved, document.status, "adjust_payment")
        return saved

    # =========================================================================
    # Ledger posting
    # =========================================================================

    def post_to_ledger(self, ctx: RequestContext, document_id: UUID) -> PostingResult:
        """
        Post the document to the general ledger, at most once.

        A document that is already posted returns
        ``PostingResult(success=True, already_posted=True)`` without
        writing anything.

        Raises:
            InvalidStateError: Draft, cancelled or void document.
            LedgerError: The journal could not be written; the posted flag
                is rolled back with it.
        """
        with self._transaction(ctx, document_id):
            document = self._repo.get(ctx.organization_id, document_id, for_update=True)
            if document.posted_to_ledger:
                result = self._already_posted(ctx, document)
            else:
                assert_postable(document)
                result = self._post(ctx, document)
        return result

    def _post(self, ctx: RequestContext, document: FinancialDocument) -> PostingResult:
        """Claim the posted flag, then write the journal in the same transaction."""
        journal_entry_id = uuid4()
        claimed = self._repo.set_posted_if_unset(
            ctx.organization_id, document.id, self._clock.now(), journal_entry_id,
        )
        if not claimed:
            # locked re-read bypasses the identity map; the winner has committed
            current = self._repo.get(ctx.organization_id, document.id, for_update=True)
            if not current.posted_to_ledger:
                # cancelled or voided since it was read
                assert_postable(current)
            return self._already_posted(ctx, current)

        journal = self._ledger.post_document(
            ctx, document, _posting_date(document), journal_entry_id,
        )
        self._record_activity(
            ctx, document, ActivityType.POSTED_TO_LEDGER,
            f"Posted to ledger as {journal.journal_number}",
            {"journal_entry_id": str(journal.id), "journal_number": journal.journal_number},
        )
        logger.info("document_posted", extra={
            "document_id": str(document.id),
            "journal_entry_id": str(journal.id),
            "journal_number": journal.journal_number,
        })
        return PostingResult(
            success=True,
            already_posted=False,
            journal_entry_id=journal.id,
            journal_number=journal.journal_number,
        )

    def _already_posted(
        self,
        ctx: RequestContext,
        document: FinancialDocument,
    ) -> PostingResult:
        journal_number = None
        if document.journal_entry_id is not None:
            journal = self._ledger.get_journal(ctx.organization_id, document.journal_entry_id)
            journal_number = journal.journal_number if journal else None
        logger.info("ledger_posting_skipped", extra={
            "document_id": str(document.id),
            "reason": "already_posted",
        })
        return PostingResult(
            success=True,
            already_posted=True,
            journal_entry_id=document.journal_entry_id,
            journal_number=journal_number,
        )

    def get_posting_status(self, ctx: RequestContext, document_id: UUID) -> PostingStatus:
        document = self._repo.get(ctx.organization_id, document_id)
        if not document.posted_to_ledger:
            return PostingStatus(posted=False)
        journal_number = None
        if document.journal_entry_id is not None:
            journal = self._ledger.get_journal(ctx.organization_id, document.journal_entry_id)
            journal_number = journal.journal_number if journal else None
        return PostingStatus(
            posted=True,
            posted_at=document.posted_at,
            journal_number=journal_number,
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def get_document(self, ctx: RequestContext, document_id: UUID) -> FinancialDocument:
        """
        Raises:
            DocumentNotFoundError: Unknown id, or owned by another organization.
        """
        with LogContext.bind(**ctx.log_fields(), document_id=str(document_id)):
            return self._repo.get(ctx.organization_id, document_id)

    def get_effective_status(
        self,
        ctx: RequestContext,
        document_id: UUID,
        as_of: date | None = None,
    ) -> DocumentStatus:
        """Status including the derived OVERDUE label."""
        document = self._repo.get(ctx.organization_id, document_id)
        return derive_status(document, as_of or self._clock.today())

    def list_documents(
        self,
        ctx: RequestContext,
        *,
        kind: DocumentKind | str | None = None,
        status: DocumentStatus | str | None = None,
        counterparty_id: UUID | None = None,
        as_of: date | None = None,
    ) -> list[FinancialDocument]:
        """
        Documents of the caller's organization.

        ``status`` filters on the effective status at ``as_of`` (default
        today): ``overdue`` returns open documents past their due date, and
        ``sent`` excludes sent invoices that are overdue.
        """
        kind = DocumentKind(kind) if kind is not None else None
        status = DocumentStatus(status) if status is not None else None
        as_of = as_of or self._clock.today()

        if status is DocumentStatus.OVERDUE:
            documents = self._repo.list(
                ctx.organization_id,
                kind=kind,
                statuses=_OPEN_STATUSES,
                counterparty_id=counterparty_id,
                due_before=as_of,
            )
        else:
            documents = self._repo.list(
                ctx.organization_id,
                kind=kind,
                statuses=[status] if status is not None else None,
                counterparty_id=counterparty_id,
            )
        if status is None:
            return documents
        return [d for d in documents if derive_status(d, as_of) is status]

    def list_activity(self, ctx: RequestContext, document_id: UUID) -> list[ActivityRecord]:
        self._repo.get(ctx.organization_id, document_id)
        return self._repo.list_activity(ctx.organization_id, document_id)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _next_invoice_number(self, ctx: RequestContext) -> str:
        year = self._clock.today().year
        numbering = self._config_for(ctx).numbering
        sequence = self._repo.next_sequence(
            invoice_sequence_name(ctx.organization_id, year)
        )
        return format_invoice_number(
            ctx.slug, year, sequence, numbering.prefix_length, numbering.padding,
        )

    def _check_number(
        self,
        ctx: RequestContext,
        kind: DocumentKind,
        counterparty_id: UUID,
        document_number: str | None,
    ) -> str:
        number = (document_number or "").strip()
        if not number:
            raise ValidationError(
                "Document number is required",
                [{"index": None, "field": "document_number", "message": "is required"}],
            )
        if self._repo.number_in_use(ctx.organization_id, kind, counterparty_id, number):
            raise ValidationError(
                f"Document number {number} is already in use",
                [{"index": None, "field": "document_number", "message": "already in use"}],
            )
        return number

    def _record_activity(
        self,
        ctx: RequestContext,
        document: FinancialDocument,
        activity_type: ActivityType,
        description: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self._repo.add_activity(
            ActivityRecord(
                id=uuid4(),
                organization_id=ctx.organization_id,
                document_id=document.id,
                activity_type=activity_type,
                description=description,
                performed_by_id=ctx.actor_id,
                metadata=metadata or {},
                created_at=self._clock.now(),
            )
        )

    def _record_status_change(
        self,
        ctx: RequestContext,
        document: FinancialDocument,
        previous: DocumentStatus,
        action: str,
    ) -> None:
        self._record_activity(
            ctx, document, ActivityType.STATUS_CHANGED,
            f"Status changed from {previous.value} to {document.status.value}",
            {"from": previous.value, "to": document.status.value, "action": action},
        )
        logger.info("document_status_changed", extra={
            "document_id": str(document.id),
            "from_status": previous.value,
            "to_status": document.status.value,
            "action": action,
        })


def _line_items(breakdown: TotalsBreakdown) -> tuple[LineItem, ...]:
    return tuple(
        LineItem(
            description=line.description,
            quantity=line.quantity,
            unit_price=line.unit_price,
            amount=line.amount,
            sort_order=line.index,
        )
        for line in breakdown.lines
    )


def _tax_lines(breakdown: TotalsBreakdown) -> tuple[TaxLine, ...]:
    return tuple(
        TaxLine(
            tax_name=tax.tax_name,
            tax_percentage=tax.tax_percentage,
            tax_amount=tax.display_amount,
        )
        for tax in breakdown.taxes
    )


def _check_dates(issue_date: date, due_date: date) -> None:
    if due_date < issue_date:
        raise ValidationError(
            "Due date cannot be before the issue date",
            [{"index": None, "field": "due_date", "message": "before issue_date"}],
        )


def _payment_amount(amount: Any) -> Decimal:
    try:
        value = to_decimal(amount)
    except ValueError as e:
        raise ValidationError(
            "Payment amount must be a number",
            [{"index": None, "field": "amount", "message": "must be a number"}],
        ) from e
    if value <= ZERO:
        raise ValidationError(
            "Payment amount must be greater than zero",
            [{"index": None, "field": "amount", "message": "must be positive"}],
        )
    if round_money(value) != value:
        raise ValidationError(
            "Payment amount has more than two decimal places",
            [{"index": None, "field": "amount", "message": "too many decimal places"}],
        )
    return value


def _posting_date(document: FinancialDocument) -> date:
    """Journal date: when the document was sent, else its issue date."""
    if document.sent_at is not None:
        return document.sent_at.date()
    return document.issue_date
