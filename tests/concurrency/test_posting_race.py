"""
Concurrency tests for ledger posting.

A document is posted to the ledger at most once, however many callers
race on post_to_ledger, and a document cancelled between the read and
the claim is never posted.

- In-memory: a lock-guarded repository and a counting ledger, raced from
  threads.  Runs everywhere.
- SQLite: the posted flag rolls back together with a failed journal.
- PostgreSQL (marked ``postgres``): real threads, one session each,
  racing on the conditional UPDATE and the locked document row.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from findoc_kernel.exceptions import (
    DocumentNotFoundError,
    InvalidStateError,
    LedgerError,
    PaymentNotFoundError,
)
from findoc_kernel.domain.clock import DeterministicClock
from findoc_kernel.domain.context import RequestContext
from findoc_modules.documents.lifecycle import UNPOSTABLE_STATUSES
from findoc_modules.documents.models import DocumentKind, DocumentStatus, FinancialDocument
from findoc_modules.documents.repository import DocumentRepository
from findoc_modules.documents.service import DocumentService
from findoc_modules.gl.models import JournalEntryRecord
from findoc_modules.gl.poster import LedgerPoster, SqlAlchemyLedgerPoster

THREADS = 16


# =============================================================================
# In-memory collaborators
# =============================================================================


class InMemoryDocumentRepository(DocumentRepository):
    """Dict-backed repository; set_posted_if_unset is atomic under a lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self._documents: dict[UUID, FinancialDocument] = {}
        self._payments: dict[UUID, list] = {}
        self._activity: dict[UUID, list] = {}
        self._counters: dict[str, int] = {}

    def get(self, organization_id, document_id, *, for_update=False):
        document = self._documents.get(document_id)
        if document is None or document.organization_id != organization_id:
            raise DocumentNotFoundError(str(document_id))
        return document

    def add(self, document, actor_id):
        self._documents[document.id] = document
        return document

    def save(self, document, actor_id):
        with self._lock:
            current = self._documents[document.id]
            self._documents[document.id] = document.evolve(
                posted_to_ledger=current.posted_to_ledger,
                posted_at=current.posted_at,
                journal_entry_id=current.journal_entry_id,
                updated_by_id=actor_id,
            )
            return self._documents[document.id]

    def delete(self, organization_id, document_id):
        self._documents.pop(document_id, None)

    def list(self, organization_id, *, kind=None, statuses=None,
             counterparty_id=None, due_before=None):
        return [d for d in self._documents.values() if d.organization_id == organization_id]

    def number_in_use(self, organization_id, kind, counterparty_id, document_number):
        return any(
            d.document_number == document_number and d.counterparty_id == counterparty_id
            for d in self._documents.values()
        )

    def next_sequence(self, name):
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + 1
            return self._counters[name]

    def set_posted_if_unset(self, organization_id, document_id, posted_at, journal_entry_id=None):
        with self._lock:
            document = self._documents[document_id]
            if document.posted_to_ledger or document.status in UNPOSTABLE_STATUSES:
                return False
            self._documents[document_id] = document.evolve(
                posted_to_ledger=True,
                posted_at=posted_at,
                journal_entry_id=journal_entry_id,
            )
            return True

    def add_payment(self, payment, actor_id):
        self._payments.setdefault(payment.document_id, []).append(payment)
        return payment

    def list_payments(self, organization_id, document_id):
        return list(self._payments.get(document_id, []))

    def get_payment(self, organization_id, payment_id):
        for payments in self._payments.values():
            for payment in payments:
                if payment.id == payment_id and payment.organization_id == organization_id:
                    return payment
        raise PaymentNotFoundError(str(payment_id))

    def save_payment(self, payment, actor_id):
        payments = self._payments[payment.document_id]
        payments[:] = [payment if p.id == payment.id else p for p in payments]
        return payment

    def delete_payment(self, organization_id, payment_id):
        payment = self.get_payment(organization_id, payment_id)
        self._payments[payment.document_id].remove(payment)

    def add_activity(self, record):
        with self._lock:
            self._activity.setdefault(record.document_id, []).append(record)
        return record

    def list_activity(self, organization_id, document_id):
        return list(self._activity.get(document_id, []))

    def commit(self):
        pass

    def rollback(self):
        pass


class CancelBeforeClaimRepository(InMemoryDocumentRepository):
    """Another caller cancels the document between the read and the claim."""

    def set_posted_if_unset(self, organization_id, document_id, posted_at, journal_entry_id=None):
        with self._lock:
            document = self._documents[document_id]
            self._documents[document_id] = document.evolve(status=DocumentStatus.CANCELLED)
        return super().set_posted_if_unset(
            organization_id, document_id, posted_at, journal_entry_id,
        )


class CountingLedger(LedgerPoster):
    """Records every journal it is asked to write."""

    def __init__(self):
        self._lock = threading.Lock()
        self.journals: list[JournalEntryRecord] = []

    def post_document(self, ctx, document, posting_date, journal_entry_id=None):
        with self._lock:
            journal = JournalEntryRecord(
                id=journal_entry_id or uuid4(),
                organization_id=ctx.organization_id,
                journal_number=f"JE-{posting_date.year}-{len(self.journals) + 1:06d}",
                source="Receivables",
                source_id=document.id,
                posting_date=posting_date,
                currency=document.currency,
                description="test",
                idempotency_key=f"{ctx.organization_id}:Receivables:{document.id}",
            )
            self.journals.append(journal)
            return journal

    def get_journal(self, organization_id, journal_entry_id):
        return next((j for j in self.journals if j.id == journal_entry_id), None)


class FailingLedger(SqlAlchemyLedgerPoster):
    """Ledger whose journal write always fails."""

    def post_document(self, ctx, document, posting_date, journal_entry_id=None):
        raise LedgerError("ledger unavailable")


def _ctx() -> RequestContext:
    return RequestContext(organization_id="org_acme", actor_id=uuid4(), organization_slug="acme")


def _manual(config):
    return replace(config, invoice=replace(config.invoice, auto_post_on_issue=False))


def _create_sent_invoice(service: DocumentService, ctx: RequestContext) -> FinancialDocument:
    invoice = service.create_document(
        ctx, DocumentKind.INVOICE,
        counterparty_id=uuid4(), currency="NGN",
        issue_date=date(2024, 3, 1), due_date=date(2024, 3, 31),
        line_items=[{"description": "Consulting", "quantity": 4, "unit_price": "5000"}],
    )
    return service.send(ctx, invoice.id)


# =============================================================================
# In-memory race
# =============================================================================


class TestPostingRaceInMemory:

    def test_exactly_one_journal(self, config, clock):
        repo = InMemoryDocumentRepository()
        ledger = CountingLedger()
        service = DocumentService(
            repo, ledger, config=_manual(config), clock=clock,
        )
        ctx = _ctx()
        invoice = _create_sent_invoice(service, ctx)
        assert not invoice.posted_to_ledger

        barrier = threading.Barrier(THREADS)

        def post():
            barrier.wait()
            return service.post_to_ledger(ctx, invoice.id)

        with ThreadPoolExecutor(max_workers=THREADS) as pool:
            results = list(pool.map(lambda _: post(), range(THREADS)))

        assert all(r.success for r in results)
        assert sum(1 for r in results if not r.already_posted) == 1
        assert len(ledger.journals) == 1
        winner = next(r for r in results if not r.already_posted)
        assert {r.journal_entry_id for r in results} == {winner.journal_entry_id}

    def test_send_races_with_manual_post(self, config, clock):
        """Auto-post on send and an explicit post still write one journal."""
        repo = InMemoryDocumentRepository()
        ledger = CountingLedger()
        service = DocumentService(repo, ledger, config=config, clock=clock)
        ctx = _ctx()
        invoice = _create_sent_invoice(service, ctx)
        assert invoice.posted_to_ledger

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda _: service.post_to_ledger(ctx, invoice.id), range(8)))

        assert all(r.already_posted for r in results)
        assert len(ledger.journals) == 1

    def test_cancel_between_read_and_claim(self, config, clock):
        repo = CancelBeforeClaimRepository()
        ledger = CountingLedger()
        service = DocumentService(repo, ledger, config=_manual(config), clock=clock)
        ctx = _ctx()
        invoice = _create_sent_invoice(service, ctx)

        with pytest.raises(InvalidStateError) as exc_info:
            service.post_to_ledger(ctx, invoice.id)

        assert exc_info.value.status == "cancelled"
        assert exc_info.value.action == "post"
        assert ledger.journals == []
        assert not repo.get(ctx.organization_id, invoice.id).posted_to_ledger


# =============================================================================
# SQLite: refused claims, and failure rolls back the claim
# =============================================================================


class TestPostingFailure:

    def test_failed_journal_leaves_document_unposted(self, session, config, clock):
        manual = _manual(config)
        ctx = _ctx()
        good = DocumentService.from_session(session, config=manual, clock=clock)
        invoice = _create_sent_invoice(good, ctx)

        failing = DocumentService(
            good._repo,
            FailingLedger(session, manual),
            config=manual,
            clock=clock,
        )
        with pytest.raises(LedgerError):
            failing.post_to_ledger(ctx, invoice.id)

        assert good.get_posting_status(ctx, invoice.id).posted is False

        result = good.post_to_ledger(ctx, invoice.id)
        assert result.success
        assert not result.already_posted

    def test_claim_refused_for_cancelled_document(self, session, config, clock):
        ctx = _ctx()
        service = DocumentService.from_session(session, config=_manual(config), clock=clock)
        invoice = _create_sent_invoice(service, ctx)
        service.cancel(ctx, invoice.id)

        repo = service._repo
        assert repo.set_posted_if_unset(ctx.organization_id, invoice.id, clock.now()) is False
        assert repo.get(ctx.organization_id, invoice.id).posted_to_ledger is False
        with pytest.raises(InvalidStateError):
            service.post_to_ledger(ctx, invoice.id)

    def test_claim_refused_for_draft(self, session, config, clock):
        ctx = _ctx()
        service = DocumentService.from_session(session, config=_manual(config), clock=clock)
        draft = service.create_document(
            ctx, DocumentKind.INVOICE,
            counterparty_id=uuid4(), currency="NGN",
            issue_date=date(2024, 3, 1), due_date=date(2024, 3, 31),
            line_items=[{"description": "Consulting", "quantity": 1, "unit_price": "100"}],
        )
        assert service._repo.set_posted_if_unset(
            ctx.organization_id, draft.id, clock.now(),
        ) is False

    def test_sequential_double_post(self, session, config, clock):
        ctx = _ctx()
        service = DocumentService.from_session(session, config=_manual(config), clock=clock)
        invoice = _create_sent_invoice(service, ctx)

        first = service.post_to_ledger(ctx, invoice.id)
        second = service.post_to_ledger(ctx, invoice.id)
        assert not first.already_posted
        assert second.already_posted
        assert second.journal_entry_id == first.journal_entry_id
        ledger = SqlAlchemyLedgerPoster(session, config)
        assert len(ledger.list_journals(ctx.organization_id, source_id=invoice.id)) == 1


# =============================================================================
# PostgreSQL: real threads, one session each
# =============================================================================


@pytest.mark.postgres
class TestPostingRacePostgres:

    def _service(self, factory, config):
        return DocumentService.from_session(
            factory(), config=config, clock=DeterministicClock(),
        )

    def test_concurrent_post_to_ledger(self, require_postgres, session, config):
        from findoc_kernel.db.engine import get_session_factory

        factory = get_session_factory()
        manual = _manual(config)
        ctx = _ctx()
        invoice = _create_sent_invoice(self._service(factory, manual), ctx)

        barrier = threading.Barrier(THREADS)

        def post(_):
            service = self._service(factory, manual)
            try:
                barrier.wait()
                return service.post_to_ledger(ctx, invoice.id)
            finally:
                service._repo.session.close()

        with ThreadPoolExecutor(max_workers=THREADS) as pool:
            results = list(pool.map(post, range(THREADS)))

        assert sum(1 for r in results if not r.already_posted) == 1
        ledger = SqlAlchemyLedgerPoster(session, config)
        assert len(ledger.list_journals(ctx.organization_id, source_id=invoice.id)) == 1

    def test_concurrent_payments_sum(self, require_postgres, session, config):
        from findoc_kernel.db.engine import get_session_factory

        factory = get_session_factory()
        ctx = _ctx()
        invoice = _create_sent_invoice(self._service(factory, config), ctx)

        def pay(_):
            service = self._service(factory, config)
            try:
                return service.record_payment(ctx, invoice.id, "5000")
            finally:
                service._repo.session.close()

        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(pay, range(4)))

        final = self._service(factory, config).get_document(ctx, invoice.id)
        assert final.amount_paid == Decimal("20000")
        assert final.status is DocumentStatus.PAID
