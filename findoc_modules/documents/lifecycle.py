"""
Document lifecycle rules (``findoc_modules.documents.lifecycle``).

Responsibility
--------------
Pure decisions over a ``FinancialDocument``: which transition an action
takes, whether guards hold, whether the document may still be edited,
deleted or posted, and what status it shows at a given date.

Architecture position
---------------------
**Modules layer** -- pure functions with ZERO I/O.  ``DocumentService``
calls these before touching the repository.

Invariants enforced
-------------------
* Line items, taxes and header fields change only in DRAFT.
* Paid, cancelled and void documents accept no further transitions.
  Correcting a payment may reopen a paid document; the payments of
  cancelled and void documents are fixed.
* OVERDUE is computed here from ``due_date`` and never persisted.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from findoc_kernel.db.types import ZERO
from findoc_kernel.domain.workflow import Transition, Workflow
from findoc_kernel.exceptions import InvalidStateError, ValidationError
from findoc_modules.documents.models import (
    DocumentKind,
    DocumentStatus,
    FinancialDocument,
)
from findoc_modules.documents.workflows import (
    BILL_WORKFLOW,
    HAS_BILLABLE_LINES,
    INVOICE_WORKFLOW,
    PAID_IN_FULL,
)

WORKFLOWS: dict[DocumentKind, Workflow] = {
    DocumentKind.INVOICE: INVOICE_WORKFLOW,
    DocumentKind.BILL: BILL_WORKFLOW,
}

# Action that withdraws a document without payment
CANCEL_ACTIONS: dict[DocumentKind, str] = {
    DocumentKind.INVOICE: "cancel",
    DocumentKind.BILL: "void",
}

DELETABLE_STATUSES: dict[DocumentKind, frozenset[DocumentStatus]] = {
    DocumentKind.INVOICE: frozenset({DocumentStatus.DRAFT}),
    DocumentKind.BILL: frozenset({
        DocumentStatus.DRAFT,
        DocumentStatus.PENDING,
        DocumentStatus.APPROVED,
    }),
}

UNPOSTABLE_STATUSES = frozenset({
    DocumentStatus.DRAFT,
    DocumentStatus.CANCELLED,
    DocumentStatus.VOID,
})

# Statuses that never show as overdue
NOT_DUE_STATUSES = frozenset({
    DocumentStatus.DRAFT,
    DocumentStatus.PAID,
    DocumentStatus.CANCELLED,
    DocumentStatus.VOID,
})

# Status a document falls back to once no payment remains
UNPAID_STATUSES: dict[DocumentKind, DocumentStatus] = {
    DocumentKind.INVOICE: DocumentStatus.SENT,
    DocumentKind.BILL: DocumentStatus.APPROVED,
}

# Statuses whose recorded payments may be corrected
PAYMENT_ADJUSTABLE_STATUSES = frozenset({
    DocumentStatus.SENT,
    DocumentStatus.APPROVED,
    DocumentStatus.PARTIALLY_PAID,
    DocumentStatus.PAID,
})


def workflow_for(kind: DocumentKind) -> Workflow:
    return WORKFLOWS[kind]


def has_billable_lines(document: FinancialDocument) -> bool:
    return bool(document.line_items) and document.total > ZERO


def is_paid_in_full(
    total: Decimal,
    amount_paid: Decimal,
    tolerance: Decimal = ZERO,
) -> bool:
    return amount_paid >= total - tolerance


def resolve_transition(
    document: FinancialDocument,
    action: str,
    *,
    amount_paid: Decimal | None = None,
    tolerance: Decimal = ZERO,
) -> Transition:
    """
    Pick the transition ``action`` takes from the document's status.

    Candidates are tried in declaration order; the first whose guard holds
    wins.  ``amount_paid`` is the post-payment total for ``apply_payment``.

    Raises:
        InvalidStateError: ``action`` is not available in this status.
        ValidationError: The document has no line items or a zero total
            and the transition leaves draft.
    """
    workflow = workflow_for(document.kind)
    candidates = workflow.transitions_for(document.status.value, action)
    if not candidates:
        allowed = ", ".join(workflow.actions_from(document.status.value)) or "none"
        raise InvalidStateError(
            str(document.id),
            document.status.value,
            action,
            reason=f"allowed actions: {allowed}",
        )

    paid = document.amount_paid if amount_paid is None else amount_paid
    for transition in candidates:
        guard = transition.guard
        if guard is None:
            return transition
        if guard == HAS_BILLABLE_LINES:
            if not has_billable_lines(document):
                raise ValidationError(
                    "Document must have at least one line item and a total above zero",
                    [{
                        "index": None,
                        "field": "line_items",
                        "message": HAS_BILLABLE_LINES.description,
                    }],
                )
            return transition
        if guard == PAID_IN_FULL and is_paid_in_full(document.total, paid, tolerance):
            return transition

    raise InvalidStateError(
        str(document.id),
        document.status.value,
        action,
        reason="no transition guard satisfied",
    )


def status_after_payment(
    document: FinancialDocument,
    amount_paid: Decimal,
    tolerance: Decimal = ZERO,
) -> DocumentStatus:
    """Status once the cumulative ``amount_paid`` is applied."""
    transition = resolve_transition(
        document, "apply_payment", amount_paid=amount_paid, tolerance=tolerance,
    )
    return DocumentStatus(transition.to_state)


def derive_status(document: FinancialDocument, as_of: date) -> DocumentStatus:
    """Status as shown at ``as_of``: OVERDUE when past due and still open."""
    if document.status in NOT_DUE_STATUSES:
        return document.status
    if document.due_date < as_of:
        return DocumentStatus.OVERDUE
    return document.status


def assert_editable(document: FinancialDocument) -> None:
    if document.status is not DocumentStatus.DRAFT:
        raise InvalidStateError(
            str(document.id),
            document.status.value,
            "edit",
            reason="only draft documents can be edited",
        )


def assert_postable(document: FinancialDocument) -> None:
    if document.status in UNPOSTABLE_STATUSES:
        raise InvalidStateError(
            str(document.id),
            document.status.value,
            "post",
            reason="draft, cancelled and void documents are not posted",
        )


def deletion_blocker(document: FinancialDocument, has_payments: bool) -> str | None:
    """Why the document cannot be deleted, or None when it can."""
    if document.posted_to_ledger:
        return "document has been posted to the ledger"
    if has_payments:
        return "document has recorded payments"
    if document.status not in DELETABLE_STATUSES[document.kind]:
        allowed = sorted(s.value for s in DELETABLE_STATUSES[document.kind])
        return f"only documents in {', '.join(allowed)} can be deleted"
    return None


def assert_deletable(document: FinancialDocument, has_payments: bool) -> None:
    reason = deletion_blocker(document, has_payments)
    if reason is not None:
        raise InvalidStateError(
            str(document.id), document.status.value, "delete", reason=reason,
        )


def status_after_adjustment(
    document: FinancialDocument,
    amount_paid: Decimal,
    tolerance: Decimal = ZERO,
) -> DocumentStatus:
    """
    Status once a recorded payment is changed or removed.

    ``amount_paid`` is the re-summed total of the remaining payments.  With
    nothing paid the document returns to the status it had before its
    first payment; OVERDUE is still derived from that at read time.
    """
    if amount_paid <= ZERO:
        return UNPAID_STATUSES[document.kind]
    if is_paid_in_full(document.total, amount_paid, tolerance):
        return DocumentStatus.PAID
    return DocumentStatus.PARTIALLY_PAID


def assert_payments_adjustable(document: FinancialDocument, action: str) -> None:
    if document.status not in PAYMENT_ADJUSTABLE_STATUSES:
        raise InvalidStateError(
            str(document.id),
            document.status.value,
            action,
            reason="payments of draft, pending, cancelled and void documents are fixed",
        )
