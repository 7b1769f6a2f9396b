"""
Document Workflows.

State machines for invoices (receivables) and bills (payables).  Overdue
is not a state here: it is derived at read time from the due date.
"""

from findoc_kernel.domain.workflow import Guard, Transition, Workflow
from findoc_kernel.logging_config import get_logger

logger = get_logger("modules.documents.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

HAS_BILLABLE_LINES = Guard(
    name="has_billable_lines",
    description="Document has at least one line item and a total above zero",
)

PAID_IN_FULL = Guard(
    name="paid_in_full",
    description="Amount paid covers the total, within the payment tolerance",
)

logger.info(
    "document_workflow_guards_defined",
    extra={"guards": [HAS_BILLABLE_LINES.name, PAID_IN_FULL.name]},
)


# -----------------------------------------------------------------------------
# Invoice Workflow
# -----------------------------------------------------------------------------

INVOICE_WORKFLOW = Workflow(
    name="invoice",
    description="Customer invoice lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "sent",
        "partially_paid",
        "paid",
        "cancelled",
    ),
    transitions=(
        Transition("draft", "sent", action="send", guard=HAS_BILLABLE_LINES, posts_entry=True),
        Transition("draft", "cancelled", action="cancel"),
        Transition("sent", "paid", action="apply_payment", guard=PAID_IN_FULL),
        Transition("sent", "partially_paid", action="apply_payment"),
        Transition("partially_paid", "paid", action="apply_payment", guard=PAID_IN_FULL),
        Transition("partially_paid", "partially_paid", action="apply_payment"),
        Transition("sent", "cancelled", action="cancel"),
        Transition("partially_paid", "cancelled", action="cancel"),
    ),
    terminal_states=("paid", "cancelled"),
)

logger.info(
    "invoice_workflow_registered",
    extra={
        "workflow_name": INVOICE_WORKFLOW.name,
        "state_count": len(INVOICE_WORKFLOW.states),
        "transition_count": len(INVOICE_WORKFLOW.transitions),
        "initial_state": INVOICE_WORKFLOW.initial_state,
    },
)


# -----------------------------------------------------------------------------
# Bill Workflow
# -----------------------------------------------------------------------------

BILL_WORKFLOW = Workflow(
    name="bill",
    description="Supplier bill lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "pending",
        "approved",
        "partially_paid",
        "paid",
        "void",
    ),
    transitions=(
        Transition("draft", "pending", action="submit", guard=HAS_BILLABLE_LINES),
        Transition("draft", "approved", action="approve", guard=HAS_BILLABLE_LINES, posts_entry=True),
        Transition("pending", "approved", action="approve", guard=HAS_BILLABLE_LINES, posts_entry=True),
        Transition("approved", "paid", action="apply_payment", guard=PAID_IN_FULL),
        Transition("approved", "partially_paid", action="apply_payment"),
        Transition("partially_paid", "paid", action="apply_payment", guard=PAID_IN_FULL),
        Transition("partially_paid", "partially_paid", action="apply_payment"),
        Transition("draft", "void", action="void"),
        Transition("pending", "void", action="void"),
        Transition("approved", "void", action="void"),
        Transition("partially_paid", "void", action="void"),
    ),
    terminal_states=("paid", "void"),
)

logger.info(
    "bill_workflow_registered",
    extra={
        "workflow_name": BILL_WORKFLOW.name,
        "state_count": len(BILL_WORKFLOW.states),
        "transition_count": len(BILL_WORKFLOW.transitions),
        "initial_state": BILL_WORKFLOW.initial_state,
    },
)
