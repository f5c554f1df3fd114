"""
Invoice Workflows.

Invoices are issued by the vendor.  Either party may record payment; the
overdue sweep runs with the system role.
"""

from bench_kernel.domain.actors import PartyRole
from bench_kernel.domain.workflow import Transition, Workflow
from bench_kernel.logging_config import get_logger

logger = get_logger("modules.invoicing.workflows")

VENDOR_ONLY = frozenset({PartyRole.VENDOR.value})
EITHER_PARTY = frozenset({PartyRole.CLIENT.value, PartyRole.VENDOR.value})
VENDOR_OR_SYSTEM = frozenset({PartyRole.VENDOR.value, PartyRole.SYSTEM.value})

INVOICE_WORKFLOW = Workflow(
    name="invoice",
    description="Invoice issue and payment lifecycle",
    initial_state="DRAFT",
    states=("DRAFT", "SENT", "PAID", "OVERDUE", "CANCELLED"),
    transitions=(
        Transition("DRAFT", "SENT", action="send", roles=VENDOR_ONLY),
        Transition("SENT", "PAID", action="pay", roles=EITHER_PARTY),
        Transition("OVERDUE", "PAID", action="pay", roles=EITHER_PARTY),
        Transition("SENT", "OVERDUE", action="mark_overdue", roles=VENDOR_OR_SYSTEM),
        Transition("DRAFT", "CANCELLED", action="cancel", roles=VENDOR_ONLY),
        Transition("SENT", "CANCELLED", action="cancel", roles=VENDOR_ONLY),
        Transition("OVERDUE", "CANCELLED", action="cancel", roles=VENDOR_ONLY),
    ),
    terminal_states=("PAID", "CANCELLED"),
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

STATUS_TIMESTAMPS: dict[str, str] = {
    "SENT": "sent_at",
    "PAID": "paid_at",
    "CANCELLED": "cancelled_at",
}

STATUS_NOTIFICATIONS: dict[str, tuple[str, str]] = {
    "SENT": ("Invoice Sent", "{company} sent you invoice {number}"),
    "PAID": ("Invoice Paid", "Invoice {number} was marked as paid by {company}"),
    "OVERDUE": ("Invoice Overdue", "Invoice {number} is past its due date"),
    "CANCELLED": ("Invoice Cancelled", "{company} cancelled invoice {number}"),
}
