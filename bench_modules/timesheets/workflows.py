"""
Timesheet Workflows.

The vendor logs and submits hours; the client approves or rejects them.
A rejected sheet goes back to DRAFT for correction so the same week can be
resubmitted.  APPROVED is final: approved sheets are what invoices bill.
"""

from bench_kernel.domain.actors import PartyRole
from bench_kernel.domain.workflow import Transition, Workflow
from bench_kernel.logging_config import get_logger

logger = get_logger("modules.timesheets.workflows")

VENDOR_ONLY = frozenset({PartyRole.VENDOR.value})
CLIENT_ONLY = frozenset({PartyRole.CLIENT.value})

TIMESHEET_WORKFLOW = Workflow(
    name="timesheet",
    description="Weekly timesheet approval chain",
    initial_state="DRAFT",
    states=("DRAFT", "SUBMITTED", "APPROVED", "REJECTED"),
    transitions=(
        Transition("DRAFT", "SUBMITTED", action="submit", roles=VENDOR_ONLY),
        Transition("SUBMITTED", "APPROVED", action="approve", roles=CLIENT_ONLY),
        Transition("SUBMITTED", "REJECTED", action="reject", roles=CLIENT_ONLY),
        Transition("REJECTED", "DRAFT", action="revise", roles=VENDOR_ONLY),
    ),
    terminal_states=("APPROVED",),
)

logger.info(
    "timesheet_workflow_registered",
    extra={
        "workflow_name": TIMESHEET_WORKFLOW.name,
        "state_count": len(TIMESHEET_WORKFLOW.states),
        "transition_count": len(TIMESHEET_WORKFLOW.transitions),
        "initial_state": TIMESHEET_WORKFLOW.initial_state,
    },
)
