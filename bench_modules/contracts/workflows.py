"""
Contract Workflows.

Dual agreement: a contract reaches ACCEPTED only as the side effect of the
second party's agreement, never by a direct status request.
"""

from bench_kernel.domain.actors import PartyRole
from bench_kernel.domain.workflow import Guard, Transition, Workflow
from bench_kernel.logging_config import get_logger

logger = get_logger("modules.contracts.workflows")

EITHER_PARTY = frozenset({PartyRole.CLIENT.value, PartyRole.VENDOR.value})
SYSTEM_ONLY = frozenset({PartyRole.SYSTEM.value})

BOTH_PARTIES_AGREED = Guard(
    name="both_parties_agreed",
    description="Client and vendor agreement markers are both set",
)

CONTRACT_WORKFLOW = Workflow(
    name="contract",
    description="Contract dual-agreement lifecycle",
    initial_state="DRAFT",
    states=("DRAFT", "SENT", "ACCEPTED", "ACTIVE", "COMPLETED", "CANCELLED"),
    transitions=(
        Transition("DRAFT", "SENT", action="send", roles=EITHER_PARTY),
        Transition("DRAFT", "ACCEPTED", action="agree", roles=SYSTEM_ONLY,
                   guard=BOTH_PARTIES_AGREED),
        Transition("SENT", "ACCEPTED", action="agree", roles=SYSTEM_ONLY,
                   guard=BOTH_PARTIES_AGREED),
        Transition("ACCEPTED", "ACTIVE", action="activate", roles=EITHER_PARTY),
        Transition("ACTIVE", "COMPLETED", action="complete", roles=EITHER_PARTY),
        Transition("DRAFT", "CANCELLED", action="cancel", roles=EITHER_PARTY),
        Transition("SENT", "CANCELLED", action="cancel", roles=EITHER_PARTY),
        Transition("ACCEPTED", "CANCELLED", action="cancel", roles=EITHER_PARTY),
        Transition("ACTIVE", "CANCELLED", action="cancel", roles=EITHER_PARTY),
    ),
    terminal_states=("COMPLETED", "CANCELLED"),
)

logger.info(
    "contract_workflow_registered",
    extra={
        "workflow_name": CONTRACT_WORKFLOW.name,
        "state_count": len(CONTRACT_WORKFLOW.states),
        "transition_count": len(CONTRACT_WORKFLOW.transitions),
        "initial_state": CONTRACT_WORKFLOW.initial_state,
    },
)

# Timestamp column stamped when a contract enters each status
STATUS_TIMESTAMPS: dict[str, str] = {
    "SENT": "sent_at",
    "ACCEPTED": "accepted_at",
    "ACTIVE": "activated_at",
    "COMPLETED": "completed_at",
    "CANCELLED": "cancelled_at",
}

STATUS_NOTIFICATIONS: dict[str, tuple[str, str]] = {
    "SENT": ("Contract Sent", "{company} sent you a contract to review"),
    "ACTIVE": ("Contract Active", "{company} activated the contract"),
    "COMPLETED": ("Contract Completed", "{company} marked the contract as completed"),
    "CANCELLED": ("Contract Cancelled", "{company} cancelled the contract"),
}
