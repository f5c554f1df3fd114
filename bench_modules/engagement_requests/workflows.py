"""
Engagement Request Workflows.

The request state machine as a transition table keyed by (current state,
requested state), annotated with the party roles allowed to perform each
move.  Offer moves (send_offer, revise_offer) and payment finalization have
dedicated operations; every other move goes through the generic
status-update operation.
"""

from bench_kernel.domain.actors import PartyRole
from bench_kernel.domain.workflow import Guard, Transition, Workflow
from bench_kernel.logging_config import get_logger

logger = get_logger("modules.engagement_requests.workflows")

CLIENT = PartyRole.CLIENT.value
VENDOR = PartyRole.VENDOR.value
SYSTEM = PartyRole.SYSTEM.value

EITHER_PARTY = frozenset({CLIENT, VENDOR})

# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

OFFER_TERMS_COMPLETE = Guard(
    name="offer_terms_complete",
    description="Offer has a positive rate and an ordered date range",
)

# -----------------------------------------------------------------------------
# Request Workflow
# -----------------------------------------------------------------------------

REQUEST_WORKFLOW = Workflow(
    name="engagement_request",
    description="Engagement request negotiation and delivery lifecycle",
    initial_state="PENDING",
    states=(
        "PENDING",
        "NEGOTIATING",
        "OFFER_SENT",
        "ACCEPTED",
        "REJECTED",
        "IN_PROGRESS",
        "COMPLETED",
        "CANCELLED",
    ),
    transitions=(
        Transition("PENDING", "NEGOTIATING", action="negotiate", roles=frozenset({VENDOR})),
        Transition("PENDING", "OFFER_SENT", action="send_offer", roles=frozenset({VENDOR}),
                   guard=OFFER_TERMS_COMPLETE),
        Transition("PENDING", "ACCEPTED", action="accept", roles=frozenset({VENDOR})),
        Transition("PENDING", "REJECTED", action="reject", roles=frozenset({VENDOR})),
        Transition("PENDING", "CANCELLED", action="cancel", roles=frozenset({CLIENT})),
        Transition("NEGOTIATING", "OFFER_SENT", action="send_offer", roles=frozenset({VENDOR}),
                   guard=OFFER_TERMS_COMPLETE),
        Transition("NEGOTIATING", "REJECTED", action="reject", roles=frozenset({VENDOR})),
        Transition("NEGOTIATING", "CANCELLED", action="cancel", roles=EITHER_PARTY),
        Transition("OFFER_SENT", "ACCEPTED", action="finalize", roles=frozenset({SYSTEM})),
        Transition("OFFER_SENT", "REJECTED", action="reject", roles=frozenset({CLIENT})),
        Transition("OFFER_SENT", "CANCELLED", action="cancel", roles=EITHER_PARTY),
        Transition("OFFER_SENT", "NEGOTIATING", action="revise_offer", roles=frozenset({VENDOR})),
        Transition("ACCEPTED", "IN_PROGRESS", action="start", roles=EITHER_PARTY),
        Transition("ACCEPTED", "CANCELLED", action="cancel", roles=EITHER_PARTY),
        Transition("IN_PROGRESS", "COMPLETED", action="complete", roles=EITHER_PARTY),
        Transition("IN_PROGRESS", "CANCELLED", action="cancel", roles=EITHER_PARTY),
    ),
    terminal_states=("REJECTED", "COMPLETED", "CANCELLED"),
)

# Moves that carry extra data or side effects and have their own operation
DEDICATED_ACTIONS: frozenset[str] = frozenset({"send_offer", "revise_offer", "finalize"})

logger.info(
    "engagement_request_workflow_registered",
    extra={
        "workflow_name": REQUEST_WORKFLOW.name,
        "state_count": len(REQUEST_WORKFLOW.states),
        "transition_count": len(REQUEST_WORKFLOW.transitions),
        "initial_state": REQUEST_WORKFLOW.initial_state,
    },
)


# -----------------------------------------------------------------------------
# Status notifications (sent to the counterparty of the acting company)
# -----------------------------------------------------------------------------

STATUS_NOTIFICATIONS: dict[str, tuple[str, str]] = {
    "NEGOTIATING": ("Request in Negotiation", "{company} wants to discuss your request"),
    "ACCEPTED": ("Request Accepted!", "{company} has accepted your request"),
    "REJECTED": ("Request Declined", "{company} has declined the request"),
    "CANCELLED": ("Request Cancelled", "{company} has cancelled the request"),
    "IN_PROGRESS": ("Engagement Started", "{company} has started the engagement"),
    "COMPLETED": ("Engagement Completed", "{company} has marked the engagement as completed"),
}
