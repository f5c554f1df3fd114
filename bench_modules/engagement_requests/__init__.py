"""
Engagement Requests Module.

Handles a client's request for a listed developer from creation through
negotiation, the vendor's offer, acceptance and delivery, plus the
request's conversation thread.
"""

from bench_modules.engagement_requests.models import (
    ACTIVE_REQUEST_STATUSES,
    TERMINAL_REQUEST_STATUSES,
    EngagementRequest,
    Message,
    RequestCounts,
    RequestStatus,
)
from bench_modules.engagement_requests.workflows import REQUEST_WORKFLOW

__all__ = [
    "ACTIVE_REQUEST_STATUSES",
    "TERMINAL_REQUEST_STATUSES",
    "EngagementRequest",
    "Message",
    "RequestCounts",
    "RequestStatus",
    "REQUEST_WORKFLOW",
]
