"""
Acting identity (``bench_kernel.domain.actors``).

Every lifecycle operation receives an explicit ``ActingCompany``: the user
performing the action and the company on whose behalf they act.  Resolving
it from a session or token is the job of an IdentityResolver at the outer
boundary; nothing below that boundary looks up ambient identity.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class PartyRole(str, Enum):
    """Role of the acting company relative to one engagement."""

    CLIENT = "client"
    VENDOR = "vendor"
    SYSTEM = "system"


@dataclass(frozen=True)
class ActingCompany:
    """Resolved caller identity."""

    user_id: UUID
    company_id: UUID


def resolve_role(
    actor: ActingCompany,
    client_company_id: UUID,
    vendor_company_id: UUID,
) -> PartyRole | None:
    """Return the actor's role in an engagement, or None if not a party."""
    if actor.company_id == vendor_company_id:
        return PartyRole.VENDOR
    if actor.company_id == client_company_id:
        return PartyRole.CLIENT
    return None


def counterparty_of(
    role: PartyRole,
    client_company_id: UUID,
    vendor_company_id: UUID,
) -> UUID:
    """Company on the other side of the engagement from ``role``."""
    return client_company_id if role == PartyRole.VENDOR else vendor_company_id
