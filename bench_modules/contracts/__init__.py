"""
Contracts Module.

One contract per engagement request.  Both parties must agree to the
same terms before the contract is ACCEPTED and hours can be logged.
"""

from bench_modules.contracts.models import (
    AGREEABLE_STATUSES,
    AGREED_STATUSES,
    WORKABLE_STATUSES,
    AgreementOutcome,
    Contract,
    ContractStatus,
)
from bench_modules.contracts.workflows import CONTRACT_WORKFLOW

__all__ = [
    "AGREEABLE_STATUSES",
    "AGREED_STATUSES",
    "WORKABLE_STATUSES",
    "AgreementOutcome",
    "Contract",
    "ContractStatus",
    "CONTRACT_WORKFLOW",
]
