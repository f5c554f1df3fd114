"""
bench_services.identity -- caller identity resolution.

The operation boundary turns whatever credential the outer layer holds
into an ``ActingCompany``.  Nothing below the boundary resolves identity.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from bench_kernel.domain.actors import ActingCompany
from bench_kernel.logging_config import get_logger
from bench_kernel.models.company import CompanyUser

logger = get_logger("services.identity")


@runtime_checkable
class IdentityResolver(Protocol):
    def resolve(self, credential: Any) -> ActingCompany | None:
        """Return the acting company for ``credential``, or None."""
        ...


class StaticIdentityResolver:
    """Fixed credential -> actor table, for tests and local runs."""

    def __init__(self, actors: dict[Any, ActingCompany] | None = None):
        self._actors = dict(actors or {})

    def register(self, credential: Any, actor: ActingCompany) -> None:
        self._actors[credential] = actor

    def resolve(self, credential: Any) -> ActingCompany | None:
        return self._actors.get(credential)


class UserIdentityResolver:
    """Treats the credential as a user id and looks up the user's company."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def resolve(self, credential: Any) -> ActingCompany | None:
        try:
            user_id = credential if isinstance(credential, UUID) else UUID(str(credential))
        except ValueError:
            logger.info("identity_malformed_credential")
            return None
        session = self._session_factory()
        try:
            user = session.get(CompanyUser, user_id)
            if user is None:
                return None
            return ActingCompany(user_id=user.id, company_id=user.company_id)
        finally:
            session.close()
