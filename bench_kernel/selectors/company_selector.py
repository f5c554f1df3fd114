"""
Module: bench_kernel.selectors.company_selector
Responsibility: Read access to companies, their users and listings, used by
    every lifecycle service to resolve notification recipients, fee
    eligibility and listing availability.
"""

from uuid import UUID

from sqlalchemy import select

from bench_kernel.models.company import Company, CompanyUser
from bench_kernel.models.listing import Listing
from bench_kernel.selectors.base import BaseSelector


class CompanySelector(BaseSelector):

    def get_company(self, company_id: UUID) -> Company | None:
        return self.session.get(Company, company_id)

    def get_listing(self, listing_id: UUID) -> Listing | None:
        return self.session.get(Listing, listing_id)

    def user_ids(
        self,
        company_id: UUID,
        exclude_user_id: UUID | None = None,
    ) -> tuple[UUID, ...]:
        """IDs of every user of a company, ordered for stable fan-out."""
        stmt = (
            select(CompanyUser.id)
            .where(CompanyUser.company_id == company_id)
            .order_by(CompanyUser.email)
        )
        if exclude_user_id is not None:
            stmt = stmt.where(CompanyUser.id != exclude_user_id)
        return tuple(self.session.execute(stmt).scalars().all())

    def company_name(self, company_id: UUID) -> str:
        company = self.get_company(company_id)
        return company.name if company is not None else "A company"
