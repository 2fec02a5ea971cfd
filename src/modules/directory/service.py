"""Account directory lookups — company identity to display profile."""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.enums import OrganizationType
from src.models.organization import Organization


@dataclass(frozen=True)
class CompanyProfile:
    id: uuid.UUID
    display_name: str
    organization_type: OrganizationType
    logo_ref: str | None = None
    contact_info: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_organization(cls, org: Organization) -> CompanyProfile:
        contact = {
            key: value
            for key, value in (
                ("email", org.primary_email),
                ("phone", org.primary_phone),
                ("website", org.website),
                ("country", org.country),
            )
            if value
        }
        return cls(
            id=org.id,
            display_name=org.name,
            organization_type=org.type,
            logo_ref=org.logo_url,
            contact_info=contact,
        )

    @property
    def can_supply(self) -> bool:
        return self.organization_type in (OrganizationType.SUPPLIER, OrganizationType.BOTH)


class AccountDirectory:
    """Read-only view of organizations. Inactive accounts resolve as not found."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_profile(self, organization_id: uuid.UUID) -> CompanyProfile | None:
        result = await self.db.execute(
            select(Organization).where(
                Organization.id == organization_id,
                Organization.is_active.is_(True),
            )
        )
        org = result.scalar_one_or_none()
        return CompanyProfile.from_organization(org) if org else None

    async def get_profiles(
        self, organization_ids: Iterable[uuid.UUID]
    ) -> dict[uuid.UUID, CompanyProfile]:
        ids = {org_id for org_id in organization_ids if org_id is not None}
        if not ids:
            return {}
        result = await self.db.execute(
            select(Organization).where(
                Organization.id.in_(ids),
                Organization.is_active.is_(True),
            )
        )
        return {
            org.id: CompanyProfile.from_organization(org)
            for org in result.scalars().all()
        }
