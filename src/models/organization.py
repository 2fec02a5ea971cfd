from __future__ import annotations

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.models.enums import OrganizationStatus, OrganizationType


class Organization(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Company account. Owned by the account directory; read-only here."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[OrganizationType] = mapped_column(nullable=False)
    status: Mapped[OrganizationStatus] = mapped_column(server_default="ACTIVE", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, server_default="true", nullable=False)
    logo_url: Mapped[str | None] = mapped_column(String(500))
    primary_email: Mapped[str | None] = mapped_column(String(255))
    primary_phone: Mapped[str | None] = mapped_column(String(20))
    website: Mapped[str | None] = mapped_column(String(255))
    country: Mapped[str | None] = mapped_column(String(2))

    __table_args__ = (
        Index("ix_organizations_type", "type"),
    )
