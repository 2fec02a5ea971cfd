"""Inquiry model: an RFQ between one inquirer and one supplier, with its quotes."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.models.enums import (
    InquiryPriority,
    InquiryStatus,
    InquiryType,
    InquiryUnit,
    Incoterm,
    ShippingMethod,
    Urgency,
)

if TYPE_CHECKING:
    from src.models.inquiry_quote import InquiryQuote
    from src.models.inquiry_transition import InquiryTransition
    from src.models.organization import Organization


class Inquiry(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Pre-sale inquiry / RFQ between one buyer and one supplier.

    ``version`` is the ORM version counter: every flush that touches the row
    bumps it and fails with ``StaleDataError`` when another writer got there
    first.
    """

    __tablename__ = "inquiries"

    inquiry_number: Mapped[str] = mapped_column(
        String(20), nullable=False, unique=True
    )
    inquiry_type: Mapped[InquiryType] = mapped_column(
        nullable=False, server_default="PRODUCT_INQUIRY"
    )
    inquirer_org_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    supplier_org_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    product_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))

    # Content
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(String(2000), nullable=False)
    requested_quantity: Mapped[int | None] = mapped_column(Integer)
    unit: Mapped[InquiryUnit] = mapped_column(nullable=False, server_default="PIECES")
    custom_specifications: Mapped[str | None] = mapped_column(String(500))
    budget_min: Mapped[Decimal | None] = mapped_column(Numeric(15, 2))
    budget_max: Mapped[Decimal | None] = mapped_column(Numeric(15, 2))
    budget_currency: Mapped[str] = mapped_column(
        String(3), nullable=False, server_default="USD"
    )
    urgency: Mapped[Urgency] = mapped_column(nullable=False, server_default="FLEXIBLE")
    required_by: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Shipping preferences
    shipping_method: Mapped[ShippingMethod | None] = mapped_column()
    incoterms: Mapped[Incoterm | None] = mapped_column()
    delivery_address: Mapped[str | None] = mapped_column(String(300))

    # Reference files for the whole inquiry; message attachments live on the ledger
    attachments: Mapped[list] = mapped_column(JSONB, nullable=False, server_default="[]")
    # Supplier-only working notes, never shown to the inquirer
    internal_notes: Mapped[str | None] = mapped_column(Text)

    # Lifecycle
    status: Mapped[InquiryStatus] = mapped_column(nullable=False, server_default="OPEN")
    priority: Mapped[InquiryPriority] = mapped_column(
        nullable=False, server_default="MEDIUM"
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    read_by_inquirer: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default="true"
    )
    read_by_supplier: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default="false"
    )
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    converted_order_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="SET NULL"),
    )
    converted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    version: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")

    # Relationships (lazy="noload" for performance)
    inquirer_organization: Mapped[Organization] = relationship(
        "Organization", foreign_keys=[inquirer_org_id], lazy="noload"
    )
    supplier_organization: Mapped[Organization] = relationship(
        "Organization", foreign_keys=[supplier_org_id], lazy="noload"
    )
    quotes: Mapped[list[InquiryQuote]] = relationship(
        "InquiryQuote",
        back_populates="inquiry",
        lazy="noload",
        cascade="all, delete-orphan",
        order_by="InquiryQuote.quoted_at",
    )
    transitions: Mapped[list[InquiryTransition]] = relationship(
        "InquiryTransition", back_populates="inquiry", lazy="noload", cascade="all, delete-orphan"
    )

    __mapper_args__ = {"version_id_col": version, "eager_defaults": True}

    __table_args__ = (
        CheckConstraint("inquirer_org_id <> supplier_org_id", name="ck_inquiries_distinct_parties"),
        CheckConstraint(
            "budget_min IS NULL OR budget_max IS NULL OR budget_min <= budget_max",
            name="ck_inquiries_budget_range",
        ),
        Index("ix_inquiries_inquirer_org_id", "inquirer_org_id"),
        Index("ix_inquiries_supplier_org_id", "supplier_org_id"),
        Index("ix_inquiries_status", "status"),
        Index(
            "ix_inquiries_expires_at",
            "expires_at",
            postgresql_where="status NOT IN ('CONVERTED', 'EXPIRED', 'REJECTED', 'ARCHIVED')",
        ),
    )

    def party_role(self, organization_id: uuid.UUID) -> str | None:
        """Return ``"inquirer"``, ``"supplier"`` or None for a non-party."""
        if organization_id == self.inquirer_org_id:
            return "inquirer"
        if organization_id == self.supplier_org_id:
            return "supplier"
        return None

    def counterparty_of(self, organization_id: uuid.UUID) -> uuid.UUID:
        if organization_id == self.inquirer_org_id:
            return self.supplier_org_id
        return self.inquirer_org_id


class InquiryNumberCounter(Base):
    """Per-year counter backing ``INQ-<year>-<seq>`` numbers."""

    __tablename__ = "inquiry_number_counters"

    year: Mapped[int] = mapped_column(Integer, primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
