"""Order model — minimal order store record referenced by order threads."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, Numeric, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.models.enums import OrderStatus

if TYPE_CHECKING:
    from src.models.organization import Organization


class Order(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "orders"

    order_number: Mapped[str] = mapped_column(
        String(50), nullable=False, unique=True
    )
    buyer_org_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    # Nullable: a removed supplier leaves the thread without a counterparty.
    supplier_org_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="SET NULL"),
    )
    inquiry_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("inquiries.id", ondelete="SET NULL", use_alter=True),
    )
    status: Mapped[OrderStatus] = mapped_column(
        nullable=False, server_default="PENDING"
    )
    quantity: Mapped[int | None] = mapped_column()
    unit_price: Mapped[Decimal | None] = mapped_column(Numeric(15, 2))
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False
    )
    currency: Mapped[str] = mapped_column(
        String(3), nullable=False, server_default="USD"
    )
    delivery_address: Mapped[str | None] = mapped_column(String(300))
    notes: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    metadata_extra: Mapped[dict] = mapped_column(
        JSONB, nullable=False, server_default="{}"
    )

    __mapper_args__ = {"eager_defaults": True}

    # Relationships
    buyer_organization: Mapped[Organization] = relationship(
        "Organization", foreign_keys=[buyer_org_id], lazy="noload"
    )
    supplier_organization: Mapped[Organization | None] = relationship(
        "Organization", foreign_keys=[supplier_org_id], lazy="noload"
    )

    __table_args__ = (
        Index("ix_orders_buyer_org_id", "buyer_org_id"),
        Index("ix_orders_supplier_org_id", "supplier_org_id"),
        Index("ix_orders_status", "status"),
        Index(
            "ix_orders_inquiry_id",
            "inquiry_id",
            unique=True,
            postgresql_where="inquiry_id IS NOT NULL",
        ),
    )
