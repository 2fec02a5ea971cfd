from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Numeric, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.models.enums import QuoteStatus

if TYPE_CHECKING:
    from src.models.inquiry import Inquiry


class InquiryQuote(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Priced offer owned by exactly one inquiry."""

    __tablename__ = "inquiry_quotes"

    inquiry_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("inquiries.id", ondelete="CASCADE"),
        nullable=False,
    )
    quoted_by_org_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    quoted_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    unit_price: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, server_default="USD")
    valid_until: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    terms: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)
    quoted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    status: Mapped[QuoteStatus] = mapped_column(nullable=False, server_default="PENDING")
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    inquiry: Mapped[Inquiry] = relationship("Inquiry", back_populates="quotes", lazy="noload")

    __table_args__ = (
        CheckConstraint("unit_price > 0", name="ck_inquiry_quotes_unit_price_positive"),
        CheckConstraint("total_price >= 0", name="ck_inquiry_quotes_total_price"),
        Index("ix_inquiry_quotes_inquiry_id", "inquiry_id"),
        # At most one accepted quote per inquiry.
        Index(
            "uq_inquiry_quotes_one_accepted",
            "inquiry_id",
            unique=True,
            postgresql_where="status = 'ACCEPTED'",
        ),
    )
