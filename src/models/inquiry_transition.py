from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, UUIDPrimaryKeyMixin
from src.models.enums import InquiryStatus, InquiryTransitionType

if TYPE_CHECKING:
    from src.models.inquiry import Inquiry


class InquiryTransition(UUIDPrimaryKeyMixin, Base):
    """Immutable audit log for inquiry state transitions. No updated_at column."""

    __tablename__ = "inquiry_transitions"

    inquiry_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("inquiries.id", ondelete="CASCADE"),
        nullable=False,
    )
    from_status: Mapped[InquiryStatus] = mapped_column(nullable=False)
    to_status: Mapped[InquiryStatus] = mapped_column(nullable=False)
    transition_type: Mapped[InquiryTransitionType] = mapped_column(nullable=False)
    triggered_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    trigger_source: Mapped[str] = mapped_column(
        String(20), nullable=False, server_default="USER"
    )
    reason: Mapped[str | None] = mapped_column(Text)
    metadata_extra: Mapped[dict] = mapped_column(
        JSONB, nullable=False, server_default="{}"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    inquiry: Mapped[Inquiry] = relationship(
        "Inquiry", back_populates="transitions", lazy="noload"
    )

    __table_args__ = (
        Index("ix_inquiry_transitions_inquiry_id", "inquiry_id"),
        Index("ix_inquiry_transitions_to_status", "to_status"),
    )
