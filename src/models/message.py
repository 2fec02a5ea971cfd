"""Message ledger entry — one message on exactly one order or inquiry thread."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, validates

from src.database.base import Base, UUIDPrimaryKeyMixin
from src.models.enums import MessageStatus, MessageType

# sent -> delivered -> read
STATUS_RANK: dict[MessageStatus, int] = {
    MessageStatus.SENT: 0,
    MessageStatus.DELIVERED: 1,
    MessageStatus.READ: 2,
}


class Message(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "messages"

    order_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
    )
    inquiry_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("inquiries.id", ondelete="CASCADE"),
    )
    sender_org_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    recipient_org_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    sent_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    body: Mapped[str | None] = mapped_column(Text)
    attachments: Mapped[list] = mapped_column(JSONB, nullable=False, server_default="[]")
    message_type: Mapped[MessageType] = mapped_column(nullable=False, server_default="TEXT")
    status: Mapped[MessageStatus] = mapped_column(nullable=False, server_default="SENT")
    is_quote: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    quote_details: Mapped[dict | None] = mapped_column(JSONB)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        CheckConstraint(
            "(order_id IS NULL) <> (inquiry_id IS NULL)",
            name="ck_messages_single_thread",
        ),
        Index("ix_messages_order_thread", "order_id", "created_at"),
        Index("ix_messages_inquiry_thread", "inquiry_id", "created_at"),
        Index(
            "ix_messages_unread_recipient",
            "recipient_org_id",
            postgresql_where="status <> 'READ'",
        ),
    )

    @validates("status")
    def _validate_status(self, key: str, value: MessageStatus) -> MessageStatus:
        current = self.status
        if current is not None and STATUS_RANK[value] < STATUS_RANK[current]:
            raise ValueError(
                f"Message status cannot move backward from {current.value} to {value.value}"
            )
        return value

    @property
    def thread_id(self) -> uuid.UUID:
        return self.order_id or self.inquiry_id
