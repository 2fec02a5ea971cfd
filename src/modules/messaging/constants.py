"""Message ledger event types and status groups."""

from __future__ import annotations

from src.models.enums import MessageStatus

EVENT_MESSAGE_POSTED = "message.posted"

# Statuses that still count toward a recipient's unread total
UNREAD_STATUSES: tuple[MessageStatus, ...] = (
    MessageStatus.SENT,
    MessageStatus.DELIVERED,
)
