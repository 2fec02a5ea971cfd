"""Message ledger — append-only messages and their delivery/read status."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from src.config import settings
from src.exceptions import ValidationException
from src.models.enums import MessageStatus, MessageType, ThreadKind
from src.models.message import Message
from src.modules.events.outbox_service import OutboxService
from src.modules.messaging.constants import EVENT_MESSAGE_POSTED, UNREAD_STATUSES
from src.modules.messaging.thread_ref import ThreadRef

logger = logging.getLogger(__name__)


def classify_message(attachments: list[dict], system: bool = False) -> MessageType:
    """FILE whenever an attachment is present, regardless of accompanying text."""
    if system:
        return MessageType.SYSTEM
    if attachments:
        return MessageType.FILE
    return MessageType.TEXT


class MessageLedgerService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def post(
        self,
        thread: ThreadRef,
        sender_org_id: uuid.UUID,
        recipient_org_id: uuid.UUID,
        body: str | None = None,
        attachments: list[dict] | None = None,
        sent_by: uuid.UUID | None = None,
        system: bool = False,
        is_quote: bool = False,
        quote_details: dict | None = None,
    ) -> Message:
        """Append a message to ``thread``.

        Raises ValidationException when there is neither text nor an
        attachment, or when the text exceeds ``message_max_length``.
        """
        text_body = body.strip() if body else None
        attachments = list(attachments or [])

        if not text_body and not attachments:
            raise ValidationException(
                "Message must contain text or at least one attachment",
                details=[{"field": "body", "message": "Message is empty"}],
            )
        if text_body and len(text_body) > settings.message_max_length:
            raise ValidationException(
                f"Message cannot exceed {settings.message_max_length} characters",
                details=[{"field": "body", "message": "Message is too long"}],
            )
        if sender_org_id == recipient_org_id:
            raise ValidationException("Sender and recipient must be different organizations")

        message = Message(
            **thread.anchor_fields(),
            sender_org_id=sender_org_id,
            recipient_org_id=recipient_org_id,
            sent_by=sent_by,
            body=text_body or None,
            attachments=attachments,
            message_type=classify_message(attachments, system=system),
            status=MessageStatus.SENT,
            is_quote=is_quote,
            quote_details=quote_details,
            created_at=datetime.now(UTC),
        )
        self.db.add(message)
        await self.db.flush()

        outbox = OutboxService(self.db)
        await outbox.publish_event(
            event_type=EVENT_MESSAGE_POSTED,
            aggregate_type=thread.kind.value.lower(),
            aggregate_id=str(thread.id),
            payload={
                "message_id": str(message.id),
                "thread": str(thread),
                "sender_org_id": str(sender_org_id),
                "recipient_org_id": str(recipient_org_id),
                "message_type": message.message_type.value,
            },
        )

        logger.info(
            "Posted %s message %s on %s (%s -> %s)",
            message.message_type.value, message.id, thread, sender_org_id, recipient_org_id,
        )
        return message

    async def mark_delivered(self, thread: ThreadRef, recipient_org_id: uuid.UUID) -> int:
        """Move the recipient's SENT messages on ``thread`` to DELIVERED."""
        result = await self.db.execute(
            update(Message)
            .where(
                thread.clause(),
                Message.recipient_org_id == recipient_org_id,
                Message.status == MessageStatus.SENT,
            )
            .values(status=MessageStatus.DELIVERED, delivered_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def mark_read(
        self,
        thread: ThreadRef,
        recipient_org_id: uuid.UUID,
        read_at: datetime | None = None,
    ) -> int:
        """Mark every unread message addressed to the recipient as READ.

        All rows share one ``read_at`` stamp. Already-read rows are excluded
        by the status filter, so repeating the call updates nothing.
        """
        stamp = read_at or datetime.now(UTC)
        result = await self.db.execute(
            update(Message)
            .where(
                thread.clause(),
                Message.recipient_org_id == recipient_org_id,
                Message.status.in_(UNREAD_STATUSES),
            )
            .values(status=MessageStatus.READ, read_at=stamp)
            .execution_options(synchronize_session=False)
        )
        updated = result.rowcount or 0
        if updated:
            logger.info("Marked %d messages read on %s for %s", updated, thread, recipient_org_id)
        return updated

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def count_unread(self, thread: ThreadRef, recipient_org_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(Message)
            .where(
                thread.clause(),
                Message.recipient_org_id == recipient_org_id,
                Message.status.in_(UNREAD_STATUSES),
            )
        )
        return result.scalar() or 0

    async def count_unread_total(self, recipient_org_id: uuid.UUID) -> int:
        """Unread messages across every thread, for the inbox badge."""
        result = await self.db.execute(
            select(func.count())
            .select_from(Message)
            .where(
                Message.recipient_org_id == recipient_org_id,
                Message.status.in_(UNREAD_STATUSES),
            )
        )
        return result.scalar() or 0

    async def latest_message(self, thread: ThreadRef) -> Message | None:
        result = await self.db.execute(
            select(Message)
            .where(thread.clause())
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_messages(
        self,
        thread: ThreadRef,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Message], int]:
        """Messages on ``thread`` in chronological order."""
        total_result = await self.db.execute(
            select(func.count()).select_from(Message).where(thread.clause())
        )
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(Message)
            .where(thread.clause())
            .order_by(Message.created_at.asc(), Message.id.asc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    # ------------------------------------------------------------------
    # Batch reads for the conversation inbox
    # ------------------------------------------------------------------

    async def unread_counts_by_thread(
        self,
        kind: ThreadKind,
        thread_ids: list[uuid.UUID],
        recipient_org_id: uuid.UUID,
    ) -> dict[uuid.UUID, int]:
        if not thread_ids:
            return {}
        column = ThreadRef(kind, thread_ids[0]).column()
        result = await self.db.execute(
            select(column, func.count())
            .where(
                column.in_(thread_ids),
                Message.recipient_org_id == recipient_org_id,
                Message.status.in_(UNREAD_STATUSES),
            )
            .group_by(column)
        )
        return {thread_id: count for thread_id, count in result.all()}

    async def latest_messages_by_thread(
        self,
        kind: ThreadKind,
        thread_ids: list[uuid.UUID],
    ) -> dict[uuid.UUID, Message]:
        """Most recent message per thread, one query for all threads."""
        if not thread_ids:
            return {}
        column = ThreadRef(kind, thread_ids[0]).column()
        ranked = (
            select(
                Message,
                func.row_number()
                .over(
                    partition_by=column,
                    order_by=(Message.created_at.desc(), Message.id.desc()),
                )
                .label("rn"),
            )
            .where(column.in_(thread_ids))
            .subquery()
        )
        latest = aliased(Message, ranked)
        result = await self.db.execute(select(latest).where(ranked.c.rn == 1))
        return {ThreadRef.of(m).id: m for m in result.scalars().all()}
