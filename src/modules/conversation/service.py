"""Conversation inbox — loads thread candidates and runs the resolver."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy import exists, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.database.errors import translate_storage_errors
from src.exceptions import NotFoundException, ValidationException
from src.models.enums import OrderStatus, ThreadKind
from src.models.inquiry import Inquiry
from src.models.message import Message
from src.models.order import Order
from src.modules.conversation.resolver import (
    Conversation,
    MessagePreview,
    ThreadCandidate,
    apply_filters,
    resolve_conversations,
)
from src.modules.directory.service import AccountDirectory
from src.modules.inquiry.constants import TERMINAL_STATUSES
from src.modules.messaging.ledger_service import MessageLedgerService
from src.modules.messaging.thread_ref import ThreadRef

logger = logging.getLogger(__name__)

CONVERSATION_FILTERS = ("all", "unread", "active")

CLOSED_ORDER_STATUSES: set[OrderStatus] = {
    OrderStatus.COMPLETED,
    OrderStatus.CANCELLED,
}


class ConversationService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = MessageLedgerService(db)
        self.directory = AccountDirectory(db)

    async def list_conversations(
        self,
        organization_id: uuid.UUID | None,
        current_counterparty_id: uuid.UUID | None = None,
        search: str | None = None,
        filter_by: str = "all",
    ) -> list[Conversation]:
        """Ranked inbox for ``organization_id``, one entry per counterparty.

        Storage failures surface as UnavailableException; a partially built
        inbox is never returned.
        """
        if organization_id is None:
            raise ValidationException("Organization is required")
        if filter_by not in CONVERSATION_FILTERS:
            raise ValidationException(
                f"Invalid filter '{filter_by}'",
                details=[{"field": "filter", "message": f"Must be one of {list(CONVERSATION_FILTERS)}"}],
            )
        if current_counterparty_id == organization_id:
            raise ValidationException("An organization cannot open a conversation with itself")

        with translate_storage_errors("conversation resolution"):
            if await self.directory.get_profile(organization_id) is None:
                raise ValidationException(f"Organization {organization_id} not found")

            candidates = await self._load_order_threads(organization_id, current_counterparty_id)
            candidates += await self._load_inquiry_threads(organization_id, current_counterparty_id)

            wanted = {c.counterparty_id for c in candidates if c.counterparty_id is not None}
            if current_counterparty_id is not None:
                wanted.add(current_counterparty_id)
            profiles = await self.directory.get_profiles(wanted)

        if current_counterparty_id is not None and current_counterparty_id not in profiles:
            raise NotFoundException(f"Organization {current_counterparty_id} not found")

        conversations = resolve_conversations(
            candidates,
            profiles,
            current_counterparty=current_counterparty_id,
            now=datetime.now(UTC),
            placeholder_text=settings.conversation_placeholder_text,
        )
        logger.debug(
            "Resolved %d conversations for %s from %d threads",
            len(conversations), organization_id, len(candidates),
        )
        return apply_filters(conversations, search=search, filter_by=filter_by)

    # ------------------------------------------------------------------
    # Candidate loading
    # ------------------------------------------------------------------

    async def _previews(
        self, kind: ThreadKind, thread_ids: list[uuid.UUID], organization_id: uuid.UUID
    ) -> tuple[dict[uuid.UUID, MessagePreview], dict[uuid.UUID, int]]:
        latest = await self.ledger.latest_messages_by_thread(kind, thread_ids)
        unread = await self.ledger.unread_counts_by_thread(kind, thread_ids, organization_id)
        previews = {thread_id: MessagePreview.from_message(m) for thread_id, m in latest.items()}
        return previews, unread

    async def _load_order_threads(
        self, organization_id: uuid.UUID, current_counterparty_id: uuid.UUID | None
    ) -> list[ThreadCandidate]:
        """Order threads with messages, plus every order with the current counterparty."""
        has_messages = exists().where(Message.order_id == Order.id)
        wanted = has_messages
        if current_counterparty_id is not None:
            wanted = or_(
                has_messages,
                Order.buyer_org_id == current_counterparty_id,
                Order.supplier_org_id == current_counterparty_id,
            )
        result = await self.db.execute(
            select(Order).where(
                or_(
                    Order.buyer_org_id == organization_id,
                    Order.supplier_org_id == organization_id,
                ),
                wanted,
            )
        )
        orders = list(result.scalars().all())
        previews, unread = await self._previews(
            ThreadKind.ORDER, [o.id for o in orders], organization_id
        )
        return [
            ThreadCandidate(
                thread=ThreadRef.order(order.id),
                counterparty_id=(
                    order.supplier_org_id
                    if order.buyer_org_id == organization_id
                    else order.buyer_org_id
                ),
                status=order.status.value,
                created_at=order.created_at,
                reference=order.order_number,
                last_message=previews.get(order.id),
                unread_count=unread.get(order.id, 0),
                is_closed=order.status in CLOSED_ORDER_STATUSES,
            )
            for order in orders
        ]

    async def _load_inquiry_threads(
        self, organization_id: uuid.UUID, current_counterparty_id: uuid.UUID | None
    ) -> list[ThreadCandidate]:
        """Inquiry threads with messages, plus every inquiry with the current counterparty."""
        has_messages = exists().where(Message.inquiry_id == Inquiry.id)
        wanted = has_messages
        if current_counterparty_id is not None:
            wanted = or_(
                has_messages,
                Inquiry.inquirer_org_id == current_counterparty_id,
                Inquiry.supplier_org_id == current_counterparty_id,
            )
        result = await self.db.execute(
            select(Inquiry).where(
                or_(
                    Inquiry.inquirer_org_id == organization_id,
                    Inquiry.supplier_org_id == organization_id,
                ),
                wanted,
            )
        )
        inquiries = list(result.scalars().all())
        previews, unread = await self._previews(
            ThreadKind.INQUIRY, [i.id for i in inquiries], organization_id
        )
        return [
            ThreadCandidate(
                thread=ThreadRef.inquiry(inquiry.id),
                counterparty_id=inquiry.counterparty_of(organization_id),
                status=inquiry.status.value,
                created_at=inquiry.created_at,
                reference=inquiry.inquiry_number,
                subject=inquiry.subject,
                last_message=previews.get(inquiry.id),
                unread_count=unread.get(inquiry.id, 0),
                is_closed=inquiry.status in TERMINAL_STATUSES,
            )
            for inquiry in inquiries
        ]
