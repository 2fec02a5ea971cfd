"""Order-anchored threads: party checks in front of the message ledger."""

from __future__ import annotations

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from src.exceptions import InvalidStateException
from src.models.message import Message
from src.models.order import Order
from src.modules.messaging.ledger_service import MessageLedgerService
from src.modules.messaging.thread_ref import ThreadRef
from src.modules.order.service import OrderService


class OrderThreadService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.orders = OrderService(db)
        self.ledger = MessageLedgerService(db)

    @staticmethod
    def _counterparty(order: Order, organization_id: uuid.UUID) -> uuid.UUID:
        other = order.supplier_org_id if organization_id == order.buyer_org_id else order.buyer_org_id
        if other is None:
            raise InvalidStateException(
                f"Order {order.order_number} has no counterparty to message"
            )
        return other

    async def post_message(
        self,
        order_id: uuid.UUID,
        organization_id: uuid.UUID,
        sent_by: uuid.UUID,
        body: str | None = None,
        attachments: list[dict] | None = None,
    ) -> Message:
        order = await self.orders.get_order_for_party(order_id, organization_id)
        return await self.ledger.post(
            ThreadRef.order(order.id),
            sender_org_id=organization_id,
            recipient_org_id=self._counterparty(order, organization_id),
            body=body,
            attachments=attachments,
            sent_by=sent_by,
        )

    async def list_messages(
        self,
        order_id: uuid.UUID,
        organization_id: uuid.UUID,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Message], int]:
        order = await self.orders.get_order_for_party(order_id, organization_id)
        thread = ThreadRef.order(order.id)
        await self.ledger.mark_delivered(thread, organization_id)
        return await self.ledger.list_messages(thread, limit, offset)

    async def mark_read(self, order_id: uuid.UUID, organization_id: uuid.UUID) -> int:
        order = await self.orders.get_order_for_party(order_id, organization_id)
        return await self.ledger.mark_read(ThreadRef.order(order.id), organization_id)
