"""Order store access — lookup for order threads and creation from inquiries."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.exceptions import NotFoundException
from src.models.enums import OrderStatus
from src.models.order import Order
from src.modules.events.outbox_service import OutboxService

logger = logging.getLogger(__name__)

EVENT_ORDER_CREATED = "order.created"


class OrderService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Reference number generation
    # ------------------------------------------------------------------

    async def _generate_order_number(self) -> str:
        """Generate ORD-YYYY-NNNNNN reference using a DB sequence."""
        result = await self.db.execute(text("SELECT nextval('order_number_seq')"))
        seq_val = result.scalar()
        year = datetime.now(UTC).year
        return f"ORD-{year}-{seq_val:06d}"

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_order(self, order_id: uuid.UUID) -> Order:
        result = await self.db.execute(select(Order).where(Order.id == order_id))
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundException(f"Order {order_id} not found")
        return order

    async def get_order_for_party(
        self, order_id: uuid.UUID, organization_id: uuid.UUID
    ) -> Order:
        """Get an order the organization is a party to.

        Orders belonging to other organizations are reported as not found.
        """
        order = await self.get_order(order_id)
        if organization_id not in (order.buyer_org_id, order.supplier_org_id):
            raise NotFoundException(f"Order {order_id} not found")
        return order

    async def find_by_inquiry(self, inquiry_id: uuid.UUID) -> Order | None:
        result = await self.db.execute(select(Order).where(Order.inquiry_id == inquiry_id))
        return result.scalars().first()

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_order(
        self,
        buyer_org_id: uuid.UUID,
        supplier_org_id: uuid.UUID,
        total_amount: Decimal,
        currency: str,
        quantity: int | None = None,
        unit_price: Decimal | None = None,
        inquiry_id: uuid.UUID | None = None,
        delivery_address: str | None = None,
        notes: str | None = None,
        created_by: uuid.UUID | None = None,
        metadata: dict | None = None,
    ) -> Order:
        """Create an order in PENDING status."""
        order_number = await self._generate_order_number()
        order = Order(
            order_number=order_number,
            buyer_org_id=buyer_org_id,
            supplier_org_id=supplier_org_id,
            inquiry_id=inquiry_id,
            status=OrderStatus.PENDING,
            quantity=quantity,
            unit_price=unit_price,
            total_amount=total_amount,
            currency=currency,
            delivery_address=delivery_address,
            notes=notes,
            created_by=created_by,
            metadata_extra=metadata or {},
        )
        self.db.add(order)
        await self.db.flush()

        outbox = OutboxService(self.db)
        await outbox.publish_event(
            event_type=EVENT_ORDER_CREATED,
            aggregate_type="order",
            aggregate_id=str(order.id),
            payload={
                "order_id": str(order.id),
                "order_number": order_number,
                "buyer_org_id": str(buyer_org_id),
                "supplier_org_id": str(supplier_org_id),
                "inquiry_id": str(inquiry_id) if inquiry_id else None,
                "total_amount": str(total_amount),
                "currency": currency,
            },
        )
        logger.info("Created order %s (%s)", order.id, order_number)
        return order
