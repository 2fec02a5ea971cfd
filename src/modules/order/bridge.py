"""Accepted inquiry -> purchase order conversion.

The order is committed before the inquiry is marked converted. If the second
step fails the order stays and a reconciliation event is recorded instead of
retrying, since a retry would create a duplicate order.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from src.exceptions import (
    ForbiddenException,
    InvalidStateException,
    ReconciliationRequiredException,
)
from src.models.enums import InquiryStatus, QuoteStatus
from src.models.inquiry import Inquiry
from src.models.order import Order
from src.modules.events.outbox_service import OutboxService
from src.modules.inquiry.constants import EVENT_CONVERSION_RECONCILIATION_REQUIRED
from src.modules.inquiry.service import InquiryService
from src.modules.messaging.ledger_service import MessageLedgerService
from src.modules.messaging.thread_ref import ThreadRef
from src.modules.order.service import OrderService

logger = logging.getLogger(__name__)


class InquiryOrderBridge:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.inquiries = InquiryService(db)
        self.orders = OrderService(db)

    async def convert(
        self,
        inquiry_id: uuid.UUID,
        buyer_org_id: uuid.UUID,
        created_by: uuid.UUID,
        delivery_address: str | None = None,
        notes: str | None = None,
        expected_version: int | None = None,
    ) -> tuple[Inquiry, Order]:
        """Create the order for the accepted quote and convert the inquiry.

        Raises ReconciliationRequiredException when the order exists but the
        inquiry could not be moved to CONVERTED.
        """
        inquiry = await self.inquiries.get_inquiry_for_party(inquiry_id, buyer_org_id)
        if inquiry.party_role(buyer_org_id) != "inquirer":
            raise ForbiddenException("Only the inquirer can convert an inquiry to an order")
        self.inquiries.check_version(inquiry, expected_version)
        if inquiry.status != InquiryStatus.ACCEPTED:
            raise InvalidStateException(
                f"Only accepted inquiries can be converted; inquiry "
                f"{inquiry.inquiry_number} is {inquiry.status.value}"
            )
        if inquiry.converted_order_id is not None:
            raise InvalidStateException(
                f"Inquiry {inquiry.inquiry_number} was already converted"
            )
        accepted = [q for q in inquiry.quotes if q.status == QuoteStatus.ACCEPTED]
        if len(accepted) != 1:
            raise InvalidStateException(
                f"Inquiry {inquiry.inquiry_number} has {len(accepted)} accepted quotes; expected 1"
            )
        quote = accepted[0]
        version = inquiry.version

        # An order left behind by an earlier half-finished conversion.
        existing = await self.orders.find_by_inquiry(inquiry.id)
        if existing is not None:
            raise ReconciliationRequiredException(
                f"Order {existing.order_number} already exists for inquiry "
                f"{inquiry.inquiry_number}; reconcile it instead of converting again",
                details=[{"field": "order_id", "message": str(existing.id)}],
            )

        order = await self.orders.create_order(
            buyer_org_id=inquiry.inquirer_org_id,
            supplier_org_id=inquiry.supplier_org_id,
            total_amount=quote.total_price,
            currency=quote.currency,
            quantity=inquiry.requested_quantity,
            unit_price=quote.unit_price,
            inquiry_id=inquiry.id,
            delivery_address=delivery_address or inquiry.delivery_address,
            notes=notes,
            created_by=created_by,
            metadata={"quote_id": str(quote.id), "inquiry_number": inquiry.inquiry_number},
        )
        order_id, order_number = order.id, order.order_number
        # The order is durable from here on, whatever happens to the inquiry.
        await self.db.commit()

        try:
            inquiry = await self.inquiries.convert_to_order(
                inquiry_id, order_id, triggered_by=created_by, expected_version=version
            )
        except Exception as exc:
            await self.db.rollback()
            await self._record_reconciliation(inquiry_id, order_id, order_number, exc)
            raise ReconciliationRequiredException(
                f"Order {order_number} was created but inquiry {inquiry_id} "
                "could not be marked converted; manual reconciliation required",
                details=[{"field": "order_id", "message": str(order_id)}],
            ) from exc

        await MessageLedgerService(self.db).post(
            ThreadRef.inquiry(inquiry.id),
            sender_org_id=inquiry.inquirer_org_id,
            recipient_org_id=inquiry.supplier_org_id,
            body=f"Inquiry converted to order {order_number}",
            sent_by=created_by,
            system=True,
        )
        logger.info("Inquiry %s converted to order %s", inquiry.inquiry_number, order_number)
        return inquiry, order

    async def _record_reconciliation(
        self,
        inquiry_id: uuid.UUID,
        order_id: uuid.UUID,
        order_number: str,
        error: Exception,
    ) -> None:
        logger.error(
            "Inquiry %s conversion incomplete: order %s (%s) exists but status update failed: %s",
            inquiry_id, order_id, order_number, error,
        )
        outbox = OutboxService(self.db)
        await outbox.publish_event(
            event_type=EVENT_CONVERSION_RECONCILIATION_REQUIRED,
            aggregate_type="inquiry",
            aggregate_id=str(inquiry_id),
            payload={
                "inquiry_id": str(inquiry_id),
                "order_id": str(order_id),
                "order_number": order_number,
                "error": str(error),
            },
        )
        await self.db.commit()
