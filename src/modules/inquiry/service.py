"""Inquiry lifecycle service — creation, messages, quotes, state machine."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime, timedelta
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload
from sqlalchemy.orm.exc import StaleDataError

from src.config import settings
from src.exceptions import (
    ConflictException,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)
from src.models.enums import (
    InquiryPriority,
    InquiryStatus,
    InquiryTransitionType,
    InquiryType,
    InquiryUnit,
    Incoterm,
    QuoteStatus,
    ShippingMethod,
    Urgency,
)
from src.models.inquiry import Inquiry, InquiryNumberCounter
from src.models.inquiry_quote import InquiryQuote
from src.models.inquiry_transition import InquiryTransition
from src.models.message import Message
from src.modules.directory.service import AccountDirectory
from src.modules.events.outbox_service import OutboxService
from src.modules.inquiry.constants import (
    ASSIGN_TARGETS,
    ASSIGNABLE_FROM,
    ATTACHMENT_KINDS,
    EVENT_INQUIRY_CREATED,
    EVENT_QUOTE_REJECTED,
    MESSAGE_MAX_LENGTH,
    NEW_INQUIRY_WINDOW_DAYS,
    NOTE_MAX_LENGTH,
    RESPONDED_STATUSES,
    SUBJECT_MAX_LENGTH,
    SWEEP_EXCLUDED_STATUSES,
    TERMINAL_STATUSES,
    TRANSITION_EVENT_MAP,
    VALID_TRANSITIONS,
)
from src.modules.messaging.ledger_service import MessageLedgerService
from src.modules.messaging.thread_ref import ThreadRef

logger = logging.getLogger(__name__)


def format_inquiry_number(year: int, sequence: int) -> str:
    """``INQ-<year>-<6-digit sequence>``; the sequence restarts every year."""
    return f"INQ-{year}-{sequence:06d}"


def _percent(part: int, total: int) -> int:
    if not total:
        return 0
    return (200 * part + total) // (2 * total)


class InquiryService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = MessageLedgerService(db)

    # ------------------------------------------------------------------
    # Inquiry number generation
    # ------------------------------------------------------------------

    async def _next_inquiry_number(self, year: int) -> str:
        """Atomically bump the counter row for ``year`` and format the number."""
        statement = (
            pg_insert(InquiryNumberCounter)
            .values(year=year, last_value=1)
            .on_conflict_do_update(
                index_elements=[InquiryNumberCounter.year],
                set_={"last_value": InquiryNumberCounter.last_value + 1},
            )
            .returning(InquiryNumberCounter.last_value)
        )
        result = await self.db.execute(statement)
        return format_inquiry_number(year, result.scalar_one())

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _flush(self) -> None:
        """Flush, reporting a lost optimistic-lock race as a conflict."""
        try:
            await self.db.flush()
        except StaleDataError as exc:
            raise ConflictException(
                "Inquiry was modified by another request. Reload and retry."
            ) from exc

    @staticmethod
    def check_version(inquiry: Inquiry, expected_version: int | None) -> None:
        if expected_version is not None and inquiry.version != expected_version:
            raise ConflictException(
                f"Inquiry {inquiry.inquiry_number} is at version {inquiry.version}, "
                f"not {expected_version}. Reload and retry.",
                details=[{"field": "expected_version", "message": f"current version is {inquiry.version}"}],
            )

    @staticmethod
    def _ensure_allowed(inquiry: Inquiry, transition_type: InquiryTransitionType) -> None:
        allowed = VALID_TRANSITIONS.get(inquiry.status, {})
        if transition_type not in allowed:
            raise InvalidStateException(
                f"Cannot perform '{transition_type.value}' on inquiry in status "
                f"'{inquiry.status.value}'. Allowed transitions: "
                f"{[t.value for t in allowed.keys()]}"
            )

    @staticmethod
    def _find_quote(inquiry: Inquiry, quote_id: uuid.UUID) -> InquiryQuote:
        for quote in inquiry.quotes:
            if quote.id == quote_id:
                return quote
        raise NotFoundException(
            f"Quote {quote_id} not found on inquiry {inquiry.inquiry_number}"
        )

    @staticmethod
    def _require_role(inquiry: Inquiry, organization_id: uuid.UUID, role: str, action: str) -> None:
        if inquiry.party_role(organization_id) != role:
            raise ForbiddenException(f"Only the {role} can {action} on this inquiry")

    @staticmethod
    def _party_filter(organization_id: uuid.UUID, as_role: str | None):
        if as_role == "inquirer":
            return Inquiry.inquirer_org_id == organization_id
        if as_role == "supplier":
            return Inquiry.supplier_org_id == organization_id
        return or_(
            Inquiry.inquirer_org_id == organization_id,
            Inquiry.supplier_org_id == organization_id,
        )

    @staticmethod
    def _attachment_errors(attachments: list[dict]) -> list[dict]:
        errors = []
        for i, attachment in enumerate(attachments):
            if not attachment.get("name") or not attachment.get("url"):
                errors.append({"field": f"attachments[{i}]", "message": "Name and URL are required"})
            elif (attachment.get("kind") or "OTHER") not in ATTACHMENT_KINDS:
                errors.append({"field": f"attachments[{i}].kind", "message": "Unknown attachment kind"})
        return errors

    # ------------------------------------------------------------------
    # Create / read
    # ------------------------------------------------------------------

    async def create_inquiry(
        self,
        inquirer_org_id: uuid.UUID,
        created_by: uuid.UUID,
        supplier_org_id: uuid.UUID | None,
        subject: str | None,
        message: str | None,
        inquiry_type: InquiryType = InquiryType.PRODUCT_INQUIRY,
        product_id: uuid.UUID | None = None,
        requested_quantity: int | None = None,
        unit: InquiryUnit = InquiryUnit.PIECES,
        custom_specifications: str | None = None,
        budget_min: Decimal | None = None,
        budget_max: Decimal | None = None,
        budget_currency: str = "USD",
        urgency: Urgency = Urgency.FLEXIBLE,
        required_by: datetime | None = None,
        shipping_method: ShippingMethod | None = None,
        incoterms: Incoterm | None = None,
        delivery_address: str | None = None,
        priority: InquiryPriority = InquiryPriority.MEDIUM,
        expires_at: datetime | None = None,
        attachments: list[dict] | None = None,
    ) -> Inquiry:
        """Create an inquiry in OPEN status and record its opening message."""
        subject = (subject or "").strip()
        message = (message or "").strip()

        errors = []
        if supplier_org_id is None:
            errors.append({"field": "supplier_org_id", "message": "Supplier is required"})
        if not subject:
            errors.append({"field": "subject", "message": "Subject is required"})
        elif len(subject) > SUBJECT_MAX_LENGTH:
            errors.append({"field": "subject", "message": f"Subject cannot exceed {SUBJECT_MAX_LENGTH} characters"})
        if not message:
            errors.append({"field": "message", "message": "Message is required"})
        elif len(message) > MESSAGE_MAX_LENGTH:
            errors.append({"field": "message", "message": f"Message cannot exceed {MESSAGE_MAX_LENGTH} characters"})
        if requested_quantity is not None and requested_quantity < 1:
            errors.append({"field": "requested_quantity", "message": "Quantity must be at least 1"})
        if budget_min is not None and budget_max is not None and budget_min > budget_max:
            errors.append({"field": "budget_max", "message": "Maximum budget is below minimum budget"})
        errors.extend(self._attachment_errors(attachments or []))
        if errors:
            raise ValidationException("Inquiry is missing required information", details=errors)

        if supplier_org_id == inquirer_org_id:
            raise ValidationException("An organization cannot send an inquiry to itself")

        supplier = await AccountDirectory(self.db).get_profile(supplier_org_id)
        if supplier is None:
            raise ValidationException(
                f"Supplier {supplier_org_id} not found",
                details=[{"field": "supplier_org_id", "message": "Unknown supplier"}],
            )
        if not supplier.can_supply:
            raise ValidationException(
                f"Organization {supplier.display_name} does not accept inquiries",
                details=[{"field": "supplier_org_id", "message": "Not a supplier organization"}],
            )

        now = datetime.now(UTC)
        inquiry_number = await self._next_inquiry_number(now.year)
        stamped = [
            {
                "name": a["name"],
                "url": a["url"],
                "kind": a.get("kind") or "OTHER",
                "uploaded_by": a.get("uploaded_by") or str(created_by),
                "uploaded_at": a.get("uploaded_at") or now.isoformat(),
            }
            for a in attachments or []
        ]

        inquiry = Inquiry(
            inquiry_number=inquiry_number,
            inquiry_type=inquiry_type,
            inquirer_org_id=inquirer_org_id,
            supplier_org_id=supplier_org_id,
            created_by=created_by,
            product_id=product_id,
            subject=subject,
            message=message,
            requested_quantity=requested_quantity,
            unit=unit,
            custom_specifications=custom_specifications,
            budget_min=budget_min,
            budget_max=budget_max,
            budget_currency=budget_currency,
            urgency=urgency,
            required_by=required_by,
            shipping_method=shipping_method,
            incoterms=incoterms,
            delivery_address=delivery_address,
            attachments=stamped,
            status=InquiryStatus.OPEN,
            priority=priority,
            expires_at=expires_at or now + timedelta(days=settings.inquiry_default_ttl_days),
            read_by_inquirer=True,
            read_by_supplier=False,
        )
        self.db.add(inquiry)
        await self.db.flush()

        # The opening message starts the transcript without changing status.
        await self.ledger.post(
            ThreadRef.inquiry(inquiry.id),
            sender_org_id=inquirer_org_id,
            recipient_org_id=supplier_org_id,
            body=message,
            sent_by=created_by,
        )

        outbox = OutboxService(self.db)
        await outbox.publish_event(
            event_type=EVENT_INQUIRY_CREATED,
            aggregate_type="inquiry",
            aggregate_id=str(inquiry.id),
            payload={
                "inquiry_id": str(inquiry.id),
                "inquiry_number": inquiry_number,
                "inquirer_org_id": str(inquirer_org_id),
                "supplier_org_id": str(supplier_org_id),
                "inquiry_type": inquiry_type.value,
            },
        )
        logger.info("Created inquiry %s (%s)", inquiry.id, inquiry_number)
        return inquiry

    async def get_inquiry(self, inquiry_id: uuid.UUID) -> Inquiry:
        """Get an inquiry with its quotes. Raises NotFoundException if not found."""
        result = await self.db.execute(
            select(Inquiry)
            .options(joinedload(Inquiry.quotes))
            .where(Inquiry.id == inquiry_id)
            .execution_options(populate_existing=True)
        )
        inquiry = result.unique().scalar_one_or_none()
        if inquiry is None:
            raise NotFoundException(f"Inquiry {inquiry_id} not found")
        return inquiry

    async def get_inquiry_for_party(
        self, inquiry_id: uuid.UUID, organization_id: uuid.UUID
    ) -> Inquiry:
        """Get an inquiry the organization is a party to.

        Inquiries between other organizations are reported as not found so
        their existence is not disclosed.
        """
        inquiry = await self.get_inquiry(inquiry_id)
        if inquiry.party_role(organization_id) is None:
            raise NotFoundException(f"Inquiry {inquiry_id} not found")
        return inquiry

    async def list_inquiries(
        self,
        organization_id: uuid.UUID,
        as_role: str | None = None,
        status: InquiryStatus | None = None,
        priority: InquiryPriority | None = None,
        search: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Inquiry], int]:
        """List inquiries where the organization is the inquirer or the supplier."""
        filters = [self._party_filter(organization_id, as_role)]
        if status is not None:
            filters.append(Inquiry.status == status)
        if priority is not None:
            filters.append(Inquiry.priority == priority)
        if search:
            pattern = f"%{search}%"
            filters.append(
                or_(
                    Inquiry.subject.ilike(pattern),
                    Inquiry.message.ilike(pattern),
                    Inquiry.inquiry_number.ilike(pattern),
                )
            )

        total_result = await self.db.execute(
            select(func.count()).select_from(Inquiry).where(*filters)
        )
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(Inquiry)
            .where(*filters)
            .order_by(Inquiry.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def duplicate_inquiry(
        self,
        inquiry_id: uuid.UUID,
        organization_id: uuid.UUID,
        created_by: uuid.UUID,
    ) -> Inquiry:
        """Open a fresh inquiry with the same parties and request details.

        Quotes, transcript, notes and status history are not copied. The copy
        gets a new number and expiry and goes through the normal create checks.
        """
        original = await self.get_inquiry_for_party(inquiry_id, organization_id)
        self._require_role(original, organization_id, "inquirer", "duplicate the inquiry")

        now = datetime.now(UTC)
        required_by = original.required_by
        if required_by is not None and required_by <= now:
            required_by = None

        duplicate = await self.create_inquiry(
            inquirer_org_id=original.inquirer_org_id,
            created_by=created_by,
            supplier_org_id=original.supplier_org_id,
            subject=f"Copy of {original.subject}"[:SUBJECT_MAX_LENGTH],
            message=original.message,
            inquiry_type=original.inquiry_type,
            product_id=original.product_id,
            requested_quantity=original.requested_quantity,
            unit=original.unit,
            custom_specifications=original.custom_specifications,
            budget_min=original.budget_min,
            budget_max=original.budget_max,
            budget_currency=original.budget_currency,
            urgency=original.urgency,
            required_by=required_by,
            shipping_method=original.shipping_method,
            incoterms=original.incoterms,
            delivery_address=original.delivery_address,
            priority=original.priority,
            attachments=list(original.attachments or []),
        )
        logger.info(
            "Duplicated inquiry %s as %s", original.inquiry_number, duplicate.inquiry_number
        )
        return duplicate

    async def get_stats(
        self,
        organization_id: uuid.UUID,
        as_role: str | None = "supplier",
        now: datetime | None = None,
    ) -> dict:
        """Inquiry counts and response/conversion rates for one organization.

        Rates are whole percentages of the total, rounded half up.
        """
        now = now or datetime.now(UTC)
        party = self._party_filter(organization_id, as_role)

        result = await self.db.execute(
            select(Inquiry.status, func.count())
            .where(party)
            .group_by(Inquiry.status)
        )
        counts = {status: count for status, count in result.all()}

        new_result = await self.db.execute(
            select(func.count())
            .select_from(Inquiry)
            .where(
                party,
                Inquiry.status == InquiryStatus.OPEN,
                Inquiry.created_at >= now - timedelta(days=NEW_INQUIRY_WINDOW_DAYS),
            )
        )

        total = sum(counts.values())
        responded = sum(counts.get(s, 0) for s in RESPONDED_STATUSES)
        converted = counts.get(InquiryStatus.CONVERTED, 0)
        return {
            "as_role": as_role,
            "total": total,
            "new": new_result.scalar() or 0,
            "responded": responded,
            "converted": converted,
            "response_rate": _percent(responded, total),
            "conversion_rate": _percent(converted, total),
            "by_status": {s.value: counts.get(s, 0) for s in InquiryStatus},
        }

    # ------------------------------------------------------------------
    # Transcript
    # ------------------------------------------------------------------

    async def append_message(
        self,
        inquiry_id: uuid.UUID,
        sender_org_id: uuid.UUID,
        sent_by: uuid.UUID,
        body: str | None = None,
        attachments: list[dict] | None = None,
        is_quote: bool = False,
        quote_details: dict | None = None,
        expected_version: int | None = None,
    ) -> Message:
        """Post a message on the inquiry thread.

        The first message on an OPEN inquiry moves it to RESPONDED. Quote
        messages carry their details inline on the ledger entry; they do not
        create an InquiryQuote.
        """
        inquiry = await self.get_inquiry_for_party(inquiry_id, sender_org_id)
        self.check_version(inquiry, expected_version)

        if inquiry.status == InquiryStatus.ARCHIVED:
            raise InvalidStateException(
                f"Inquiry {inquiry.inquiry_number} is archived and accepts no messages"
            )
        if is_quote and not quote_details:
            raise ValidationException(
                "Quote messages require quote details",
                details=[{"field": "quote_details", "message": "Required when is_quote is set"}],
            )
        if is_quote and inquiry.status in TERMINAL_STATUSES:
            raise InvalidStateException(
                f"Inquiry {inquiry.inquiry_number} is {inquiry.status.value} and accepts no quotes"
            )

        message = await self.ledger.post(
            ThreadRef.inquiry(inquiry.id),
            sender_org_id=sender_org_id,
            recipient_org_id=inquiry.counterparty_of(sender_org_id),
            body=body,
            attachments=attachments,
            sent_by=sent_by,
            is_quote=is_quote,
            quote_details=quote_details if is_quote else None,
        )

        if inquiry.party_role(sender_org_id) == "inquirer":
            inquiry.read_by_supplier = False
        else:
            inquiry.read_by_inquirer = False

        if inquiry.status == InquiryStatus.OPEN:
            await self._transition(
                inquiry,
                InquiryTransitionType.RESPOND,
                triggered_by=sent_by,
                metadata={"message_id": str(message.id)},
            )
        else:
            await self._flush()
        return message

    async def list_messages(
        self,
        inquiry_id: uuid.UUID,
        organization_id: uuid.UUID,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Message], int]:
        inquiry = await self.get_inquiry_for_party(inquiry_id, organization_id)
        thread = ThreadRef.inquiry(inquiry.id)
        await self.ledger.mark_delivered(thread, organization_id)
        return await self.ledger.list_messages(thread, limit, offset)

    async def mark_read(self, inquiry_id: uuid.UUID, organization_id: uuid.UUID) -> int:
        """Mark the reader's incoming messages read and raise their read flag."""
        inquiry = await self.get_inquiry_for_party(inquiry_id, organization_id)
        now = datetime.now(UTC)
        updated = await self.ledger.mark_read(
            ThreadRef.inquiry(inquiry.id), organization_id, read_at=now
        )

        if inquiry.party_role(organization_id) == "inquirer":
            if not inquiry.read_by_inquirer:
                inquiry.read_by_inquirer = True
                inquiry.read_at = now
        elif not inquiry.read_by_supplier:
            inquiry.read_by_supplier = True
            inquiry.read_at = now
        await self._flush()
        return updated

    # ------------------------------------------------------------------
    # Supplier notes
    # ------------------------------------------------------------------

    async def add_note(
        self,
        inquiry_id: uuid.UUID,
        organization_id: uuid.UUID,
        note: str | None,
        expected_version: int | None = None,
    ) -> Inquiry:
        """Append a timestamped line to the supplier's internal notes.

        Notes are private to the supplier and may be added in any status.
        """
        inquiry = await self.get_inquiry_for_party(inquiry_id, organization_id)
        self._require_role(inquiry, organization_id, "supplier", "add internal notes")
        self.check_version(inquiry, expected_version)

        note = (note or "").strip()
        if not note:
            raise ValidationException(
                "Note cannot be empty",
                details=[{"field": "note", "message": "Note is required"}],
            )
        if len(note) > NOTE_MAX_LENGTH:
            raise ValidationException(
                f"Note cannot exceed {NOTE_MAX_LENGTH} characters",
                details=[{"field": "note", "message": "Too long"}],
            )

        entry = f"[{datetime.now(UTC).isoformat()}] {note}"
        if inquiry.internal_notes:
            inquiry.internal_notes = f"{inquiry.internal_notes}\n{entry}"
        else:
            inquiry.internal_notes = entry
        await self._flush()
        logger.info("Note added to inquiry %s by %s", inquiry.inquiry_number, organization_id)
        return inquiry

    async def get_notes(self, inquiry_id: uuid.UUID, organization_id: uuid.UUID) -> Inquiry:
        inquiry = await self.get_inquiry_for_party(inquiry_id, organization_id)
        self._require_role(inquiry, organization_id, "supplier", "read internal notes")
        return inquiry

    # ------------------------------------------------------------------
    # Quotes
    # ------------------------------------------------------------------

    async def add_quote(
        self,
        inquiry_id: uuid.UUID,
        quoted_by_org_id: uuid.UUID,
        quoted_by: uuid.UUID,
        unit_price: Decimal,
        total_price: Decimal | None = None,
        currency: str = "USD",
        valid_until: datetime | None = None,
        terms: str | None = None,
        notes: str | None = None,
        expected_version: int | None = None,
    ) -> InquiryQuote:
        """Append a PENDING quote and move the inquiry to QUOTED.

        Earlier quotes stay as they are; several pending quotes may coexist.
        """
        inquiry = await self.get_inquiry_for_party(inquiry_id, quoted_by_org_id)
        self.check_version(inquiry, expected_version)
        self._require_role(inquiry, quoted_by_org_id, "supplier", "submit quotes")
        self._ensure_allowed(inquiry, InquiryTransitionType.QUOTE)

        now = datetime.now(UTC)
        if unit_price is None or unit_price <= 0:
            raise ValidationException(
                "Unit price must be greater than zero",
                details=[{"field": "unit_price", "message": "Must be greater than zero"}],
            )
        if total_price is None:
            total_price = unit_price * (inquiry.requested_quantity or 1)
        if total_price < 0:
            raise ValidationException(
                "Total price cannot be negative",
                details=[{"field": "total_price", "message": "Must not be negative"}],
            )
        if valid_until is None:
            valid_until = now + timedelta(days=settings.quote_default_validity_days)
        elif valid_until <= now:
            raise ValidationException(
                "Quote validity must end in the future",
                details=[{"field": "valid_until", "message": "Must be in the future"}],
            )

        quote = InquiryQuote(
            id=uuid.uuid4(),
            inquiry_id=inquiry.id,
            quoted_by_org_id=quoted_by_org_id,
            quoted_by=quoted_by,
            unit_price=unit_price,
            total_price=total_price,
            currency=currency,
            valid_until=valid_until,
            terms=terms,
            notes=notes,
            quoted_at=now,
            status=QuoteStatus.PENDING,
        )
        self.db.add(quote)
        inquiry.quotes.append(quote)

        await self._transition(
            inquiry,
            InquiryTransitionType.QUOTE,
            triggered_by=quoted_by,
            metadata={
                "quote_id": str(quote.id),
                "unit_price": str(unit_price),
                "total_price": str(total_price),
                "currency": currency,
            },
        )
        logger.info(
            "Quote %s submitted on inquiry %s by %s",
            quote.id, inquiry.inquiry_number, quoted_by_org_id,
        )
        return quote

    async def accept_quote(
        self,
        inquiry_id: uuid.UUID,
        quote_id: uuid.UUID,
        organization_id: uuid.UUID,
        accepted_by: uuid.UUID,
        expected_version: int | None = None,
    ) -> InquiryQuote:
        """Accept a pending quote and move the inquiry to ACCEPTED.

        Accepting the quote that is already accepted returns it unchanged and
        records nothing, unless a later quote moved the inquiry back to
        QUOTED; then the inquiry returns to ACCEPTED on that same quote.
        Sibling quotes keep their status.
        """
        inquiry = await self.get_inquiry_for_party(inquiry_id, organization_id)
        self._require_role(inquiry, organization_id, "inquirer", "accept quotes")
        quote = self._find_quote(inquiry, quote_id)

        if quote.status == QuoteStatus.ACCEPTED:
            if inquiry.status == InquiryStatus.ACCEPTED or inquiry.status in TERMINAL_STATUSES:
                logger.info("Quote %s already accepted; nothing to do", quote_id)
                return quote
            self.check_version(inquiry, expected_version)
            self._ensure_allowed(inquiry, InquiryTransitionType.ACCEPT)
            await self._transition(
                inquiry,
                InquiryTransitionType.ACCEPT,
                triggered_by=accepted_by,
                metadata={"quote_id": str(quote.id), "reaccepted": True},
            )
            return quote

        self.check_version(inquiry, expected_version)

        already_accepted = [q for q in inquiry.quotes if q.status == QuoteStatus.ACCEPTED]
        if already_accepted:
            raise InvalidStateException(
                f"Inquiry {inquiry.inquiry_number} already has accepted quote "
                f"{already_accepted[0].id}"
            )
        if quote.status != QuoteStatus.PENDING:
            raise InvalidStateException(
                f"Cannot accept a quote in status '{quote.status.value}'"
            )
        now = datetime.now(UTC)
        if quote.valid_until is not None and quote.valid_until < now:
            raise InvalidStateException(f"Quote {quote_id} is no longer valid")
        self._ensure_allowed(inquiry, InquiryTransitionType.ACCEPT)

        quote.status = QuoteStatus.ACCEPTED
        quote.accepted_at = now
        await self._transition(
            inquiry,
            InquiryTransitionType.ACCEPT,
            triggered_by=accepted_by,
            metadata={"quote_id": str(quote.id)},
        )
        return quote

    async def reject_quote(
        self,
        inquiry_id: uuid.UUID,
        quote_id: uuid.UUID,
        organization_id: uuid.UUID,
        rejected_by: uuid.UUID,
        expected_version: int | None = None,
    ) -> InquiryQuote:
        """Reject one quote. The inquiry status does not change."""
        inquiry = await self.get_inquiry_for_party(inquiry_id, organization_id)
        self._require_role(inquiry, organization_id, "inquirer", "reject quotes")
        quote = self._find_quote(inquiry, quote_id)

        if quote.status == QuoteStatus.REJECTED:
            return quote

        self.check_version(inquiry, expected_version)
        if inquiry.status in (InquiryStatus.CONVERTED, InquiryStatus.ARCHIVED):
            raise InvalidStateException(
                f"Inquiry {inquiry.inquiry_number} is {inquiry.status.value}; quotes are closed"
            )
        if quote.status != QuoteStatus.PENDING:
            raise InvalidStateException(
                f"Cannot reject a quote in status '{quote.status.value}'"
            )

        quote.status = QuoteStatus.REJECTED
        quote.rejected_at = datetime.now(UTC)
        await self._flush()

        outbox = OutboxService(self.db)
        await outbox.publish_event(
            event_type=EVENT_QUOTE_REJECTED,
            aggregate_type="inquiry",
            aggregate_id=str(inquiry.id),
            payload={
                "inquiry_id": str(inquiry.id),
                "quote_id": str(quote.id),
                "rejected_by": str(rejected_by),
            },
        )
        logger.info("Quote %s rejected on inquiry %s", quote_id, inquiry.inquiry_number)
        return quote

    # ------------------------------------------------------------------
    # Status changes
    # ------------------------------------------------------------------

    async def convert_to_order(
        self,
        inquiry_id: uuid.UUID,
        order_id: uuid.UUID,
        triggered_by: uuid.UUID | None,
        expected_version: int | None = None,
    ) -> Inquiry:
        """Record the resulting order and move ACCEPTED -> CONVERTED."""
        inquiry = await self.get_inquiry(inquiry_id)
        self.check_version(inquiry, expected_version)
        if inquiry.status != InquiryStatus.ACCEPTED:
            raise InvalidStateException(
                f"Only accepted inquiries can be converted; inquiry "
                f"{inquiry.inquiry_number} is {inquiry.status.value}"
            )
        if inquiry.converted_order_id is not None:
            raise InvalidStateException(
                f"Inquiry {inquiry.inquiry_number} was already converted to order "
                f"{inquiry.converted_order_id}"
            )

        inquiry.converted_order_id = order_id
        inquiry.converted_at = datetime.now(UTC)
        return await self._transition(
            inquiry,
            InquiryTransitionType.CONVERT,
            triggered_by=triggered_by,
            metadata={"order_id": str(order_id)},
        )

    async def reject_inquiry(
        self,
        inquiry_id: uuid.UUID,
        organization_id: uuid.UUID,
        triggered_by: uuid.UUID,
        reason: str | None = None,
        expected_version: int | None = None,
    ) -> Inquiry:
        inquiry = await self.get_inquiry_for_party(inquiry_id, organization_id)
        self.check_version(inquiry, expected_version)
        return await self._transition(
            inquiry,
            InquiryTransitionType.REJECT,
            triggered_by=triggered_by,
            reason=reason,
        )

    async def archive_inquiry(
        self,
        inquiry_id: uuid.UUID,
        organization_id: uuid.UUID,
        triggered_by: uuid.UUID,
        reason: str | None = None,
        expected_version: int | None = None,
    ) -> Inquiry:
        inquiry = await self.get_inquiry_for_party(inquiry_id, organization_id)
        self.check_version(inquiry, expected_version)
        self._ensure_allowed(inquiry, InquiryTransitionType.ARCHIVE)
        inquiry.archived_at = datetime.now(UTC)
        return await self._transition(
            inquiry,
            InquiryTransitionType.ARCHIVE,
            triggered_by=triggered_by,
            reason=reason,
        )

    async def update_status(
        self,
        inquiry_id: uuid.UUID,
        organization_id: uuid.UUID,
        triggered_by: uuid.UUID,
        status: InquiryStatus | None = None,
        priority: InquiryPriority | None = None,
        expected_version: int | None = None,
    ) -> Inquiry:
        """Supplier-side workflow update: assign RESPONDED/NEGOTIATING and set priority.

        This is the only path into NEGOTIATING.
        """
        inquiry = await self.get_inquiry_for_party(inquiry_id, organization_id)
        self._require_role(inquiry, organization_id, "supplier", "update inquiry status")
        self.check_version(inquiry, expected_version)

        if inquiry.status in TERMINAL_STATUSES:
            raise InvalidStateException(
                f"Inquiry {inquiry.inquiry_number} is {inquiry.status.value} and cannot be updated"
            )
        if status is not None and status not in ASSIGN_TARGETS:
            raise ValidationException(
                f"Status can only be set to {sorted(s.value for s in ASSIGN_TARGETS)}",
                details=[{"field": "status", "message": "Not an assignable status"}],
            )

        if priority is not None:
            inquiry.priority = priority

        if status is not None and status != inquiry.status:
            return await self._transition(
                inquiry,
                InquiryTransitionType.ASSIGN,
                triggered_by=triggered_by,
                to_status=status,
            )

        await self._flush()
        return inquiry

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    async def sweep_expired(
        self, now: datetime | None = None, limit: int | None = None
    ) -> list[Inquiry]:
        """Return inquiries past ``expires_at`` that are still live.

        Read-only: the caller applies the EXPIRE transition per inquiry.
        """
        now = now or datetime.now(UTC)
        query = (
            select(Inquiry)
            .where(
                Inquiry.expires_at < now,
                Inquiry.status.not_in(SWEEP_EXCLUDED_STATUSES),
            )
            .order_by(Inquiry.expires_at.asc())
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def apply_expiry(
        self, inquiry_id: uuid.UUID, now: datetime | None = None
    ) -> Inquiry:
        """Expire one swept inquiry and its pending quotes."""
        now = now or datetime.now(UTC)
        inquiry = await self.get_inquiry(inquiry_id)
        if inquiry.expires_at >= now:
            raise InvalidStateException(
                f"Inquiry {inquiry.inquiry_number} does not expire until {inquiry.expires_at.isoformat()}"
            )
        self._ensure_allowed(inquiry, InquiryTransitionType.EXPIRE)

        for quote in inquiry.quotes:
            if quote.status == QuoteStatus.PENDING:
                quote.status = QuoteStatus.EXPIRED

        return await self._transition(
            inquiry,
            InquiryTransitionType.EXPIRE,
            triggered_by=None,
            trigger_source="SYSTEM",
            reason="Automated: expiry date reached",
        )

    # ------------------------------------------------------------------
    # State Machine
    # ------------------------------------------------------------------

    async def _transition(
        self,
        inquiry: Inquiry,
        transition_type: InquiryTransitionType,
        triggered_by: uuid.UUID | None,
        trigger_source: str = "USER",
        reason: str | None = None,
        metadata: dict | None = None,
        to_status: InquiryStatus | None = None,
    ) -> Inquiry:
        """Apply a state machine transition to a loaded inquiry.

        Validates via VALID_TRANSITIONS (or the assignment rules for ASSIGN),
        records an InquiryTransition, and emits an event via OutboxService.
        """
        old_status = inquiry.status

        if transition_type == InquiryTransitionType.ASSIGN:
            if old_status not in ASSIGNABLE_FROM or to_status not in ASSIGN_TARGETS:
                raise InvalidStateException(
                    f"Cannot assign status '{to_status.value if to_status else None}' "
                    f"from '{old_status.value}'"
                )
            new_status = to_status
        else:
            self._ensure_allowed(inquiry, transition_type)
            new_status = VALID_TRANSITIONS[old_status][transition_type]

        inquiry.status = new_status
        self.db.add(
            InquiryTransition(
                inquiry_id=inquiry.id,
                from_status=old_status,
                to_status=new_status,
                transition_type=transition_type,
                triggered_by=triggered_by,
                trigger_source=trigger_source,
                reason=reason,
                metadata_extra=metadata or {},
            )
        )
        await self._flush()

        outbox = OutboxService(self.db)
        await outbox.publish_event(
            event_type=TRANSITION_EVENT_MAP[transition_type],
            aggregate_type="inquiry",
            aggregate_id=str(inquiry.id),
            payload={
                "inquiry_id": str(inquiry.id),
                "inquiry_number": inquiry.inquiry_number,
                "from_status": old_status.value,
                "to_status": new_status.value,
                "triggered_by": str(triggered_by) if triggered_by else None,
                "reason": reason,
                "metadata": metadata,
            },
        )

        logger.info(
            "Inquiry %s transitioned %s -> %s via %s",
            inquiry.id, old_status.value, new_status.value, transition_type.value,
        )
        return inquiry

    # ------------------------------------------------------------------
    # Audit trail
    # ------------------------------------------------------------------

    async def get_transitions(
        self, inquiry_id: uuid.UUID, organization_id: uuid.UUID
    ) -> list[InquiryTransition]:
        inquiry = await self.get_inquiry_for_party(inquiry_id, organization_id)
        result = await self.db.execute(
            select(InquiryTransition)
            .where(InquiryTransition.inquiry_id == inquiry.id)
            .order_by(InquiryTransition.created_at.asc())
        )
        return list(result.scalars().all())
