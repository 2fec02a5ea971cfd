"""Unit tests for InquiryService — creation, transcript, quotes, state machine."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlalchemy.orm.exc import StaleDataError

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
    MessageType,
    OrganizationType,
    QuoteStatus,
)
from src.models.event_outbox import EventOutbox
from src.models.inquiry import Inquiry
from src.models.inquiry_quote import InquiryQuote
from src.models.inquiry_transition import InquiryTransition
from src.models.message import Message
from src.models.organization import Organization
from src.modules.inquiry.constants import VALID_TRANSITIONS
from src.modules.inquiry.service import InquiryService, format_inquiry_number

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

BUYER_ORG = uuid.UUID("11111111-1111-1111-1111-111111111111")
SUPPLIER_ORG = uuid.UUID("22222222-2222-2222-2222-222222222222")
OUTSIDER_ORG = uuid.UUID("33333333-3333-3333-3333-333333333333")
USER_ID = uuid.UUID("44444444-4444-4444-4444-444444444444")


@pytest.fixture
def inquiry_service(mock_db):
    return InquiryService(mock_db)


def _make_quote(
    status=QuoteStatus.PENDING,
    valid_until=None,
    unit_price=Decimal("12.50"),
    total_price=Decimal("1250.00"),
) -> InquiryQuote:
    return InquiryQuote(
        id=uuid.uuid4(),
        quoted_by_org_id=SUPPLIER_ORG,
        unit_price=unit_price,
        total_price=total_price,
        currency="USD",
        valid_until=valid_until or datetime.now(UTC) + timedelta(days=7),
        quoted_at=datetime.now(UTC),
        status=status,
    )


def _make_inquiry(
    status=InquiryStatus.OPEN,
    quotes=None,
    version=1,
    expires_at=None,
    requested_quantity=100,
    read_by_inquirer=True,
    read_by_supplier=False,
) -> Inquiry:
    now = datetime.now(UTC)
    return Inquiry(
        id=uuid.uuid4(),
        inquiry_number="INQ-2026-000001",
        inquirer_org_id=BUYER_ORG,
        supplier_org_id=SUPPLIER_ORG,
        subject="Steel pipes",
        message="Need 100 steel pipes",
        requested_quantity=requested_quantity,
        budget_currency="USD",
        status=status,
        priority=InquiryPriority.MEDIUM,
        expires_at=expires_at or now + timedelta(days=30),
        read_by_inquirer=read_by_inquirer,
        read_by_supplier=read_by_supplier,
        version=version,
        quotes=quotes or [],
        created_at=now,
        updated_at=now,
    )


def _make_inquiry_result(inquiry):
    """Mock result for get_inquiry's joined-load query."""
    result = MagicMock()
    result.unique.return_value.scalar_one_or_none.return_value = inquiry
    return result


def _make_scalar_result(value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    result.scalar_one.return_value = value
    result.scalar.return_value = value
    return result


def _make_rowcount_result(rowcount):
    result = MagicMock()
    result.rowcount = rowcount
    return result


def _added(mock_db, model):
    return [c.args[0] for c in mock_db.add.call_args_list if isinstance(c.args[0], model)]


def _supplier_org(org_type=OrganizationType.SUPPLIER) -> Organization:
    return Organization(
        id=SUPPLIER_ORG,
        name="Tashkent Steel LLC",
        type=org_type,
        is_active=True,
    )


# ---------------------------------------------------------------------------
# Numbering
# ---------------------------------------------------------------------------


class TestInquiryNumber:
    def test_format_pads_to_six_digits(self):
        assert format_inquiry_number(2025, 5) == "INQ-2025-000005"

    def test_format_large_sequence(self):
        assert format_inquiry_number(2026, 123456) == "INQ-2026-123456"


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


class TestCreateInquiry:
    @pytest.mark.asyncio
    async def test_create_inquiry_open_with_opening_message(self, inquiry_service, mock_db):
        mock_db.execute.side_effect = [
            _make_scalar_result(_supplier_org()),
            _make_scalar_result(5),
        ]

        inquiry = await inquiry_service.create_inquiry(
            inquirer_org_id=BUYER_ORG,
            created_by=USER_ID,
            supplier_org_id=SUPPLIER_ORG,
            subject="Steel pipes",
            message="Need 100 steel pipes",
            requested_quantity=100,
        )

        year = datetime.now(UTC).year
        assert inquiry.inquiry_number == f"INQ-{year}-000005"
        assert inquiry.status == InquiryStatus.OPEN
        assert inquiry.read_by_inquirer is True
        assert inquiry.read_by_supplier is False
        assert inquiry.expires_at > datetime.now(UTC) + timedelta(days=29)

        messages = _added(mock_db, Message)
        assert len(messages) == 1
        assert messages[0].body == "Need 100 steel pipes"
        assert messages[0].recipient_org_id == SUPPLIER_ORG
        # Opening message does not move the inquiry out of OPEN.
        assert _added(mock_db, InquiryTransition) == []
        events = [e.event_type for e in _added(mock_db, EventOutbox)]
        assert "inquiry.created" in events

    @pytest.mark.asyncio
    async def test_attachments_are_stamped_with_uploader(self, inquiry_service, mock_db):
        mock_db.execute.side_effect = [
            _make_scalar_result(_supplier_org()),
            _make_scalar_result(6),
        ]

        inquiry = await inquiry_service.create_inquiry(
            inquirer_org_id=BUYER_ORG,
            created_by=USER_ID,
            supplier_org_id=SUPPLIER_ORG,
            subject="Steel pipes",
            message="Drawing attached",
            attachments=[{"name": "pipe.dwg", "url": "https://files.test/pipe.dwg", "kind": "DRAWING"}],
        )

        [attachment] = inquiry.attachments
        assert attachment["kind"] == "DRAWING"
        assert attachment["uploaded_by"] == str(USER_ID)
        assert datetime.fromisoformat(attachment["uploaded_at"]) <= datetime.now(UTC)
        # Inquiry-level files stay off the opening ledger message.
        assert _added(mock_db, Message)[0].attachments == []

    @pytest.mark.asyncio
    async def test_unknown_attachment_kind_rejected(self, inquiry_service, mock_db):
        with pytest.raises(ValidationException) as exc_info:
            await inquiry_service.create_inquiry(
                inquirer_org_id=BUYER_ORG,
                created_by=USER_ID,
                supplier_org_id=SUPPLIER_ORG,
                subject="Pipes",
                message="Need pipes",
                attachments=[{"name": "a.bin", "url": "https://files.test/a.bin", "kind": "VIDEO"}],
            )
        assert exc_info.value.details == [
            {"field": "attachments[0].kind", "message": "Unknown attachment kind"}
        ]
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_fields_reported_together(self, inquiry_service, mock_db):
        with pytest.raises(ValidationException) as exc_info:
            await inquiry_service.create_inquiry(
                inquirer_org_id=BUYER_ORG,
                created_by=USER_ID,
                supplier_org_id=None,
                subject="  ",
                message=None,
            )
        fields = {d["field"] for d in exc_info.value.details}
        assert fields == {"supplier_org_id", "subject", "message"}
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_budget_range_validated(self, inquiry_service):
        with pytest.raises(ValidationException):
            await inquiry_service.create_inquiry(
                inquirer_org_id=BUYER_ORG,
                created_by=USER_ID,
                supplier_org_id=SUPPLIER_ORG,
                subject="Pipes",
                message="Need pipes",
                budget_min=Decimal("500"),
                budget_max=Decimal("100"),
            )

    @pytest.mark.asyncio
    async def test_self_inquiry_rejected(self, inquiry_service):
        with pytest.raises(ValidationException, match="itself"):
            await inquiry_service.create_inquiry(
                inquirer_org_id=BUYER_ORG,
                created_by=USER_ID,
                supplier_org_id=BUYER_ORG,
                subject="Pipes",
                message="Need pipes",
            )

    @pytest.mark.asyncio
    async def test_unknown_supplier_rejected(self, inquiry_service, mock_db):
        mock_db.execute.return_value = _make_scalar_result(None)
        with pytest.raises(ValidationException, match="not found"):
            await inquiry_service.create_inquiry(
                inquirer_org_id=BUYER_ORG,
                created_by=USER_ID,
                supplier_org_id=SUPPLIER_ORG,
                subject="Pipes",
                message="Need pipes",
            )

    @pytest.mark.asyncio
    async def test_buyer_only_org_cannot_receive(self, inquiry_service, mock_db):
        mock_db.execute.return_value = _make_scalar_result(_supplier_org(OrganizationType.BUYER))
        with pytest.raises(ValidationException, match="does not accept inquiries"):
            await inquiry_service.create_inquiry(
                inquirer_org_id=BUYER_ORG,
                created_by=USER_ID,
                supplier_org_id=SUPPLIER_ORG,
                subject="Pipes",
                message="Need pipes",
            )


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------


class TestGetInquiry:
    @pytest.mark.asyncio
    async def test_not_found(self, inquiry_service, mock_db):
        mock_db.execute.return_value = _make_inquiry_result(None)
        with pytest.raises(NotFoundException):
            await inquiry_service.get_inquiry(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_non_party_sees_not_found(self, inquiry_service, mock_db):
        mock_db.execute.return_value = _make_inquiry_result(_make_inquiry())
        with pytest.raises(NotFoundException):
            await inquiry_service.get_inquiry_for_party(uuid.uuid4(), OUTSIDER_ORG)

    @pytest.mark.asyncio
    async def test_party_gets_inquiry(self, inquiry_service, mock_db):
        inquiry = _make_inquiry()
        mock_db.execute.return_value = _make_inquiry_result(inquiry)
        assert await inquiry_service.get_inquiry_for_party(inquiry.id, SUPPLIER_ORG) is inquiry


class TestStats:
    @pytest.mark.asyncio
    async def test_counts_and_rates(self, inquiry_service, mock_db):
        grouped = MagicMock()
        grouped.all.return_value = [
            (InquiryStatus.OPEN, 2),
            (InquiryStatus.QUOTED, 2),
            (InquiryStatus.NEGOTIATING, 1),
            (InquiryStatus.CONVERTED, 1),
            (InquiryStatus.ARCHIVED, 1),
        ]
        mock_db.execute.side_effect = [grouped, _make_scalar_result(1)]

        stats = await inquiry_service.get_stats(SUPPLIER_ORG)

        assert stats["total"] == 7
        assert stats["new"] == 1
        assert stats["responded"] == 3
        assert stats["converted"] == 1
        assert stats["response_rate"] == 43
        assert stats["conversion_rate"] == 14
        assert stats["by_status"]["OPEN"] == 2
        assert stats["by_status"]["REJECTED"] == 0
        assert set(stats["by_status"]) == {s.value for s in InquiryStatus}
        grouped_stmt = mock_db.execute.await_args_list[0].args[0]
        assert "supplier_org_id" in str(grouped_stmt)
        assert "inquirer_org_id" not in str(grouped_stmt.whereclause)

    @pytest.mark.asyncio
    async def test_rates_round_half_up(self, inquiry_service, mock_db):
        grouped = MagicMock()
        grouped.all.return_value = [(InquiryStatus.RESPONDED, 1), (InquiryStatus.REJECTED, 7)]
        mock_db.execute.side_effect = [grouped, _make_scalar_result(0)]

        stats = await inquiry_service.get_stats(SUPPLIER_ORG)

        assert stats["response_rate"] == 13

    @pytest.mark.asyncio
    async def test_no_inquiries_gives_zero_rates(self, inquiry_service, mock_db):
        grouped = MagicMock()
        grouped.all.return_value = []
        mock_db.execute.side_effect = [grouped, _make_scalar_result(None)]

        stats = await inquiry_service.get_stats(BUYER_ORG, as_role="inquirer")

        assert stats["total"] == 0
        assert stats["new"] == 0
        assert stats["response_rate"] == 0
        assert stats["conversion_rate"] == 0


class TestDuplicateInquiry:
    @pytest.mark.asyncio
    async def test_copy_is_a_fresh_open_inquiry(self, inquiry_service, mock_db):
        original = _make_inquiry(
            status=InquiryStatus.ARCHIVED,
            quotes=[_make_quote(status=QuoteStatus.REJECTED)],
            expires_at=datetime.now(UTC) - timedelta(days=3),
        )
        original.attachments = [
            {
                "name": "pipe.dwg",
                "url": "https://files.test/pipe.dwg",
                "kind": "DRAWING",
                "uploaded_by": str(USER_ID),
                "uploaded_at": "2026-01-05T10:00:00+00:00",
            }
        ]
        original.internal_notes = "[2026-01-06T09:00:00+00:00] price sensitive"
        mock_db.execute.side_effect = [
            _make_inquiry_result(original),
            _make_scalar_result(_supplier_org()),
            _make_scalar_result(9),
        ]
        caller = uuid.uuid4()

        copy = await inquiry_service.duplicate_inquiry(original.id, BUYER_ORG, created_by=caller)

        assert copy is not original
        assert copy.inquiry_number.endswith("000009")
        assert copy.subject == "Copy of Steel pipes"
        assert copy.message == original.message
        assert copy.status == InquiryStatus.OPEN
        assert copy.inquirer_org_id == BUYER_ORG
        assert copy.supplier_org_id == SUPPLIER_ORG
        assert copy.created_by == caller
        assert copy.quotes == []
        assert copy.internal_notes is None
        assert copy.expires_at > datetime.now(UTC)
        assert copy.attachments == original.attachments
        assert original.status == InquiryStatus.ARCHIVED

    @pytest.mark.asyncio
    async def test_long_subject_is_truncated(self, inquiry_service, mock_db):
        original = _make_inquiry()
        original.subject = "x" * 200
        mock_db.execute.side_effect = [
            _make_inquiry_result(original),
            _make_scalar_result(_supplier_org()),
            _make_scalar_result(10),
        ]

        copy = await inquiry_service.duplicate_inquiry(original.id, BUYER_ORG, created_by=USER_ID)

        assert len(copy.subject) == 200
        assert copy.subject.startswith("Copy of x")

    @pytest.mark.asyncio
    async def test_supplier_cannot_duplicate(self, inquiry_service, mock_db):
        mock_db.execute.return_value = _make_inquiry_result(_make_inquiry())
        with pytest.raises(ForbiddenException, match="inquirer"):
            await inquiry_service.duplicate_inquiry(uuid.uuid4(), SUPPLIER_ORG, created_by=USER_ID)
        mock_db.add.assert_not_called()


class TestInternalNotes:
    @pytest.mark.asyncio
    async def test_notes_append_timestamped_lines(self, inquiry_service, mock_db):
        inquiry = _make_inquiry(status=InquiryStatus.QUOTED)
        mock_db.execute.return_value = _make_inquiry_result(inquiry)

        await inquiry_service.add_note(inquiry.id, SUPPLIER_ORG, "Call back Monday")
        await inquiry_service.add_note(inquiry.id, SUPPLIER_ORG, "  Check stock levels ")

        first, second = inquiry.internal_notes.split("\n")
        assert first.endswith("] Call back Monday")
        assert second.endswith("] Check stock levels")
        stamp = first[1:first.index("]")]
        assert datetime.fromisoformat(stamp).tzinfo is not None
        assert inquiry.status == InquiryStatus.QUOTED
        assert _added(mock_db, InquiryTransition) == []

    @pytest.mark.asyncio
    async def test_notes_allowed_on_closed_inquiry(self, inquiry_service, mock_db):
        inquiry = _make_inquiry(status=InquiryStatus.ARCHIVED)
        mock_db.execute.return_value = _make_inquiry_result(inquiry)

        await inquiry_service.add_note(inquiry.id, SUPPLIER_ORG, "Lost on price")

        assert "Lost on price" in inquiry.internal_notes

    @pytest.mark.asyncio
    async def test_inquirer_cannot_add_or_read_notes(self, inquiry_service, mock_db):
        mock_db.execute.return_value = _make_inquiry_result(_make_inquiry())
        with pytest.raises(ForbiddenException, match="supplier"):
            await inquiry_service.add_note(uuid.uuid4(), BUYER_ORG, "sneaky")
        with pytest.raises(ForbiddenException, match="supplier"):
            await inquiry_service.get_notes(uuid.uuid4(), BUYER_ORG)

    @pytest.mark.asyncio
    async def test_blank_note_rejected(self, inquiry_service, mock_db):
        mock_db.execute.return_value = _make_inquiry_result(_make_inquiry())
        with pytest.raises(ValidationException, match="empty"):
            await inquiry_service.add_note(uuid.uuid4(), SUPPLIER_ORG, "   ")

    @pytest.mark.asyncio
    async def test_stale_version_conflicts(self, inquiry_service, mock_db):
        mock_db.execute.return_value = _make_inquiry_result(_make_inquiry(version=4))
        with pytest.raises(ConflictException):
            await inquiry_service.add_note(
                uuid.uuid4(), SUPPLIER_ORG, "hello", expected_version=3
            )


# ---------------------------------------------------------------------------
# Transcript
# ---------------------------------------------------------------------------


class TestAppendMessage:
    @pytest.mark.asyncio
    async def test_first_reply_moves_open_to_responded(self, inquiry_service, mock_db):
        inquiry = _make_inquiry(status=InquiryStatus.OPEN)
        mock_db.execute.return_value = _make_inquiry_result(inquiry)

        message = await inquiry_service.append_message(
            inquiry.id, sender_org_id=SUPPLIER_ORG, sent_by=USER_ID, body="We can supply"
        )

        assert inquiry.status == InquiryStatus.RESPONDED
        assert message.recipient_org_id == BUYER_ORG
        assert inquiry.read_by_inquirer is False
        transitions = _added(mock_db, InquiryTransition)
        assert len(transitions) == 1
        assert transitions[0].transition_type == InquiryTransitionType.RESPOND

    @pytest.mark.asyncio
    async def test_later_messages_keep_status(self, inquiry_service, mock_db):
        inquiry = _make_inquiry(status=InquiryStatus.QUOTED, read_by_supplier=True)
        mock_db.execute.return_value = _make_inquiry_result(inquiry)

        await inquiry_service.append_message(
            inquiry.id, sender_org_id=BUYER_ORG, sent_by=USER_ID, body="Any discount?"
        )

        assert inquiry.status == InquiryStatus.QUOTED
        assert inquiry.read_by_supplier is False
        assert _added(mock_db, InquiryTransition) == []

    @pytest.mark.asyncio
    async def test_archived_inquiry_refuses_messages(self, inquiry_service, mock_db):
        mock_db.execute.return_value = _make_inquiry_result(
            _make_inquiry(status=InquiryStatus.ARCHIVED)
        )
        with pytest.raises(InvalidStateException, match="archived"):
            await inquiry_service.append_message(
                uuid.uuid4(), sender_org_id=BUYER_ORG, sent_by=USER_ID, body="hello?"
            )

    @pytest.mark.asyncio
    async def test_quote_message_needs_details(self, inquiry_service, mock_db):
        mock_db.execute.return_value = _make_inquiry_result(_make_inquiry())
        with pytest.raises(ValidationException, match="quote details"):
            await inquiry_service.append_message(
                uuid.uuid4(), sender_org_id=SUPPLIER_ORG, sent_by=USER_ID,
                body="Quote attached", is_quote=True,
            )

    @pytest.mark.asyncio
    async def test_quote_message_on_terminal_inquiry(self, inquiry_service, mock_db):
        mock_db.execute.return_value = _make_inquiry_result(
            _make_inquiry(status=InquiryStatus.EXPIRED)
        )
        with pytest.raises(InvalidStateException):
            await inquiry_service.append_message(
                uuid.uuid4(), sender_org_id=SUPPLIER_ORG, sent_by=USER_ID,
                body="Late quote", is_quote=True, quote_details={"price": "10"},
            )

    @pytest.mark.asyncio
    async def test_stale_version_conflicts(self, inquiry_service, mock_db):
        mock_db.execute.return_value = _make_inquiry_result(_make_inquiry(version=4))
        with pytest.raises(ConflictException, match="version 4"):
            await inquiry_service.append_message(
                uuid.uuid4(), sender_org_id=BUYER_ORG, sent_by=USER_ID,
                body="hi", expected_version=3,
            )
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_concurrent_write_conflicts(self, inquiry_service, mock_db):
        inquiry = _make_inquiry(status=InquiryStatus.RESPONDED)
        mock_db.execute.return_value = _make_inquiry_result(inquiry)
        # Ledger flushes succeed; the inquiry update loses the race.
        mock_db.flush.side_effect = [None, None, StaleDataError("version mismatch")]

        with pytest.raises(ConflictException):
            await inquiry_service.append_message(
                inquiry.id, sender_org_id=BUYER_ORG, sent_by=USER_ID, body="hi"
            )


class TestMarkRead:
    @pytest.mark.asyncio
    async def test_supplier_read_sets_flag_and_stamp(self, inquiry_service, mock_db):
        inquiry = _make_inquiry(read_by_supplier=False)
        mock_db.execute.side_effect = [_make_inquiry_result(inquiry), _make_rowcount_result(2)]

        updated = await inquiry_service.mark_read(inquiry.id, SUPPLIER_ORG)

        assert updated == 2
        assert inquiry.read_by_supplier is True
        assert inquiry.read_at is not None

    @pytest.mark.asyncio
    async def test_repeat_read_keeps_first_stamp(self, inquiry_service, mock_db):
        first_read = datetime(2026, 1, 5, tzinfo=UTC)
        inquiry = _make_inquiry(read_by_supplier=True)
        inquiry.read_at = first_read
        mock_db.execute.side_effect = [_make_inquiry_result(inquiry), _make_rowcount_result(0)]

        updated = await inquiry_service.mark_read(inquiry.id, SUPPLIER_ORG)

        assert updated == 0
        assert inquiry.read_at == first_read


# ---------------------------------------------------------------------------
# Quotes
# ---------------------------------------------------------------------------


class TestAddQuote:
    @pytest.mark.asyncio
    async def test_quote_moves_to_quoted(self, inquiry_service, mock_db):
        inquiry = _make_inquiry(status=InquiryStatus.RESPONDED, requested_quantity=100)
        mock_db.execute.return_value = _make_inquiry_result(inquiry)

        quote = await inquiry_service.add_quote(
            inquiry.id, quoted_by_org_id=SUPPLIER_ORG, quoted_by=USER_ID,
            unit_price=Decimal("12.50"),
        )

        assert inquiry.status == InquiryStatus.QUOTED
        assert quote.status == QuoteStatus.PENDING
        assert quote.total_price == Decimal("1250.00")
        assert quote in inquiry.quotes
        assert quote.valid_until > datetime.now(UTC) + timedelta(days=13)

    @pytest.mark.asyncio
    async def test_requote_keeps_earlier_quotes_pending(self, inquiry_service, mock_db):
        first = _make_quote()
        inquiry = _make_inquiry(status=InquiryStatus.QUOTED, quotes=[first])
        mock_db.execute.return_value = _make_inquiry_result(inquiry)

        second = await inquiry_service.add_quote(
            inquiry.id, quoted_by_org_id=SUPPLIER_ORG, quoted_by=USER_ID,
            unit_price=Decimal("11.00"),
        )

        assert first.status == QuoteStatus.PENDING
        assert second.status == QuoteStatus.PENDING
        assert len(inquiry.quotes) == 2
        assert inquiry.status == InquiryStatus.QUOTED

    @pytest.mark.asyncio
    async def test_only_supplier_may_quote(self, inquiry_service, mock_db):
        mock_db.execute.return_value = _make_inquiry_result(_make_inquiry())
        with pytest.raises(ForbiddenException, match="supplier"):
            await inquiry_service.add_quote(
                uuid.uuid4(), quoted_by_org_id=BUYER_ORG, quoted_by=USER_ID,
                unit_price=Decimal("1"),
            )

    @pytest.mark.asyncio
    async def test_non_positive_price_rejected(self, inquiry_service, mock_db):
        mock_db.execute.return_value = _make_inquiry_result(_make_inquiry())
        with pytest.raises(ValidationException, match="greater than zero"):
            await inquiry_service.add_quote(
                uuid.uuid4(), quoted_by_org_id=SUPPLIER_ORG, quoted_by=USER_ID,
                unit_price=Decimal("0"),
            )

    @pytest.mark.asyncio
    async def test_past_validity_rejected(self, inquiry_service, mock_db):
        mock_db.execute.return_value = _make_inquiry_result(_make_inquiry())
        with pytest.raises(ValidationException, match="future"):
            await inquiry_service.add_quote(
                uuid.uuid4(), quoted_by_org_id=SUPPLIER_ORG, quoted_by=USER_ID,
                unit_price=Decimal("5"),
                valid_until=datetime.now(UTC) - timedelta(hours=1),
            )

    @pytest.mark.asyncio
    async def test_cannot_quote_converted_inquiry(self, inquiry_service, mock_db):
        mock_db.execute.return_value = _make_inquiry_result(
            _make_inquiry(status=InquiryStatus.CONVERTED)
        )
        with pytest.raises(InvalidStateException):
            await inquiry_service.add_quote(
                uuid.uuid4(), quoted_by_org_id=SUPPLIER_ORG, quoted_by=USER_ID,
                unit_price=Decimal("5"),
            )


class TestAcceptQuote:
    @pytest.mark.asyncio
    async def test_accept_moves_to_accepted(self, inquiry_service, mock_db):
        quote, sibling = _make_quote(), _make_quote()
        inquiry = _make_inquiry(status=InquiryStatus.QUOTED, quotes=[quote, sibling])
        mock_db.execute.return_value = _make_inquiry_result(inquiry)

        accepted = await inquiry_service.accept_quote(
            inquiry.id, quote.id, organization_id=BUYER_ORG, accepted_by=USER_ID
        )

        assert accepted.status == QuoteStatus.ACCEPTED
        assert accepted.accepted_at is not None
        assert inquiry.status == InquiryStatus.ACCEPTED
        assert sibling.status == QuoteStatus.PENDING

    @pytest.mark.asyncio
    async def test_accept_twice_is_noop(self, inquiry_service, mock_db):
        quote = _make_quote(status=QuoteStatus.ACCEPTED)
        inquiry = _make_inquiry(status=InquiryStatus.ACCEPTED, quotes=[quote], version=7)
        mock_db.execute.return_value = _make_inquiry_result(inquiry)

        result = await inquiry_service.accept_quote(
            inquiry.id, quote.id, organization_id=BUYER_ORG, accepted_by=USER_ID,
            expected_version=3,
        )

        assert result is quote
        assert inquiry.status == InquiryStatus.ACCEPTED
        mock_db.add.assert_not_called()
        mock_db.flush.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reaccept_after_requote_restores_accepted(self, inquiry_service, mock_db):
        first = _make_quote()
        inquiry = _make_inquiry(status=InquiryStatus.QUOTED, quotes=[first])
        mock_db.execute.return_value = _make_inquiry_result(inquiry)

        await inquiry_service.accept_quote(
            inquiry.id, first.id, organization_id=BUYER_ORG, accepted_by=USER_ID
        )
        second = await inquiry_service.add_quote(
            inquiry.id, quoted_by_org_id=SUPPLIER_ORG, quoted_by=USER_ID,
            unit_price=Decimal("11.00"),
        )
        assert inquiry.status == InquiryStatus.QUOTED
        assert first.status == QuoteStatus.ACCEPTED

        result = await inquiry_service.accept_quote(
            inquiry.id, first.id, organization_id=BUYER_ORG, accepted_by=USER_ID
        )

        assert result is first
        assert inquiry.status == InquiryStatus.ACCEPTED
        assert [q for q in inquiry.quotes if q.status == QuoteStatus.ACCEPTED] == [first]
        assert second.status == QuoteStatus.PENDING
        transitions = _added(mock_db, InquiryTransition)
        assert [t.transition_type for t in transitions] == [
            InquiryTransitionType.ACCEPT,
            InquiryTransitionType.QUOTE,
            InquiryTransitionType.ACCEPT,
        ]
        assert transitions[-1].metadata_extra["reaccepted"] is True

        converted = await inquiry_service.convert_to_order(
            inquiry.id, uuid.uuid4(), triggered_by=USER_ID
        )
        assert converted.status == InquiryStatus.CONVERTED

    @pytest.mark.asyncio
    async def test_reaccept_checks_version(self, inquiry_service, mock_db):
        quote = _make_quote(status=QuoteStatus.ACCEPTED)
        inquiry = _make_inquiry(status=InquiryStatus.QUOTED, quotes=[quote], version=5)
        mock_db.execute.return_value = _make_inquiry_result(inquiry)

        with pytest.raises(ConflictException):
            await inquiry_service.accept_quote(
                inquiry.id, quote.id, organization_id=BUYER_ORG, accepted_by=USER_ID,
                expected_version=4,
            )
        assert inquiry.status == InquiryStatus.QUOTED

    @pytest.mark.asyncio
    async def test_second_quote_cannot_be_accepted(self, inquiry_service, mock_db):
        accepted, other = _make_quote(status=QuoteStatus.ACCEPTED), _make_quote()
        inquiry = _make_inquiry(status=InquiryStatus.ACCEPTED, quotes=[accepted, other])
        mock_db.execute.return_value = _make_inquiry_result(inquiry)

        with pytest.raises(InvalidStateException, match="already has accepted quote"):
            await inquiry_service.accept_quote(
                inquiry.id, other.id, organization_id=BUYER_ORG, accepted_by=USER_ID
            )

    @pytest.mark.asyncio
    async def test_lapsed_quote_cannot_be_accepted(self, inquiry_service, mock_db):
        quote = _make_quote(valid_until=datetime.now(UTC) - timedelta(minutes=1))
        inquiry = _make_inquiry(status=InquiryStatus.QUOTED, quotes=[quote])
        mock_db.execute.return_value = _make_inquiry_result(inquiry)

        with pytest.raises(InvalidStateException, match="no longer valid"):
            await inquiry_service.accept_quote(
                inquiry.id, quote.id, organization_id=BUYER_ORG, accepted_by=USER_ID
            )

    @pytest.mark.asyncio
    async def test_supplier_cannot_accept(self, inquiry_service, mock_db):
        quote = _make_quote()
        mock_db.execute.return_value = _make_inquiry_result(
            _make_inquiry(status=InquiryStatus.QUOTED, quotes=[quote])
        )
        with pytest.raises(ForbiddenException, match="inquirer"):
            await inquiry_service.accept_quote(
                uuid.uuid4(), quote.id, organization_id=SUPPLIER_ORG, accepted_by=USER_ID
            )

    @pytest.mark.asyncio
    async def test_unknown_quote(self, inquiry_service, mock_db):
        mock_db.execute.return_value = _make_inquiry_result(
            _make_inquiry(status=InquiryStatus.QUOTED, quotes=[_make_quote()])
        )
        with pytest.raises(NotFoundException):
            await inquiry_service.accept_quote(
                uuid.uuid4(), uuid.uuid4(), organization_id=BUYER_ORG, accepted_by=USER_ID
            )


class TestRejectQuote:
    @pytest.mark.asyncio
    async def test_reject_keeps_inquiry_status(self, inquiry_service, mock_db):
        quote = _make_quote()
        inquiry = _make_inquiry(status=InquiryStatus.QUOTED, quotes=[quote])
        mock_db.execute.return_value = _make_inquiry_result(inquiry)

        rejected = await inquiry_service.reject_quote(
            inquiry.id, quote.id, organization_id=BUYER_ORG, rejected_by=USER_ID
        )

        assert rejected.status == QuoteStatus.REJECTED
        assert rejected.rejected_at is not None
        assert inquiry.status == InquiryStatus.QUOTED
        events = [e.event_type for e in _added(mock_db, EventOutbox)]
        assert events == ["quote.rejected"]

    @pytest.mark.asyncio
    async def test_reject_twice_is_noop(self, inquiry_service, mock_db):
        quote = _make_quote(status=QuoteStatus.REJECTED)
        mock_db.execute.return_value = _make_inquiry_result(
            _make_inquiry(status=InquiryStatus.QUOTED, quotes=[quote])
        )
        assert await inquiry_service.reject_quote(
            uuid.uuid4(), quote.id, organization_id=BUYER_ORG, rejected_by=USER_ID
        ) is quote
        mock_db.add.assert_not_called()


# ---------------------------------------------------------------------------
# Status changes
# ---------------------------------------------------------------------------


class TestConvertToOrder:
    @pytest.mark.asyncio
    async def test_accepted_inquiry_converts(self, inquiry_service, mock_db):
        inquiry = _make_inquiry(status=InquiryStatus.ACCEPTED)
        mock_db.execute.return_value = _make_inquiry_result(inquiry)
        order_id = uuid.uuid4()

        result = await inquiry_service.convert_to_order(inquiry.id, order_id, triggered_by=USER_ID)

        assert result.status == InquiryStatus.CONVERTED
        assert result.converted_order_id == order_id
        assert result.converted_at is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status", [InquiryStatus.OPEN, InquiryStatus.QUOTED, InquiryStatus.CONVERTED]
    )
    async def test_only_accepted_converts(self, inquiry_service, mock_db, status):
        mock_db.execute.return_value = _make_inquiry_result(_make_inquiry(status=status))
        with pytest.raises(InvalidStateException):
            await inquiry_service.convert_to_order(uuid.uuid4(), uuid.uuid4(), triggered_by=USER_ID)


class TestUpdateStatus:
    @pytest.mark.asyncio
    async def test_supplier_moves_to_negotiating(self, inquiry_service, mock_db):
        inquiry = _make_inquiry(status=InquiryStatus.RESPONDED)
        mock_db.execute.return_value = _make_inquiry_result(inquiry)

        await inquiry_service.update_status(
            inquiry.id, SUPPLIER_ORG, triggered_by=USER_ID,
            status=InquiryStatus.NEGOTIATING, priority=InquiryPriority.HIGH,
        )

        assert inquiry.status == InquiryStatus.NEGOTIATING
        assert inquiry.priority == InquiryPriority.HIGH
        transitions = _added(mock_db, InquiryTransition)
        assert transitions[0].transition_type == InquiryTransitionType.ASSIGN

    @pytest.mark.asyncio
    async def test_priority_only_records_no_transition(self, inquiry_service, mock_db):
        inquiry = _make_inquiry(status=InquiryStatus.OPEN)
        mock_db.execute.return_value = _make_inquiry_result(inquiry)

        await inquiry_service.update_status(
            inquiry.id, SUPPLIER_ORG, triggered_by=USER_ID, priority=InquiryPriority.URGENT
        )

        assert inquiry.priority == InquiryPriority.URGENT
        assert _added(mock_db, InquiryTransition) == []

    @pytest.mark.asyncio
    async def test_cannot_assign_accepted(self, inquiry_service, mock_db):
        mock_db.execute.return_value = _make_inquiry_result(_make_inquiry())
        with pytest.raises(ValidationException):
            await inquiry_service.update_status(
                uuid.uuid4(), SUPPLIER_ORG, triggered_by=USER_ID, status=InquiryStatus.ACCEPTED
            )

    @pytest.mark.asyncio
    async def test_terminal_inquiry_cannot_be_updated(self, inquiry_service, mock_db):
        mock_db.execute.return_value = _make_inquiry_result(
            _make_inquiry(status=InquiryStatus.REJECTED)
        )
        with pytest.raises(InvalidStateException):
            await inquiry_service.update_status(
                uuid.uuid4(), SUPPLIER_ORG, triggered_by=USER_ID,
                status=InquiryStatus.NEGOTIATING,
            )

    @pytest.mark.asyncio
    async def test_buyer_cannot_update_status(self, inquiry_service, mock_db):
        mock_db.execute.return_value = _make_inquiry_result(_make_inquiry())
        with pytest.raises(ForbiddenException):
            await inquiry_service.update_status(
                uuid.uuid4(), BUYER_ORG, triggered_by=USER_ID, status=InquiryStatus.RESPONDED
            )


class TestRejectAndArchive:
    @pytest.mark.asyncio
    async def test_reject_then_archive(self, inquiry_service, mock_db):
        inquiry = _make_inquiry(status=InquiryStatus.QUOTED)
        mock_db.execute.return_value = _make_inquiry_result(inquiry)

        await inquiry_service.reject_inquiry(inquiry.id, BUYER_ORG, USER_ID, reason="Too pricey")
        assert inquiry.status == InquiryStatus.REJECTED

        await inquiry_service.archive_inquiry(inquiry.id, BUYER_ORG, USER_ID)
        assert inquiry.status == InquiryStatus.ARCHIVED
        assert inquiry.archived_at is not None

    @pytest.mark.asyncio
    async def test_converted_cannot_be_archived(self, inquiry_service, mock_db):
        mock_db.execute.return_value = _make_inquiry_result(
            _make_inquiry(status=InquiryStatus.CONVERTED)
        )
        with pytest.raises(InvalidStateException):
            await inquiry_service.archive_inquiry(uuid.uuid4(), BUYER_ORG, USER_ID)


# ---------------------------------------------------------------------------
# Expiry
# ---------------------------------------------------------------------------


class TestExpiry:
    @pytest.mark.asyncio
    async def test_sweep_returns_candidates(self, inquiry_service, mock_db):
        stale = _make_inquiry(expires_at=datetime.now(UTC) - timedelta(days=1))
        result = MagicMock()
        result.scalars.return_value.all.return_value = [stale]
        mock_db.execute.return_value = result

        found = await inquiry_service.sweep_expired(limit=10)

        assert found == [stale]
        statement = mock_db.execute.call_args.args[0]
        assert "expires_at" in str(statement)
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_apply_expiry_expires_pending_quotes(self, inquiry_service, mock_db):
        pending, rejected = _make_quote(), _make_quote(status=QuoteStatus.REJECTED)
        inquiry = _make_inquiry(
            status=InquiryStatus.QUOTED,
            quotes=[pending, rejected],
            expires_at=datetime.now(UTC) - timedelta(hours=2),
        )
        mock_db.execute.return_value = _make_inquiry_result(inquiry)

        await inquiry_service.apply_expiry(inquiry.id)

        assert inquiry.status == InquiryStatus.EXPIRED
        assert pending.status == QuoteStatus.EXPIRED
        assert rejected.status == QuoteStatus.REJECTED
        transition = _added(mock_db, InquiryTransition)[0]
        assert transition.trigger_source == "SYSTEM"
        assert transition.triggered_by is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [InquiryStatus.ARCHIVED, InquiryStatus.CONVERTED])
    async def test_apply_expiry_leaves_closed_inquiry_quotes(self, inquiry_service, mock_db, status):
        pending = _make_quote()
        inquiry = _make_inquiry(
            status=status,
            quotes=[pending],
            expires_at=datetime.now(UTC) - timedelta(hours=2),
        )
        mock_db.execute.return_value = _make_inquiry_result(inquiry)

        with pytest.raises(InvalidStateException):
            await inquiry_service.apply_expiry(inquiry.id)

        assert pending.status == QuoteStatus.PENDING
        assert inquiry.status == status
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_apply_expiry_refuses_live_inquiry(self, inquiry_service, mock_db):
        mock_db.execute.return_value = _make_inquiry_result(_make_inquiry())
        with pytest.raises(InvalidStateException, match="does not expire until"):
            await inquiry_service.apply_expiry(uuid.uuid4())


# ---------------------------------------------------------------------------
# State machine table
# ---------------------------------------------------------------------------


class TestTransitionTable:
    def test_converted_and_archived_are_final(self):
        assert VALID_TRANSITIONS[InquiryStatus.CONVERTED] == {}
        assert VALID_TRANSITIONS[InquiryStatus.ARCHIVED] == {}

    def test_only_accepted_can_convert(self):
        converting = [
            status
            for status, moves in VALID_TRANSITIONS.items()
            if InquiryTransitionType.CONVERT in moves
        ]
        assert converting == [InquiryStatus.ACCEPTED]

    def test_every_status_has_a_row(self):
        assert set(VALID_TRANSITIONS) == set(InquiryStatus)

    @pytest.mark.asyncio
    async def test_transition_writes_audit_and_event(self, inquiry_service, mock_db):
        inquiry = _make_inquiry(status=InquiryStatus.OPEN)

        await inquiry_service._transition(
            inquiry, InquiryTransitionType.REJECT, triggered_by=USER_ID, reason="Not relevant"
        )

        transition = _added(mock_db, InquiryTransition)[0]
        assert transition.from_status == InquiryStatus.OPEN
        assert transition.to_status == InquiryStatus.REJECTED
        assert transition.reason == "Not relevant"
        event = _added(mock_db, EventOutbox)[0]
        assert event.event_type == "inquiry.rejected"
        assert event.payload["from_status"] == "OPEN"


class TestMessageTypeOnQuote:
    @pytest.mark.asyncio
    async def test_quote_message_carries_details(self, inquiry_service, mock_db):
        inquiry = _make_inquiry(status=InquiryStatus.RESPONDED)
        mock_db.execute.return_value = _make_inquiry_result(inquiry)

        message = await inquiry_service.append_message(
            inquiry.id, sender_org_id=SUPPLIER_ORG, sent_by=USER_ID,
            body="Our offer", is_quote=True, quote_details={"unit_price": "9.90"},
        )

        assert message.is_quote is True
        assert message.quote_details == {"unit_price": "9.90"}
        assert message.message_type == MessageType.TEXT
