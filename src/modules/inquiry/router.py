"""Inquiry & quote negotiation API router."""

from __future__ import annotations

import uuid
from typing import Literal

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.database.session import get_db
from src.models.enums import InquiryPriority, InquiryStatus
from src.modules.auth.dependencies import (
    AuthenticatedUser,
    get_current_user,
    require_buyer,
    require_supplier,
)
from src.modules.inquiry.schemas import (
    ConvertRequest,
    ConvertResponse,
    InquiryActionRequest,
    InquiryCreate,
    InquiryListResponse,
    InquiryMessageCreate,
    InquiryNoteCreate,
    InquiryNotesResponse,
    InquiryResponse,
    InquiryStatsResponse,
    InquiryStatusUpdate,
    QuoteCreate,
    QuoteResponse,
    TransitionResponse,
)
from src.modules.inquiry.service import InquiryService
from src.modules.messaging.schemas import (
    MarkReadResponse,
    MessageListResponse,
    MessageResponse,
)
from src.modules.order.bridge import InquiryOrderBridge
from src.rate_limit import limiter
from src.schemas.responses import ErrorResponse

router = APIRouter(
    prefix="/inquiries",
    tags=["inquiries"],
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)


# ---------------------------------------------------------------------------
# Inquiry CRUD
# ---------------------------------------------------------------------------


@router.post("/", response_model=InquiryResponse, status_code=201)
async def create_inquiry(
    body: InquiryCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Send a new inquiry to a supplier. Starts in OPEN status."""
    require_buyer(user)
    svc = InquiryService(db)
    inquiry = await svc.create_inquiry(
        inquirer_org_id=user.organization_id,
        created_by=user.id,
        supplier_org_id=body.supplier_org_id,
        subject=body.subject,
        message=body.message,
        inquiry_type=body.inquiry_type,
        product_id=body.product_id,
        requested_quantity=body.requested_quantity,
        unit=body.unit,
        custom_specifications=body.custom_specifications,
        budget_min=body.budget_min,
        budget_max=body.budget_max,
        budget_currency=body.budget_currency.value,
        urgency=body.urgency,
        required_by=body.required_by,
        shipping_method=body.shipping_method,
        incoterms=body.incoterms,
        delivery_address=body.delivery_address,
        priority=body.priority,
        expires_at=body.expires_at,
        attachments=[a.model_dump() for a in body.attachments],
    )
    return InquiryResponse.model_validate(inquiry)


@router.get("/", response_model=InquiryListResponse)
async def list_inquiries(
    as_role: Literal["inquirer", "supplier"] | None = Query(None),
    status: InquiryStatus | None = Query(None),
    priority: InquiryPriority | None = Query(None),
    search: str | None = Query(None, max_length=255),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List inquiries the calling organization sent or received."""
    svc = InquiryService(db)
    items, total = await svc.list_inquiries(
        organization_id=user.organization_id,
        as_role=as_role,
        status=status,
        priority=priority,
        search=search,
        limit=limit,
        offset=offset,
    )
    return InquiryListResponse(
        items=[InquiryResponse.model_validate(i) for i in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/stats", response_model=InquiryStatsResponse)
async def get_inquiry_stats(
    as_role: Literal["inquirer", "supplier"] | None = Query(None),
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Counts and response/conversion rates; suppliers see received inquiries by default."""
    if as_role is None:
        as_role = "supplier" if user.is_supplier else "inquirer"
    svc = InquiryService(db)
    stats = await svc.get_stats(user.organization_id, as_role=as_role)
    return InquiryStatsResponse(**stats)


@router.get("/{inquiry_id}", response_model=InquiryResponse)
async def get_inquiry(
    inquiry_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    svc = InquiryService(db)
    inquiry = await svc.get_inquiry_for_party(inquiry_id, user.organization_id)
    return InquiryResponse.model_validate(inquiry)


@router.patch("/{inquiry_id}/status", response_model=InquiryResponse)
async def update_inquiry_status(
    inquiry_id: uuid.UUID,
    body: InquiryStatusUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Supplier workflow: mark RESPONDED/NEGOTIATING or change priority."""
    require_supplier(user)
    svc = InquiryService(db)
    inquiry = await svc.update_status(
        inquiry_id=inquiry_id,
        organization_id=user.organization_id,
        triggered_by=user.id,
        status=body.status,
        priority=body.priority,
        expected_version=body.expected_version,
    )
    return InquiryResponse.model_validate(inquiry)


@router.post("/{inquiry_id}/duplicate", response_model=InquiryResponse, status_code=201)
async def duplicate_inquiry(
    inquiry_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Open a new inquiry to the same supplier with the same request details."""
    require_buyer(user)
    svc = InquiryService(db)
    inquiry = await svc.duplicate_inquiry(inquiry_id, user.organization_id, created_by=user.id)
    return InquiryResponse.model_validate(inquiry)


# ---------------------------------------------------------------------------
# Supplier notes
# ---------------------------------------------------------------------------


@router.get("/{inquiry_id}/notes", response_model=InquiryNotesResponse)
async def get_inquiry_notes(
    inquiry_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    require_supplier(user)
    svc = InquiryService(db)
    inquiry = await svc.get_notes(inquiry_id, user.organization_id)
    return InquiryNotesResponse.model_validate(inquiry)


@router.post("/{inquiry_id}/notes", response_model=InquiryNotesResponse)
async def add_inquiry_note(
    inquiry_id: uuid.UUID,
    body: InquiryNoteCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Append a private note; the inquirer never sees these."""
    require_supplier(user)
    svc = InquiryService(db)
    inquiry = await svc.add_note(
        inquiry_id,
        user.organization_id,
        note=body.note,
        expected_version=body.expected_version,
    )
    return InquiryNotesResponse.model_validate(inquiry)


# ---------------------------------------------------------------------------
# Transcript
# ---------------------------------------------------------------------------


@router.get("/{inquiry_id}/messages", response_model=MessageListResponse)
async def list_inquiry_messages(
    inquiry_id: uuid.UUID,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    svc = InquiryService(db)
    items, total = await svc.list_messages(inquiry_id, user.organization_id, limit, offset)
    return MessageListResponse(
        items=[MessageResponse.model_validate(m) for m in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/{inquiry_id}/messages", response_model=MessageResponse, status_code=201)
@limiter.limit(settings.rate_limit_post_message)
async def post_inquiry_message(
    request: Request,
    inquiry_id: uuid.UUID,
    body: InquiryMessageCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Post a message; the first reply on an OPEN inquiry marks it RESPONDED."""
    svc = InquiryService(db)
    message = await svc.append_message(
        inquiry_id=inquiry_id,
        sender_org_id=user.organization_id,
        sent_by=user.id,
        body=body.body,
        attachments=[a.model_dump() for a in body.attachments],
        is_quote=body.is_quote,
        quote_details=body.quote_details,
        expected_version=body.expected_version,
    )
    return MessageResponse.model_validate(message)


@router.post("/{inquiry_id}/read", response_model=MarkReadResponse)
async def mark_inquiry_read(
    inquiry_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    svc = InquiryService(db)
    updated = await svc.mark_read(inquiry_id, user.organization_id)
    return MarkReadResponse(updated=updated)


# ---------------------------------------------------------------------------
# Quotes
# ---------------------------------------------------------------------------


@router.post("/{inquiry_id}/quotes", response_model=QuoteResponse, status_code=201)
async def add_quote(
    inquiry_id: uuid.UUID,
    body: QuoteCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Submit a priced quote. Only the supplier on the inquiry may quote."""
    require_supplier(user)
    svc = InquiryService(db)
    quote = await svc.add_quote(
        inquiry_id=inquiry_id,
        quoted_by_org_id=user.organization_id,
        quoted_by=user.id,
        unit_price=body.unit_price,
        total_price=body.total_price,
        currency=body.currency.value,
        valid_until=body.valid_until,
        terms=body.terms,
        notes=body.notes,
        expected_version=body.expected_version,
    )
    return QuoteResponse.model_validate(quote)


@router.post("/{inquiry_id}/quotes/{quote_id}/accept", response_model=InquiryResponse)
async def accept_quote(
    inquiry_id: uuid.UUID,
    quote_id: uuid.UUID,
    body: InquiryActionRequest | None = None,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    svc = InquiryService(db)
    await svc.accept_quote(
        inquiry_id=inquiry_id,
        quote_id=quote_id,
        organization_id=user.organization_id,
        accepted_by=user.id,
        expected_version=body.expected_version if body else None,
    )
    inquiry = await svc.get_inquiry_for_party(inquiry_id, user.organization_id)
    return InquiryResponse.model_validate(inquiry)


@router.post("/{inquiry_id}/quotes/{quote_id}/reject", response_model=QuoteResponse)
async def reject_quote(
    inquiry_id: uuid.UUID,
    quote_id: uuid.UUID,
    body: InquiryActionRequest | None = None,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    svc = InquiryService(db)
    quote = await svc.reject_quote(
        inquiry_id=inquiry_id,
        quote_id=quote_id,
        organization_id=user.organization_id,
        rejected_by=user.id,
        expected_version=body.expected_version if body else None,
    )
    return QuoteResponse.model_validate(quote)


# ---------------------------------------------------------------------------
# Lifecycle actions
# ---------------------------------------------------------------------------


@router.post("/{inquiry_id}/convert", response_model=ConvertResponse, status_code=201)
async def convert_to_order(
    inquiry_id: uuid.UUID,
    body: ConvertRequest | None = None,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a purchase order from the accepted quote."""
    require_buyer(user)
    body = body or ConvertRequest()
    bridge = InquiryOrderBridge(db)
    inquiry, order = await bridge.convert(
        inquiry_id=inquiry_id,
        buyer_org_id=user.organization_id,
        created_by=user.id,
        delivery_address=body.delivery_address,
        notes=body.notes,
        expected_version=body.expected_version,
    )
    return ConvertResponse(
        inquiry=InquiryResponse.model_validate(inquiry),
        order_id=order.id,
        order_number=order.order_number,
    )


@router.post("/{inquiry_id}/reject", response_model=InquiryResponse)
async def reject_inquiry(
    inquiry_id: uuid.UUID,
    body: InquiryActionRequest | None = None,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    body = body or InquiryActionRequest()
    svc = InquiryService(db)
    inquiry = await svc.reject_inquiry(
        inquiry_id=inquiry_id,
        organization_id=user.organization_id,
        triggered_by=user.id,
        reason=body.reason,
        expected_version=body.expected_version,
    )
    return InquiryResponse.model_validate(inquiry)


@router.post("/{inquiry_id}/archive", response_model=InquiryResponse)
async def archive_inquiry(
    inquiry_id: uuid.UUID,
    body: InquiryActionRequest | None = None,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    body = body or InquiryActionRequest()
    svc = InquiryService(db)
    inquiry = await svc.archive_inquiry(
        inquiry_id=inquiry_id,
        organization_id=user.organization_id,
        triggered_by=user.id,
        reason=body.reason,
        expected_version=body.expected_version,
    )
    return InquiryResponse.model_validate(inquiry)


@router.get("/{inquiry_id}/transitions", response_model=list[TransitionResponse])
async def get_transitions(
    inquiry_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Audit trail of status changes, oldest first."""
    svc = InquiryService(db)
    transitions = await svc.get_transitions(inquiry_id, user.organization_id)
    return [TransitionResponse.model_validate(t) for t in transitions]
