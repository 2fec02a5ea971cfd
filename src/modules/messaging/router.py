"""Order thread messaging API router."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.database.errors import translate_storage_errors
from src.database.session import get_db
from src.modules.auth.dependencies import AuthenticatedUser, get_current_user
from src.modules.messaging.ledger_service import MessageLedgerService
from src.modules.messaging.order_thread_service import OrderThreadService
from src.modules.messaging.schemas import (
    MarkReadResponse,
    MessageCreate,
    MessageListResponse,
    MessageResponse,
    UnreadCountResponse,
)
from src.rate_limit import limiter
from src.schemas.responses import ErrorResponse

router = APIRouter(
    tags=["messages"],
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)


@router.get("/orders/{order_id}/messages", response_model=MessageListResponse)
async def list_order_messages(
    order_id: uuid.UUID,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Order transcript, oldest first."""
    svc = OrderThreadService(db)
    items, total = await svc.list_messages(order_id, user.organization_id, limit, offset)
    return MessageListResponse(
        items=[MessageResponse.model_validate(m) for m in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/orders/{order_id}/messages", response_model=MessageResponse, status_code=201)
@limiter.limit(settings.rate_limit_post_message)
async def post_order_message(
    request: Request,
    order_id: uuid.UUID,
    body: MessageCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    svc = OrderThreadService(db)
    message = await svc.post_message(
        order_id=order_id,
        organization_id=user.organization_id,
        sent_by=user.id,
        body=body.body,
        attachments=[a.model_dump() for a in body.attachments],
    )
    return MessageResponse.model_validate(message)


@router.post("/orders/{order_id}/messages/read", response_model=MarkReadResponse)
async def mark_order_messages_read(
    order_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    svc = OrderThreadService(db)
    updated = await svc.mark_read(order_id, user.organization_id)
    return MarkReadResponse(updated=updated)


@router.get("/messages/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Unread messages addressed to the caller across every thread."""
    with translate_storage_errors("unread count"):
        total = await MessageLedgerService(db).count_unread_total(user.organization_id)
    return UnreadCountResponse(unread=total)
