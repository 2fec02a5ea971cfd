"""Conversation inbox API router."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.session import get_db
from src.modules.auth.dependencies import AuthenticatedUser, get_current_user
from src.modules.conversation.schemas import (
    ConversationListResponse,
    ConversationResponse,
)
from src.modules.conversation.service import ConversationService
from src.schemas.responses import ErrorResponse

router = APIRouter(
    prefix="/conversations",
    tags=["conversations"],
    responses={
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)


@router.get("/", response_model=ConversationListResponse)
async def list_conversations(
    counterparty: uuid.UUID | None = Query(
        None, description="Pin this organization first, with a placeholder if no thread exists"
    ),
    search: str | None = Query(None, max_length=255),
    filter_by: str = Query("all", alias="filter"),
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """One entry per counterparty, most relevant first."""
    svc = ConversationService(db)
    conversations = await svc.list_conversations(
        organization_id=user.organization_id,
        current_counterparty_id=counterparty,
        search=search,
        filter_by=filter_by,
    )
    return ConversationListResponse(
        items=[ConversationResponse.from_conversation(c) for c in conversations],
        total=len(conversations),
        current_counterparty_id=counterparty,
    )
