"""Pydantic v2 schemas for message ledger endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from src.models.enums import MessageStatus, MessageType


class AttachmentIn(BaseModel):
    """Reference to an already-uploaded file; storage is handled elsewhere."""

    name: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1, max_length=1000)
    mime_type: str | None = Field(None, max_length=100)
    size: int | None = Field(None, ge=0)


class MessageCreate(BaseModel):
    body: str | None = Field(None, max_length=10_000)
    attachments: list[AttachmentIn] = Field(default_factory=list)


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_id: uuid.UUID | None = None
    inquiry_id: uuid.UUID | None = None
    sender_org_id: uuid.UUID
    recipient_org_id: uuid.UUID
    sent_by: uuid.UUID | None = None
    body: str | None = None
    attachments: list[dict] = Field(default_factory=list)
    message_type: MessageType
    status: MessageStatus
    is_quote: bool = False
    quote_details: dict | None = None
    created_at: datetime
    read_at: datetime | None = None


class MessageListResponse(BaseModel):
    items: list[MessageResponse]
    total: int
    limit: int
    offset: int


class MarkReadResponse(BaseModel):
    updated: int


class UnreadCountResponse(BaseModel):
    unread: int
