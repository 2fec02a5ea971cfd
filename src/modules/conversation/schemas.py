"""Pydantic v2 schemas for the conversation inbox."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from src.models.enums import MessageType, OrganizationType, ThreadKind
from src.modules.conversation.resolver import (
    Conversation,
    MessagePreview,
    RealConversation,
)
from src.modules.directory.service import CompanyProfile


class CounterpartyResponse(BaseModel):
    id: uuid.UUID
    display_name: str
    organization_type: OrganizationType
    logo_ref: str | None = None
    contact_info: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_profile(cls, profile: CompanyProfile) -> CounterpartyResponse:
        return cls(
            id=profile.id,
            display_name=profile.display_name,
            organization_type=profile.organization_type,
            logo_ref=profile.logo_ref,
            contact_info=profile.contact_info,
        )


class ThreadResponse(BaseModel):
    kind: ThreadKind
    id: uuid.UUID


class MessagePreviewResponse(BaseModel):
    body: str | None = None
    created_at: datetime
    message_type: MessageType
    sender_org_id: uuid.UUID | None = None
    message_id: uuid.UUID | None = None
    attachment_count: int = 0

    @classmethod
    def from_preview(cls, preview: MessagePreview) -> MessagePreviewResponse:
        return cls(
            body=preview.body,
            created_at=preview.created_at,
            message_type=preview.message_type,
            sender_org_id=preview.sender_org_id,
            message_id=preview.message_id,
            attachment_count=preview.attachment_count,
        )


class ConversationResponse(BaseModel):
    kind: Literal["conversation", "placeholder"]
    counterparty: CounterpartyResponse
    thread: ThreadResponse | None = None
    reference: str | None = None
    subject: str | None = None
    status: str
    last_message: MessagePreviewResponse | None = None
    unread_count: int
    has_messages: bool
    is_current: bool
    last_activity_at: datetime

    @classmethod
    def from_conversation(cls, conversation: Conversation) -> ConversationResponse:
        is_real = isinstance(conversation, RealConversation)
        return cls(
            kind=conversation.kind,
            counterparty=CounterpartyResponse.from_profile(conversation.counterparty),
            thread=(
                ThreadResponse(kind=conversation.thread.kind, id=conversation.thread.id)
                if is_real
                else None
            ),
            reference=conversation.reference if is_real else None,
            subject=conversation.subject if is_real else None,
            status=conversation.status,
            last_message=(
                MessagePreviewResponse.from_preview(conversation.last_message)
                if conversation.last_message is not None
                else None
            ),
            unread_count=conversation.unread_count,
            has_messages=conversation.has_messages,
            is_current=conversation.is_current,
            last_activity_at=conversation.last_activity_at,
        )


class ConversationListResponse(BaseModel):
    items: list[ConversationResponse]
    total: int
    current_counterparty_id: uuid.UUID | None = None
