"""Per-counterparty conversation resolution.

Pure functions over thread candidates: no I/O, no session. The service layer
loads candidates and profiles, then hands them to ``resolve_conversations``.

A buyer and a supplier may share an order thread and an inquiry thread at the
same time. The inbox shows one entry per counterparty, backed by the best of
those threads: a thread with messages beats one without, and among equals the
most recent activity wins.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import ClassVar

from src.exceptions import NotFoundException
from src.models.enums import MessageType
from src.models.message import Message
from src.modules.directory.service import CompanyProfile
from src.modules.messaging.thread_ref import ThreadRef

logger = logging.getLogger(__name__)

PLACEHOLDER_STATUS = "NEW"


@dataclass(frozen=True)
class MessagePreview:
    body: str | None
    created_at: datetime
    message_type: MessageType
    sender_org_id: uuid.UUID | None = None
    message_id: uuid.UUID | None = None
    attachment_count: int = 0

    @classmethod
    def from_message(cls, message: Message) -> MessagePreview:
        return cls(
            body=message.body,
            created_at=message.created_at,
            message_type=message.message_type,
            sender_org_id=message.sender_org_id,
            message_id=message.id,
            attachment_count=len(message.attachments or []),
        )


@dataclass(frozen=True)
class ThreadCandidate:
    """One order or inquiry thread as seen from the requesting organization."""

    thread: ThreadRef
    counterparty_id: uuid.UUID | None
    status: str
    created_at: datetime
    reference: str
    subject: str | None = None
    last_message: MessagePreview | None = None
    unread_count: int = 0
    is_closed: bool = False

    @property
    def has_messages(self) -> bool:
        return self.last_message is not None

    @property
    def last_activity_at(self) -> datetime:
        if self.last_message is not None:
            return self.last_message.created_at
        return self.created_at


def rank_key(candidate: ThreadCandidate) -> tuple[bool, datetime]:
    """Tie-break between threads with the same counterparty; greater wins."""
    return (candidate.has_messages, candidate.last_activity_at)


def better_thread(current: ThreadCandidate, challenger: ThreadCandidate) -> ThreadCandidate:
    """Keep ``current`` unless ``challenger`` ranks strictly higher."""
    return challenger if rank_key(challenger) > rank_key(current) else current


@dataclass(frozen=True)
class RealConversation:
    kind: ClassVar[str] = "conversation"

    counterparty: CompanyProfile
    thread: ThreadRef
    reference: str
    status: str
    thread_created_at: datetime
    subject: str | None = None
    last_message: MessagePreview | None = None
    unread_count: int = 0
    is_current: bool = False
    is_closed: bool = False

    @classmethod
    def from_candidate(
        cls, candidate: ThreadCandidate, counterparty: CompanyProfile, is_current: bool = False
    ) -> RealConversation:
        return cls(
            counterparty=counterparty,
            thread=candidate.thread,
            reference=candidate.reference,
            status=candidate.status,
            thread_created_at=candidate.created_at,
            subject=candidate.subject,
            last_message=candidate.last_message,
            unread_count=candidate.unread_count,
            is_current=is_current,
            is_closed=candidate.is_closed,
        )

    @property
    def has_messages(self) -> bool:
        return self.last_message is not None

    @property
    def last_activity_at(self) -> datetime:
        if self.last_message is not None:
            return self.last_message.created_at
        return self.thread_created_at


@dataclass(frozen=True)
class PlaceholderConversation:
    """Synthesized entry for a counterparty with no thread yet. Never persisted."""

    kind: ClassVar[str] = "placeholder"
    status: ClassVar[str] = PLACEHOLDER_STATUS
    unread_count: ClassVar[int] = 0
    has_messages: ClassVar[bool] = False
    thread: ClassVar[None] = None
    is_closed: ClassVar[bool] = False

    counterparty: CompanyProfile
    last_message: MessagePreview
    is_current: bool = True

    @property
    def last_activity_at(self) -> datetime:
        return self.last_message.created_at


Conversation = RealConversation | PlaceholderConversation


def invite_preview(text: str, now: datetime) -> MessagePreview:
    return MessagePreview(body=text, created_at=now, message_type=MessageType.SYSTEM)


def group_by_counterparty(
    candidates: Iterable[ThreadCandidate],
    profiles: dict[uuid.UUID, CompanyProfile],
) -> dict[uuid.UUID, ThreadCandidate]:
    """Pick the best thread per counterparty.

    Threads whose counterparty is missing or has no directory profile are
    dropped with a warning; one bad thread never blanks the inbox.
    """
    best: dict[uuid.UUID, ThreadCandidate] = {}
    for candidate in candidates:
        counterparty_id = candidate.counterparty_id
        if counterparty_id is None:
            logger.warning("Dropping %s: thread has no counterparty", candidate.thread)
            continue
        if counterparty_id not in profiles:
            logger.warning(
                "Dropping %s: counterparty %s not found in directory",
                candidate.thread, counterparty_id,
            )
            continue
        existing = best.get(counterparty_id)
        best[counterparty_id] = candidate if existing is None else better_thread(existing, candidate)
    return best


def sort_key(conversation: Conversation) -> tuple[bool, bool, bool, float]:
    """Pinned first, then unread, then with-messages, then most recent."""
    return (
        not conversation.is_current,
        conversation.unread_count == 0,
        not conversation.has_messages,
        -conversation.last_activity_at.timestamp(),
    )


def resolve_conversations(
    candidates: Iterable[ThreadCandidate],
    profiles: dict[uuid.UUID, CompanyProfile],
    current_counterparty: uuid.UUID | None = None,
    now: datetime | None = None,
    placeholder_text: str = "Start a conversation",
) -> list[Conversation]:
    """Build the ranked, one-entry-per-counterparty inbox.

    Only counterparties with at least one message are listed, except
    ``current_counterparty``, which is always listed first: through its best
    thread when one exists, otherwise as a PlaceholderConversation.
    """
    best = group_by_counterparty(candidates, profiles)

    conversations: list[Conversation] = []
    for counterparty_id, candidate in best.items():
        is_current = counterparty_id == current_counterparty
        if not candidate.has_messages and not is_current:
            continue
        conversations.append(
            RealConversation.from_candidate(candidate, profiles[counterparty_id], is_current)
        )

    if current_counterparty is not None and current_counterparty not in best:
        profile = profiles.get(current_counterparty)
        if profile is None:
            raise NotFoundException(f"Organization {current_counterparty} not found")
        conversations.append(
            PlaceholderConversation(
                counterparty=profile,
                last_message=invite_preview(placeholder_text, now or datetime.now(UTC)),
            )
        )

    conversations.sort(key=sort_key)
    return conversations


def apply_filters(
    conversations: list[Conversation],
    search: str | None = None,
    filter_by: str = "all",
) -> list[Conversation]:
    """Inbox search and unread/active filters. The pinned entry always stays."""
    needle = search.strip().lower() if search else ""

    def matches(conversation: Conversation) -> bool:
        if conversation.is_current:
            return True
        if filter_by == "unread" and conversation.unread_count == 0:
            return False
        if filter_by == "active" and conversation.is_closed:
            return False
        if needle:
            haystack = [conversation.counterparty.display_name]
            if isinstance(conversation, RealConversation):
                haystack.append(conversation.reference)
                haystack.append(conversation.subject or "")
            if conversation.last_message is not None:
                haystack.append(conversation.last_message.body or "")
            return any(needle in value.lower() for value in haystack)
        return True

    return [c for c in conversations if matches(c)]
