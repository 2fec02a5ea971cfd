"""Thread references — a message thread is anchored to one order or one inquiry."""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from sqlalchemy import ColumnElement

from src.models.enums import ThreadKind
from src.models.message import Message


@dataclass(frozen=True)
class ThreadRef:
    kind: ThreadKind
    id: uuid.UUID

    @classmethod
    def order(cls, order_id: uuid.UUID) -> ThreadRef:
        return cls(ThreadKind.ORDER, order_id)

    @classmethod
    def inquiry(cls, inquiry_id: uuid.UUID) -> ThreadRef:
        return cls(ThreadKind.INQUIRY, inquiry_id)

    @classmethod
    def of(cls, message: Message) -> ThreadRef:
        if message.order_id is not None:
            return cls.order(message.order_id)
        return cls.inquiry(message.inquiry_id)

    def column(self):
        """The ``messages`` column that anchors this kind of thread."""
        return Message.order_id if self.kind == ThreadKind.ORDER else Message.inquiry_id

    def clause(self) -> ColumnElement[bool]:
        return self.column() == self.id

    def anchor_fields(self) -> dict[str, uuid.UUID]:
        """Keyword arguments that pin a new Message to this thread."""
        if self.kind == ThreadKind.ORDER:
            return {"order_id": self.id}
        return {"inquiry_id": self.id}

    def __str__(self) -> str:
        return f"{self.kind.value.lower()}:{self.id}"
