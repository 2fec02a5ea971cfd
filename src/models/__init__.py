# Import all models so SQLAlchemy metadata is populated for Alembic autogenerate
from src.models.enums import (
    Currency,
    EventStatus,
    Incoterm,
    InquiryPriority,
    InquiryStatus,
    InquiryTransitionType,
    InquiryType,
    InquiryUnit,
    MessageStatus,
    MessageType,
    OrderStatus,
    OrganizationStatus,
    OrganizationType,
    QuoteStatus,
    ShippingMethod,
    ThreadKind,
    Urgency,
)
from src.models.event_outbox import EventOutbox
from src.models.inquiry import Inquiry, InquiryNumberCounter
from src.models.inquiry_quote import InquiryQuote
from src.models.inquiry_transition import InquiryTransition
from src.models.message import Message
from src.models.order import Order
from src.models.organization import Organization

__all__ = [
    "Currency",
    "EventOutbox",
    "EventStatus",
    "Incoterm",
    "Inquiry",
    "InquiryNumberCounter",
    "InquiryPriority",
    "InquiryQuote",
    "InquiryStatus",
    "InquiryTransition",
    "InquiryTransitionType",
    "InquiryType",
    "InquiryUnit",
    "Message",
    "MessageStatus",
    "MessageType",
    "Order",
    "OrderStatus",
    "Organization",
    "OrganizationStatus",
    "OrganizationType",
    "QuoteStatus",
    "ShippingMethod",
    "ThreadKind",
    "Urgency",
]
