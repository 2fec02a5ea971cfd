"""Inquiry state machine transitions, event types, and status groups."""

from __future__ import annotations

from src.models.enums import InquiryStatus, InquiryTransitionType

# Valid transitions: from_status -> {transition_type -> to_status}
# ASSIGN is resolved separately because its target is chosen by the caller.
VALID_TRANSITIONS: dict[InquiryStatus, dict[InquiryTransitionType, InquiryStatus]] = {
    InquiryStatus.OPEN: {
        InquiryTransitionType.RESPOND: InquiryStatus.RESPONDED,
        InquiryTransitionType.QUOTE: InquiryStatus.QUOTED,
        InquiryTransitionType.REJECT: InquiryStatus.REJECTED,
        InquiryTransitionType.EXPIRE: InquiryStatus.EXPIRED,
        InquiryTransitionType.ARCHIVE: InquiryStatus.ARCHIVED,
    },
    InquiryStatus.RESPONDED: {
        InquiryTransitionType.QUOTE: InquiryStatus.QUOTED,
        InquiryTransitionType.ACCEPT: InquiryStatus.ACCEPTED,
        InquiryTransitionType.REJECT: InquiryStatus.REJECTED,
        InquiryTransitionType.EXPIRE: InquiryStatus.EXPIRED,
        InquiryTransitionType.ARCHIVE: InquiryStatus.ARCHIVED,
    },
    InquiryStatus.NEGOTIATING: {
        InquiryTransitionType.QUOTE: InquiryStatus.QUOTED,
        InquiryTransitionType.ACCEPT: InquiryStatus.ACCEPTED,
        InquiryTransitionType.REJECT: InquiryStatus.REJECTED,
        InquiryTransitionType.EXPIRE: InquiryStatus.EXPIRED,
        InquiryTransitionType.ARCHIVE: InquiryStatus.ARCHIVED,
    },
    InquiryStatus.QUOTED: {
        InquiryTransitionType.QUOTE: InquiryStatus.QUOTED,
        InquiryTransitionType.ACCEPT: InquiryStatus.ACCEPTED,
        InquiryTransitionType.REJECT: InquiryStatus.REJECTED,
        InquiryTransitionType.EXPIRE: InquiryStatus.EXPIRED,
        InquiryTransitionType.ARCHIVE: InquiryStatus.ARCHIVED,
    },
    InquiryStatus.ACCEPTED: {
        InquiryTransitionType.QUOTE: InquiryStatus.QUOTED,
        InquiryTransitionType.CONVERT: InquiryStatus.CONVERTED,
        InquiryTransitionType.REJECT: InquiryStatus.REJECTED,
        InquiryTransitionType.EXPIRE: InquiryStatus.EXPIRED,
        InquiryTransitionType.ARCHIVE: InquiryStatus.ARCHIVED,
    },
    InquiryStatus.REJECTED: {
        InquiryTransitionType.ARCHIVE: InquiryStatus.ARCHIVED,
    },
    InquiryStatus.EXPIRED: {
        InquiryTransitionType.ARCHIVE: InquiryStatus.ARCHIVED,
    },
    InquiryStatus.CONVERTED: {},
    InquiryStatus.ARCHIVED: {},
}

# Direct status assignment (supplier-side workflow management)
ASSIGNABLE_FROM: set[InquiryStatus] = {
    InquiryStatus.OPEN,
    InquiryStatus.RESPONDED,
    InquiryStatus.NEGOTIATING,
    InquiryStatus.QUOTED,
}
ASSIGN_TARGETS: set[InquiryStatus] = {
    InquiryStatus.RESPONDED,
    InquiryStatus.NEGOTIATING,
}

# Statuses that end negotiation; no new quotes or quote messages
TERMINAL_STATUSES: set[InquiryStatus] = {
    InquiryStatus.REJECTED,
    InquiryStatus.EXPIRED,
    InquiryStatus.CONVERTED,
    InquiryStatus.ARCHIVED,
}

# Statuses the expiry sweep never returns
SWEEP_EXCLUDED_STATUSES: set[InquiryStatus] = {
    InquiryStatus.CONVERTED,
    InquiryStatus.EXPIRED,
    InquiryStatus.REJECTED,
    InquiryStatus.ARCHIVED,
}

# Event type strings for the outbox
EVENT_INQUIRY_CREATED = "inquiry.created"
EVENT_INQUIRY_RESPONDED = "inquiry.responded"
EVENT_INQUIRY_QUOTED = "inquiry.quoted"
EVENT_INQUIRY_ACCEPTED = "inquiry.accepted"
EVENT_INQUIRY_CONVERTED = "inquiry.converted"
EVENT_INQUIRY_REJECTED = "inquiry.rejected"
EVENT_INQUIRY_EXPIRED = "inquiry.expired"
EVENT_INQUIRY_ARCHIVED = "inquiry.archived"
EVENT_INQUIRY_STATUS_ASSIGNED = "inquiry.status_assigned"
EVENT_QUOTE_REJECTED = "quote.rejected"
EVENT_CONVERSION_RECONCILIATION_REQUIRED = "inquiry.conversion_reconciliation_required"

TRANSITION_EVENT_MAP: dict[InquiryTransitionType, str] = {
    InquiryTransitionType.RESPOND: EVENT_INQUIRY_RESPONDED,
    InquiryTransitionType.QUOTE: EVENT_INQUIRY_QUOTED,
    InquiryTransitionType.ACCEPT: EVENT_INQUIRY_ACCEPTED,
    InquiryTransitionType.CONVERT: EVENT_INQUIRY_CONVERTED,
    InquiryTransitionType.REJECT: EVENT_INQUIRY_REJECTED,
    InquiryTransitionType.EXPIRE: EVENT_INQUIRY_EXPIRED,
    InquiryTransitionType.ARCHIVE: EVENT_INQUIRY_ARCHIVED,
    InquiryTransitionType.ASSIGN: EVENT_INQUIRY_STATUS_ASSIGNED,
}

# Field limits
SUBJECT_MAX_LENGTH = 200
MESSAGE_MAX_LENGTH = 2000
NOTE_MAX_LENGTH = 1000

# Statistics: "new" means OPEN and created within this window
NEW_INQUIRY_WINDOW_DAYS = 7

# Statuses counted as answered by the supplier for the response rate
RESPONDED_STATUSES: set[InquiryStatus] = {
    InquiryStatus.RESPONDED,
    InquiryStatus.QUOTED,
    InquiryStatus.NEGOTIATING,
}

ATTACHMENT_KINDS = ("IMAGE", "DOCUMENT", "SPECIFICATION", "DRAWING", "OTHER")
