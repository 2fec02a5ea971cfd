"""Pydantic v2 schemas for inquiry API endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.models.enums import (
    Currency,
    Incoterm,
    InquiryPriority,
    InquiryStatus,
    InquiryTransitionType,
    InquiryType,
    InquiryUnit,
    QuoteStatus,
    ShippingMethod,
    Urgency,
)
from src.modules.messaging.schemas import AttachmentIn

# ---------------------------------------------------------------------------
# Quote schemas
# ---------------------------------------------------------------------------


class QuoteCreate(BaseModel):
    unit_price: Decimal = Field(..., gt=0)
    total_price: Decimal | None = Field(None, ge=0)
    currency: Currency = Currency.USD
    valid_until: datetime | None = None
    terms: str | None = Field(None, max_length=2000)
    notes: str | None = Field(None, max_length=2000)
    expected_version: int | None = Field(None, ge=1)


class QuoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    inquiry_id: uuid.UUID
    quoted_by_org_id: uuid.UUID
    quoted_by: uuid.UUID | None = None
    unit_price: Decimal
    total_price: Decimal
    currency: str
    valid_until: datetime
    terms: str | None = None
    notes: str | None = None
    quoted_at: datetime
    status: QuoteStatus
    accepted_at: datetime | None = None
    rejected_at: datetime | None = None


# ---------------------------------------------------------------------------
# Inquiry schemas
# ---------------------------------------------------------------------------


class InquiryAttachmentIn(BaseModel):
    """Reference file for the whole inquiry, such as a drawing or spec sheet."""

    name: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1, max_length=1000)
    kind: Literal["IMAGE", "DOCUMENT", "SPECIFICATION", "DRAWING", "OTHER"] = "OTHER"


class InquiryAttachmentResponse(BaseModel):
    name: str
    url: str
    kind: str
    uploaded_by: uuid.UUID | None = None
    uploaded_at: datetime | None = None



class InquiryCreate(BaseModel):
    supplier_org_id: uuid.UUID
    inquiry_type: InquiryType = InquiryType.PRODUCT_INQUIRY
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=2000)
    product_id: uuid.UUID | None = None
    requested_quantity: int | None = Field(None, ge=1)
    unit: InquiryUnit = InquiryUnit.PIECES
    custom_specifications: str | None = Field(None, max_length=500)
    budget_min: Decimal | None = Field(None, ge=0)
    budget_max: Decimal | None = Field(None, ge=0)
    budget_currency: Currency = Currency.USD
    urgency: Urgency = Urgency.FLEXIBLE
    required_by: datetime | None = None
    shipping_method: ShippingMethod | None = None
    incoterms: Incoterm | None = None
    delivery_address: str | None = Field(None, max_length=300)
    priority: InquiryPriority = InquiryPriority.MEDIUM
    expires_at: datetime | None = None
    attachments: list[InquiryAttachmentIn] = Field(default_factory=list, max_length=20)

    @model_validator(mode="after")
    def _budget_range(self) -> InquiryCreate:
        if (
            self.budget_min is not None
            and self.budget_max is not None
            and self.budget_min > self.budget_max
        ):
            raise ValueError("budget_max must be greater than or equal to budget_min")
        return self


class InquiryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    inquiry_number: str
    inquiry_type: InquiryType
    inquirer_org_id: uuid.UUID
    supplier_org_id: uuid.UUID
    created_by: uuid.UUID | None = None
    product_id: uuid.UUID | None = None
    subject: str
    message: str
    requested_quantity: int | None = None
    unit: InquiryUnit
    custom_specifications: str | None = None
    budget_min: Decimal | None = None
    budget_max: Decimal | None = None
    budget_currency: str
    urgency: Urgency
    required_by: datetime | None = None
    shipping_method: ShippingMethod | None = None
    incoterms: Incoterm | None = None
    delivery_address: str | None = None
    attachments: list[InquiryAttachmentResponse] = Field(default_factory=list)
    status: InquiryStatus
    priority: InquiryPriority
    expires_at: datetime
    read_by_inquirer: bool
    read_by_supplier: bool
    read_at: datetime | None = None
    converted_order_id: uuid.UUID | None = None
    converted_at: datetime | None = None
    version: int
    quotes: list[QuoteResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class InquiryListResponse(BaseModel):
    items: list[InquiryResponse]
    total: int
    limit: int
    offset: int


class InquiryMessageCreate(BaseModel):
    body: str | None = Field(None, max_length=10_000)
    attachments: list[AttachmentIn] = Field(default_factory=list)
    is_quote: bool = False
    quote_details: dict | None = None
    expected_version: int | None = Field(None, ge=1)


class InquiryStatusUpdate(BaseModel):
    status: InquiryStatus | None = None
    priority: InquiryPriority | None = None
    expected_version: int | None = Field(None, ge=1)

    @model_validator(mode="after")
    def _something_to_update(self) -> InquiryStatusUpdate:
        if self.status is None and self.priority is None:
            raise ValueError("Provide status or priority")
        return self


class InquiryActionRequest(BaseModel):
    """Body for reject/archive/accept actions; all fields optional."""

    reason: str | None = Field(None, max_length=1000)
    expected_version: int | None = Field(None, ge=1)


class ConvertRequest(BaseModel):
    delivery_address: str | None = Field(None, max_length=300)
    notes: str | None = Field(None, max_length=2000)
    expected_version: int | None = Field(None, ge=1)


class ConvertResponse(BaseModel):
    inquiry: InquiryResponse
    order_id: uuid.UUID
    order_number: str


class TransitionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    inquiry_id: uuid.UUID
    from_status: InquiryStatus
    to_status: InquiryStatus
    transition_type: InquiryTransitionType
    triggered_by: uuid.UUID | None = None
    trigger_source: str
    reason: str | None = None
    metadata_extra: dict = Field(default_factory=dict)
    created_at: datetime


class InquiryNoteCreate(BaseModel):
    note: str = Field(..., min_length=1, max_length=1000)
    expected_version: int | None = Field(None, ge=1)


class InquiryNotesResponse(BaseModel):
    """Supplier-only view of the internal notes on one inquiry."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    inquiry_number: str
    internal_notes: str | None = None
    version: int


class InquiryStatsResponse(BaseModel):
    as_role: Literal["inquirer", "supplier"] | None = None
    total: int
    new: int
    responded: int
    converted: int
    response_rate: int
    conversion_rate: int
    by_status: dict[str, int]
