from datetime import date as date_type, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.domain.state_machine import BookingStatus, PaymentStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# -----------------------------
# Slots
# -----------------------------
class SlotResponse(CamelModel):
    id: str
    date: date_type
    start_time: str
    end_time: str
    price: int
    capacity: int
    booked_count: int
    is_available: bool


class SlotListResponse(CamelModel):
    slots: list[SlotResponse]


class SlotGenerateRequest(CamelModel):
    start_date: date_type | None = None
    days: int = Field(default=7, ge=1, le=60)
    opening_hour: int = Field(default=6, ge=0, le=23)
    closing_hour: int = Field(default=22, ge=1, le=24)
    price: int = Field(default=2500, ge=0)
    capacity: int = Field(default=1, ge=1)


class SlotGenerateResponse(CamelModel):
    created: int
    slots: list[SlotResponse]


class SlotUpdateRequest(CamelModel):
    is_available: bool | None = None
    price: int | None = None
    capacity: int | None = None


# -----------------------------
# Bookings
# -----------------------------
class BookingRequest(CamelModel):
    slot_id: str
    # 1-22, checked by the ledger.
    player_count: int
    notes: str | None = None


class PaymentSummary(CamelModel):
    id: str
    amount: int
    status: PaymentStatus
    method: str
    receipt_number: str | None = None
    phone_number: str | None = None
    paid_at: datetime | None = None


class BookingResponse(CamelModel):
    id: str
    reference: str
    user_id: str
    slot_id: str
    amount: int
    player_count: int
    notes: str | None = None
    status: BookingStatus
    entry_token: str
    is_validated: bool
    validated_at: datetime | None = None
    validated_by: str | None = None
    cancelled_at: datetime | None = None
    created_at: datetime | None = None
    slot: SlotResponse | None = None
    payment: PaymentSummary | None = None


class Pagination(CamelModel):
    total: int
    page: int
    limit: int
    pages: int


class BookingListResponse(CamelModel):
    bookings: list[BookingResponse]
    pagination: Pagination


class BookingUpdateRequest(CamelModel):
    status: BookingStatus | None = None
    notes: str | None = None


# -----------------------------
# Payments
# -----------------------------
class PushPaymentRequest(CamelModel):
    booking_id: str
    phone_number: str


class PushPaymentResponse(CamelModel):
    checkout_request_id: str
    message: str
    payment_id: str
    status: PaymentStatus


class BookingStatusRef(CamelModel):
    id: str
    status: BookingStatus


class PaymentStatusResponse(CamelModel):
    status: PaymentStatus
    receipt_number: str | None = None
    booking: BookingStatusRef


class ProviderStatusResponse(CamelModel):
    checkout_request_id: str
    state: Literal["PENDING", "SUCCESS", "FAILED"]
    result_code: int | None = None
    result_description: str = ""


class ReconcileResponse(CamelModel):
    checkout_request_id: str
    status: PaymentStatus
    outcome: Literal["APPLIED", "DUPLICATE"] | None = None
    receipt_number: str | None = None
    booking: BookingStatusRef


class CallbackAckResponse(CamelModel):
    result_code: int
    result_description: str


# -----------------------------
# Tickets
# -----------------------------
class TicketValidationResponse(CamelModel):
    message: str
    booking: BookingResponse


# -----------------------------
# Admin
# -----------------------------
class AnalyticsResponse(CamelModel):
    total_bookings: int
    bookings_by_status: dict[str, int]
    revenue: int
    today_bookings: int
    validated_tickets: int


class ErrorResponse(CamelModel):
    detail: str
    code: str
    category: Literal["validation", "retry", "final"]
