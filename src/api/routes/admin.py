from datetime import datetime, timezone
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from src.api.dependencies import get_db, get_gateway, get_settings, require_permission
from src.api.routes.bookings import booking_list_response
from src.api.schemas.schemas import (
    AnalyticsResponse,
    BookingListResponse,
    BookingStatusRef,
    ReconcileResponse,
    SlotGenerateRequest,
    SlotGenerateResponse,
    SlotListResponse,
    SlotResponse,
    SlotUpdateRequest,
)
from src.application.analytics_service import AnalyticsService
from src.application.booking_service import BookingService
from src.application.callback_processor import CallbackProcessor
from src.application.payment_service import PaymentService
from src.application.slot_service import SlotService
from src.domain.permissions import Actor, Permission
from src.domain.state_machine import BookingStatus
from src.infrastructure.config import Settings
from src.infrastructure.gateways.mpesa_gateway import PaymentGateway


router = APIRouter(prefix="/admin", tags=["admin"])


# -----------------------------
# Bookings
# -----------------------------
@router.get("/bookings", response_model=BookingListResponse)
def list_all_bookings(
    status_filter: BookingStatus | None = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    sort: Literal["latest", "oldest"] = Query(default="latest"),
    actor: Actor = Depends(require_permission(Permission.MANAGE_BOOKINGS)),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    service = BookingService(db, reference_prefix=settings.booking_reference_prefix)
    items, total = service.list_all_bookings(
        status=status_filter,
        page=page,
        limit=limit,
        newest_first=sort == "latest",
    )
    return booking_list_response(items, total, page, limit)


# -----------------------------
# Slots
# -----------------------------
@router.get("/slots", response_model=SlotListResponse)
def list_slots_for_date(
    date: str | None = Query(default=None),
    actor: Actor = Depends(require_permission(Permission.MANAGE_SLOTS)),
    db: Session = Depends(get_db),
):
    slots = SlotService(db).list_for_date(date)
    return SlotListResponse(slots=[SlotResponse.model_validate(s) for s in slots])


@router.post("/slots/generate", response_model=SlotGenerateResponse)
def generate_slots(
    request: SlotGenerateRequest,
    actor: Actor = Depends(require_permission(Permission.MANAGE_SLOTS)),
    db: Session = Depends(get_db),
):
    created = SlotService(db).generate_schedule(
        start_date=request.start_date or datetime.now(timezone.utc).date(),
        days=request.days,
        opening_hour=request.opening_hour,
        closing_hour=request.closing_hour,
        price=request.price,
        capacity=request.capacity,
    )
    return SlotGenerateResponse(
        created=len(created),
        slots=[SlotResponse.model_validate(s) for s in created],
    )


@router.patch("/slots/{slot_id}", response_model=SlotResponse)
def update_slot(
    slot_id: str,
    request: SlotUpdateRequest,
    actor: Actor = Depends(require_permission(Permission.MANAGE_SLOTS)),
    db: Session = Depends(get_db),
):
    slot = SlotService(db).update_slot(
        slot_id,
        is_available=request.is_available,
        price=request.price,
        capacity=request.capacity,
    )
    return SlotResponse.model_validate(slot)


# -----------------------------
# Payments
# -----------------------------
@router.post("/payments/{checkout_request_id}/reconcile", response_model=ReconcileResponse)
def reconcile_payment(
    checkout_request_id: str,
    actor: Actor = Depends(require_permission(Permission.MANAGE_PAYMENTS)),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    processor = CallbackProcessor(
        db,
        BookingService(db, reference_prefix=settings.booking_reference_prefix),
    )
    payment, outcome = PaymentService(db, gateway, venue_name=settings.venue_name).reconcile(
        checkout_request_id,
        actor,
        processor,
    )
    return ReconcileResponse(
        checkout_request_id=checkout_request_id,
        status=payment.status,
        outcome=outcome.value if outcome else None,
        receipt_number=payment.receipt_number,
        booking=BookingStatusRef(id=payment.booking.id, status=payment.booking.status),
    )


# -----------------------------
# Analytics
# -----------------------------
@router.get("/analytics", response_model=AnalyticsResponse)
def analytics(
    actor: Actor = Depends(require_permission(Permission.VIEW_ANALYTICS)),
    db: Session = Depends(get_db),
):
    return AnalyticsResponse(**AnalyticsService(db).dashboard_stats())
