import math

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from src.api.dependencies import get_current_actor, get_db, get_settings, require_permission
from src.api.schemas.schemas import (
    BookingListResponse,
    BookingRequest,
    BookingResponse,
    BookingUpdateRequest,
    Pagination,
)
from src.application.booking_service import BookingService
from src.domain.permissions import Actor, Permission
from src.domain.state_machine import BookingStatus
from src.infrastructure.config import Settings
from src.infrastructure.db.models import Booking


router = APIRouter(prefix="/bookings", tags=["bookings"])


def booking_list_response(
    items: list[Booking],
    total: int,
    page: int,
    limit: int,
) -> BookingListResponse:
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in items],
        pagination=Pagination(
            total=total,
            page=page,
            limit=limit,
            pages=math.ceil(total / limit) if limit else 0,
        ),
    )


def _booking_service(db: Session, settings: Settings) -> BookingService:
    return BookingService(db, reference_prefix=settings.booking_reference_prefix)


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    request: BookingRequest,
    actor: Actor = Depends(require_permission(Permission.BOOK)),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    booking = _booking_service(db, settings).create_booking(
        user_id=actor.user_id,
        slot_id=request.slot_id,
        player_count=request.player_count,
        notes=request.notes,
    )
    return BookingResponse.model_validate(booking)


@router.get("", response_model=BookingListResponse)
def list_my_bookings(
    status_filter: BookingStatus | None = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    items, total = _booking_service(db, settings).list_user_bookings(
        actor,
        status=status_filter,
        page=page,
        limit=limit,
    )
    return booking_list_response(items, total, page, limit)


@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    booking = _booking_service(db, settings).get_booking(booking_id, actor)
    return BookingResponse.model_validate(booking)


@router.patch("/{booking_id}", response_model=BookingResponse)
def update_booking(
    booking_id: str,
    request: BookingUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    booking = _booking_service(db, settings).update_booking(
        booking_id,
        actor,
        new_status=request.status,
        notes=request.notes,
    )
    return BookingResponse.model_validate(booking)
