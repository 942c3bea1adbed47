from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from src.api.dependencies import get_db, require_permission
from src.api.schemas.schemas import BookingResponse, TicketValidationResponse
from src.application.ticket_service import TicketService
from src.domain.permissions import Actor, Permission


router = APIRouter(prefix="/tickets", tags=["tickets"])


@router.get("/lookup", response_model=BookingResponse)
def lookup_ticket(
    code: str = Query(...),
    actor: Actor = Depends(require_permission(Permission.VALIDATE_TICKETS)),
    db: Session = Depends(get_db),
):
    booking = TicketService(db).lookup(code)
    return BookingResponse.model_validate(booking)


@router.post("/validate/{booking_id}", response_model=TicketValidationResponse)
def validate_ticket(
    booking_id: str,
    actor: Actor = Depends(require_permission(Permission.VALIDATE_TICKETS)),
    db: Session = Depends(get_db),
):
    booking = TicketService(db).validate(booking_id, validator_id=actor.user_id)
    return TicketValidationResponse(
        message="Ticket validated",
        booking=BookingResponse.model_validate(booking),
    )
