from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.api.dependencies import get_current_actor, get_db, get_gateway, get_settings
from src.api.schemas.schemas import (
    BookingStatusRef,
    PaymentStatusResponse,
    ProviderStatusResponse,
    PushPaymentRequest,
    PushPaymentResponse,
)
from src.application.payment_service import PaymentService
from src.domain.permissions import Actor
from src.infrastructure.config import Settings
from src.infrastructure.gateways.mpesa_gateway import PaymentGateway


router = APIRouter(prefix="/payments", tags=["payments"])


def _payment_service(db: Session, gateway: PaymentGateway, settings: Settings) -> PaymentService:
    return PaymentService(db, gateway, venue_name=settings.venue_name)


@router.post("/push", response_model=PushPaymentResponse)
def push_payment(
    request: PushPaymentRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    payment, message = _payment_service(db, gateway, settings).initiate_push(
        booking_id=request.booking_id,
        actor=actor,
        phone_number=request.phone_number,
    )
    return PushPaymentResponse(
        checkout_request_id=payment.checkout_request_id,
        message=message,
        payment_id=payment.id,
        status=payment.status,
    )


@router.get("/status/{checkout_request_id}", response_model=PaymentStatusResponse)
def payment_status(
    checkout_request_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    payment = _payment_service(db, gateway, settings).get_status(checkout_request_id, actor)
    return PaymentStatusResponse(
        status=payment.status,
        receipt_number=payment.receipt_number,
        booking=BookingStatusRef(id=payment.booking.id, status=payment.booking.status),
    )


@router.get("/query/{checkout_request_id}", response_model=ProviderStatusResponse)
def query_provider_status(
    checkout_request_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    status = _payment_service(db, gateway, settings).query_provider(checkout_request_id, actor)
    return ProviderStatusResponse(
        checkout_request_id=checkout_request_id,
        state=status.state.value,
        result_code=status.result_code,
        result_description=status.result_description,
    )
