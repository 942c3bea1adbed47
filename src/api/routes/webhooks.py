import json
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from src.api.dependencies import get_db, get_settings, read_raw_body
from src.api.schemas.schemas import CallbackAckResponse
from src.application.booking_service import BookingService
from src.application.callback_processor import CallbackProcessor
from src.infrastructure.config import Settings


router = APIRouter(prefix="/webhook", tags=["webhooks"])
logger = logging.getLogger(__name__)


@router.post("/payment-callback", response_model=CallbackAckResponse)
def payment_callback(
    body: bytes = Depends(read_raw_body),
    token: str | None = Query(default=None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    # Always 200; the body carries the result code.
    try:
        payload = json.loads(body) if body else None
    except (ValueError, RecursionError):
        payload = None

    logger.info("Payment callback received. bytes=%s", len(body))

    processor = CallbackProcessor(
        db,
        BookingService(db, reference_prefix=settings.booking_reference_prefix),
        expected_token=settings.callback_token,
    )
    ack = processor.handle(payload, token=token)
    return CallbackAckResponse(
        result_code=ack.result_code,
        result_description=ack.result_description,
    )
