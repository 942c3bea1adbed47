from datetime import datetime, timezone
import logging

from sqlalchemy.orm import Session

from src.domain.exceptions import (
    AlreadyValidatedError,
    BookingNotFoundError,
    NotConfirmedError,
    PaymentIncompleteError,
    TicketNotFoundError,
    ValidationError,
)
from src.domain.state_machine import BookingStatus, PaymentStatus
from src.infrastructure.db.models import Booking
from src.infrastructure.repositories.booking_repository import BookingRepository
from src.infrastructure.repositories.payment_repository import PaymentRepository


logger = logging.getLogger(__name__)


class TicketService:
    """Gate-side lookup and one-time validation of booking tickets."""

    def __init__(self, db: Session):
        self.db = db
        self.booking_repository = BookingRepository(db)
        self.payment_repository = PaymentRepository(db)

    def lookup(self, code: str) -> Booking:
        """
        Resolves a scanned entry token or a typed booking reference.
        The entry token is tried first.
        """
        code = (code or "").strip()
        if not code:
            raise ValidationError("code is required")

        booking = self.booking_repository.get_by_entry_token(code)
        if not booking:
            booking = self.booking_repository.get_by_reference(code)
        if not booking:
            raise TicketNotFoundError()
        return booking

    def validate(self, booking_id: str, validator_id: str) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)
        if not booking:
            raise BookingNotFoundError()

        if booking.is_validated:
            raise AlreadyValidatedError()
        if booking.status != BookingStatus.CONFIRMED:
            raise NotConfirmedError()

        payment = self.payment_repository.get_by_booking_id(booking.id)
        if not payment or payment.status != PaymentStatus.COMPLETED:
            raise PaymentIncompleteError()

        validated = self.booking_repository.mark_validated(
            booking,
            validated_by=validator_id,
            validated_at=datetime.now(timezone.utc),
        )
        if not validated:
            # Another gate scanned the same ticket first.
            raise AlreadyValidatedError()

        logger.info(
            "Ticket validated. booking_id=%s reference=%s validator=%s",
            booking.id,
            booking.reference,
            validator_id,
        )
        return booking
