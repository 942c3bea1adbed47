from datetime import datetime, timezone
import logging
import secrets
import string
import time

from sqlalchemy.orm import Session

from src.domain.exceptions import (
    BookingNotFoundError,
    ForbiddenError,
    InvalidPlayerCountError,
    InvalidStateTransitionError,
    SlotFullError,
    SlotNotFoundError,
    SlotUnavailableError,
)
from src.domain.permissions import Actor
from src.domain.state_machine import BookingStateMachine, BookingStatus
from src.infrastructure.db.models import Booking
from src.infrastructure.repositories.booking_repository import BookingRepository
from src.infrastructure.repositories.slot_repository import SlotRepository


logger = logging.getLogger(__name__)

MIN_PLAYERS = 1
MAX_PLAYERS = 22

_REFERENCE_ALPHABET = string.ascii_uppercase + string.digits


def generate_reference(prefix: str) -> str:
    suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(6))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def generate_entry_token() -> str:
    # 24 random bytes -> 32 URL-safe characters, fits in a QR code.
    return secrets.token_urlsafe(24)


class BookingService:
    """Application service coordinating the booking ledger."""

    def __init__(self, db: Session, reference_prefix: str = "JTA"):
        self.db = db
        self.reference_prefix = reference_prefix
        self.booking_repository = BookingRepository(db)
        self.slot_repository = SlotRepository(db)

    def create_booking(
        self,
        user_id: str,
        slot_id: str,
        player_count: int,
        notes: str | None = None,
    ) -> Booking:
        if not MIN_PLAYERS <= player_count <= MAX_PLAYERS:
            raise InvalidPlayerCountError(
                f"playerCount must be between {MIN_PLAYERS} and {MAX_PLAYERS}"
            )

        slot = self.slot_repository.get_by_id(slot_id)
        if not slot:
            raise SlotNotFoundError()
        if not slot.is_available:
            raise SlotUnavailableError()

        if not self.slot_repository.claim_capacity(slot):
            if not slot.is_available:
                raise SlotUnavailableError()
            logger.info("Slot full. slot_id=%s user_id=%s", slot_id, user_id)
            raise SlotFullError()

        booking = self.booking_repository.create_booking(
            user_id=user_id,
            slot_id=slot.id,
            amount=slot.price,
            player_count=player_count,
            notes=notes,
            reference=generate_reference(self.reference_prefix),
            entry_token=generate_entry_token(),
        )
        self.db.flush()

        logger.info(
            "Booking created. booking_id=%s reference=%s slot_id=%s",
            booking.id,
            booking.reference,
            slot.id,
        )
        return booking

    def get_booking(self, booking_id: str, actor: Actor) -> Booking:
        booking = self._load(booking_id)
        self._ensure_can_view(booking, actor)
        return booking

    def list_user_bookings(
        self,
        actor: Actor,
        status: BookingStatus | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Booking], int]:
        return self.booking_repository.list_bookings(
            user_id=actor.user_id,
            status=status,
            page=page,
            limit=limit,
        )

    def list_all_bookings(
        self,
        status: BookingStatus | None = None,
        page: int = 1,
        limit: int = 50,
        newest_first: bool = True,
    ) -> tuple[list[Booking], int]:
        return self.booking_repository.list_bookings(
            status=status,
            page=page,
            limit=limit,
            newest_first=newest_first,
        )

    def cancel(self, booking_id: str, actor: Actor) -> Booking:
        booking = self._load(booking_id)

        if actor.is_privileged:
            return self.set_status(booking_id, BookingStatus.CANCELLED, actor)

        if booking.user_id != actor.user_id:
            raise ForbiddenError()
        if booking.status != BookingStatus.PENDING:
            raise ForbiddenError("Only pending bookings can be cancelled")

        BookingStateMachine.validate_transition(booking.status, BookingStatus.CANCELLED)
        self._transition(booking, BookingStatus.PENDING, BookingStatus.CANCELLED)
        logger.info("Booking cancelled by owner. booking_id=%s", booking.id)
        return booking

    def set_status(
        self,
        booking_id: str,
        new_status: BookingStatus,
        actor: Actor,
        notes: str | None = None,
    ) -> Booking:
        """
        Admin override: any status may be set, but slot capacity
        still bounds how many bookings occupy a slot.
        """
        if not actor.is_privileged:
            raise ForbiddenError("Only admins can set booking status")

        booking = self._load(booking_id)
        if notes is not None:
            booking.notes = notes
            self.db.flush()

        if booking.status != new_status:
            self._transition(booking, booking.status, new_status)
            logger.info(
                "Booking status set by admin. booking_id=%s status=%s admin=%s",
                booking.id,
                new_status.value,
                actor.user_id,
            )
        return booking

    def update_booking(
        self,
        booking_id: str,
        actor: Actor,
        new_status: BookingStatus | None,
        notes: str | None = None,
    ) -> Booking:
        if actor.is_privileged:
            if new_status is None:
                booking = self._load(booking_id)
                if notes is not None:
                    booking.notes = notes
                    self.db.flush()
                return booking
            return self.set_status(booking_id, new_status, actor, notes=notes)

        booking = self._load(booking_id)
        if booking.user_id != actor.user_id:
            raise ForbiddenError()
        if new_status != BookingStatus.CANCELLED:
            raise ForbiddenError("Users can only cancel bookings")
        return self.cancel(booking_id, actor)

    def transition_on_payment_result(self, booking_id: str, success: bool) -> bool:
        """
        PENDING -> CONFIRMED on success, PENDING -> CANCELLED otherwise.

        Returns False without touching anything when the booking has
        already left PENDING, so repeated callbacks are harmless.
        """
        booking = self._load(booking_id)
        if booking.status != BookingStatus.PENDING:
            logger.info(
                "Payment result ignored, booking already %s. booking_id=%s",
                booking.status.value,
                booking.id,
            )
            return False

        to_status = BookingStatus.CONFIRMED if success else BookingStatus.CANCELLED
        BookingStateMachine.validate_transition(BookingStatus.PENDING, to_status)
        try:
            self._transition(booking, BookingStatus.PENDING, to_status)
        except InvalidStateTransitionError:
            return False
        return True

    def _transition(
        self,
        booking: Booking,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> None:
        was_occupying = BookingStateMachine.occupies_slot(from_status)
        will_occupy = BookingStateMachine.occupies_slot(to_status)
        slot_id = booking.slot_id

        if will_occupy and not was_occupying:
            slot = self.slot_repository.get_by_id(slot_id)
            if not slot or not self.slot_repository.claim_capacity(slot):
                raise SlotFullError()

        cancelled_at = (
            datetime.now(timezone.utc)
            if to_status == BookingStatus.CANCELLED
            else None
        )
        changed = self.booking_repository.compare_and_set_status(
            booking,
            expected=from_status,
            new_status=to_status,
            cancelled_at=cancelled_at,
        )
        if not changed:
            # Someone else moved the booking between our read and write.
            raise InvalidStateTransitionError(
                from_state=booking.status.value,
                to_state=to_status.value,
            )

        if was_occupying and not will_occupy:
            self.slot_repository.release_capacity(slot_id)

    def _load(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)
        if not booking:
            raise BookingNotFoundError()
        return booking

    @staticmethod
    def _ensure_can_view(booking: Booking, actor: Actor) -> None:
        if booking.user_id != actor.user_id and not actor.is_privileged:
            raise ForbiddenError()
