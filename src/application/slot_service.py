from datetime import date, datetime, timedelta
import logging

from sqlalchemy.orm import Session

from src.domain.exceptions import (
    CapacityBelowOccupancyError,
    InvalidSlotDateError,
    SlotNotFoundError,
    ValidationError,
)
from src.infrastructure.db.models import Slot
from src.infrastructure.repositories.slot_repository import SlotRepository


logger = logging.getLogger(__name__)

DEFAULT_SLOT_PRICE = 2500
DEFAULT_OPENING_HOUR = 6
DEFAULT_CLOSING_HOUR = 22


def parse_slot_date(value: str | None) -> date:
    if not value:
        raise InvalidSlotDateError("Date parameter required")
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    # Full ISO timestamps such as 2026-02-14T00:00:00.000Z are accepted too.
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError as exc:
        raise InvalidSlotDateError() from exc


class SlotService:

    def __init__(self, db: Session):
        self.db = db
        self.slot_repository = SlotRepository(db)

    def list_available(self, day: str) -> list[Slot]:
        """
        Slots that can still take a booking on the given day,
        ordered by start time.
        """
        return self.slot_repository.list_available(parse_slot_date(day))

    def list_for_date(self, day: str) -> list[Slot]:
        return self.slot_repository.list_for_date(parse_slot_date(day))

    def generate_schedule(
        self,
        start_date: date,
        days: int = 7,
        opening_hour: int = DEFAULT_OPENING_HOUR,
        closing_hour: int = DEFAULT_CLOSING_HOUR,
        price: int = DEFAULT_SLOT_PRICE,
        capacity: int = 1,
    ) -> list[Slot]:
        """
        Creates hourly slots from opening_hour to closing_hour for each day.
        Existing (date, start) pairs are left untouched.
        """
        if days < 1:
            raise ValidationError("days must be at least 1")
        if not 0 <= opening_hour < closing_hour <= 24:
            raise ValidationError("openingHour must be before closingHour, both within 0-24")
        if price < 0:
            raise ValidationError("price must not be negative")
        if capacity < 1:
            raise ValidationError("capacity must be at least 1")

        created: list[Slot] = []
        for offset in range(days):
            day = start_date + timedelta(days=offset)
            for hour in range(opening_hour, closing_hour):
                start_time = f"{hour:02d}:00"
                if self.slot_repository.get_by_date_and_start(day, start_time):
                    continue
                slot = Slot(
                    date=day,
                    start_time=start_time,
                    end_time=f"{hour + 1:02d}:00",
                    price=price,
                    capacity=capacity,
                    booked_count=0,
                    is_available=True,
                )
                created.append(self.slot_repository.add(slot))

        self.db.flush()
        logger.info(
            "Schedule generated. start=%s days=%s created=%s",
            start_date.isoformat(),
            days,
            len(created),
        )
        return created

    def update_slot(
        self,
        slot_id: str,
        is_available: bool | None = None,
        price: int | None = None,
        capacity: int | None = None,
    ) -> Slot:
        slot = self.slot_repository.get_by_id(slot_id)
        if not slot:
            raise SlotNotFoundError()

        if price is not None:
            if price < 0:
                raise ValidationError("price must not be negative")
            slot.price = price
        if capacity is not None:
            if capacity < 1:
                raise ValidationError("capacity must be at least 1")
            if capacity < slot.booked_count:
                raise CapacityBelowOccupancyError()
            slot.capacity = capacity
        if is_available is not None:
            slot.is_available = is_available

        self.db.flush()
        logger.info(
            "Slot updated. slot_id=%s available=%s price=%s capacity=%s",
            slot.id,
            slot.is_available,
            slot.price,
            slot.capacity,
        )
        return slot
