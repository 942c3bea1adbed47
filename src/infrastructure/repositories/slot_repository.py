# src/infrastructure/repositories/slot_repository.py

from datetime import date

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from src.infrastructure.db.models import Slot


class SlotRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, slot_id: str) -> Slot | None:
        stmt = select(Slot).where(Slot.id == slot_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_date_and_start(self, day: date, start_time: str) -> Slot | None:
        stmt = (
            select(Slot)
            .where(Slot.date == day)
            .where(Slot.start_time == start_time)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_for_date(self, day: date) -> list[Slot]:
        stmt = (
            select(Slot)
            .where(Slot.date == day)
            .order_by(Slot.start_time)
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_available(self, day: date) -> list[Slot]:
        stmt = (
            select(Slot)
            .where(Slot.date == day)
            .where(Slot.is_available.is_(True))
            .where(Slot.booked_count < Slot.capacity)
            .order_by(Slot.start_time)
        )
        return list(self.db.execute(stmt).scalars().all())

    def add(self, slot: Slot) -> Slot:
        self.db.add(slot)
        return slot

    def claim_capacity(self, slot: Slot) -> bool:
        """
        Conditional UPDATE ... WHERE booked_count < capacity.

        The check and the increment are a single statement, so two
        concurrent callers can never both take the last unit: the
        database serializes the row write and re-evaluates the predicate.
        """
        stmt = (
            update(Slot)
            .where(Slot.id == slot.id)
            .where(Slot.is_available.is_(True))
            .where(Slot.booked_count < Slot.capacity)
            .values(booked_count=Slot.booked_count + 1)
            .execution_options(synchronize_session=False)
        )
        claimed = self.db.execute(stmt).rowcount == 1
        self.db.expire(slot, ["booked_count", "is_available"])
        return claimed

    def release_capacity(self, slot_id: str) -> None:
        stmt = (
            update(Slot)
            .where(Slot.id == slot_id)
            .where(Slot.booked_count > 0)
            .values(booked_count=Slot.booked_count - 1)
            .execution_options(synchronize_session=False)
        )
        self.db.execute(stmt)

        # Only refresh a copy this session already holds.
        slot = self.db.identity_map.get(self.db.identity_key(Slot, slot_id))
        if slot is not None:
            self.db.expire(slot, ["booked_count"])
