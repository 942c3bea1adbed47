# src/infrastructure/repositories/booking_repository.py

from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from src.infrastructure.db.models import Booking
from src.domain.state_machine import BookingStatus


class BookingRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(
        self,
        booking_id: str,
    ) -> Booking | None:

        stmt = select(Booking).where(Booking.id == booking_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_entry_token(self, entry_token: str) -> Booking | None:
        stmt = select(Booking).where(Booking.entry_token == entry_token)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_reference(self, reference: str) -> Booking | None:
        stmt = select(Booking).where(Booking.reference == reference)
        return self.db.execute(stmt).scalar_one_or_none()

    def create_booking(
        self,
        user_id: str,
        slot_id: str,
        amount: int,
        player_count: int,
        notes: str | None,
        reference: str,
        entry_token: str,
    ) -> Booking:

        booking = Booking(
            user_id=user_id,
            slot_id=slot_id,
            amount=amount,
            player_count=player_count,
            notes=notes,
            reference=reference,
            entry_token=entry_token,
            status=BookingStatus.PENDING,
            is_validated=False,
        )

        self.db.add(booking)
        return booking

    def compare_and_set_status(
        self,
        booking: Booking,
        expected: BookingStatus,
        new_status: BookingStatus,
        cancelled_at: datetime | None = None,
    ) -> bool:
        """
        UPDATE bookings SET status = :new WHERE id = :id AND status = :expected.

        Returns False when another writer moved the booking first.
        """
        values: dict = {"status": new_status}
        if cancelled_at is not None:
            values["cancelled_at"] = cancelled_at

        stmt = (
            update(Booking)
            .where(Booking.id == booking.id)
            .where(Booking.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        changed = self.db.execute(stmt).rowcount == 1
        self.db.expire(booking)
        return changed

    def mark_validated(
        self,
        booking: Booking,
        validated_by: str,
        validated_at: datetime,
    ) -> bool:
        stmt = (
            update(Booking)
            .where(Booking.id == booking.id)
            .where(Booking.is_validated.is_(False))
            .values(
                is_validated=True,
                validated_at=validated_at,
                validated_by=validated_by,
            )
            .execution_options(synchronize_session=False)
        )
        changed = self.db.execute(stmt).rowcount == 1
        self.db.expire(booking)
        return changed

    def list_bookings(
        self,
        user_id: str | None = None,
        status: BookingStatus | None = None,
        page: int = 1,
        limit: int = 10,
        newest_first: bool = True,
    ) -> tuple[list[Booking], int]:
        stmt = select(Booking)
        count_stmt = select(func.count()).select_from(Booking)

        if user_id is not None:
            stmt = stmt.where(Booking.user_id == user_id)
            count_stmt = count_stmt.where(Booking.user_id == user_id)
        if status is not None:
            stmt = stmt.where(Booking.status == status)
            count_stmt = count_stmt.where(Booking.status == status)

        if newest_first:
            order = (Booking.created_at.desc(), Booking.reference.desc())
        else:
            order = (Booking.created_at.asc(), Booking.reference.asc())
        stmt = (
            stmt.order_by(*order)
            .offset((page - 1) * limit)
            .limit(limit)
        )

        items = list(self.db.execute(stmt).scalars().all())
        total = self.db.execute(count_stmt).scalar_one()
        return items, total

    def count_by_status(self) -> dict[BookingStatus, int]:
        stmt = select(Booking.status, func.count()).group_by(Booking.status)
        return {row[0]: row[1] for row in self.db.execute(stmt).all()}

    def count_where(self, *criteria) -> int:
        stmt = select(func.count()).select_from(Booking)
        for criterion in criteria:
            stmt = stmt.where(criterion)
        return self.db.execute(stmt).scalar_one()
