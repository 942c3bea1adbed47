from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy.orm import Session

from src.domain.state_machine import BookingStatus
from src.infrastructure.db.models import Booking
from src.infrastructure.repositories.booking_repository import BookingRepository
from src.infrastructure.repositories.payment_repository import PaymentRepository


class AnalyticsService:

    def __init__(self, db: Session):
        self.db = db
        self.booking_repository = BookingRepository(db)
        self.payment_repository = PaymentRepository(db)

    def dashboard_stats(self, today: date | None = None) -> dict:
        today = today or datetime.now(timezone.utc).date()
        day_start = datetime.combine(today, time.min, tzinfo=timezone.utc)
        day_end = day_start + timedelta(days=1)

        by_status = self.booking_repository.count_by_status()
        return {
            "total_bookings": sum(by_status.values()),
            "bookings_by_status": {
                status.value: by_status.get(status, 0) for status in BookingStatus
            },
            "revenue": self.payment_repository.completed_revenue(),
            "today_bookings": self.booking_repository.count_where(
                Booking.created_at >= day_start,
                Booking.created_at < day_end,
            ),
            "validated_tickets": self.booking_repository.count_where(
                Booking.is_validated.is_(True),
            ),
        }
