# src/infrastructure/repositories/payment_repository.py

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from src.infrastructure.db.models import Payment
from src.domain.state_machine import PaymentStatus


class PaymentRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_booking_id(
        self,
        booking_id: str,
        for_update: bool = False,
    ) -> Payment | None:
        """
        SELECT ... FOR UPDATE when for_update is set.
        Serializes concurrent re-initiation for the same booking.
        """
        stmt = select(Payment).where(Payment.booking_id == booking_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_checkout_request_id(
        self,
        checkout_request_id: str,
        for_update: bool = False,
    ) -> Payment | None:
        stmt = select(Payment).where(
            Payment.checkout_request_id == checkout_request_id
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.db.execute(stmt).scalar_one_or_none()

    def add(self, payment: Payment) -> Payment:
        self.db.add(payment)
        return payment

    def finish_processing(
        self,
        payment: Payment,
        new_status: PaymentStatus,
        **values,
    ) -> bool:
        """
        Compare-and-swap out of PROCESSING.

        Only the first of several concurrent or repeated callbacks
        for the same payment gets rowcount == 1.
        """
        stmt = (
            update(Payment)
            .where(Payment.id == payment.id)
            .where(Payment.status == PaymentStatus.PROCESSING)
            .values(status=new_status, **values)
            .execution_options(synchronize_session=False)
        )
        changed = self.db.execute(stmt).rowcount == 1
        self.db.expire(payment)
        return changed

    def completed_revenue(self) -> int:
        stmt = (
            select(func.coalesce(func.sum(Payment.amount), 0))
            .where(Payment.status == PaymentStatus.COMPLETED)
        )
        return int(self.db.execute(stmt).scalar_one())
