import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.application.callback_processor import CallbackOutcome, CallbackProcessor
from src.domain.exceptions import (
    AlreadyPaidError,
    BookingNotFoundError,
    BookingNotPayableError,
    ConflictError,
    ForbiddenError,
    PaymentNotFoundError,
    UpstreamFailureError,
)
from src.domain.permissions import Actor, Permission
from src.domain.phone import normalize_msisdn
from src.domain.state_machine import BookingStatus, PaymentStateMachine, PaymentStatus
from src.infrastructure.db.models import Payment
from src.infrastructure.gateways.mpesa_gateway import (
    GatewayFailure,
    PaymentGateway,
    ProviderStatus,
)
from src.infrastructure.repositories.booking_repository import BookingRepository
from src.infrastructure.repositories.payment_repository import PaymentRepository


logger = logging.getLogger(__name__)


class PaymentService:
    """Push-payment initiation and payment status lookups."""

    def __init__(
        self,
        db: Session,
        gateway: PaymentGateway,
        venue_name: str = "Juja Turf Arena",
    ):
        self.db = db
        self.gateway = gateway
        self.venue_name = venue_name
        self.booking_repository = BookingRepository(db)
        self.payment_repository = PaymentRepository(db)

    def initiate_push(
        self,
        booking_id: str,
        actor: Actor,
        phone_number: str,
    ) -> tuple[Payment, str]:
        msisdn = normalize_msisdn(phone_number)

        booking = self.booking_repository.get_by_id(booking_id)
        if not booking:
            raise BookingNotFoundError()
        if booking.user_id != actor.user_id and not actor.is_privileged:
            raise ForbiddenError()

        existing = self.payment_repository.get_by_booking_id(booking.id)
        if existing and existing.status == PaymentStatus.COMPLETED:
            raise AlreadyPaidError()
        if booking.status != BookingStatus.PENDING:
            raise BookingNotPayableError()

        outcome = self.gateway.initiate(
            phone_number=msisdn,
            amount=booking.amount,
            reference=booking.reference,
            description=f"{self.venue_name} Booking - {booking.reference}",
        )
        if isinstance(outcome, GatewayFailure):
            raise UpstreamFailureError(outcome.reason)

        # Re-read under lock: a callback may have completed it meanwhile.
        payment = self.payment_repository.get_by_booking_id(booking.id, for_update=True)
        if payment:
            if payment.status == PaymentStatus.COMPLETED:
                raise AlreadyPaidError()
            PaymentStateMachine.validate_transition(payment.status, PaymentStatus.PROCESSING)
            payment.checkout_request_id = outcome.checkout_request_id
            payment.merchant_request_id = outcome.merchant_request_id
            payment.phone_number = msisdn
            payment.amount = booking.amount
            payment.status = PaymentStatus.PROCESSING
            payment.result_code = None
            payment.result_description = None
        else:
            payment = self.payment_repository.add(
                Payment(
                    booking_id=booking.id,
                    user_id=booking.user_id,
                    amount=booking.amount,
                    method="MPESA",
                    checkout_request_id=outcome.checkout_request_id,
                    merchant_request_id=outcome.merchant_request_id,
                    phone_number=msisdn,
                    status=PaymentStatus.PROCESSING,
                )
            )

        try:
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError("A payment for this booking is already being initiated") from exc

        logger.info(
            "Push payment initiated. booking_id=%s checkout_request_id=%s",
            booking.id,
            payment.checkout_request_id,
        )
        message = outcome.customer_message or "Check your phone to complete the payment"
        return payment, message

    def get_status(self, checkout_request_id: str, actor: Actor) -> Payment:
        payment = self._load(checkout_request_id)
        self._ensure_can_view(payment, actor)
        return payment

    def query_provider(self, checkout_request_id: str, actor: Actor) -> ProviderStatus:
        """
        Read-only provider lookup, used when the callback is late.
        """
        payment = self._load(checkout_request_id)
        self._ensure_can_view(payment, actor)

        status = self.gateway.query_status(checkout_request_id)
        if isinstance(status, GatewayFailure):
            raise UpstreamFailureError(status.reason)
        return status

    def reconcile(
        self,
        checkout_request_id: str,
        actor: Actor,
        processor: CallbackProcessor,
    ) -> tuple[Payment, CallbackOutcome | None]:
        """
        Settles a payment stuck in PROCESSING from the provider's view.
        """
        if not actor.can(Permission.MANAGE_PAYMENTS):
            raise ForbiddenError()

        payment = self._load(checkout_request_id)
        if payment.status != PaymentStatus.PROCESSING:
            return payment, None

        status = self.gateway.query_status(checkout_request_id)
        if isinstance(status, GatewayFailure):
            raise UpstreamFailureError(status.reason)

        outcome = processor.apply_provider_status(checkout_request_id, status)
        self.db.flush()
        self.db.refresh(payment)

        logger.info(
            "Payment reconciled. checkout_request_id=%s provider_state=%s outcome=%s",
            checkout_request_id,
            status.state.value,
            outcome.value if outcome else None,
        )
        return payment, outcome

    def _load(self, checkout_request_id: str) -> Payment:
        payment = self.payment_repository.get_by_checkout_request_id(checkout_request_id)
        if not payment:
            raise PaymentNotFoundError()
        return payment

    @staticmethod
    def _ensure_can_view(payment: Payment, actor: Actor) -> None:
        if payment.user_id != actor.user_id and not actor.can(Permission.MANAGE_PAYMENTS):
            raise ForbiddenError()
