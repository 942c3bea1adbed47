"""
Reconciles asynchronous payment notifications against the
payment record and the booking ledger.

The provider does not wait for a business answer: every delivery
gets the same acknowledgment shape, and all state changes are
committed before the acknowledgment is produced.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum, IntEnum
import hmac
import logging
from typing import Any, Mapping

from sqlalchemy.orm import Session

from src.application.booking_service import BookingService
from src.domain.exceptions import PaymentNotFoundError
from src.domain.mpesa_callback import (
    MalformedCallbackError,
    PaymentMetadata,
    PaymentResult,
    parse_callback,
)
from src.domain.state_machine import PaymentStateMachine, PaymentStatus
from src.infrastructure.gateways.mpesa_gateway import ProviderState, ProviderStatus
from src.infrastructure.repositories.payment_repository import PaymentRepository


logger = logging.getLogger(__name__)


class AckCode(IntEnum):
    ACCEPTED = 0
    PAYMENT_NOT_FOUND = 1
    MALFORMED_PAYLOAD = 2
    UNAUTHENTICATED = 3
    INTERNAL_ERROR = 4


_ACK_DESCRIPTIONS = {
    AckCode.ACCEPTED: "Accepted",
    AckCode.PAYMENT_NOT_FOUND: "Rejected: payment not found",
    AckCode.MALFORMED_PAYLOAD: "Rejected: malformed payload",
    AckCode.UNAUTHENTICATED: "Rejected: unauthenticated callback",
    AckCode.INTERNAL_ERROR: "Rejected: internal error",
}


@dataclass(frozen=True)
class CallbackAck:
    result_code: int
    result_description: str

    @classmethod
    def of(cls, code: AckCode) -> "CallbackAck":
        return cls(result_code=int(code), result_description=_ACK_DESCRIPTIONS[code])


class CallbackOutcome(str, Enum):
    APPLIED = "APPLIED"
    DUPLICATE = "DUPLICATE"


class CallbackProcessor:

    def __init__(
        self,
        db: Session,
        booking_service: BookingService | None = None,
        expected_token: str | None = None,
    ):
        self.db = db
        self.booking_service = booking_service or BookingService(db)
        self.payment_repository = PaymentRepository(db)
        self.expected_token = expected_token

    def handle(
        self,
        payload: Mapping[str, Any] | None,
        token: str | None = None,
    ) -> CallbackAck:
        """
        Entry point for provider deliveries. Never raises.
        """
        if not self._is_authentic(token):
            logger.warning("Payment callback rejected: bad or missing token")
            return CallbackAck.of(AckCode.UNAUTHENTICATED)

        try:
            result = parse_callback(payload)
        except MalformedCallbackError as exc:
            logger.warning("Malformed payment callback: %s", exc)
            return CallbackAck.of(AckCode.MALFORMED_PAYLOAD)

        try:
            self.apply(result)
            self.db.commit()
        except PaymentNotFoundError:
            self.db.rollback()
            logger.error(
                "Payment not found for checkout_request_id=%s",
                result.checkout_request_id,
            )
            return CallbackAck.of(AckCode.PAYMENT_NOT_FOUND)
        except Exception:
            self.db.rollback()
            logger.exception(
                "Payment callback processing failed. checkout_request_id=%s",
                result.checkout_request_id,
            )
            return CallbackAck.of(AckCode.INTERNAL_ERROR)

        return CallbackAck.of(AckCode.ACCEPTED)

    def apply(self, result: PaymentResult) -> CallbackOutcome:
        payment = self.payment_repository.get_by_checkout_request_id(
            result.checkout_request_id,
            for_update=True,
        )
        if not payment:
            raise PaymentNotFoundError()

        if not PaymentStateMachine.accepts_callback(payment.status):
            logger.info(
                "Duplicate payment result ignored. checkout_request_id=%s status=%s",
                result.checkout_request_id,
                payment.status.value,
            )
            return CallbackOutcome.DUPLICATE

        booking_id = payment.booking_id

        if result.succeeded:
            metadata = result.metadata
            changed = self.payment_repository.finish_processing(
                payment,
                PaymentStatus.COMPLETED,
                receipt_number=metadata.receipt_number,
                paid_amount=metadata.amount,
                payer_phone=metadata.phone_number,
                result_code=result.result_code,
                result_description=result.result_description[:255],
                paid_at=datetime.now(timezone.utc),
            )
        else:
            changed = self.payment_repository.finish_processing(
                payment,
                PaymentStatus.FAILED,
                result_code=result.result_code,
                result_description=result.result_description[:255],
            )

        if not changed:
            # A concurrent delivery won the compare-and-swap.
            return CallbackOutcome.DUPLICATE

        booking_moved = self.booking_service.transition_on_payment_result(
            booking_id,
            success=result.succeeded,
        )

        if result.succeeded:
            logger.info(
                "Payment successful. receipt=%s booking_id=%s",
                result.metadata.receipt_number,
                booking_id,
            )
            if not booking_moved:
                logger.warning(
                    "Payment completed for a booking that is no longer pending; "
                    "refund required. booking_id=%s checkout_request_id=%s",
                    booking_id,
                    result.checkout_request_id,
                )
        else:
            logger.info(
                "Payment failed. booking_id=%s result_code=%s reason=%s",
                booking_id,
                result.result_code,
                result.result_description,
            )

        return CallbackOutcome.APPLIED

    def apply_provider_status(
        self,
        checkout_request_id: str,
        status: ProviderStatus,
    ) -> CallbackOutcome | None:
        """
        Feeds a provider-side query result through the same path as a
        callback. PENDING results change nothing and return None.
        """
        if status.state == ProviderState.PENDING or status.result_code is None:
            return None

        result = PaymentResult(
            checkout_request_id=checkout_request_id,
            merchant_request_id=None,
            result_code=status.result_code,
            result_description=status.result_description,
            metadata=PaymentMetadata(),
        )
        return self.apply(result)

    def _is_authentic(self, token: str | None) -> bool:
        if not self.expected_token:
            return True
        if not token:
            return False
        return hmac.compare_digest(token.encode("utf-8"), self.expected_token.encode("utf-8"))
