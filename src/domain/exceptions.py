class TurfBookingError(Exception):
    """
    Base exception for all domain-level errors
    inside the Turf Booking Engine.

    Each subclass carries the HTTP status it maps to, a stable
    machine-readable code and a category telling the client whether
    to fix its input ("validation"), try again later ("retry") or
    treat the answer as final ("final").
    """

    status_code = 500
    code = "INTERNAL_ERROR"
    category = "retry"
    default_message = "Unexpected error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# -----------------------------
# 400: fix your input
# -----------------------------
class ValidationError(TurfBookingError):
    status_code = 400
    code = "VALIDATION_ERROR"
    category = "validation"
    default_message = "Invalid input"


class InvalidPlayerCountError(ValidationError):
    code = "INVALID_PLAYER_COUNT"


class InvalidPhoneNumberError(ValidationError):
    code = "INVALID_PHONE_NUMBER"
    default_message = "Invalid phone number. Use 07XXXXXXXX or 2547XXXXXXXX."


# -----------------------------
# 401 / 403
# -----------------------------
class UnauthorizedError(TurfBookingError):
    status_code = 401
    code = "UNAUTHORIZED"
    category = "final"
    default_message = "Authentication required"


class ForbiddenError(TurfBookingError):
    status_code = 403
    code = "FORBIDDEN"
    category = "final"
    default_message = "Forbidden"


# -----------------------------
# 404
# -----------------------------
class NotFoundError(TurfBookingError):
    status_code = 404
    code = "NOT_FOUND"
    category = "final"
    default_message = "Not found"


class InvalidSlotDateError(NotFoundError):
    code = "INVALID_DATE"
    default_message = "Invalid date. Use YYYY-MM-DD"


class SlotNotFoundError(NotFoundError):
    code = "SLOT_NOT_FOUND"
    default_message = "Time slot not found"


class BookingNotFoundError(NotFoundError):
    code = "BOOKING_NOT_FOUND"
    default_message = "Booking not found"


class PaymentNotFoundError(NotFoundError):
    code = "PAYMENT_NOT_FOUND"
    default_message = "Payment not found"


class TicketNotFoundError(NotFoundError):
    code = "TICKET_NOT_FOUND"
    default_message = "No booking matches this code"


# -----------------------------
# 409: this is final
# -----------------------------
class ConflictError(TurfBookingError):
    status_code = 409
    code = "CONFLICT"
    category = "final"
    default_message = "Conflict"


class SlotUnavailableError(ConflictError):
    code = "SLOT_UNAVAILABLE"
    default_message = "Time slot is not available"


class SlotFullError(ConflictError):
    code = "SLOT_FULL"
    default_message = "Time slot is fully booked"


class CapacityBelowOccupancyError(ConflictError):
    code = "CAPACITY_BELOW_OCCUPANCY"
    default_message = "Capacity cannot be lower than current bookings"


class InvalidStateTransitionError(ConflictError):
    """
    Raised when an illegal status transition is attempted.
    """

    code = "INVALID_TRANSITION"

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state

        message = (
            f"Illegal state transition attempted: "
            f"{from_state} -> {to_state}"
        )
        super().__init__(message)


class BookingNotPayableError(ConflictError):
    code = "BOOKING_NOT_PAYABLE"
    default_message = "Only pending bookings can be paid"


class AlreadyPaidError(ConflictError):
    code = "ALREADY_PAID"
    default_message = "Booking already paid"


class AlreadyValidatedError(ConflictError):
    code = "ALREADY_VALIDATED"
    default_message = "Ticket has already been validated"


class NotConfirmedError(ConflictError):
    code = "NOT_CONFIRMED"
    default_message = "Booking is not confirmed"


class PaymentIncompleteError(ConflictError):
    code = "PAYMENT_INCOMPLETE"
    default_message = "Payment for this booking is not complete"


# -----------------------------
# 5xx: try again later
# -----------------------------
class UpstreamFailureError(TurfBookingError):
    """Raised when the payment gateway rejected or failed a call."""

    status_code = 502
    code = "UPSTREAM_FAILURE"
    category = "retry"
    default_message = "Payment initiation failed"
