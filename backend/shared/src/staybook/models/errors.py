"""Standard error codes and domain exceptions for the booking core.

Every synchronous failure is raised as a ``BookingError`` subclass carrying
an ``ErrorCode``. The HTTP layer converts it to an ``ErrorResponse`` body.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ErrorCode(str, Enum):
    """Stable error codes returned to callers."""

    # Request validation (ERR_VAL_*)
    INVALID_REQUEST = "ERR_VAL_001"
    INVALID_DATE_RANGE = "ERR_VAL_002"
    MISSING_GUEST_CONTACT = "ERR_VAL_003"
    CAPACITY_EXCEEDED = "ERR_VAL_004"
    GROUP_BOOKING_DISABLED = "ERR_VAL_005"
    INVALID_ALLOCATION = "ERR_VAL_006"

    # Lookups (ERR_NF_*)
    UNIT_NOT_FOUND = "ERR_NF_001"
    RESERVATION_NOT_FOUND = "ERR_NF_002"
    GROUP_NOT_FOUND = "ERR_NF_003"

    # Calendar conflicts (ERR_AVL_*)
    DATES_UNAVAILABLE = "ERR_AVL_001"
    DATES_BLOCKED = "ERR_AVL_002"
    MINIMUM_STAY_NOT_MET = "ERR_AVL_003"
    NO_GROUP_OPTION = "ERR_AVL_004"

    # Lifecycle (ERR_LC_*)
    INVALID_STATE_TRANSITION = "ERR_LC_001"
    RESERVATION_NOT_PAYABLE = "ERR_LC_002"
    CONCURRENT_MODIFICATION = "ERR_LC_003"

    # Payment event path (ERR_PAY_*)
    PAYMENT_CORRELATION = "ERR_PAY_001"
    COMPENSATION_REQUIRED = "ERR_PAY_002"

    # Stripe (ERR_STRIPE_*)
    INVALID_WEBHOOK_SIGNATURE = "ERR_STRIPE_001"
    STRIPE_API_ERROR = "ERR_STRIPE_002"


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.INVALID_REQUEST: "The request is invalid",
    ErrorCode.INVALID_DATE_RANGE: "Check-out must be a valid date after check-in",
    ErrorCode.MISSING_GUEST_CONTACT: "Guest name and a valid email are required",
    ErrorCode.CAPACITY_EXCEEDED: "Number of guests exceeds the unit capacity",
    ErrorCode.GROUP_BOOKING_DISABLED: "Group bookings are not enabled",
    ErrorCode.INVALID_ALLOCATION: "Guest allocation does not match the party size",
    ErrorCode.UNIT_NOT_FOUND: "Unit not found",
    ErrorCode.RESERVATION_NOT_FOUND: "Reservation not found",
    ErrorCode.GROUP_NOT_FOUND: "Group reservation not found",
    ErrorCode.DATES_UNAVAILABLE: "The requested dates are not available",
    ErrorCode.DATES_BLOCKED: "One or more requested dates are blocked",
    ErrorCode.MINIMUM_STAY_NOT_MET: "Minimum stay requirement not met",
    ErrorCode.NO_GROUP_OPTION: "No combination of units can hold this party",
    ErrorCode.INVALID_STATE_TRANSITION: "Reservation cannot change to the requested state",
    ErrorCode.RESERVATION_NOT_PAYABLE: "Reservation is not in a payable state",
    ErrorCode.CONCURRENT_MODIFICATION: "Reservation was modified concurrently",
    ErrorCode.PAYMENT_CORRELATION: "Payment event does not match any pending reservation",
    ErrorCode.COMPENSATION_REQUIRED: "Payment captured for dates that are no longer free",
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: "Invalid webhook signature",
    ErrorCode.STRIPE_API_ERROR: "Stripe API error occurred",
}

ERROR_RECOVERY: dict[ErrorCode, str] = {
    ErrorCode.INVALID_REQUEST: "Correct the request and try again",
    ErrorCode.INVALID_DATE_RANGE: "Use YYYY-MM-DD dates with check-out after check-in",
    ErrorCode.MISSING_GUEST_CONTACT: "Provide the guest name and email address",
    ErrorCode.CAPACITY_EXCEEDED: "Reduce the party size or request a group booking",
    ErrorCode.GROUP_BOOKING_DISABLED: "Book a single unit that fits the party",
    ErrorCode.INVALID_ALLOCATION: "Assign every guest to exactly one unit within capacity",
    ErrorCode.UNIT_NOT_FOUND: "Verify the unit ID",
    ErrorCode.RESERVATION_NOT_FOUND: "Verify the reservation ID",
    ErrorCode.GROUP_NOT_FOUND: "Verify the group reference",
    ErrorCode.DATES_UNAVAILABLE: "Search for alternative dates or units",
    ErrorCode.DATES_BLOCKED: "Choose dates outside the blocked period",
    ErrorCode.MINIMUM_STAY_NOT_MET: "Extend the stay to the minimum number of nights",
    ErrorCode.NO_GROUP_OPTION: "Reduce the party size or choose other dates",
    ErrorCode.INVALID_STATE_TRANSITION: "Reload the reservation and check its status",
    ErrorCode.RESERVATION_NOT_PAYABLE: "Verify reservation status is pending",
    ErrorCode.CONCURRENT_MODIFICATION: "Retry the operation",
    ErrorCode.PAYMENT_CORRELATION: "No action required",
    ErrorCode.COMPENSATION_REQUIRED: "Refund the guest manually and notify them",
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: "Verify webhook secret configuration",
    ErrorCode.STRIPE_API_ERROR: "Try again or contact support",
}


class ErrorResponse(BaseModel):
    """Structured error body returned by synchronous entry points."""

    model_config = ConfigDict(strict=True)

    success: bool = False
    error_code: ErrorCode
    message: str
    recovery: str
    details: Optional[dict[str, str]] = None

    @classmethod
    def from_code(
        cls,
        code: ErrorCode,
        details: Optional[dict[str, str]] = None,
    ) -> "ErrorResponse":
        """Create an ErrorResponse with the message and recovery hint for a code."""
        return cls(
            error_code=code,
            message=ERROR_MESSAGES[code],
            recovery=ERROR_RECOVERY[code],
            details=details,
        )


class BookingError(Exception):
    """Base exception raised by booking operations.

    Subclasses fix the category; the ``code`` narrows it down.
    """

    default_code: ErrorCode = ErrorCode.INVALID_REQUEST

    def __init__(
        self,
        code: Optional[ErrorCode] = None,
        details: Optional[dict[str, str]] = None,
    ):
        self.code = code or self.default_code
        self.message = ERROR_MESSAGES[self.code]
        self.recovery = ERROR_RECOVERY[self.code]
        self.details = {k: str(v) for k, v in details.items()} if details else None
        super().__init__(self.message)

    def to_error_response(self) -> ErrorResponse:
        """Convert this exception to an ErrorResponse."""
        return ErrorResponse.from_code(self.code, self.details)


class ValidationError(BookingError):
    """Malformed input; no state was mutated."""

    default_code = ErrorCode.INVALID_REQUEST


class NotFoundError(BookingError):
    """A referenced unit, reservation or group does not exist."""

    default_code = ErrorCode.RESERVATION_NOT_FOUND


class AvailabilityConflict(BookingError):
    """Overlap, blocked date or minimum-stay violation."""

    default_code = ErrorCode.DATES_UNAVAILABLE


class InvalidTransitionError(BookingError):
    """The reservation is not in a state that allows the transition."""

    default_code = ErrorCode.INVALID_STATE_TRANSITION


class PaymentCorrelationError(BookingError):
    """A payment event no longer matches reservations in the expected state.

    Treated as an idempotent no-op by the reconciler.
    """

    default_code = ErrorCode.PAYMENT_CORRELATION


class CompensationRequired(BookingError):
    """A conflict found after payment was captured.

    Resolved by cancelling the reservation set and flagging it for a
    manual refund. Never shown to the guest.
    """

    default_code = ErrorCode.COMPENSATION_REQUIRED

    def __init__(
        self,
        conflicts: dict[str, list[str]],
        details: Optional[dict[str, str]] = None,
    ):
        self.conflicts = conflicts
        merged = {rid: ",".join(others) for rid, others in conflicts.items()}
        if details:
            merged.update(details)
        super().__init__(details=merged)
