"""Enumeration types for Staybook data models."""

from enum import Enum


class ReservationStatus(str, Enum):
    """Lifecycle status of a reservation."""

    INQUIRY = "inquiry"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Statuses that own calendar days; no two may overlap on one unit.
BLOCKING_STATUSES: tuple[ReservationStatus, ...] = (
    ReservationStatus.CONFIRMED,
    ReservationStatus.COMPLETED,
)

# Statuses from which an explicit cancellation is allowed.
CANCELLABLE_STATUSES: tuple[ReservationStatus, ...] = (
    ReservationStatus.INQUIRY,
    ReservationStatus.PENDING,
)


class PaymentStatus(str, Enum):
    """Payment status for a reservation."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class ReservationSource(str, Enum):
    """Channel the reservation came from."""

    DIRECT = "direct"
    AIRBNB = "airbnb"
    BOOKING = "booking"
    OTHER = "other"


class PricingMode(str, Enum):
    """How the nightly rate scales with party size."""

    FLAT = "flat"
    PER_PERSON = "per_person"


class ExtraGuestPriceType(str, Enum):
    """Surcharge type for guests above the base-guest threshold."""

    FIXED = "fixed"
    PERCENTAGE = "percentage"


class UnavailableReason(str, Enum):
    """Why a stay is not available."""

    OVERLAP = "overlap"
    BLOCKED = "blocked"
    MIN_STAY = "min_stay"


class PaymentEventType(str, Enum):
    """Inbound payment event kinds handled by the reconciler."""

    PAYMENT_COMPLETED = "payment_completed"
    PAYMENT_EXPIRED = "payment_expired"
    PAYMENT_FAILED_ASYNC = "payment_failed_async"


class DomainEventType(str, Enum):
    """Events published for external collaborators."""

    INQUIRY_CREATED = "inquiry_created"
    RESERVATION_REQUESTED = "reservation_requested"
    RESERVATION_CONFIRMED = "reservation_confirmed"
    RESERVATION_CANCELLED = "reservation_cancelled"
    CONFLICT_NEEDS_REFUND = "conflict_needs_refund"
    PAYMENT_EXPIRED = "payment_expired"
