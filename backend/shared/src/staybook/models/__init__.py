"""Pydantic models for Staybook data entities."""

from .allocation import GroupAllocation, UnitAllocation
from .availability import (
    AvailabilityQuote,
    AvailabilityResult,
    NightlyPrice,
    PriceQuote,
    SearchResult,
    UnitOffer,
)
from .date_override import DateOverride
from .enums import (
    BLOCKING_STATUSES,
    CANCELLABLE_STATUSES,
    DomainEventType,
    ExtraGuestPriceType,
    PaymentEventType,
    PaymentStatus,
    PricingMode,
    ReservationSource,
    ReservationStatus,
    UnavailableReason,
)
from .errors import (
    AvailabilityConflict,
    BookingError,
    CompensationRequired,
    ErrorCode,
    ErrorResponse,
    InvalidTransitionError,
    NotFoundError,
    PaymentCorrelationError,
    ValidationError,
)
from .events import DomainEvent
from .payment import PaymentEvent, PaymentSession, ReconciliationResult
from .reservation import (
    GroupReservationCreate,
    GuestContact,
    Reservation,
    ReservationCreate,
    UnitShare,
)
from .unit import SeasonalPrice, Unit

__all__ = [
    # Enums
    "BLOCKING_STATUSES",
    "CANCELLABLE_STATUSES",
    "DomainEventType",
    "ExtraGuestPriceType",
    "PaymentEventType",
    "PaymentStatus",
    "PricingMode",
    "ReservationSource",
    "ReservationStatus",
    "UnavailableReason",
    # Errors
    "AvailabilityConflict",
    "BookingError",
    "CompensationRequired",
    "ErrorCode",
    "ErrorResponse",
    "InvalidTransitionError",
    "NotFoundError",
    "PaymentCorrelationError",
    "ValidationError",
    # Units and calendar
    "DateOverride",
    "SeasonalPrice",
    "Unit",
    # Availability
    "AvailabilityQuote",
    "AvailabilityResult",
    "NightlyPrice",
    "PriceQuote",
    "SearchResult",
    "UnitOffer",
    # Allocation
    "GroupAllocation",
    "UnitAllocation",
    # Reservations
    "GroupReservationCreate",
    "GuestContact",
    "Reservation",
    "ReservationCreate",
    "UnitShare",
    # Payments and events
    "DomainEvent",
    "PaymentEvent",
    "PaymentSession",
    "ReconciliationResult",
]
