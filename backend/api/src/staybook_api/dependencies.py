"""FastAPI dependency injection providers for shared services.

Services are lazily instantiated and cached with ``@lru_cache`` so that
every request shares one instance per process (and per Lambda container).

Service Dependency Graph:
    DynamoDBService (singleton via get_dynamodb_service)
        ├── UnitService
        ├── DateOverrideService
        │       └── PricingService
        │               └── AvailabilityService
        │                       ├── GroupAllocator
        │                       │       └── SearchService
        │                       └── ReservationService (+ EventPublisher)
        │                               ├── PaymentGateway (+ StripeService)
        │                               └── PaymentReconciler
        │                                       └── WebhookHandler
        └── EventPublisher

Testing:
    Use reset_services() to clear cached instances between tests.
"""

from functools import lru_cache

from staybook.config import Settings, get_settings
from staybook.services.allocation import GroupAllocator
from staybook.services.availability import AvailabilityService
from staybook.services.date_overrides import DateOverrideService
from staybook.services.dynamodb import get_dynamodb_service, reset_dynamodb_service
from staybook.services.events import EventPublisher
from staybook.services.payment_gateway import PaymentGateway
from staybook.services.pricing import PricingService
from staybook.services.reconciler import PaymentReconciler
from staybook.services.reservations import ReservationService
from staybook.services.search import SearchService
from staybook.services.ssm_service import get_ssm_service
from staybook.services.stripe_service import StripeService, get_stripe_service
from staybook.services.units import UnitService
from staybook.services.webhook_handler import WebhookHandler


def get_app_settings() -> Settings:
    return get_settings()


@lru_cache
def get_unit_service() -> UnitService:
    return UnitService(db=get_dynamodb_service())


@lru_cache
def get_date_override_service() -> DateOverrideService:
    return DateOverrideService(db=get_dynamodb_service())


@lru_cache
def get_pricing_service() -> PricingService:
    """Get cached PricingService instance."""
    return PricingService(units=get_unit_service(), overrides=get_date_override_service())


@lru_cache
def get_availability_service() -> AvailabilityService:
    """Get cached AvailabilityService instance."""
    return AvailabilityService(
        db=get_dynamodb_service(),
        units=get_unit_service(),
        overrides=get_date_override_service(),
        pricing=get_pricing_service(),
    )


@lru_cache
def get_group_allocator() -> GroupAllocator:
    return GroupAllocator(
        units=get_unit_service(),
        availability=get_availability_service(),
        pricing=get_pricing_service(),
    )


@lru_cache
def get_search_service() -> SearchService:
    return SearchService(
        units=get_unit_service(),
        availability=get_availability_service(),
        pricing=get_pricing_service(),
        allocator=get_group_allocator(),
        settings=get_settings(),
    )


@lru_cache
def get_event_publisher() -> EventPublisher:
    return EventPublisher(db=get_dynamodb_service())


@lru_cache
def get_reservation_service() -> ReservationService:
    """Get cached ReservationService instance.

    Returns:
        ReservationService configured with all required dependencies.
    """
    return ReservationService(
        db=get_dynamodb_service(),
        units=get_unit_service(),
        availability=get_availability_service(),
        pricing=get_pricing_service(),
        allocator=get_group_allocator(),
        events=get_event_publisher(),
        settings=get_settings(),
    )


def get_stripe() -> StripeService:
    return get_stripe_service()


@lru_cache
def get_payment_gateway() -> PaymentGateway:
    return PaymentGateway(
        reservations=get_reservation_service(),
        units=get_unit_service(),
        stripe=get_stripe_service(),
    )


@lru_cache
def get_payment_reconciler() -> PaymentReconciler:
    return PaymentReconciler(
        reservations=get_reservation_service(),
        availability=get_availability_service(),
        events=get_event_publisher(),
    )


@lru_cache
def get_webhook_handler() -> WebhookHandler:
    return WebhookHandler(db=get_dynamodb_service(), reconciler=get_payment_reconciler())


def reset_services() -> None:
    """Clear all cached service instances.

    Call this in test fixtures to ensure clean state between tests.
    Also resets settings, the SSM/Stripe clients and the DynamoDB singleton.
    """
    get_unit_service.cache_clear()
    get_date_override_service.cache_clear()
    get_pricing_service.cache_clear()
    get_availability_service.cache_clear()
    get_group_allocator.cache_clear()
    get_search_service.cache_clear()
    get_event_publisher.cache_clear()
    get_reservation_service.cache_clear()
    get_payment_gateway.cache_clear()
    get_payment_reconciler.cache_clear()
    get_webhook_handler.cache_clear()

    get_stripe_service.cache_clear()
    get_ssm_service.cache_clear()
    get_settings.cache_clear()
    reset_dynamodb_service()
