"""Backend services for Staybook."""

from .allocation import GroupAllocator, allocate_guests
from .availability import AvailabilityService
from .date_overrides import DateOverrideService
from .dynamodb import DynamoDBService, get_dynamodb_service, reset_dynamodb_service
from .events import EventPublisher
from .payment_gateway import PaymentGateway
from .pricing import PricingService, calculate_stay_price
from .reconciler import PaymentReconciler
from .reservations import ReservationService
from .search import SearchService
from .ssm_service import SSMService, SSMServiceError, get_ssm_service
from .stripe_service import (
    StripeService,
    StripeServiceError,
    StripeSignatureError,
    get_stripe_service,
)
from .units import UnitService
from .webhook_handler import RetryableWebhookError, WebhookHandler

__all__ = [
    "DynamoDBService",
    "get_dynamodb_service",
    "reset_dynamodb_service",
    "UnitService",
    "DateOverrideService",
    "PricingService",
    "calculate_stay_price",
    "AvailabilityService",
    "GroupAllocator",
    "allocate_guests",
    "SearchService",
    "EventPublisher",
    "ReservationService",
    "PaymentGateway",
    "PaymentReconciler",
    "WebhookHandler",
    "RetryableWebhookError",
    "SSMService",
    "SSMServiceError",
    "get_ssm_service",
    "StripeService",
    "StripeServiceError",
    "StripeSignatureError",
    "get_stripe_service",
]
