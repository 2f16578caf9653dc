"""Pytest configuration and fixtures for Staybook backend tests.

This module provides reusable fixtures for testing:
- DynamoDB mocking with moto (all tables and GSIs)
- Wired service instances backed by the mocked tables
- Sample units, guests and reservation seeding helpers
- Signed Stripe webhook payloads and an API test client
"""

import datetime as dt
import hashlib
import hmac
import os
import time
from collections.abc import Callable
from typing import Any, Generator
from unittest.mock import MagicMock, patch

import boto3
import pytest
from moto import mock_aws

# === Environment Setup ===

# Set environment variables for testing before imports
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-1")
os.environ.setdefault("DYNAMODB_TABLE_PREFIX", "test-staybook")
os.environ.setdefault("ENVIRONMENT", "test")

# Only set fake credentials for moto if no real credentials are present
if not os.environ.get("AWS_PROFILE") and not os.environ.get("AWS_ACCESS_KEY_ID"):
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

from staybook.config import Settings, get_settings  # noqa: E402
from staybook.models import (  # noqa: E402
    PaymentStatus,
    Reservation,
    ReservationStatus,
    SeasonalPrice,
    Unit,
)
from staybook.services.allocation import GroupAllocator  # noqa: E402
from staybook.services.availability import AvailabilityService  # noqa: E402
from staybook.services.date_overrides import DateOverrideService  # noqa: E402
from staybook.services.dynamodb import DynamoDBService, get_dynamodb_service  # noqa: E402
from staybook.services.events import EventPublisher  # noqa: E402
from staybook.services.pricing import PricingService  # noqa: E402
from staybook.services.reconciler import PaymentReconciler  # noqa: E402
from staybook.services.reservations import ReservationService  # noqa: E402
from staybook.services.search import SearchService  # noqa: E402
from staybook.services.units import UnitService  # noqa: E402

TABLE_PREFIX = "test-staybook"


# === Singleton Reset ===


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Reset cached services, settings and the DynamoDB singleton around each test.

    Tests using mock_aws then get fresh clients created inside the mock
    context rather than reusing ones from a previous test.
    """
    from staybook_api.dependencies import reset_services

    reset_services()
    yield
    reset_services()


# === DynamoDB Fixtures ===


@pytest.fixture
def aws_credentials() -> None:
    """Mocked AWS Credentials for moto."""
    if not os.environ.get("AWS_PROFILE"):
        os.environ["AWS_ACCESS_KEY_ID"] = "testing"
        os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
        os.environ["AWS_SECURITY_TOKEN"] = "testing"
        os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "eu-west-1"


@pytest.fixture
def dynamodb_client(aws_credentials: None) -> Generator[Any, None, None]:
    """Create a mocked DynamoDB client."""
    with mock_aws():
        client = boto3.client("dynamodb", region_name="eu-west-1")
        yield client


def _string_attrs(*names: str) -> list[dict[str, str]]:
    return [{"AttributeName": name, "AttributeType": "S"} for name in names]


@pytest.fixture
def create_tables(dynamodb_client: Any) -> None:
    """Create all required DynamoDB tables for testing."""
    tables = [
        {
            "TableName": f"{TABLE_PREFIX}-units",
            "KeySchema": [{"AttributeName": "unit_id", "KeyType": "HASH"}],
            "AttributeDefinitions": _string_attrs("unit_id"),
        },
        {
            "TableName": f"{TABLE_PREFIX}-date-overrides",
            "KeySchema": [
                {"AttributeName": "unit_id", "KeyType": "HASH"},
                {"AttributeName": "date", "KeyType": "RANGE"},
            ],
            "AttributeDefinitions": _string_attrs("unit_id", "date"),
        },
        {
            "TableName": f"{TABLE_PREFIX}-reservations",
            "KeySchema": [{"AttributeName": "reservation_id", "KeyType": "HASH"}],
            "AttributeDefinitions": _string_attrs(
                "reservation_id",
                "unit_id",
                "check_in",
                "payment_session_id",
                "group_reference",
            ),
            "GlobalSecondaryIndexes": [
                {
                    "IndexName": "unit_id-check_in-index",
                    "KeySchema": [
                        {"AttributeName": "unit_id", "KeyType": "HASH"},
                        {"AttributeName": "check_in", "KeyType": "RANGE"},
                    ],
                    "Projection": {"ProjectionType": "ALL"},
                },
                {
                    "IndexName": "payment_session_id-index",
                    "KeySchema": [{"AttributeName": "payment_session_id", "KeyType": "HASH"}],
                    "Projection": {"ProjectionType": "ALL"},
                },
                {
                    "IndexName": "group_reference-index",
                    "KeySchema": [{"AttributeName": "group_reference", "KeyType": "HASH"}],
                    "Projection": {"ProjectionType": "ALL"},
                },
            ],
        },
        {
            "TableName": f"{TABLE_PREFIX}-stripe-webhook-events",
            "KeySchema": [{"AttributeName": "event_id", "KeyType": "HASH"}],
            "AttributeDefinitions": _string_attrs("event_id"),
        },
        {
            "TableName": f"{TABLE_PREFIX}-domain-events",
            "KeySchema": [{"AttributeName": "event_id", "KeyType": "HASH"}],
            "AttributeDefinitions": _string_attrs("event_id"),
        },
    ]

    for table_config in tables:
        dynamodb_client.create_table(BillingMode="PAY_PER_REQUEST", **table_config)


# === Service Fixtures ===


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
def db(create_tables: None) -> DynamoDBService:
    """DynamoDB service bound to the mocked tables."""
    return get_dynamodb_service()


@pytest.fixture
def unit_service(db: DynamoDBService) -> UnitService:
    return UnitService(db)


@pytest.fixture
def override_service(db: DynamoDBService) -> DateOverrideService:
    return DateOverrideService(db)


@pytest.fixture
def pricing_service(unit_service: UnitService, override_service: DateOverrideService) -> PricingService:
    return PricingService(unit_service, override_service)


@pytest.fixture
def availability_service(
    db: DynamoDBService,
    unit_service: UnitService,
    override_service: DateOverrideService,
    pricing_service: PricingService,
) -> AvailabilityService:
    return AvailabilityService(db, unit_service, override_service, pricing_service)


@pytest.fixture
def allocator(
    unit_service: UnitService,
    availability_service: AvailabilityService,
    pricing_service: PricingService,
) -> GroupAllocator:
    return GroupAllocator(unit_service, availability_service, pricing_service)


@pytest.fixture
def search_service(
    unit_service: UnitService,
    availability_service: AvailabilityService,
    pricing_service: PricingService,
    allocator: GroupAllocator,
    settings: Settings,
) -> SearchService:
    return SearchService(unit_service, availability_service, pricing_service, allocator, settings)


@pytest.fixture
def event_publisher(db: DynamoDBService) -> EventPublisher:
    return EventPublisher(db)


@pytest.fixture
def reservation_service(
    db: DynamoDBService,
    unit_service: UnitService,
    availability_service: AvailabilityService,
    pricing_service: PricingService,
    allocator: GroupAllocator,
    event_publisher: EventPublisher,
    settings: Settings,
) -> ReservationService:
    return ReservationService(
        db,
        unit_service,
        availability_service,
        pricing_service,
        allocator,
        event_publisher,
        settings,
    )


@pytest.fixture
def reconciler(
    reservation_service: ReservationService,
    availability_service: AvailabilityService,
    event_publisher: EventPublisher,
) -> PaymentReconciler:
    return PaymentReconciler(reservation_service, availability_service, event_publisher)


# === Sample Data Fixtures ===


@pytest.fixture
def guest() -> dict[str, Any]:
    """Guest contact fields for reservation requests."""
    return {
        "guest_name": "Ana García",
        "guest_email": "ana@example.com",
        "guest_phone": "+34612345678",
    }


@pytest.fixture
def make_unit(unit_service: UnitService) -> Callable[..., Unit]:
    """Factory that stores a unit in the mocked table."""

    def _make(unit_id: str = "sea-view", **overrides: Any) -> Unit:
        fields: dict[str, Any] = {
            "unit_id": unit_id,
            "name": unit_id.replace("-", " ").title(),
            "capacity": 4,
            "base_price": 10000,
        }
        fields.update(overrides)
        return unit_service.put_unit(Unit(**fields))

    return _make


@pytest.fixture
def sea_view(make_unit: Callable[..., Unit]) -> Unit:
    """Capacity 4, 100 EUR/night, no overrides."""
    return make_unit("sea-view", name="Sea View", capacity=4, base_price=10000)


@pytest.fixture
def summer_unit(make_unit: Callable[..., Unit]) -> Unit:
    """Per-person unit with a summer season."""
    return make_unit(
        "garden-loft",
        name="Garden Loft",
        capacity=6,
        base_price=8000,
        pricing_mode="per_person",
        base_guests=2,
        extra_guest_price=1500,
        seasonal_prices=[
            SeasonalPrice(
                name="Summer",
                start_date=dt.date(2024, 7, 1),
                end_date=dt.date(2024, 8, 31),
                price=12000,
            )
        ],
    )


@pytest.fixture
def store_reservation(db: DynamoDBService) -> Callable[..., Reservation]:
    """Write a reservation directly, bypassing the lifecycle checks."""
    counter = {"n": 0}

    def _store(
        unit_id: str,
        check_in: dt.date,
        check_out: dt.date,
        status: ReservationStatus = ReservationStatus.CONFIRMED,
        **overrides: Any,
    ) -> Reservation:
        counter["n"] += 1
        now = dt.datetime.now(dt.UTC)
        fields: dict[str, Any] = {
            "reservation_id": f"RES-2024-SEED{counter['n']:04d}",
            "unit_id": unit_id,
            "guest_name": "Seeded Guest",
            "guest_email": "seeded@example.com",
            "check_in": check_in,
            "check_out": check_out,
            "guest_count": 2,
            "total_price": 30000,
            "status": status,
            "payment_status": (
                PaymentStatus.PAID
                if status in (ReservationStatus.CONFIRMED, ReservationStatus.COMPLETED)
                else PaymentStatus.PENDING
            ),
            "created_at": now,
            "updated_at": now,
        }
        fields.update(overrides)
        reservation = Reservation(**fields)
        db.put_item("reservations", reservation.to_item())
        return reservation

    return _store


@pytest.fixture
def mock_stripe_service() -> MagicMock:
    """StripeService stand-in returning a fresh checkout session per call.

    Created sessions are kept in ``service.sessions`` with status ``open``;
    tests move them to ``expired`` or ``complete`` to drive retrieval.
    """
    service = MagicMock()
    service.sessions = {}

    def _create(**kwargs: Any) -> dict[str, Any]:
        session_id = f"cs_test_{len(service.sessions) + 1:03d}"
        service.sessions[session_id] = {
            "session_id": session_id,
            "checkout_url": f"https://checkout.stripe.com/c/pay/{session_id}",
            "status": "open",
            "expires_at": dt.datetime(2024, 6, 1, 12, 30, tzinfo=dt.UTC),
        }
        return {k: v for k, v in service.sessions[session_id].items() if k != "status"}

    def _retrieve(session_id: str) -> dict[str, Any]:
        return dict(service.sessions[session_id])

    service.create_checkout_session.side_effect = _create
    service.retrieve_checkout_session.side_effect = _retrieve
    return service


# === Stripe Fixtures ===

TEST_WEBHOOK_SECRET = "whsec_test_secret123"


def sign_stripe_payload(payload: bytes, secret: str = TEST_WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header value for ``payload``."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


@pytest.fixture
def checkout_event() -> Callable[..., dict[str, Any]]:
    """Factory for Stripe checkout.session.* webhook events."""
    counter = {"n": 0}

    def _event(
        session_id: str,
        metadata: dict[str, str],
        event_type: str = "checkout.session.completed",
        payment_status: str = "paid",
        event_id: str | None = None,
    ) -> dict[str, Any]:
        counter["n"] += 1
        return {
            "id": event_id or f"evt_test_{counter['n']:03d}",
            "object": "event",
            "type": event_type,
            "created": 1717228800,
            "data": {
                "object": {
                    "id": session_id,
                    "object": "checkout.session",
                    "payment_status": payment_status,
                    "metadata": metadata,
                    "currency": "eur",
                }
            },
        }

    return _event


@pytest.fixture
def sign_webhook() -> Callable[..., str]:
    """Signs raw webhook bodies with the test webhook secret."""
    return sign_stripe_payload


@pytest.fixture
def client(db: DynamoDBService, mock_stripe_service: MagicMock) -> Generator[Any, None, None]:
    """API test client wired to the moto tables and a mocked Stripe service.

    Webhook signatures are verified for real against TEST_WEBHOOK_SECRET.
    """
    from fastapi.testclient import TestClient

    from staybook.services.payment_gateway import PaymentGateway
    from staybook.services.stripe_service import StripeService
    from staybook_api.dependencies import (
        get_payment_gateway,
        get_reservation_service,
        get_stripe,
        get_unit_service,
    )
    from staybook_api.main import app

    with patch("staybook.services.stripe_service.get_ssm_service") as mock_get_ssm:
        mock_get_ssm.return_value.get_secret.side_effect = lambda name: {
            "stripe/secret_key": "sk_test_abc123xyz",
            "stripe/webhook_secret": TEST_WEBHOOK_SECRET,
        }[name]
        stripe_service = StripeService()

    app.dependency_overrides[get_stripe] = lambda: stripe_service
    app.dependency_overrides[get_payment_gateway] = lambda: PaymentGateway(
        get_reservation_service(), get_unit_service(), mock_stripe_service
    )
    yield TestClient(app)
    app.dependency_overrides.clear()
