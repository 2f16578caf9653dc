"""API routes package.

Routers are organized by domain and registered in main.py with the /api prefix:

- availability: Availability queries and all-unit search
- pricing: Stay price quotes
- reservations: Inquiry/pending creation, reads and cancellation
- payments: Checkout session handoff
- webhooks: Stripe payment events
"""

from staybook_api.routes.availability import router as availability_router
from staybook_api.routes.payments import router as payments_router
from staybook_api.routes.pricing import router as pricing_router
from staybook_api.routes.reservations import router as reservations_router
from staybook_api.routes.webhooks import router as webhooks_router

__all__ = [
    "availability_router",
    "payments_router",
    "pricing_router",
    "reservations_router",
    "webhooks_router",
]
