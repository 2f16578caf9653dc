"""FastAPI application for the Staybook booking API.

This package provides REST endpoints for:
- Availability checks and all-unit search
- Stay price quotes
- Reservation creation, reads and cancellation
- Checkout handoff and Stripe webhooks
"""

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from mangum import Mangum

from staybook import __version__
from staybook.config import get_settings
from staybook.utils.logging import configure_logging
from staybook_api.exceptions import register_exception_handlers
from staybook_api.middleware.correlation import CorrelationIdMiddleware
from staybook_api.routes import (
    availability_router,
    payments_router,
    pricing_router,
    reservations_router,
    webhooks_router,
)

configure_logging(logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Staybook API",
    description="REST API for multi-unit rental availability, reservations and payments",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(CorrelationIdMiddleware)

register_exception_handlers(app)

# Include routers under /api prefix
app.include_router(availability_router, prefix="/api")
app.include_router(pricing_router, prefix="/api")
app.include_router(reservations_router, prefix="/api")
app.include_router(payments_router, prefix="/api")
app.include_router(webhooks_router, prefix="/api")


@app.get("/api/ping")
async def ping() -> dict[str, Any]:
    """Liveness check."""
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat(),
        "service": "staybook-api",
    }


# Lambda handler - Mangum wraps FastAPI for AWS Lambda + API Gateway
handler = Mangum(app, lifespan="off")


def run_server(host: str = "0.0.0.0", port: int = 8080, reload: bool = False) -> None:
    """Run the FastAPI server with uvicorn.

    Args:
        host: Host to bind to
        port: Port to listen on
        reload: Enable hot reload for development
    """
    import uvicorn

    if reload:
        # Use string reference for reload mode (uvicorn requirement)
        uvicorn.run(
            "staybook_api.main:app",
            host=host,
            port=port,
            reload=True,
            reload_dirs=["backend/api/src", "backend/shared/src"],
        )
    else:
        uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server(reload=True)
