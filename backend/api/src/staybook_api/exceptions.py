"""FastAPI exception handlers for converting domain errors to HTTP responses.

Every handled error is rendered as an ``ErrorResponse`` body:
``{success: false, error_code, message, recovery, details}``.

The ErrorCode-to-HTTP status mapping:
- 400 Bad Request: Validation errors and invalid webhook signatures
- 403 Forbidden: Group booking disabled
- 404 Not Found: Unknown unit, reservation or group
- 409 Conflict: Calendar conflicts and invalid lifecycle transitions
- 422 Unprocessable Entity: Request body failed schema validation
- 502 Bad Gateway: Payment processor failures

Usage:
    from staybook_api.exceptions import register_exception_handlers
    register_exception_handlers(app)
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_422_UNPROCESSABLE_ENTITY,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
)

from staybook.models.errors import BookingError, ErrorCode, ErrorResponse
from staybook.services.stripe_service import StripeServiceError

logger = logging.getLogger(__name__)

ERROR_CODE_TO_HTTP_STATUS: dict[ErrorCode, int] = {
    # Authorization -> 403 Forbidden
    ErrorCode.GROUP_BOOKING_DISABLED: HTTP_403_FORBIDDEN,
    # Not found errors -> 404 Not Found
    ErrorCode.UNIT_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.RESERVATION_NOT_FOUND: HTTP_404_NOT_FOUND,
    ErrorCode.GROUP_NOT_FOUND: HTTP_404_NOT_FOUND,
    # Calendar conflicts -> 409 Conflict
    ErrorCode.DATES_UNAVAILABLE: HTTP_409_CONFLICT,
    ErrorCode.DATES_BLOCKED: HTTP_409_CONFLICT,
    ErrorCode.MINIMUM_STAY_NOT_MET: HTTP_409_CONFLICT,
    ErrorCode.NO_GROUP_OPTION: HTTP_409_CONFLICT,
    # Lifecycle -> 409 Conflict
    ErrorCode.INVALID_STATE_TRANSITION: HTTP_409_CONFLICT,
    ErrorCode.RESERVATION_NOT_PAYABLE: HTTP_409_CONFLICT,
    ErrorCode.CONCURRENT_MODIFICATION: HTTP_409_CONFLICT,
    # Payment processor -> 502 Bad Gateway
    ErrorCode.STRIPE_API_ERROR: HTTP_502_BAD_GATEWAY,
    # Event path only; surfaced as 500 if they ever escape
    ErrorCode.PAYMENT_CORRELATION: HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.COMPENSATION_REQUIRED: HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_http_status_for_error(code: ErrorCode) -> int:
    """Get HTTP status code for an ErrorCode, defaulting to 400."""
    return ERROR_CODE_TO_HTTP_STATUS.get(code, HTTP_400_BAD_REQUEST)


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    """Convert a BookingError to a JSON response with the mapped status code."""
    status_code = get_http_status_for_error(exc.code)
    if status_code >= HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)

    return JSONResponse(
        status_code=status_code,
        content=exc.to_error_response().model_dump(mode="json"),
    )


async def stripe_error_handler(request: Request, exc: StripeServiceError) -> JSONResponse:
    """Convert a Stripe failure to a 502 ``STRIPE_API_ERROR`` response."""
    logger.error("Payment processor error on %s: %s", request.url.path, exc)
    details = {"stripe_error_code": exc.stripe_error_code} if exc.stripe_error_code else None
    error = ErrorResponse.from_code(ErrorCode.STRIPE_API_ERROR, details)
    return JSONResponse(
        status_code=HTTP_502_BAD_GATEWAY,
        content=error.model_dump(mode="json"),
    )


GUEST_CONTACT_FIELDS = {"guest_name", "guest_email"}


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render schema validation failures in the ErrorResponse shape.

    Missing or malformed guest contact fields get their own code so the
    client can point the guest at the contact form.
    """
    details: dict[str, str] = {}
    code = ErrorCode.INVALID_REQUEST
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        field = ".".join(loc) or "body"
        details[field] = error.get("msg", "invalid")
        if GUEST_CONTACT_FIELDS.intersection(loc):
            code = ErrorCode.MISSING_GUEST_CONTACT

    error = ErrorResponse.from_code(code, details)
    return JSONResponse(
        status_code=HTTP_422_UNPROCESSABLE_ENTITY,
        content=error.model_dump(mode="json"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(BookingError, booking_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StripeServiceError, stripe_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, request_validation_handler)  # type: ignore[arg-type]
