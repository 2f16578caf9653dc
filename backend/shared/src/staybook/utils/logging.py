"""Logging helpers shared by the API and the webhook path.

A correlation id lives in a ``ContextVar`` so concurrent requests never see
each other's id. Every record passing through a configured handler gets a
``correlation_id`` attribute and a ``[<id>]`` prefix.

Reservation transitions and payment events are logged through
``log_reservation_transition`` and ``log_payment_event`` so the same
key=value fields appear in the message and in ``extra``.
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Any

NO_CORRELATION_ID = "no-correlation-id"
DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Bind ``correlation_id`` (or a fresh uuid4) to the current context."""
    value = correlation_id or uuid.uuid4().hex
    _correlation_id.set(value)
    return value


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def clear_correlation_id() -> None:
    _correlation_id.set(None)


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "correlation_id", None):
            record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        return True


class CorrelatedFormatter(logging.Formatter):
    """Prefixes each formatted line with the record's correlation id."""

    def format(self, record: logging.LogRecord) -> str:
        cid = getattr(record, "correlation_id", None) or get_correlation_id() or NO_CORRELATION_ID
        return f"[{cid}] {super().format(record)}"


def configure_logging(level: int | str = logging.INFO) -> None:
    """Attach one correlated stream handler to the root logger.

    Calling this again only updates the level.
    """
    root = logging.getLogger()
    root.setLevel(level)
    if any(isinstance(h.formatter, CorrelatedFormatter) for h in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(CorrelatedFormatter(DEFAULT_FORMAT))
    handler.addFilter(CorrelationIdFilter())
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not any(isinstance(f, CorrelationIdFilter) for f in logger.filters):
        logger.addFilter(CorrelationIdFilter())
    return logger


def _fields(**values: Any) -> dict[str, Any]:
    """Drop empty values and join id lists with commas."""
    fields: dict[str, Any] = {}
    for key, value in values.items():
        if value is None or value == "" or value == []:
            continue
        fields[key] = ",".join(value) if isinstance(value, list) else value
    return fields


def log_reservation_transition(
    logger: logging.Logger,
    transition: str,
    reservation_ids: list[str],
    *,
    group_reference: str | None = None,
    session_id: str | None = None,
    status: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log a reservation state change such as ``confirm_paid``.

    Logged at ERROR when ``error`` is given, INFO otherwise.
    """
    fields = _fields(
        reservation_ids=reservation_ids,
        group_reference=group_reference,
        session_id=session_id,
        status=status,
        error=error,
        **extra,
    )
    detail = " | ".join(f"{k}={v}" for k, v in fields.items())
    message = f"Reservation transition: {transition}" + (f" | {detail}" if detail else "")
    fields["transition"] = transition
    logger.log(logging.ERROR if error else logging.INFO, message, extra=fields)


_PAYMENT_RESULT_LEVELS = {
    "error": logging.ERROR,
    "duplicate": logging.WARNING,
    "skipped": logging.WARNING,
    "conflict": logging.WARNING,
}


def log_payment_event(
    logger: logging.Logger,
    event_type: str,
    event_id: str,
    *,
    session_id: str | None = None,
    reservation_ids: list[str] | None = None,
    result: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log an inbound processor event and what was done with it.

    ``result`` is one of received, success, duplicate, skipped, conflict or
    error; it picks the level (ERROR for error, WARNING for the three
    non-applied outcomes, INFO otherwise).
    """
    fields = _fields(
        event_type=event_type,
        event_id=event_id,
        session_id=session_id,
        reservation_ids=reservation_ids,
        result=result,
        error=error,
        **extra,
    )
    shown = [f"{k}={fields[k]}" for k in ("result", "session_id", "error") if k in fields]
    message = " | ".join([f"Payment event: {event_type} ({event_id})", *shown])
    logger.log(_PAYMENT_RESULT_LEVELS.get(result or "", logging.INFO), message, extra=fields)
