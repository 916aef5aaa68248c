"""
Request context for log correlation.

The request id lives in a contextvar set by RequestIdMiddleware; the
``add_request_context`` processor copies it into every structlog event
emitted while the request is being handled.
"""

from contextvars import ContextVar
from typing import Any

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")


def get_request_id() -> str:
    """Get current request ID from context (empty outside a request)."""
    return request_id_ctx.get()


def add_request_context(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """
    Structlog processor that adds the request id to all logs.

    Usage:
        structlog.configure(
            processors=[
                add_request_context,
                structlog.processors.JSONRenderer(),
            ]
        )
    """
    request_id = get_request_id()
    if request_id:
        event_dict.setdefault("request_id", request_id)
    return event_dict
