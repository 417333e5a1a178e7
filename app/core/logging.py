from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Awaitable, Callable

import structlog
from fastapi import Request, Response

REQUEST_ID_HEADER = "X-Request-ID"


def level_from_name(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def configure_logging(level: int | str = logging.INFO) -> None:
    """Route stdlib and structlog output through one JSON renderer.

    Every event carries a level, an ISO timestamp and whatever request
    context was bound by :func:`request_context_middleware`.
    """
    if isinstance(level, str):
        level = level_from_name(level)
    logging.basicConfig(format="%(message)s", level=level)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )


def get_logger(**initial_values: Any) -> structlog.BoundLogger:
    return structlog.get_logger().bind(**initial_values)


def bind_request_context(**values: Any) -> None:
    structlog.contextvars.bind_contextvars(**values)


async def request_context_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Tag every log line emitted while serving a request with its request id."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    started = time.perf_counter()
    with structlog.contextvars.bound_contextvars(request_id=request_id, method=request.method, path=request.url.path):
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        structlog.get_logger().info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
    return response


__all__ = [
    "REQUEST_ID_HEADER",
    "bind_request_context",
    "configure_logging",
    "get_logger",
    "level_from_name",
    "request_context_middleware",
]
