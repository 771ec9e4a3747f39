"""structlog configuration and per-request access logging."""

import logging
import sys
import time
import uuid
from collections.abc import Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import Settings, settings

REQUEST_ID_HEADER = "X-Request-ID"


def configure_logging(config: Settings = settings) -> None:
    """
    Route structlog through stdlib logging.

    ``LOG_FORMAT=json`` renders one JSON object per line; anything else uses
    the coloured console renderer.
    """
    renderer = (
        structlog.processors.JSONRenderer()
        if config.log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, config.log_level.upper(), logging.INFO),
    )


def resolve_request_id(request: Request) -> str:
    """Reuse the caller's correlation id or mint a new one."""
    return request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex


class LoggingMiddleware(BaseHTTPMiddleware):
    """Access log with a correlation id bound to every line of the request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        logger = structlog.get_logger("app.access")
        request_id = resolve_request_id(request)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        started = time.perf_counter()
        logger.info("request_started", client=request.client.host if request.client else None)

        try:
            response = await call_next(request)
        except Exception:
            logger.exception("request_failed", duration_ms=_elapsed_ms(started))
            raise

        elapsed = _elapsed_ms(started)
        # Set by get_current_principal on authenticated routes
        principal = getattr(request.state, "principal", None)
        logger.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=elapsed,
            user_id=str(principal.user_id) if principal else None,
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Process-Time"] = f"{elapsed:.2f}ms"
        return response


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
