from __future__ import annotations

import logging
import sys
import time
import uuid
from typing import List

import sentry_sdk
import structlog
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from structlog import dev

from .config import Settings

_LOGGING_CONFIGURED = False
_SENTRY_CONFIGURED = False

REQUEST_ID_HEADER = "X-Request-ID"

# Server loggers are re-routed through our handler at the app level.
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "gunicorn")
# Client libraries that log every request at INFO.
CHATTY_LOGGERS = ("httpx", "httpcore", "openai", "sqlalchemy.engine")

access_logger = logging.getLogger("meal_planner.access")


def _renderer(json_logs: bool) -> structlog.types.Processor:
    if json_logs:
        return structlog.processors.JSONRenderer(sort_keys=True)
    return dev.ConsoleRenderer(colors=False)


def _build_handler(json_logs: bool, timestamper: structlog.types.Processor) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_renderer(json_logs),
            foreign_pre_chain=[
                structlog.contextvars.merge_contextvars,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                timestamper,
            ],
        )
    )
    return handler


def configure_logging(json_logs: bool, level: str = "INFO") -> None:
    """Route stdlib and structlog output through one structlog formatter.

    Request-scoped values bound by ``RequestContextMiddleware`` are merged
    into every line, including lines from plain ``logging`` loggers.
    """
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    log_level = getattr(logging, level.upper(), logging.INFO)
    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(_build_handler(json_logs, timestamper))
    root_logger.setLevel(log_level)

    processors: List[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        timestamper,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    for name in SERVER_LOGGERS:
        server_logger = logging.getLogger(name)
        server_logger.handlers.clear()
        server_logger.propagate = True
        server_logger.setLevel(log_level)
    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    _LOGGING_CONFIGURED = True


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id and route to every log line emitted while serving a request."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        started = time.perf_counter()
        try:
            response = await call_next(request)
            access_logger.info(
                "Request completed status=%s duration_ms=%.1f",
                response.status_code,
                (time.perf_counter() - started) * 1000,
            )
        except Exception:
            access_logger.error(
                "Request failed status=500 duration_ms=%.1f",
                (time.perf_counter() - started) * 1000,
            )
            raise
        finally:
            structlog.contextvars.clear_contextvars()
        response.headers.setdefault(REQUEST_ID_HEADER, request_id)
        return response


def init_sentry(settings: Settings) -> None:
    """Report errors to Sentry when a DSN is configured; ERROR logs become events."""
    global _SENTRY_CONFIGURED
    if _SENTRY_CONFIGURED or not settings.sentry_dsn:
        return

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=settings.sentry_traces_sample_rate,
        integrations=[
            FastApiIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        send_default_pii=False,
    )
    _SENTRY_CONFIGURED = True
