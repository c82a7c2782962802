from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.gzip import GZipMiddleware

from .config import Settings, get_settings
from .db import dispose_engine, init_engine
from .errors import MealPlannerError
from .observability import RequestContextMiddleware, configure_logging, init_sentry
from .ratelimit import limiter
from .routes import health, meals, shopping
from .startup import validate_settings

logger = logging.getLogger(__name__)

API_PREFIX = "/v1"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault("X-Frame-Options", "DENY")
        return response


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _meal_planner_error_handler(request: Request, exc: MealPlannerError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.warning
    log("Request failed status=%s error=%s", exc.status_code, exc.message)
    return _error_response(exc.status_code, exc.message)


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_response(exc.status_code, str(exc.detail))


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Report the first problem as "field: message".
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return _error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        f"{location}: {message}" if location else message,
    )


async def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return _error_response(status.HTTP_429_TOO_MANY_REQUESTS, f"Rate limit exceeded: {exc.detail}")


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error path=%s", request.url.path, exc_info=exc)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


@asynccontextmanager
async def _lifespan(app: FastAPI):
    yield
    await dispose_engine()


def _install_middleware(app: FastAPI, settings: Settings) -> None:
    # Added innermost first; request context wraps everything.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(GZipMiddleware, minimum_size=1024)
    app.add_middleware(RequestContextMiddleware)


def _install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MealPlannerError, _meal_planner_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)


def create_app() -> FastAPI:
    s = get_settings()
    configure_logging(json_logs=s.log_json, level=s.log_level)
    init_sentry(s)
    validate_settings(s)
    init_engine()

    app = FastAPI(title=s.app_name, lifespan=_lifespan)
    _install_middleware(app, s)
    for module in (health, shopping, meals):
        app.include_router(module.router, prefix=API_PREFIX)
    _install_error_handlers(app)
    Instrumentator().instrument(app).expose(app, include_in_schema=False)

    logger.info("Application configured env=%s database=%s", s.environment, bool(s.database_url))
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", "8000"))
    uvicorn.run("meal_planner.main:app", host="0.0.0.0", port=port, reload=False)
