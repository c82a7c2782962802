from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import get_settings
from .errors import StorageError

logger = logging.getLogger(__name__)

ASYNCPG_SCHEME = "postgresql+asyncpg"
ASYNCPG_SSL_MODES = {"disable", "allow", "prefer", "require", "verify-ca", "verify-full"}
LOCAL_HOSTS = {"localhost", "127.0.0.1"}

engine: Optional[AsyncEngine] = None
SessionLocal: Optional[async_sessionmaker[AsyncSession]] = None


def init_engine(database_url: Optional[str] = None) -> None:
    """Create the engine and session factory; no-op when no URL is configured."""
    global engine, SessionLocal
    url = normalize_database_url(database_url or get_settings().database_url)
    if not url:
        logger.warning("DATABASE_URL not set; storage-backed routes will fail")
        engine = None
        SessionLocal = None
        return
    engine = create_async_engine(url, future=True, pool_pre_ping=True)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)


async def dispose_engine() -> None:
    global engine, SessionLocal
    if engine is not None:
        await engine.dispose()
    engine = None
    SessionLocal = None


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    if SessionLocal is None:
        raise StorageError("Database not configured")
    async with SessionLocal() as session:
        yield session


async def get_db_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding a request-scoped session."""
    async with get_session() as session:
        yield session


def _asyncpg_scheme(url: str) -> str:
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return f"{ASYNCPG_SCHEME}://" + url[len(prefix):]
    return url


def _ssl_query(query: Dict[str, str], hostname: Optional[str]) -> Dict[str, str]:
    # asyncpg takes ``ssl`` where libpq strings carry ``sslmode``.
    sslmode = query.pop("sslmode", None)
    if sslmode and "ssl" not in query:
        query["ssl"] = sslmode
    if "ssl" in query:
        mode = query["ssl"].lower()
        query["ssl"] = mode if mode in ASYNCPG_SSL_MODES else "prefer"
    elif hostname in LOCAL_HOSTS:
        query["ssl"] = "disable"
    return query


def normalize_database_url(raw_url: Optional[str]) -> Optional[str]:
    """Force the asyncpg driver for Postgres URLs and translate SSL options.

    Other URLs (sqlite for local runs and tests) pass through untouched.
    """
    if not raw_url:
        return raw_url
    url = _asyncpg_scheme(raw_url)
    parsed = urlparse(url)
    if parsed.scheme != ASYNCPG_SCHEME:
        return url
    query = _ssl_query(dict(parse_qsl(parsed.query, keep_blank_values=True)), parsed.hostname)
    return urlunparse(parsed._replace(query=urlencode(query)))
