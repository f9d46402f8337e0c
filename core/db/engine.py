"""SQLAlchemy async engine + session factory."""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Callable
from functools import lru_cache
from typing import Any

import structlog
from sqlalchemy.exc import DBAPIError, DisconnectionError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.config import get_settings

logger = structlog.get_logger(__name__)

_TRANSIENT_ERRORS = (
    ConnectionResetError,
    ConnectionRefusedError,
    ConnectionAbortedError,
    BrokenPipeError,
)

# asyncpg exception class names that mean the connection is gone
_ASYNCPG_DISCONNECTS = frozenset(
    {"ConnectionDoesNotExistError", "InterfaceError", "InternalClientError"}
)


@lru_cache(maxsize=1)
def get_async_engine() -> AsyncEngine:
    """Create and cache an async engine.

    NOTE: pgBouncer in transaction mode does NOT support prepared
    statements, so asyncpg's statement cache is disabled when
    DATABASE_PGBOUNCER is set.
    """
    settings = get_settings()
    if not settings.database_url:
        raise RuntimeError("DATABASE_URL is not configured")

    connect_args: dict[str, Any] = {}
    if settings.database_pgbouncer:
        connect_args = {
            "statement_cache_size": 0,
            "prepared_statement_cache_size": 0,
            # Returning "" forces asyncpg to use unnamed statements.
            "prepared_statement_name_func": lambda: "",
        }

    return create_async_engine(
        settings.database_url,
        echo=False,
        pool_size=settings.database_pool_size,
        max_overflow=5,
        pool_pre_ping=True,
        pool_recycle=300,
        connect_args=connect_args,
    )


def get_async_session() -> async_sessionmaker[AsyncSession]:
    """Return an async session factory."""
    return async_sessionmaker(
        get_async_engine(),
        class_=AsyncSession,
        expire_on_commit=False,
    )


def is_disconnect(exc: BaseException) -> bool:
    """Check if an exception chain indicates a transient disconnect."""
    if isinstance(exc, (DisconnectionError, *_TRANSIENT_ERRORS)):
        return True
    if isinstance(exc, (DBAPIError, OperationalError)):
        if getattr(exc, "connection_invalidated", False):
            return True
        cause = exc.__cause__
        while cause is not None:
            if isinstance(cause, _TRANSIENT_ERRORS):
                return True
            if type(cause).__name__ in _ASYNCPG_DISCONNECTS:
                return True
            cause = cause.__cause__
    return False


def retry_on_disconnect(
    max_retries: int = 2,
    base_delay: float = 0.5,
) -> Callable[..., Any]:
    """Decorator that retries an async repo method on transient DB disconnects.

    Only the connection drop is retried; SQL errors (constraint violations,
    missing tables) propagate on the first attempt. The session is rolled
    back before retrying so the next attempt starts on a fresh connection.

    Retries with exponential backoff: base_delay * 2^attempt seconds.
    """

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(max_retries + 1):
                try:
                    return await fn(*args, **kwargs)
                except Exception as exc:
                    if not is_disconnect(exc) or attempt == max_retries:
                        raise
                    delay = base_delay * (2 ** attempt)
                    logger.warning(
                        "transient_db_disconnect_retrying",
                        fn=fn.__name__,
                        attempt=attempt + 1,
                        max_retries=max_retries,
                        delay_s=delay,
                        error=str(exc),
                    )
                    session = _find_session(args, kwargs)
                    if session is not None:
                        await session.rollback()
                    await asyncio.sleep(delay)
            raise AssertionError("unreachable")

        return wrapper
    return decorator


def _find_session(args: tuple[Any, ...], kwargs: dict[str, Any]) -> AsyncSession | None:
    """Try to extract an AsyncSession from method args (self.session pattern)."""
    if "session" in kwargs and isinstance(kwargs["session"], AsyncSession):
        return kwargs["session"]
    if args and isinstance(getattr(args[0], "session", None), AsyncSession):
        return args[0].session
    return None
