"""Database engines, declarative bases and connection helpers"""

from typing import Any, Dict, Optional
from sqlalchemy.engine import make_url
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import declarative_base

# Control-plane models (organizations, users)
Base = declarative_base()

# Per-tenant models; tables are unqualified and resolved through the
# tenant connection's search_path.
TenantBase = declarative_base()


def to_async_url(url: str) -> str:
    """Convert postgresql:// to postgresql+asyncpg:// for async support"""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    return url


def is_postgresql(url: str) -> bool:
    return make_url(to_async_url(url)).get_backend_name() == "postgresql"


def create_pooled_engine(
    url: str,
    pool_size: int,
    max_overflow: int,
    echo: bool = False,
    search_path: Optional[str] = None,
) -> AsyncEngine:
    """
    Create an async engine with a connection pool.

    Args:
        url: Database URL (sync or async driver form)
        pool_size: Number of idle connections kept open
        max_overflow: Extra connections allowed under load
        echo: Log emitted SQL
        search_path: PostgreSQL schema every pooled connection is bound to

    Returns:
        AsyncEngine
    """
    async_url = to_async_url(url)
    kwargs: Dict[str, Any] = {"echo": echo, "pool_pre_ping": True}

    # SQLite (local development and tests) uses a non-queue pool
    if make_url(async_url).get_backend_name() != "sqlite":
        kwargs["pool_size"] = pool_size
        kwargs["max_overflow"] = max_overflow

    if search_path and is_postgresql(async_url):
        kwargs["connect_args"] = {"server_settings": {"search_path": search_path}}

    return create_async_engine(async_url, **kwargs)


def is_disconnect_error(exc: BaseException) -> bool:
    """True when an exception means the database could not be reached"""
    if isinstance(exc, (OSError, InterfaceError)):
        return True
    if isinstance(exc, DBAPIError):
        # OperationalError without a statement was raised while connecting
        return exc.connection_invalidated or (
            isinstance(exc, OperationalError) and exc.statement is None
        )
    return False
