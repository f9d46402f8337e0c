"""Database package — engine, session factory, seed table repository."""

from core.db.engine import get_async_engine, get_async_session
from core.db.repositories import SeedTableRepo

__all__ = ["SeedTableRepo", "get_async_engine", "get_async_session"]
