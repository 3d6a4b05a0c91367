"""
Centralized database layer for Binevo.

Structure:
- entities/: SQLModel table definitions grouped by business domain
- repositories/: query helpers shared by routers and services
- session.py: Global engine and session factory management
- utils.py: Engine/session factories and ``create_all`` for tests
"""

from .base import Base, new_id, utc_now
from .session import (
    async_session_maker,
    engine,
    get_session,
)
from .utils import (
    create_all,
    create_engine,
    create_sessionmaker,
)

__all__ = [
    "Base",
    "async_session_maker",
    "create_all",
    "create_engine",
    "create_sessionmaker",
    "engine",
    "get_session",
    "new_id",
    "utc_now",
]
