# Database Connection and Base Models

from fundbook.db.base import Base
from fundbook.db.session import (
    get_async_engine,
    get_async_session,
    get_async_session_maker,
    transaction,
)

__all__ = [
    "Base",
    "get_async_engine",
    "get_async_session",
    "get_async_session_maker",
    "transaction",
]
