# SQLAlchemy ORM Models
"""Model package exports for Alembic discovery and application use.

All models must be imported here to ensure Alembic can discover them
for automatic migration generation.
"""

from fundbook.models.user import User
from fundbook.models.wallet import Wallet
from fundbook.models.fund import Fund
from fundbook.models.posting import EventType, Posting, PostingKind, PostingStatus

__all__ = [
    "User",
    "Wallet",
    "Fund",
    "Posting",
    "PostingStatus",
    "PostingKind",
    "EventType",
]
