# Pydantic Data Transfer Objects

from fundbook.schemas.event import (
    EventCreate,
    EventPage,
    EventPatch,
    EventRead,
    ExpenseEventCreate,
    IncomeEventCreate,
    PostingLineIn,
)
from fundbook.schemas.fund import FundCreate, FundRead, FundUpdate
from fundbook.schemas.user import BootstrapRead, UserBootstrap, UserRead
from fundbook.schemas.wallet import WalletCreate, WalletRead, WalletUpdate

__all__ = [
    "BootstrapRead",
    "EventCreate",
    "EventPage",
    "EventPatch",
    "EventRead",
    "ExpenseEventCreate",
    "FundCreate",
    "FundRead",
    "FundUpdate",
    "IncomeEventCreate",
    "PostingLineIn",
    "UserBootstrap",
    "UserRead",
    "WalletCreate",
    "WalletRead",
    "WalletUpdate",
]
