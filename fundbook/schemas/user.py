"""User Pydantic schemas for request/response validation."""

import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr


class UserBootstrap(BaseModel):
    """Identity handed over by the external authentication layer."""

    external_id: str
    email: EmailStr
    username: Optional[str] = None


class UserRead(BaseModel):
    """Schema for reading User data."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    external_id: str
    email: EmailStr
    username: str


class BootstrapRead(BaseModel):
    """Bootstrapped user and the id of their savings fund."""

    user: UserRead
    savings_fund_id: uuid.UUID
