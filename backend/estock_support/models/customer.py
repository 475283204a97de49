"""
Customer Model - Registered pharmacies allowed to open a support chat.
"""

from typing import Optional

from pydantic import BaseModel, Field

from .base import CamelModel, now_ms


class Customer(CamelModel):
    """Customer identified by name and contract number."""
    id: str
    name: str
    contract_number: str
    is_active: bool = True
    created_at: int = Field(default_factory=now_ms)
    last_login: Optional[int] = None


class CustomerCredentials(CamelModel):
    """Login / registration payload. Blank values are rejected by the store."""
    name: str
    contract_number: str


class Token(BaseModel):
    """JWT token response model."""
    access_token: str
    token_type: str = "bearer"


class TokenData(BaseModel):
    """Token payload data."""
    subject: Optional[str] = None
    role: Optional[str] = None  # "customer" or "admin"


class AdminLogin(BaseModel):
    """Admin dashboard login payload."""
    password: str


class PasswordReset(CamelModel):
    """Admin password reset with the recovery key."""
    recovery_key: str
    new_password: str
