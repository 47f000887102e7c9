"""Pydantic models for API responses."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from domain.model.account import AccountProfile


class AccountResponse(BaseModel):
    """Public account representation. Never carries the password hash."""
    id: str = Field(..., description="Account ID")
    name: str
    email: str
    phone: Optional[str] = None
    role: str = Field(..., description="admin | editor")
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_profile(cls, profile: AccountProfile) -> "AccountResponse":
        return cls(
            id=profile.id,
            name=profile.name,
            email=profile.email,
            phone=profile.phone,
            role=profile.role.value,
            is_active=profile.is_active,
            last_login_at=profile.last_login_at,
            created_at=profile.created_at,
            updated_at=profile.updated_at,
        )


class LoginResult(BaseModel):
    """Response body for a login attempt."""
    success: bool
    message: str
    code: str = Field(..., description="AuthStatus value")
    user: Optional[AccountResponse] = None
    retry_after_seconds: Optional[int] = Field(None, description="Seconds until a locked account can retry")
