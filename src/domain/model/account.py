# domain/model/account.py

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING

from domain.model.errors import ValidationError

if TYPE_CHECKING:
    from port.password_hasher import PasswordHasher


NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50
PASSWORD_MIN_LENGTH = 8

_EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
_PHONE_RE = re.compile(r'^\d{10}$')


class Role(str, Enum):
    """Roles an admin-console account can hold."""
    ADMIN = 'admin'
    EDITOR = 'editor'


class AccountState(str, Enum):
    """Authentication state, derived from is_active and locked_until."""
    ACTIVE = 'active'
    LOCKED = 'locked'
    INACTIVE = 'inactive'


# ── Value Objects ────────────────────────────────────────


@dataclass(frozen=True)
class AccountProfile:
    """Public view of an account. Carries no credential or lockout data."""
    id: str
    name: str
    email: str
    role: Role
    is_active: bool
    created_at: datetime
    updated_at: datetime
    phone: str | None = None
    last_login_at: datetime | None = None


# ── Account Domain Model ─────────────────────────────────


@dataclass(frozen=True)
class Account:
    """Domain model representing one admin-console identity."""
    id: str
    name: str
    email: str
    password_hash: str = field(repr=False)
    created_at: datetime
    updated_at: datetime

    phone: str | None = None
    role: Role = Role.EDITOR
    is_active: bool = True
    failed_attempt_count: int = 0
    locked_until: datetime | None = None
    last_login_at: datetime | None = None
    password_changed_at: datetime | None = None
    created_by: str | None = None

    def is_locked(self, now: datetime) -> bool:
        return self.locked_until is not None and self.locked_until > now

    def lock_expired(self, now: datetime) -> bool:
        return self.locked_until is not None and self.locked_until <= now

    def state(self, now: datetime) -> AccountState:
        if not self.is_active:
            return AccountState.INACTIVE
        if self.is_locked(now):
            return AccountState.LOCKED
        return AccountState.ACTIVE

    def profile(self) -> AccountProfile:
        return AccountProfile(
            id=self.id,
            name=self.name,
            email=self.email,
            role=self.role,
            is_active=self.is_active,
            created_at=self.created_at,
            updated_at=self.updated_at,
            phone=self.phone,
            last_login_at=self.last_login_at,
        )


# ── Factory ──────────────────────────────────────────────


def normalize_email(email: str) -> str:
    return (email or '').strip().lower()


def normalize_identifier(identifier: str) -> str:
    """Normalize a login identifier (email or phone) for lookup."""
    value = (identifier or '').strip()
    if '@' in value:
        return value.lower()
    return value


def validate_name(name: str) -> str:
    value = (name or '').strip()
    if len(value) < NAME_MIN_LENGTH:
        raise ValidationError(f"Name must be at least {NAME_MIN_LENGTH} characters")
    if len(value) > NAME_MAX_LENGTH:
        raise ValidationError(f"Name cannot exceed {NAME_MAX_LENGTH} characters")
    return value


def validate_email(email: str) -> str:
    value = normalize_email(email)
    if not _EMAIL_RE.match(value):
        raise ValidationError("Please provide a valid email")
    return value


def validate_phone(phone: str | None) -> str | None:
    if phone is None:
        return None
    value = phone.strip()
    if not value:
        return None
    if not _PHONE_RE.match(value):
        raise ValidationError("Phone number must be 10 digits")
    return value


def validate_password(password: str) -> None:
    if not password or len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")


def validate_role(role: Role | str) -> Role:
    try:
        return Role(role)
    except ValueError:
        raise ValidationError("Role must be either admin or editor") from None


def new_account(
    hasher: PasswordHasher,
    name: str,
    email: str,
    password: str,
    phone: str | None = None,
    role: Role | str = Role.EDITOR,
    created_by: str | None = None,
    now: datetime | None = None,
) -> Account:
    """Validate inputs, hash the password and build a new Account.

    The plaintext password is hashed here, before the Account exists, so
    nothing downstream ever holds it.

    Raises:
        ValidationError: a field fails validation
        HashError: the hasher rejected the password
    """
    clean_name = validate_name(name)
    clean_email = validate_email(email)
    clean_phone = validate_phone(phone)
    clean_role = validate_role(role)
    validate_password(password)

    now = now or datetime.now(timezone.utc)
    return Account(
        id=uuid.uuid4().hex,
        name=clean_name,
        email=clean_email,
        password_hash=hasher.hash(password),
        created_at=now,
        updated_at=now,
        phone=clean_phone,
        role=clean_role,
        password_changed_at=now,
        created_by=created_by,
    )
