from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

from domain.model.account import AccountProfile


class AuthStatus(str, Enum):
    """Outcome classes of a single login attempt."""
    SUCCESS = 'success'
    CREDENTIALS_INVALID = 'credentials_invalid'
    ACCOUNT_INACTIVE = 'account_inactive'
    ACCOUNT_LOCKED = 'account_locked'
    STORE_ERROR = 'store_error'


@dataclass(frozen=True)
class AuthResult:
    """Result of authenticate(). ``account`` is set only on success."""
    status: AuthStatus
    account: AccountProfile | None = None
    retry_after: timedelta | None = None

    @property
    def ok(self) -> bool:
        return self.status is AuthStatus.SUCCESS

    @classmethod
    def success(cls, account: AccountProfile) -> 'AuthResult':
        return cls(status=AuthStatus.SUCCESS, account=account)

    @classmethod
    def invalid(cls) -> 'AuthResult':
        return cls(status=AuthStatus.CREDENTIALS_INVALID)

    @classmethod
    def inactive(cls) -> 'AuthResult':
        return cls(status=AuthStatus.ACCOUNT_INACTIVE)

    @classmethod
    def locked(cls, retry_after: timedelta) -> 'AuthResult':
        return cls(status=AuthStatus.ACCOUNT_LOCKED, retry_after=retry_after)

    @classmethod
    def store_error(cls) -> 'AuthResult':
        return cls(status=AuthStatus.STORE_ERROR)
