from datetime import datetime
from typing import Protocol

from domain.model.account import Account
from domain.model.lockout import FailedAttempt, LockoutPolicy


class AccountRepository(Protocol):
    """Protocol defining the interface for account data access.

    Every method raises StoreError when the store cannot be reached or a
    write fails. ``None`` only ever means "no such account".
    """
    def find_by_email_or_phone(self, identifier: str) -> Account | None:
        """Find an account whose email or phone equals identifier."""
        ...

    def get_by_id(self, account_id: str) -> Account | None:
        """Find an account by ID. Return Account or None if not found."""
        ...

    def find_admin(self) -> Account | None:
        """Return any account holding the admin role."""
        ...

    def save(self, account: Account) -> None:
        """Insert or replace an account. Raise DuplicateError on email/phone collision."""
        ...

    def record_failed_attempt(
        self,
        account_id: str,
        policy: LockoutPolicy,
        now: datetime,
    ) -> FailedAttempt | None:
        """Atomically apply one failed attempt.

        Return the states the write replaced and produced, or None if the
        account does not exist.
        """
        ...

    def record_success(self, account_id: str, now: datetime) -> Account | None:
        """Atomically reset the lockout state, stamp last login, return the account."""
        ...

    def update_password(self, account_id: str, password_hash: str, now: datetime) -> bool:
        """Replace the stored hash. Return False if the account does not exist."""
        ...
