"""In-memory implementation of AccountRepository for testing."""

import threading
from dataclasses import replace
from datetime import datetime

from domain.model.account import Account, Role, normalize_identifier
from domain.model.errors import DuplicateError, StoreError
from domain.model.lockout import FailedAttempt, LockoutPolicy, apply_failed_attempt, apply_success


class FakeAccountRepository:
    def __init__(self):
        self.store: dict[str, Account] = {}
        # Serializes read-modify-write the way a per-document update would
        self._lock = threading.Lock()
        # Set to make every call raise StoreError
        self.unavailable = False

    def _check_available(self) -> None:
        if self.unavailable:
            raise StoreError("Store unavailable")

    # ── write operations ─────────────────────────────────────

    def save(self, account: Account) -> None:
        self._check_available()
        with self._lock:
            for other in self.store.values():
                if other.id == account.id:
                    continue
                if other.email == account.email:
                    raise DuplicateError("Email or phone already registered")
                if account.phone is not None and other.phone == account.phone:
                    raise DuplicateError("Email or phone already registered")
            self.store[account.id] = account

    def record_failed_attempt(
        self,
        account_id: str,
        policy: LockoutPolicy,
        now: datetime,
    ) -> FailedAttempt | None:
        self._check_available()
        with self._lock:
            account = self.store.get(account_id)
            if not account:
                return None
            updated = apply_failed_attempt(account, policy, now)
            self.store[account_id] = updated
            return FailedAttempt(before=account, after=updated)

    def record_success(self, account_id: str, now: datetime) -> Account | None:
        self._check_available()
        with self._lock:
            account = self.store.get(account_id)
            if not account:
                return None
            updated = apply_success(account, now)
            self.store[account_id] = updated
            return updated

    def update_password(self, account_id: str, password_hash: str, now: datetime) -> bool:
        self._check_available()
        with self._lock:
            account = self.store.get(account_id)
            if not account:
                return False
            self.store[account_id] = replace(
                account,
                password_hash=password_hash,
                password_changed_at=now,
                updated_at=now,
            )
            return True

    # ── read operations ──────────────────────────────────────

    def find_by_email_or_phone(self, identifier: str) -> Account | None:
        self._check_available()
        value = normalize_identifier(identifier)
        if not value:
            return None
        with self._lock:
            for account in self.store.values():
                if account.email == value or account.phone == value:
                    return account
        return None

    def get_by_id(self, account_id: str) -> Account | None:
        self._check_available()
        return self.store.get(account_id)

    def find_admin(self) -> Account | None:
        self._check_available()
        with self._lock:
            for account in self.store.values():
                if account.role is Role.ADMIN:
                    return account
        return None
