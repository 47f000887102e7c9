"""Lockout state transitions for failed and successful logins.

These are the reference transitions. Store adapters that cannot hold a
lock across read and write (MongoDB) reproduce the same rules in a single
server-side update; the in-memory fake calls these directly.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from domain.model.account import Account

if TYPE_CHECKING:
    from utils.config import AuthSettings


DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_LOCK_DURATION = timedelta(hours=2)


@dataclass(frozen=True)
class LockoutPolicy:
    """How many consecutive failures lock an account, and for how long."""
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    lock_duration: timedelta = DEFAULT_LOCK_DURATION

    @classmethod
    def from_settings(cls, settings: AuthSettings) -> LockoutPolicy:
        return cls(
            max_attempts=settings.login_max_attempts,
            lock_duration=timedelta(milliseconds=settings.login_lock_duration_ms),
        )


def apply_failed_attempt(account: Account, policy: LockoutPolicy, now: datetime) -> Account:
    """Return the account after one more failed attempt.

    An expired lock is cleared and the counter restarts before counting
    this attempt. A lock that is still running is never extended.
    """
    count = account.failed_attempt_count
    locked_until = account.locked_until

    if account.lock_expired(now):
        count = 0
        locked_until = None

    count += 1

    already_locked = locked_until is not None and locked_until > now
    if count >= policy.max_attempts and not already_locked:
        locked_until = now + policy.lock_duration

    return replace(
        account,
        failed_attempt_count=count,
        locked_until=locked_until,
        updated_at=now,
    )


def apply_success(account: Account, now: datetime) -> Account:
    """Return the account after a successful login."""
    return replace(
        account,
        failed_attempt_count=0,
        locked_until=None,
        last_login_at=now,
        updated_at=now,
    )


def remaining_lock(account: Account, now: datetime) -> timedelta:
    if account.locked_until is None or account.locked_until <= now:
        return timedelta(0)
    return account.locked_until - now


def lock_started(before: Account, after: Account, now: datetime) -> bool:
    """True when ``after`` is locked and ``before`` was not."""
    return after.is_locked(now) and not before.is_locked(now)


@dataclass(frozen=True)
class FailedAttempt:
    """Account state on either side of one recorded failed attempt.

    ``before`` is the state the write actually replaced, not an earlier
    read, so under concurrency only one attempt sees the lock start.
    """
    before: Account
    after: Account

    def started_lock(self, now: datetime) -> bool:
        return lock_started(self.before, self.after, now)
