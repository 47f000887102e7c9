"""Auth service — account creation, authentication and lockout.

Pure business logic with no HTTP dependencies.
``authenticate`` never raises for an expected outcome: every path returns
an AuthResult so the HTTP layer has a single dispatch point.
"""

import logging
from datetime import datetime, timezone

from domain.model.account import Account, Role, new_account, validate_password
from domain.model.auth_result import AuthResult
from domain.model.errors import (
    DuplicateError,
    HashError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from domain.model.lockout import LockoutPolicy, remaining_lock
from port.account_repository import AccountRepository
from port.password_hasher import PasswordHasher
from utils.config import load_auth_settings

logger = logging.getLogger(__name__)


def authenticate(
    repo: AccountRepository,
    hasher: PasswordHasher,
    identifier: str,
    password: str,
    policy: LockoutPolicy | None = None,
    now: datetime | None = None,
) -> AuthResult:
    """Authenticate by email or phone and apply the lockout policy.

    Evaluation order:
        1. unknown identifier  -> CREDENTIALS_INVALID, nothing written
        2. inactive account    -> ACCOUNT_INACTIVE, nothing written
        3. running lock        -> attempt counted, ACCOUNT_LOCKED with retry_after
        4. expired lock        -> fresh attempt budget (folded into the write below)
        5. password check      -> SUCCESS, or CREDENTIALS_INVALID with the attempt
                                  counted and the account locked on threshold

    Without an explicit policy, LOGIN_MAX_ATTEMPTS and LOGIN_LOCK_DURATION_MS
    are read from the environment on each call.

    A store failure at any step yields STORE_ERROR. Each outcome is persisted
    with a single atomic write, so a failed write leaves the account untouched.

    Raises:
        ValueError: no policy given and the lockout environment is invalid
    """
    if policy is None:
        policy = LockoutPolicy.from_settings(load_auth_settings())
    now = now or datetime.now(timezone.utc)

    try:
        return _authenticate(repo, hasher, identifier, password, policy, now)
    except StoreError as e:
        logger.error("Authentication aborted: account store failure", extra={"error": str(e)})
        return AuthResult.store_error()


def _verify(hasher: PasswordHasher, account: Account, password: str) -> bool | None:
    """Return the password check result, or None when the hash can't be checked."""
    try:
        return hasher.verify(password, account.password_hash)
    except HashError as e:
        # Not a mismatch: logged separately and never counted against the account
        logger.error("Password verification error", extra={"accountId": account.id, "error": str(e)})
        return None


def _login_succeeded(repo: AccountRepository, hasher: PasswordHasher, account: Account, now: datetime) -> AuthResult:
    updated = repo.record_success(account.id, now)
    if updated is None:
        logger.warning("Account disappeared during login", extra={"accountId": account.id})
        return AuthResult.invalid()
    if hasher.needs_rehash(account.password_hash):
        logger.info("Stored password hash uses a different cost", extra={"accountId": account.id})
    logger.info("User logged in", extra={"accountId": account.id})
    return AuthResult.success(updated.profile())


def _authenticate(
    repo: AccountRepository,
    hasher: PasswordHasher,
    identifier: str,
    password: str,
    policy: LockoutPolicy,
    now: datetime,
) -> AuthResult:
    account = repo.find_by_email_or_phone(identifier)
    if not account:
        # Same result class as a wrong password, so identifiers can't be enumerated
        logger.info("Login failed: no matching account")
        return AuthResult.invalid()

    if not account.is_active:
        logger.info("Login refused: account inactive", extra={"accountId": account.id})
        return AuthResult.inactive()

    if account.is_locked(now):
        attempt = repo.record_failed_attempt(account.id, policy, now)
        current = attempt.after if attempt else account
        if current.is_locked(now):
            logger.info(
                "Login refused: account locked",
                extra={"accountId": account.id, "failedAttempts": current.failed_attempt_count},
            )
            return AuthResult.locked(remaining_lock(current, now))

        # A concurrent attempt cleared the lock; this attempt is already counted
        logger.info("Lock lapsed during login", extra={"accountId": account.id})
        if _verify(hasher, account, password):
            return _login_succeeded(repo, hasher, account, now)
        return AuthResult.invalid()

    matched = _verify(hasher, account, password)
    if matched is None:
        return AuthResult.invalid()
    if matched:
        return _login_succeeded(repo, hasher, account, now)

    attempt = repo.record_failed_attempt(account.id, policy, now)
    if attempt is not None and attempt.started_lock(now):
        logger.warning(
            "Account locked after repeated failed logins",
            extra={
                "accountId": account.id,
                "failedAttempts": attempt.after.failed_attempt_count,
                "lockedUntil": attempt.after.locked_until.isoformat(),
            },
        )
    else:
        logger.info("Login failed: wrong password", extra={"accountId": account.id})
    return AuthResult.invalid()


def create_account(
    repo: AccountRepository,
    hasher: PasswordHasher,
    name: str,
    email: str,
    password: str,
    phone: str | None = None,
    role: Role | str = Role.EDITOR,
    created_by: str | None = None,
) -> Account:
    """Create and store a new account.

    Returns the created Account domain object.

    Raises:
        DuplicateError: email or phone already registered
        ValidationError: a field fails validation
        HashError: the password could not be hashed
        StoreError: the store rejected the write
    """
    account = new_account(
        hasher,
        name=name,
        email=email,
        password=password,
        phone=phone,
        role=role,
        created_by=created_by,
    )

    if repo.find_by_email_or_phone(account.email):
        raise DuplicateError("Email already registered")
    if account.phone and repo.find_by_email_or_phone(account.phone):
        raise DuplicateError("Phone already registered")

    repo.save(account)
    logger.info("Account created", extra={"accountId": account.id, "role": account.role.value})
    return account


def change_password(
    repo: AccountRepository,
    hasher: PasswordHasher,
    account_id: str,
    current_password: str,
    new_password: str,
) -> None:
    """Verify the current password and store a fresh hash of the new one.

    The new hash is produced at the hasher's configured cost, which is the
    only point where an account's hash cost changes.

    Raises:
        NotFoundError: account does not exist
        ValidationError: current password is wrong or new password is too weak
        HashError: hashing failed on malformed input
        StoreError: the store rejected the write
    """
    account = repo.get_by_id(account_id)
    if not account:
        raise NotFoundError("Account not found")

    if not hasher.verify(current_password, account.password_hash):
        raise ValidationError("Current password is incorrect")

    validate_password(new_password)
    if new_password == current_password:
        raise ValidationError("New password must differ from the current password")

    now = datetime.now(timezone.utc)
    if not repo.update_password(account_id, hasher.hash(new_password), now):
        raise NotFoundError("Account not found")

    logger.info("Password changed", extra={"accountId": account_id})
