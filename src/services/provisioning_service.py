"""Provisioning service — deploy-time creation of the first admin account.

Run once per deployment from scripts/provision_admin.py. Idempotent: if any
admin exists nothing is written.
"""

import logging
from dataclasses import dataclass

from domain.model.account import Account, Role
from port.account_repository import AccountRepository
from port.password_hasher import PasswordHasher
from services.auth_service import create_account

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProvisionOutcome:
    account: Account
    created: bool


def ensure_admin(
    repo: AccountRepository,
    hasher: PasswordHasher,
    name: str,
    email: str,
    password: str,
    phone: str | None = None,
) -> ProvisionOutcome:
    """Create an admin account unless one already exists.

    Raises:
        ValidationError: supplied credentials fail validation
        DuplicateError: email or phone taken by a non-admin account
        StoreError: the store is unavailable
    """
    existing = repo.find_admin()
    if existing:
        logger.info("Admin account already present, nothing to provision", extra={"accountId": existing.id})
        return ProvisionOutcome(account=existing, created=False)

    account = create_account(
        repo,
        hasher,
        name=name,
        email=email,
        password=password,
        phone=phone,
        role=Role.ADMIN,
    )
    logger.info("Admin account provisioned", extra={"accountId": account.id, "email": account.email})
    return ProvisionOutcome(account=account, created=True)
