"""Provision the first admin account at deployment time.

Credentials come from the environment (or a .env file), never from
application code:

    ADMIN_NAME, ADMIN_EMAIL, ADMIN_PASSWORD, ADMIN_PHONE (optional)

Usage:
    PYTHONPATH=src uv run python src/scripts/provision_admin.py
    PYTHONPATH=src uv run python src/scripts/provision_admin.py --skip-indexes
"""

import argparse
import logging
import os
import sys

from dotenv import load_dotenv

# Must run before importing modules that read env vars at import time (MONGO_URL)
load_dotenv()

from adapter.crypto.bcrypt_hasher import BcryptPasswordHasher
from adapter.mongodb import DATABASE_NAME
from adapter.mongodb.account_repository import MongoAccountRepository
from adapter.mongodb.connection import get_mongodb_client
from adapter.mongodb.indexes import ensure_all_indexes
from domain.model.errors import DomainError
from services.provisioning_service import ensure_admin
from utils.config import load_auth_settings
from utils.logging import setup_structured_logging

logger = logging.getLogger(__name__)

REQUIRED_VARS = ('ADMIN_NAME', 'ADMIN_EMAIL', 'ADMIN_PASSWORD')


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create the first admin account if none exists.")
    parser.add_argument(
        "--mongo-url",
        default=None,
        help="MongoDB connection string (default: MONGO_URL)",
    )
    parser.add_argument(
        "--skip-indexes",
        action="store_true",
        help="Do not create/verify collection indexes before provisioning",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    setup_structured_logging()
    args = parse_args(argv)

    missing = [name for name in REQUIRED_VARS if not os.getenv(name)]
    if missing:
        logger.error("Missing admin credentials in environment", extra={"missing": missing})
        return 2

    try:
        settings = load_auth_settings()
    except ValueError as e:
        logger.error("Invalid configuration", extra={"error": str(e)})
        return 2

    client = get_mongodb_client(args.mongo_url)
    if client is None:
        logger.error("MongoDB unavailable, cannot provision admin")
        return 1
    db = client[DATABASE_NAME]

    if not args.skip_indexes and not ensure_all_indexes(db):
        logger.error("Failed to create account indexes")
        return 1

    try:
        outcome = ensure_admin(
            MongoAccountRepository(db),
            BcryptPasswordHasher(rounds=settings.password_hash_cost),
            name=os.environ['ADMIN_NAME'],
            email=os.environ['ADMIN_EMAIL'],
            password=os.environ['ADMIN_PASSWORD'],
            phone=os.getenv('ADMIN_PHONE') or None,
        )
    except DomainError as e:
        logger.error("Admin provisioning failed", extra={"error": str(e), "errorType": type(e).__name__})
        return 1

    print(f"{'Created' if outcome.created else 'Existing'} admin: {outcome.account.email}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
