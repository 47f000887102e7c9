"""MongoDB implementation of AccountRepository.

Lockout counters are never read-modified-written in Python. Each login
outcome is one ``find_one_and_update`` whose update is an aggregation
pipeline, so the server applies the whole transition atomically per
document and concurrent attempts cannot lose increments.
"""

from datetime import datetime
from logging import getLogger

from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from adapter.mongodb import ACCOUNTS_COLLECTION_NAME
from domain.model.account import Account, Role, normalize_identifier
from domain.model.errors import DuplicateError, StoreError
from domain.model.lockout import FailedAttempt, LockoutPolicy, apply_failed_attempt

logger = getLogger(__name__)


def failed_attempt_pipeline(policy: LockoutPolicy, now: datetime) -> list[dict]:
    """Aggregation-pipeline update equivalent to lockout.apply_failed_attempt."""
    lock_expired = {
        '$and': [
            {'$ne': [{'$ifNull': ['$locked_until', None]}, None]},
            {'$lte': ['$locked_until', now]},
        ]
    }
    return [
        # Expired lock: clear it and start a fresh attempt budget
        {'$set': {
            'failed_attempt_count': {
                '$cond': [lock_expired, 0, {'$ifNull': ['$failed_attempt_count', 0]}],
            },
            'locked_until': {
                '$cond': [lock_expired, None, {'$ifNull': ['$locked_until', None]}],
            },
        }},
        {'$set': {
            'failed_attempt_count': {'$add': ['$failed_attempt_count', 1]},
            'updated_at': now,
        }},
        # Lock only on reaching the threshold, never extend a running lock
        {'$set': {
            'locked_until': {
                '$cond': [
                    {'$and': [
                        {'$gte': ['$failed_attempt_count', policy.max_attempts]},
                        {'$not': [{'$gt': ['$locked_until', now]}]},
                    ]},
                    now + policy.lock_duration,
                    '$locked_until',
                ],
            },
        }},
    ]


class MongoAccountRepository:
    def __init__(self, db: Database):
        self.collection = db[ACCOUNTS_COLLECTION_NAME]

    def ensure_indexes(self) -> bool:
        """Create indexes for accounts collection."""
        from adapter.mongodb.indexes import create_index_safe

        try:
            create_index_safe(self.collection, [('email', 1)], 'idx_accounts_email', unique=True)
            create_index_safe(
                self.collection,
                [('phone', 1)],
                'idx_accounts_phone',
                unique=True,
                partialFilterExpression={'phone': {'$type': 'string'}},
            )
            create_index_safe(self.collection, [('role', 1)], 'idx_accounts_role')
            create_index_safe(self.collection, [('is_active', 1)], 'idx_accounts_is_active')
            return True
        except Exception as e:
            logger.error("Failed to create accounts indexes", extra={"error": str(e)})
            return False

    def _to_domain(self, doc: dict) -> Account:
        """Convert MongoDB document to Account domain model."""
        return Account(
            id=doc['_id'],
            name=doc['name'],
            email=doc['email'],
            password_hash=doc['password_hash'],
            created_at=doc['created_at'],
            updated_at=doc['updated_at'],
            phone=doc.get('phone'),
            role=Role(doc.get('role', Role.EDITOR.value)),
            is_active=doc.get('is_active', True),
            failed_attempt_count=doc.get('failed_attempt_count', 0),
            locked_until=doc.get('locked_until'),
            last_login_at=doc.get('last_login_at'),
            password_changed_at=doc.get('password_changed_at'),
            created_by=doc.get('created_by'),
        )

    def _decode(self, doc: dict | None) -> Account | None:
        if not doc:
            return None
        try:
            return self._to_domain(doc)
        except (KeyError, TypeError, ValueError) as e:
            logger.error("Malformed account document", extra={"accountId": doc.get('_id'), "error": repr(e)})
            raise StoreError("Stored account could not be decoded") from e

    def _to_document(self, account: Account) -> dict:
        doc = {
            '_id': account.id,
            'name': account.name,
            'email': account.email,
            'password_hash': account.password_hash,
            'role': account.role.value,
            'is_active': account.is_active,
            'failed_attempt_count': account.failed_attempt_count,
            'locked_until': account.locked_until,
            'last_login_at': account.last_login_at,
            'password_changed_at': account.password_changed_at,
            'created_by': account.created_by,
            'created_at': account.created_at,
            'updated_at': account.updated_at,
        }
        # Absent rather than null so the partial unique index ignores it
        if account.phone is not None:
            doc['phone'] = account.phone
        return doc

    # ── read operations ──────────────────────────────────────

    def find_by_email_or_phone(self, identifier: str) -> Account | None:
        """Find an account whose email or phone matches identifier."""
        value = normalize_identifier(identifier)
        if not value:
            return None
        try:
            doc = self.collection.find_one({'$or': [{'email': value}, {'phone': value}]})
        except PyMongoError as e:
            logger.error("Failed to find account by identifier", extra={"error": str(e)})
            raise StoreError("Account lookup failed") from e
        return self._decode(doc)

    def get_by_id(self, account_id: str) -> Account | None:
        """Find an account by ID. Return Account or None if not found."""
        try:
            doc = self.collection.find_one({'_id': account_id})
        except PyMongoError as e:
            logger.error("Failed to get account by ID", extra={"accountId": account_id, "error": str(e)})
            raise StoreError("Account lookup failed") from e
        return self._decode(doc)

    def find_admin(self) -> Account | None:
        try:
            doc = self.collection.find_one({'role': Role.ADMIN.value})
        except PyMongoError as e:
            logger.error("Failed to look up admin account", extra={"error": str(e)})
            raise StoreError("Admin lookup failed") from e
        return self._decode(doc)

    # ── write operations ─────────────────────────────────────

    def save(self, account: Account) -> None:
        """Insert or replace an account document."""
        try:
            self.collection.replace_one({'_id': account.id}, self._to_document(account), upsert=True)
        except DuplicateKeyError as e:
            logger.warning("Account save rejected: email or phone already in use", extra={"accountId": account.id})
            raise DuplicateError("Email or phone already registered") from e
        except PyMongoError as e:
            logger.error("Failed to save account", extra={"accountId": account.id, "error": str(e)})
            raise StoreError("Account save failed") from e
        logger.debug("Account saved", extra={"accountId": account.id})

    def record_failed_attempt(
        self,
        account_id: str,
        policy: LockoutPolicy,
        now: datetime,
    ) -> FailedAttempt | None:
        """Count one failed attempt and lock on threshold, in one atomic update.

        The pre-image comes back from the same update, and the pipeline is
        apply_failed_attempt, so the post-state is derived from it.
        """
        try:
            doc = self.collection.find_one_and_update(
                {'_id': account_id},
                failed_attempt_pipeline(policy, now),
                return_document=ReturnDocument.BEFORE,
            )
        except PyMongoError as e:
            logger.error("Failed to record failed attempt", extra={"accountId": account_id, "error": str(e)})
            raise StoreError("Failed attempt was not recorded") from e
        before = self._decode(doc)
        if before is None:
            return None
        return FailedAttempt(before=before, after=apply_failed_attempt(before, policy, now))

    def record_success(self, account_id: str, now: datetime) -> Account | None:
        """Reset counter and lock, stamp last login, in one atomic update."""
        try:
            doc = self.collection.find_one_and_update(
                {'_id': account_id},
                {
                    '$set': {'failed_attempt_count': 0, 'last_login_at': now, 'updated_at': now},
                    '$unset': {'locked_until': ''},
                },
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.error("Failed to record successful login", extra={"accountId": account_id, "error": str(e)})
            raise StoreError("Successful login was not recorded") from e
        return self._decode(doc)

    def update_password(self, account_id: str, password_hash: str, now: datetime) -> bool:
        """Replace the stored hash. Return True if the account exists."""
        try:
            result = self.collection.update_one(
                {'_id': account_id},
                {'$set': {'password_hash': password_hash, 'password_changed_at': now, 'updated_at': now}},
            )
        except PyMongoError as e:
            logger.error("Failed to update password", extra={"accountId": account_id, "error": str(e)})
            raise StoreError("Password update failed") from e
        return result.matched_count > 0
