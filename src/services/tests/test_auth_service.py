"""Unit tests for auth_service — authenticate(), create_account(), change_password()."""

import os
import threading
import unittest
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

from adapter.crypto.bcrypt_hasher import BcryptPasswordHasher
from adapter.fake.account_repository import FakeAccountRepository
from domain.model.account import Role
from domain.model.auth_result import AuthStatus
from domain.model.errors import (
    DuplicateError,
    HashError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from domain.model.lockout import FailedAttempt, LockoutPolicy
from services.auth_service import authenticate, change_password, create_account

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
POLICY = LockoutPolicy(max_attempts=5, lock_duration=timedelta(hours=2))
PASSWORD = 'Correct-Horse-9'
WRONG = 'Wrong-Horse-9'


class AuthTestCase(unittest.TestCase):
    """Shared fixtures: one active editor in an in-memory store."""

    def setUp(self):
        self.repo = FakeAccountRepository()
        self.hasher = BcryptPasswordHasher(rounds=4)
        self.account = create_account(
            self.repo,
            self.hasher,
            name='Showroom Editor',
            email='editor@example.com',
            password=PASSWORD,
            phone='9800000000',
        )

    def _stored(self):
        return self.repo.get_by_id(self.account.id)

    def _set_state(self, **changes):
        self.repo.store[self.account.id] = replace(self._stored(), **changes)

    def _login(self, password=PASSWORD, identifier='editor@example.com', now=NOW):
        return authenticate(self.repo, self.hasher, identifier, password, policy=POLICY, now=now)


class TestAuthenticateSuccess(AuthTestCase):

    def test_success_by_email(self):
        result = self._login()

        self.assertEqual(result.status, AuthStatus.SUCCESS)
        self.assertTrue(result.ok)
        self.assertEqual(result.account.id, self.account.id)
        self.assertEqual(result.account.last_login_at, NOW)
        self.assertIsNone(result.retry_after)

    def test_success_by_phone(self):
        result = self._login(identifier='9800000000')
        self.assertEqual(result.status, AuthStatus.SUCCESS)

    def test_success_email_case_insensitive(self):
        result = self._login(identifier='  EDITOR@example.COM ')
        self.assertEqual(result.status, AuthStatus.SUCCESS)

    def test_success_result_has_no_password_hash(self):
        result = self._login()
        self.assertFalse(hasattr(result.account, 'password_hash'))
        self.assertNotIn(self._stored().password_hash, repr(result))

    def test_success_resets_counter_and_stamps_last_login(self):
        self._set_state(failed_attempt_count=3)

        self._login()

        stored = self._stored()
        self.assertEqual(stored.failed_attempt_count, 0)
        self.assertIsNone(stored.locked_until)
        self.assertEqual(stored.last_login_at, NOW)


class TestAuthenticateFailures(AuthTestCase):

    def test_unknown_identifier_is_credentials_invalid(self):
        before = dict(self.repo.store)

        result = self._login(identifier='nobody@example.com')

        self.assertEqual(result.status, AuthStatus.CREDENTIALS_INVALID)
        self.assertIsNone(result.account)
        self.assertEqual(self.repo.store, before)

    def test_unknown_identifier_indistinguishable_from_wrong_password(self):
        unknown = self._login(identifier='nobody@example.com')
        wrong = self._login(password=WRONG)
        self.assertEqual(unknown, wrong)

    def test_wrong_password_increments_counter(self):
        result = self._login(password=WRONG)

        self.assertEqual(result.status, AuthStatus.CREDENTIALS_INVALID)
        self.assertEqual(self._stored().failed_attempt_count, 1)
        self.assertIsNone(self._stored().last_login_at)

    def test_inactive_account_with_correct_password(self):
        self._set_state(is_active=False, failed_attempt_count=2)

        result = self._login()

        self.assertEqual(result.status, AuthStatus.ACCOUNT_INACTIVE)
        self.assertEqual(self._stored().failed_attempt_count, 2)
        self.assertIsNone(self._stored().last_login_at)

    def test_inactive_account_with_wrong_password_not_counted(self):
        self._set_state(is_active=False)
        result = self._login(password=WRONG)
        self.assertEqual(result.status, AuthStatus.ACCOUNT_INACTIVE)
        self.assertEqual(self._stored().failed_attempt_count, 0)


class TestLockout(AuthTestCase):

    def test_fifth_failure_locks_but_reports_invalid_credentials(self):
        """Counter 4, wrong password -> CREDENTIALS_INVALID, counter 5, locked for 2h."""
        self._set_state(failed_attempt_count=4)

        result = self._login(password=WRONG)

        self.assertEqual(result.status, AuthStatus.CREDENTIALS_INVALID)
        self.assertIsNone(result.retry_after)
        stored = self._stored()
        self.assertEqual(stored.failed_attempt_count, 5)
        self.assertEqual(stored.locked_until, NOW + timedelta(hours=2))

    def test_locked_after_max_attempts_even_with_correct_password(self):
        for i in range(POLICY.max_attempts):
            self._login(password=WRONG, now=NOW + timedelta(seconds=i))

        result = self._login(now=NOW + timedelta(minutes=1))

        self.assertEqual(result.status, AuthStatus.ACCOUNT_LOCKED)
        self.assertIsNone(result.account)

    def test_locked_attempt_counts_but_does_not_extend(self):
        locked_until = NOW + timedelta(hours=1)
        self._set_state(failed_attempt_count=5, locked_until=locked_until)

        result = self._login()

        self.assertEqual(result.status, AuthStatus.ACCOUNT_LOCKED)
        self.assertEqual(result.retry_after, timedelta(hours=1))
        stored = self._stored()
        self.assertEqual(stored.failed_attempt_count, 6)
        self.assertEqual(stored.locked_until, locked_until)

    def test_locked_throughout_lock_window(self):
        self._set_state(failed_attempt_count=5, locked_until=NOW + timedelta(hours=2))

        for minutes in (0, 30, 119):
            with self.subTest(minutes=minutes):
                result = self._login(now=NOW + timedelta(minutes=minutes))
                self.assertEqual(result.status, AuthStatus.ACCOUNT_LOCKED)
                self.assertEqual(result.retry_after, timedelta(minutes=120 - minutes))

    def test_expired_lock_then_correct_password(self):
        self._set_state(failed_attempt_count=7, locked_until=NOW - timedelta(seconds=1))

        result = self._login()

        self.assertEqual(result.status, AuthStatus.SUCCESS)
        stored = self._stored()
        self.assertEqual(stored.failed_attempt_count, 0)
        self.assertIsNone(stored.locked_until)

    def test_expired_lock_then_wrong_password_gets_fresh_budget(self):
        self._set_state(failed_attempt_count=5, locked_until=NOW - timedelta(seconds=1))

        result = self._login(password=WRONG)

        self.assertEqual(result.status, AuthStatus.CREDENTIALS_INVALID)
        stored = self._stored()
        self.assertEqual(stored.failed_attempt_count, 1)
        self.assertIsNone(stored.locked_until)

    def test_full_cycle_lock_expire_relock(self):
        for _ in range(5):
            self._login(password=WRONG)
        self.assertEqual(self._login().status, AuthStatus.ACCOUNT_LOCKED)

        later = NOW + timedelta(hours=2, seconds=1)
        for i in range(4):
            self.assertEqual(
                self._login(password=WRONG, now=later + timedelta(seconds=i)).status,
                AuthStatus.CREDENTIALS_INVALID,
            )
        self.assertIsNone(self._stored().locked_until)
        self._login(password=WRONG, now=later + timedelta(seconds=10))
        self.assertEqual(self._stored().locked_until, later + timedelta(seconds=10) + timedelta(hours=2))

    def test_default_policy_is_five_attempts_two_hours(self):
        with patch.dict(os.environ, {}, clear=True):
            for _ in range(5):
                authenticate(self.repo, self.hasher, 'editor@example.com', WRONG, now=NOW)
        self.assertEqual(self._stored().locked_until, NOW + timedelta(hours=2))

    def test_policy_read_from_environment(self):
        env = {'LOGIN_MAX_ATTEMPTS': '2', 'LOGIN_LOCK_DURATION_MS': '600000'}
        with patch.dict(os.environ, env):
            first = authenticate(self.repo, self.hasher, 'editor@example.com', WRONG, now=NOW)
            self.assertIsNone(self._stored().locked_until)
            authenticate(self.repo, self.hasher, 'editor@example.com', WRONG, now=NOW)

        self.assertEqual(first.status, AuthStatus.CREDENTIALS_INVALID)
        stored = self._stored()
        self.assertEqual(stored.failed_attempt_count, 2)
        self.assertEqual(stored.locked_until, NOW + timedelta(minutes=10))

    def test_invalid_lockout_environment_raises(self):
        with patch.dict(os.environ, {'LOGIN_MAX_ATTEMPTS': 'zero'}):
            with self.assertRaises(ValueError):
                authenticate(self.repo, self.hasher, 'editor@example.com', WRONG, now=NOW)
        self.assertEqual(self._stored().failed_attempt_count, 0)

    def _lock_cleared_concurrently(self):
        """Repo whose failed-attempt write finds the lock already cleared by another login."""
        repo = MagicMock(wraps=self.repo)

        def cleared(account_id, policy, now):
            before = replace(self._stored(), failed_attempt_count=1, locked_until=None)
            self._set_state(failed_attempt_count=2, locked_until=None)
            return FailedAttempt(before=before, after=self._stored())

        repo.record_failed_attempt.side_effect = cleared
        self._set_state(failed_attempt_count=5, locked_until=NOW + timedelta(seconds=1))
        return repo

    def test_lock_cleared_during_login_then_correct_password(self):
        repo = self._lock_cleared_concurrently()

        result = authenticate(repo, self.hasher, 'editor@example.com', PASSWORD, policy=POLICY, now=NOW)

        self.assertEqual(result.status, AuthStatus.SUCCESS)
        self.assertIsNone(result.retry_after)
        self.assertEqual(self._stored().failed_attempt_count, 0)

    def test_lock_cleared_during_login_then_wrong_password_counted_once(self):
        repo = self._lock_cleared_concurrently()

        result = authenticate(repo, self.hasher, 'editor@example.com', WRONG, policy=POLICY, now=NOW)

        self.assertEqual(result.status, AuthStatus.CREDENTIALS_INVALID)
        repo.record_failed_attempt.assert_called_once()
        self.assertEqual(self._stored().failed_attempt_count, 2)


class TestConcurrentAttempts(AuthTestCase):

    def test_parallel_failures_counted_exactly(self):
        n = 12
        barrier = threading.Barrier(n)
        statuses = []
        statuses_lock = threading.Lock()

        def worker():
            barrier.wait()
            result = self._login(password=WRONG)
            with statuses_lock:
                statuses.append(result.status)

        threads = [threading.Thread(target=worker) for _ in range(n)]
        with self.assertLogs('services.auth_service', level='WARNING') as logs:
            for t in threads:
                t.start()
            for t in threads:
                t.join()

        lock_records = [r for r in logs.records if r.getMessage().startswith('Account locked')]
        self.assertEqual(len(lock_records), 1)
        stored = self._stored()
        self.assertEqual(stored.failed_attempt_count, n)
        self.assertEqual(stored.locked_until, NOW + timedelta(hours=2))
        self.assertTrue(all(s in (AuthStatus.CREDENTIALS_INVALID, AuthStatus.ACCOUNT_LOCKED) for s in statuses))


class TestErrorPaths(AuthTestCase):

    def test_store_unavailable_on_lookup(self):
        self.repo.unavailable = True
        result = self._login()
        self.assertEqual(result.status, AuthStatus.STORE_ERROR)

    def test_store_failure_on_write_leaves_account_untouched(self):
        repo = MagicMock(wraps=self.repo)
        repo.record_failed_attempt.side_effect = StoreError("write failed")

        result = authenticate(repo, self.hasher, 'editor@example.com', WRONG, policy=POLICY, now=NOW)

        self.assertEqual(result.status, AuthStatus.STORE_ERROR)
        self.assertEqual(self._stored().failed_attempt_count, 0)

    def test_store_failure_on_success_write(self):
        repo = MagicMock(wraps=self.repo)
        repo.record_success.side_effect = StoreError("write failed")

        result = authenticate(repo, self.hasher, 'editor@example.com', PASSWORD, policy=POLICY, now=NOW)

        self.assertEqual(result.status, AuthStatus.STORE_ERROR)
        self.assertIsNone(self._stored().last_login_at)

    def test_hash_error_not_counted_as_failure(self):
        self._set_state(password_hash='corrupted')

        with self.assertLogs('services.auth_service', level='ERROR') as logs:
            result = self._login()

        self.assertEqual(result.status, AuthStatus.CREDENTIALS_INVALID)
        self.assertEqual(self._stored().failed_attempt_count, 0)
        self.assertIn('Password verification error', logs.output[0])

    def test_lock_transition_logged_as_warning(self):
        self._set_state(failed_attempt_count=4)
        with self.assertLogs('services.auth_service', level='WARNING') as logs:
            self._login(password=WRONG)
        self.assertIn('Account locked', logs.output[0])

    def test_login_with_hash_of_other_cost_is_logged(self):
        self._set_state(password_hash=BcryptPasswordHasher(rounds=5).hash(PASSWORD))

        with self.assertLogs('services.auth_service', level='INFO') as logs:
            result = self._login()

        self.assertEqual(result.status, AuthStatus.SUCCESS)
        self.assertTrue(any('different cost' in line for line in logs.output))
        self.assertTrue(self._stored().password_hash.startswith('$2b$05$'))


class TestCreateAccount(unittest.TestCase):

    def setUp(self):
        self.repo = FakeAccountRepository()
        self.hasher = BcryptPasswordHasher(rounds=4)

    def test_create_account_stores_hashed(self):
        account = create_account(self.repo, self.hasher, 'Editor', 'e@example.com', 'Secret123')

        stored = self.repo.get_by_id(account.id)
        self.assertEqual(stored.email, 'e@example.com')
        self.assertTrue(self.hasher.verify('Secret123', stored.password_hash))

    def test_create_account_with_role(self):
        account = create_account(self.repo, self.hasher, 'Admin', 'a@example.com', 'Secret123', role=Role.ADMIN)
        self.assertEqual(account.role, Role.ADMIN)

    def test_duplicate_email_rejected(self):
        create_account(self.repo, self.hasher, 'Editor', 'e@example.com', 'Secret123')
        with self.assertRaises(DuplicateError):
            create_account(self.repo, self.hasher, 'Other', 'E@Example.com', 'Secret123')

    def test_duplicate_phone_rejected(self):
        create_account(self.repo, self.hasher, 'Editor', 'e@example.com', 'Secret123', phone='9800000000')
        with self.assertRaises(DuplicateError):
            create_account(self.repo, self.hasher, 'Other', 'o@example.com', 'Secret123', phone='9800000000')

    def test_invalid_input_rejected_before_store(self):
        with self.assertRaises(ValidationError):
            create_account(self.repo, self.hasher, 'Editor', 'not-an-email', 'Secret123')
        self.assertEqual(self.repo.store, {})


class TestChangePassword(AuthTestCase):

    def test_change_password(self):
        change_password(self.repo, self.hasher, self.account.id, PASSWORD, 'Brand-New-Pass1')

        self.assertEqual(self._login(password='Brand-New-Pass1').status, AuthStatus.SUCCESS)
        self.assertEqual(self._login(password=PASSWORD).status, AuthStatus.CREDENTIALS_INVALID)

    def test_change_password_rehashes_at_configured_cost(self):
        stronger = BcryptPasswordHasher(rounds=5)
        change_password(self.repo, stronger, self.account.id, PASSWORD, 'Brand-New-Pass1')
        self.assertTrue(self._stored().password_hash.startswith('$2b$05$'))

    def test_change_password_wrong_current(self):
        with self.assertRaises(ValidationError):
            change_password(self.repo, self.hasher, self.account.id, WRONG, 'Brand-New-Pass1')

    def test_change_password_too_short(self):
        with self.assertRaises(ValidationError):
            change_password(self.repo, self.hasher, self.account.id, PASSWORD, 'short')

    def test_change_password_same_as_current(self):
        with self.assertRaises(ValidationError):
            change_password(self.repo, self.hasher, self.account.id, PASSWORD, PASSWORD)

    def test_change_password_unknown_account(self):
        with self.assertRaises(NotFoundError):
            change_password(self.repo, self.hasher, 'missing', PASSWORD, 'Brand-New-Pass1')

    def test_change_password_overlong(self):
        with self.assertRaises(HashError):
            change_password(self.repo, self.hasher, self.account.id, PASSWORD, 'x' * 80)


if __name__ == '__main__':
    unittest.main()
