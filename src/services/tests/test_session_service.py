"""Unit tests for session reconciliation and role guards."""

import sys
import unittest
from datetime import datetime, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from adapter.fake.user_repository import FakeUserRepository
from domain.model.errors import (
    AccountSuspendedError,
    InvalidSessionError,
    NotFoundError,
    PermissionDeniedError,
)
from domain.model.user import AuthMethod, Location, Role, User, new_user_id
from services.session_service import (
    SessionClaims,
    reconcile_session,
    require_active,
    require_admin,
    touch_activity,
)


def _user(**kwargs) -> User:
    now = datetime.now(timezone.utc)
    values = {
        'id': new_user_id(),
        'name': 'Asha Rao',
        'email': 'asha@fixly.in',
        'username': 'asha_rao',
        'auth_method': AuthMethod.EMAIL,
        'created_at': now,
        'updated_at': now,
        'role': Role.HIRER,
        'location': Location(city='Pune', state='Maharashtra'),
    }
    values.update(kwargs)
    return User(**values)


class TestReconcileSession(unittest.TestCase):

    def setUp(self):
        self.repo = FakeUserRepository()

    def test_returns_live_record(self):
        user = self.repo.create(_user())
        # Token claims are stale; the store wins
        self.repo.store[user.id].role = Role.FIXER

        live = reconcile_session(SessionClaims(subject=user.id, role='hirer'), self.repo)
        self.assertEqual(live.role, Role.FIXER)

    def test_missing_session(self):
        for claims in (None, SessionClaims(subject=None)):
            with self.assertRaises(InvalidSessionError) as ctx:
                reconcile_session(claims, self.repo)
            self.assertEqual(ctx.exception.message, "No active session found")

    def test_temp_subject_needs_onboarding(self):
        with self.assertRaises(InvalidSessionError) as ctx:
            reconcile_session(SessionClaims(subject='temp_1234'), self.repo)
        self.assertTrue(ctx.exception.needs_onboarding)

    def test_placeholder_record_needs_onboarding(self):
        user = self.repo.create(_user(username='temp_abcdef', role=None, location=None))
        with self.assertRaises(InvalidSessionError) as ctx:
            reconcile_session(SessionClaims(subject=user.id), self.repo)
        self.assertTrue(ctx.exception.needs_onboarding)

    def test_malformed_subject(self):
        with self.assertRaises(InvalidSessionError) as ctx:
            reconcile_session(SessionClaims(subject='not-an-id'), self.repo)
        self.assertFalse(ctx.exception.needs_onboarding)

    def test_deleted_subject(self):
        with self.assertRaises(NotFoundError):
            reconcile_session(SessionClaims(subject=new_user_id()), self.repo)


class TestGuards(unittest.TestCase):

    def setUp(self):
        self.repo = FakeUserRepository()

    def test_require_active(self):
        user = _user()
        self.assertIs(require_active(user), user)
        with self.assertRaises(AccountSuspendedError):
            require_active(_user(banned=True))

    def test_require_admin(self):
        admin = self.repo.create(_user(role=Role.ADMIN, username='ops_lead', email='ops@fixly.in'))
        self.assertEqual(require_admin(SessionClaims(subject=admin.id), self.repo).id, admin.id)

    def test_non_admin_is_forbidden(self):
        user = self.repo.create(_user())
        with self.assertRaises(PermissionDeniedError):
            require_admin(SessionClaims(subject=user.id), self.repo)

    def test_banned_or_missing_admin_is_forbidden(self):
        admin = self.repo.create(_user(role=Role.ADMIN, banned=True))
        with self.assertRaises(PermissionDeniedError):
            require_admin(SessionClaims(subject=admin.id), self.repo)
        with self.assertRaises(PermissionDeniedError):
            require_admin(SessionClaims(subject=new_user_id()), self.repo)

    def test_touch_activity(self):
        user = self.repo.create(_user())
        touched = touch_activity(user, self.repo)
        self.assertIsNotNone(touched.last_activity_at)


if __name__ == '__main__':
    unittest.main()
