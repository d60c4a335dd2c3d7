"""Tests for the /auth routes: envelope, status codes and rate limiting."""

import unittest
import sys
from pathlib import Path
from urllib.parse import parse_qs, urlparse

# src is three levels up from this file
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from fastapi.testclient import TestClient

from adapter.fake.identity_provider import FakeIdentityProvider
from adapter.fake.mailer import FakeMailer
from adapter.fake.rate_limiter import FakeRateLimiter
from adapter.fake.user_repository import FakeUserRepository
from api.dependencies import get_identity_provider, get_mailer, get_rate_limiter, get_user_repo
from api.main import app
from api.security import create_access_token, decode_token
from config import RATE_LIMITS
from port.identity_provider import ExternalIdentity
from services.password_reset_service import GENERIC_REQUEST_MESSAGE

SIGNUP_PAYLOAD = {
    "authMethod": "email",
    "email": "a@x.com",
    "username": "newuser1",
    "phone": "9876543210",
    "password": "secret1",
    "role": "fixer",
    "location": {"city": "Pune", "state": "Maharashtra"},
    "skills": ["plumbing"],
}


class AuthRouteTestCase(unittest.TestCase):

    def setUp(self):
        self.repo = FakeUserRepository()
        self.mailer = FakeMailer()
        self.identity = FakeIdentityProvider()
        self.limiter = FakeRateLimiter()

        app.dependency_overrides[get_user_repo] = lambda: self.repo
        app.dependency_overrides[get_mailer] = lambda: self.mailer
        app.dependency_overrides[get_identity_provider] = lambda: self.identity
        app.dependency_overrides[get_rate_limiter] = lambda: self.limiter
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()

    def _signup(self, **overrides):
        return self.client.post("/auth/signup", json={**SIGNUP_PAYLOAD, **overrides})


class TestSignupRoute(AuthRouteTestCase):

    def test_signup_then_duplicate(self):
        response = self._signup()

        self.assertEqual(response.status_code, 201)
        data = response.json()
        self.assertTrue(data["success"])
        self.assertEqual(data["message"], "Account created successfully")
        self.assertEqual(data["user"]["username"], "newuser1")
        self.assertEqual(data["user"]["role"], "fixer")
        self.assertTrue(data["user"]["isRegistered"])
        self.assertNotIn("passwordHash", data["user"])
        claims = decode_token(data["token"])
        self.assertEqual(claims.subject, data["user"]["id"])

        response = self._signup()

        self.assertEqual(response.status_code, 409)
        data = response.json()
        self.assertFalse(data["success"])
        self.assertEqual(data["message"], "Email already exists")
        self.assertEqual(data["field"], "email")

    def test_validation_errors_are_listed(self):
        response = self._signup(email="bad", username="x")

        self.assertEqual(response.status_code, 400)
        data = response.json()
        self.assertFalse(data["success"])
        self.assertEqual(set(data["errors"]), {"email", "username"})

    def test_google_signup_without_session(self):
        response = self._signup(authMethod="google", password=None)
        self.assertEqual(response.status_code, 401)

    def test_google_onboarding_flow(self):
        self.identity.add(
            ExternalIdentity(
                external_id="g-1", email="asha@gmail.com", name="Asha",
                provider="google.com", email_verified=True,
            ),
            id_token="google-token",
        )

        response = self.client.post("/auth/google", json={"idToken": "google-token"})
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertTrue(data["needsOnboarding"])
        self.assertFalse(data["user"]["isRegistered"])
        token = data["token"]

        # Placeholder sessions cannot be refreshed yet
        response = self.client.post("/auth/update-session", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(response.status_code, 401)
        self.assertTrue(response.json()["needsOnboarding"])

        response = self.client.post(
            "/auth/signup",
            json={**SIGNUP_PAYLOAD, "authMethod": "google", "email": "asha@gmail.com", "password": None},
            headers={"Authorization": f"Bearer {token}"},
        )
        self.assertEqual(response.status_code, 201)
        user = response.json()["user"]
        self.assertTrue(user["isRegistered"])
        self.assertTrue(user["isVerified"])
        self.assertEqual(len(self.repo.store), 1)

        response = self.client.post("/auth/update-session", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["user"]["username"], "newuser1")

    def test_invalid_google_token(self):
        response = self.client.post("/auth/google", json={"idToken": "forged"})
        self.assertEqual(response.status_code, 401)
        self.assertFalse(response.json()["success"])

    def test_non_google_token_does_not_link_existing_account(self):
        self._signup()
        self.identity.add(
            ExternalIdentity(external_id="intruder-uid", email=SIGNUP_PAYLOAD["email"], provider="password"),
            id_token="password-token",
        )

        response = self.client.post("/auth/google", json={"idToken": "password-token"})

        self.assertEqual(response.status_code, 401)
        self.assertNotIn("token", response.json())
        self.assertIsNone(self.repo.find_unique(external_id="intruder-uid"))


class _StalePrecheckRepository(FakeUserRepository):

    def find_conflicts(self, **kwargs):
        return []


class TestSignupRace(AuthRouteTestCase):

    def test_store_collision_is_reported_as_conflict(self):
        self.repo = _StalePrecheckRepository()
        app.dependency_overrides[get_user_repo] = lambda: self.repo
        self.assertEqual(self._signup().status_code, 201)

        response = self._signup(username="otheruser", phone="9123456789")

        self.assertEqual(response.status_code, 409)
        data = response.json()
        self.assertFalse(data["success"])
        self.assertEqual(data["field"], "email")


class TestLoginRoute(AuthRouteTestCase):

    def test_login(self):
        self._signup()

        response = self.client.post("/auth/login", json={"email": "a@x.com", "password": "secret1"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["user"]["email"], "a@x.com")

        response = self.client.post("/auth/login", json={"email": "a@x.com", "password": "wrong12"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["message"], "Invalid email or password")

    def test_malformed_login_body(self):
        response = self.client.post("/auth/login", json={"email": "not-an-email"})
        self.assertEqual(response.status_code, 400)
        data = response.json()
        self.assertFalse(data["success"])
        self.assertIn("email", data["errors"])
        self.assertIn("password", data["errors"])


class TestUsernameRoutes(AuthRouteTestCase):

    def test_check_username(self):
        response = self.client.post("/auth/check-username", json={"username": "newuser1"})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["available"])

        self._signup()
        response = self.client.post("/auth/check-username", json={"username": "newuser1"})
        self.assertFalse(response.json()["available"])
        self.assertEqual(response.json()["message"], "Username is already taken")

    def test_check_malformed_username(self):
        response = self.client.post("/auth/check-username", json={"username": "a!"})
        self.assertEqual(response.status_code, 400)

    def test_suggestions(self):
        response = self.client.get("/auth/username-suggestions", params={"base": "asha"})
        self.assertEqual(response.status_code, 200)
        self.assertIn("asha", response.json()["suggestions"])


class TestPasswordResetRoutes(AuthRouteTestCase):

    def test_unknown_email_gets_generic_success(self):
        response = self.client.post("/auth/forgot-password", json={"email": "ghost@x.com"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"success": True, "message": GENERIC_REQUEST_MESSAGE})
        self.assertEqual(self.mailer.of_kind("password_reset"), [])

    def test_full_reset_flow(self):
        self._signup()
        response = self.client.post("/auth/forgot-password", json={"email": "a@x.com"})
        self.assertEqual(response.json()["message"], GENERIC_REQUEST_MESSAGE)

        url = self.mailer.of_kind("password_reset")[-1]["reset_url"]
        token = parse_qs(urlparse(url).query)["token"][0]

        response = self.client.put("/auth/reset-password", json={
            "token": token, "newPassword": "fresh12", "confirmPassword": "fresh12",
        })
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["success"])

        response = self.client.post("/auth/reset-password", json={
            "token": token, "password": "again12", "confirmPassword": "again12",
        })
        self.assertEqual(response.status_code, 400)
        self.assertIn("Invalid or expired", response.json()["message"])

        response = self.client.post("/auth/login", json={"email": "a@x.com", "password": "fresh12"})
        self.assertEqual(response.status_code, 200)

    def test_forgot_password_is_rate_limited(self):
        limit, _ = RATE_LIMITS["password_reset_request"]
        for _ in range(limit):
            response = self.client.post("/auth/forgot-password", json={"email": "ghost@x.com"})
            self.assertEqual(response.status_code, 200)

        response = self.client.post("/auth/forgot-password", json={"email": "ghost@x.com"})

        self.assertEqual(response.status_code, 429)
        data = response.json()
        self.assertFalse(data["success"])
        self.assertGreater(data["retryAfter"], 0)
        self.assertEqual(response.headers["Retry-After"], str(data["retryAfter"]))

    def test_rate_limit_is_per_client(self):
        limit, _ = RATE_LIMITS["password_reset_request"]
        for _ in range(limit + 1):
            self.client.post("/auth/forgot-password", json={"email": "ghost@x.com"},
                             headers={"X-Forwarded-For": "10.0.0.1"})

        response = self.client.post("/auth/forgot-password", json={"email": "ghost@x.com"},
                                    headers={"X-Forwarded-For": "10.0.0.2, 10.0.0.1"})
        self.assertEqual(response.status_code, 200)


class TestOtpRoutes(AuthRouteTestCase):

    def setUp(self):
        super().setUp()
        self.identity.add(ExternalIdentity(external_id="p-1", phone_number="+919876543210"))

    def test_signup_verification(self):
        response = self.client.post("/auth/verify-otp", json={
            "phoneNumber": "9876543210", "externalId": "p-1", "action": "signup",
        })
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertTrue(data["verified"])
        self.assertEqual(data["phoneNumber"], "+919876543210")

    def test_signin_without_account(self):
        response = self.client.post("/auth/verify-otp", json={
            "phoneNumber": "9876543210", "externalId": "p-1", "action": "signin",
        })
        self.assertEqual(response.status_code, 404)

    def test_phone_signup_then_signin(self):
        response = self._signup(authMethod="phone", password=None, externalId="p-1")
        self.assertEqual(response.status_code, 201)

        response = self.client.post("/auth/verify-otp", json={
            "phoneNumber": "+91 98765 43210", "externalId": "p-1", "action": "signin",
        })
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["user"]["authMethod"], "phone")
        self.assertIn("token", response.json())

    def test_phone_status(self):
        response = self.client.get("/auth/verify-otp", params={"phone": "9876543210"})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["available"])
        self.assertFalse(response.json()["exists"])


class TestUpdateSession(AuthRouteTestCase):

    def test_requires_session(self):
        response = self.client.post("/auth/update-session")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["message"], "No active session found")

    def test_deleted_user(self):
        response = self._signup()
        user_id = response.json()["user"]["id"]
        token = response.json()["token"]
        del self.repo.store[user_id]

        response = self.client.post("/auth/update-session", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(response.status_code, 404)

    def test_refresh_reflects_live_record(self):
        response = self._signup()
        user_id = response.json()["user"]["id"]
        self.repo.store[user_id].is_verified = True

        token = create_access_token(self.repo.store[user_id])
        response = self.client.post("/auth/update-session", headers={"Authorization": f"Bearer {token}"})

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["user"]["isVerified"])


if __name__ == '__main__':
    unittest.main()
