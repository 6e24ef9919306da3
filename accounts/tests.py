import json
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import jwt
from django.contrib.auth.models import User
from django.test import TestCase, override_settings

from .auth import issue_token, user_from_token


class RegisterTests(TestCase):
    def _post(self, payload):
        return self.client.post("/api/auth/register", data=json.dumps(payload), content_type="application/json")

    def test_registers_user_with_hashed_password(self):
        resp = self._post({"name": "Meera", "email": "Meera@Example.com", "password": "secret123"})
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()["user"]["email"], "meera@example.com")

        user = User.objects.get()
        self.assertEqual(user.username, "meera@example.com")
        self.assertNotEqual(user.password, "secret123")
        self.assertTrue(user.check_password("secret123"))

    def test_duplicate_email(self):
        User.objects.create_user(username="meera@example.com", email="meera@example.com", password="x")
        resp = self._post({"name": "Meera", "email": "meera@example.com", "password": "secret123"})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("email", resp.json()["errors"])

    def test_short_password(self):
        resp = self._post({"name": "Meera", "email": "meera@example.com", "password": "123"})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("password", resp.json()["errors"])
        self.assertFalse(User.objects.exists())


class LoginTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            username="meera@example.com", email="meera@example.com", password="secret123", first_name="Meera",
        )

    def _post(self, payload):
        return self.client.post("/api/auth/login", data=json.dumps(payload), content_type="application/json")

    def test_login_returns_token(self):
        resp = self._post({"email": "meera@example.com", "password": "secret123"})
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["user"], {
            "id": str(self.user.pk), "email": "meera@example.com", "name": "Meera", "role": "user",
        })
        claims = jwt.decode(body["access_token"], "test-jwt-secret", algorithms=["HS256"])
        self.assertEqual(claims["sub"], str(self.user.pk))

    def test_wrong_password(self):
        resp = self._post({"email": "meera@example.com", "password": "nope"})
        self.assertEqual(resp.status_code, 401)
        self.assertNotIn("access_token", resp.json())

    def test_get_not_allowed(self):
        self.assertEqual(self.client.get("/api/auth/login").status_code, 405)


class TokenTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="t@example.com", email="t@example.com", password="x")

    def test_round_trip(self):
        self.assertEqual(user_from_token(issue_token(self.user)), self.user)

    def test_expired_token_is_rejected(self):
        fixed_now = datetime.now(timezone.utc) - timedelta(days=3)
        with patch("accounts.auth.datetime") as mock_dt:
            mock_dt.now.return_value = fixed_now
            token = issue_token(self.user)
        self.assertIsNone(user_from_token(token))

    def test_inactive_user_is_rejected(self):
        token = issue_token(self.user)
        User.objects.filter(pk=self.user.pk).update(is_active=False)
        self.assertIsNone(user_from_token(token))

    def test_token_signed_with_other_secret(self):
        with override_settings(JWT_SECRET="another-secret"):
            token = issue_token(self.user)
        self.assertIsNone(user_from_token(token))
