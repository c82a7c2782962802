from __future__ import annotations

import unittest
from unittest import mock

from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from meal_planner.auth import get_current_principal
from meal_planner.config import Settings


def _bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class SharedSecretAuthTest(unittest.TestCase):
    def setUp(self):
        self.settings = Settings(auth_jwt_secret="s3cret", auth_audience="authenticated")
        patcher = mock.patch("meal_planner.auth.get_settings", return_value=self.settings)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_valid_token_yields_principal(self):
        token = jwt.encode(
            {"sub": "user-1", "email": "cook@example.com", "aud": "authenticated"},
            "s3cret",
            algorithm="HS256",
        )
        principal = get_current_principal(_bearer(token))
        self.assertEqual(principal["sub"], "user-1")
        self.assertEqual(principal["email"], "cook@example.com")

    def test_wrong_secret_is_rejected(self):
        token = jwt.encode({"sub": "user-1", "aud": "authenticated"}, "other", algorithm="HS256")
        with self.assertRaises(HTTPException) as ctx:
            get_current_principal(_bearer(token))
        self.assertEqual(ctx.exception.status_code, 401)

    def test_missing_credentials_are_unauthorized(self):
        with self.assertRaises(HTTPException) as ctx:
            get_current_principal(None)
        self.assertEqual(ctx.exception.status_code, 401)
        self.assertEqual(ctx.exception.detail, "Unauthorized")

    def test_token_without_subject_is_rejected(self):
        token = jwt.encode({"aud": "authenticated"}, "s3cret", algorithm="HS256")
        with self.assertRaises(HTTPException) as ctx:
            get_current_principal(_bearer(token))
        self.assertEqual(ctx.exception.detail, "Invalid token: no sub")


class DevModeAuthTest(unittest.TestCase):
    def test_unverified_claims_are_accepted(self):
        settings = Settings(auth_disable_verification=True)
        token = jwt.encode({"sub": "dev-user"}, "anything", algorithm="HS256")
        with mock.patch("meal_planner.auth.get_settings", return_value=settings):
            principal = get_current_principal(_bearer(token))
        self.assertEqual(principal["sub"], "dev-user")


if __name__ == "__main__":
    unittest.main()
