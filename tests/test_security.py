from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone

from hr_testing import ApiTestCase

from nexus_hr.errors import ApiError
from nexus_hr.models import User, UserRole
from nexus_hr.rate_limit import SlidingWindowCounter
from nexus_hr.schemas import check_password_strength
from nexus_hr.security import (
    create_access_token,
    decode_token,
    hash_password,
    require_roles,
    verify_password,
)

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class SlidingWindowCounterTests(unittest.TestCase):
    def test_hits_expire_after_window(self) -> None:
        counter = SlidingWindowCounter(max_hits=2, window=timedelta(minutes=15))

        counter.hit("1.2.3.4", now=T0)
        counter.hit("1.2.3.4", now=T0 + timedelta(minutes=1))
        self.assertTrue(counter.is_exhausted("1.2.3.4", now=T0 + timedelta(minutes=2)))
        self.assertFalse(counter.is_exhausted("5.6.7.8", now=T0 + timedelta(minutes=2)))

        self.assertFalse(counter.is_exhausted("1.2.3.4", now=T0 + timedelta(minutes=15, seconds=1)))
        self.assertEqual(counter.hit("1.2.3.4", now=T0 + timedelta(minutes=16, seconds=1)), 1)

    def test_clear_forgets_a_key(self) -> None:
        counter = SlidingWindowCounter(max_hits=1, window=timedelta(minutes=1))
        counter.hit("k", now=T0)

        counter.clear("k")

        self.assertFalse(counter.is_exhausted("k", now=T0))


class PasswordTests(unittest.TestCase):
    def test_strength_rules(self) -> None:
        self.assertEqual(check_password_strength("Str0ng!Pass"), "Str0ng!Pass")
        for weak, reason in (
            ("Sh0rt!", "at least 8 characters"),
            ("lowercase1!", "uppercase"),
            ("UPPERCASE1!", "lowercase"),
            ("NoDigits!!", "number"),
            ("NoSpecial11", "special character"),
        ):
            with self.subTest(password=weak):
                with self.assertRaises(ValueError) as ctx:
                    check_password_strength(weak)
                self.assertIn(reason, str(ctx.exception))

    def test_hash_round_trip_and_unknown_hash(self) -> None:
        hashed = hash_password("Str0ng!Pass")

        self.assertTrue(verify_password("Str0ng!Pass", hashed))
        self.assertFalse(verify_password("wrong", hashed))
        self.assertFalse(verify_password("Str0ng!Pass", "not-a-hash"))


class TokenTests(unittest.TestCase):
    def test_token_carries_identity_claims(self) -> None:
        user = User(id="user-1", email="jane@example.com", role=UserRole.HR)

        token, expires_in, claims = create_access_token(user)
        decoded = decode_token(token)

        self.assertEqual(decoded["sub"], "user-1")
        self.assertEqual(decoded["role"], "HR")
        self.assertEqual(decoded["jti"], claims["jti"])
        self.assertEqual(decoded["exp"] - decoded["iat"], expires_in)

    def test_wrong_token_type_is_rejected(self) -> None:
        token, _, _ = create_access_token(User(id="user-1", email="jane@example.com", role=UserRole.HR))

        with self.assertRaises(ApiError) as ctx:
            decode_token(token, expected_type="refresh")

        self.assertEqual(ctx.exception.status_code, 401)

    def test_require_roles_needs_roles(self) -> None:
        with self.assertRaises(ValueError):
            require_roles()


class AuditLogEndpointTests(ApiTestCase):
    role = UserRole.ADMIN

    def test_write_actions_are_listed_for_admins(self) -> None:
        self.client.post(
            "/api/assets",
            json={
                "name": "Monitor",
                "category": "MONITOR",
                "serialNumber": "MON-1",
                "purchaseDate": "2024-01-15",
                "purchasePrice": 300.0,
            },
        )

        response = self.client.get("/api/audit/logs", params={"action": "ASSET_CREATED"})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["meta"]["total"], 1)
        self.assertEqual(body["data"][0]["actorRole"], "ADMIN")
        self.assertEqual(body["data"][0]["entityType"], "asset")

    def test_non_admins_cannot_read_audit_logs(self) -> None:
        self.act_as(UserRole.HR)

        response = self.client.get("/api/audit/logs")

        self.assertEqual(response.status_code, 403)


if __name__ == "__main__":
    unittest.main()
