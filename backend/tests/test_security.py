import unittest
import uuid
from datetime import timedelta

from tests.base import *  # noqa: F401,F403

import jwt

from menuadmin.core.deps import check_roles
from menuadmin.core.exceptions import AccessDeniedError
from menuadmin.core.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)


class TokenTests(unittest.TestCase):
    def test_round_trip_claims(self):
        user_id = uuid.uuid4()
        claims = decode_access_token(create_access_token(user_id, "STORE_ADMIN"))
        self.assertEqual(claims.user_id, user_id)
        self.assertEqual(claims.role, "STORE_ADMIN")
        self.assertIsNotNone(claims.expires_at.tzinfo)

    def test_expired_token(self):
        token = create_access_token(uuid.uuid4(), "ADMIN", expires_delta=timedelta(seconds=-1))
        with self.assertRaises(jwt.ExpiredSignatureError):
            decode_access_token(token)

    def test_foreign_signature(self):
        token = jwt.encode({"sub": str(uuid.uuid4()), "exp": 9999999999}, "other-key", algorithm="HS256")
        with self.assertRaises(jwt.InvalidSignatureError):
            decode_access_token(token)

    def test_passwords(self):
        hashed = hash_password("correct horse")
        self.assertNotEqual(hashed, "correct horse")
        self.assertTrue(verify_password("correct horse", hashed))
        self.assertFalse(verify_password("wrong horse", hashed))


class RoleCheckTests(unittest.TestCase):
    def test_empty_roles_admit_anyone(self):
        check_roles(STORE_ADMIN_USER, ())

    def test_role_must_match(self):
        check_roles(ADMIN_USER, ("ADMIN",))
        with self.assertRaises(AccessDeniedError):
            check_roles(STORE_ADMIN_USER, ("ADMIN",))
