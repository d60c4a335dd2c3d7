"""Unit tests for password and reset-token hashing."""

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from services.credentials import (
    generate_reset_token,
    hash_password,
    hash_reset_token,
    reset_token_selector,
    verify_password,
    verify_reset_token,
)


class TestPasswordHashing(unittest.TestCase):

    def test_hash_and_verify(self):
        hashed = hash_password("secret1")
        self.assertNotEqual(hashed, "secret1")
        self.assertTrue(hashed.startswith("$2b$12$"))
        self.assertTrue(verify_password("secret1", hashed))
        self.assertFalse(verify_password("secret2", hashed))

    def test_missing_or_foreign_hash_never_verifies(self):
        self.assertFalse(verify_password("secret1", None))
        self.assertFalse(verify_password("secret1", ""))
        self.assertFalse(verify_password("secret1", "not-a-bcrypt-hash"))


class TestResetTokens(unittest.TestCase):

    def test_token_carries_user_id_selector(self):
        token = generate_reset_token("a" * 32)
        self.assertEqual(reset_token_selector(token), "a" * 32)
        self.assertGreater(len(token), 60)

    def test_tokens_are_unique(self):
        self.assertNotEqual(generate_reset_token("a" * 32), generate_reset_token("a" * 32))

    def test_unscoped_token_has_no_selector(self):
        self.assertIsNone(reset_token_selector("abcdef"))

    def test_hash_is_sha256_hex(self):
        token_hash = hash_reset_token("abc")
        self.assertEqual(token_hash, "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad")
        self.assertTrue(verify_reset_token("abc", token_hash))
        self.assertFalse(verify_reset_token("abd", token_hash))
        self.assertFalse(verify_reset_token("abc", None))


if __name__ == '__main__':
    unittest.main()
