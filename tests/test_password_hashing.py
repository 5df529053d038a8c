"""Tests for bcrypt password hashing."""

from __future__ import annotations

import unittest

from inventory.errors import BadRequestError
from inventory.passwords import DEFAULT_ROUNDS, MAX_PASSWORD_BYTES, PasswordHasher, password_problem


class PasswordHashingTests(unittest.TestCase):
    def setUp(self) -> None:
        self.hasher = PasswordHasher(rounds=4)

    def test_hash_and_compare(self) -> None:
        hashed = self.hasher.hash("supersecurepassword")
        self.assertTrue(hashed.startswith("$2"))
        self.assertNotIn("supersecurepassword", hashed)
        self.assertTrue(self.hasher.compare("supersecurepassword", hashed))
        self.assertFalse(self.hasher.compare("incorrect", hashed))

    def test_same_password_hashes_differently(self) -> None:
        first = self.hasher.hash("repeated-password")
        second = self.hasher.hash("repeated-password")
        self.assertNotEqual(first, second)
        self.assertTrue(self.hasher.compare("repeated-password", first))
        self.assertTrue(self.hasher.compare("repeated-password", second))

    def test_distinct_passwords_never_cross_verify(self) -> None:
        passwords = ["alpha-password", "beta-password", "Alpha-password", "alpha-password "]
        hashes = {password: self.hasher.hash(password) for password in passwords}
        for candidate in passwords:
            for owner, hashed in hashes.items():
                self.assertEqual(self.hasher.compare(candidate, hashed), candidate == owner)

    def test_malformed_hash_is_a_mismatch(self) -> None:
        for stored in ["", "not-a-hash", "$2b$10$short", "pbkdf2_sha256$1$abc$def"]:
            with self.subTest(stored=stored):
                self.assertFalse(self.hasher.compare("whatever", stored))

    def test_unhashable_passwords_raise_bad_request(self) -> None:
        for password in ["with\x00nul", "x" * (MAX_PASSWORD_BYTES + 1), "\u00e9" * 37]:
            with self.subTest(password=password):
                self.assertIsNotNone(password_problem(password))
                with self.assertRaises(BadRequestError):
                    self.hasher.hash(password)

    def test_longest_password_hashes(self) -> None:
        password = "x" * MAX_PASSWORD_BYTES
        self.assertIsNone(password_problem(password))
        hashed = self.hasher.hash(password)
        self.assertTrue(self.hasher.compare(password, hashed))

    def test_candidate_beyond_byte_limit_never_matches(self) -> None:
        hashed = self.hasher.hash("x" * MAX_PASSWORD_BYTES)
        self.assertFalse(self.hasher.compare("x" * MAX_PASSWORD_BYTES + "y", hashed))
        self.assertFalse(self.hasher.compare("x" * MAX_PASSWORD_BYTES + "\x00", hashed))

    def test_rounds_are_embedded_in_hash(self) -> None:
        hashed = PasswordHasher(rounds=5).hash("cost-check")
        self.assertIn("$05$", hashed)

    def test_default_rounds(self) -> None:
        self.assertEqual(PasswordHasher().rounds, DEFAULT_ROUNDS)
        self.assertEqual(DEFAULT_ROUNDS, 10)

    def test_rounds_out_of_range_rejected(self) -> None:
        with self.assertRaises(ValueError):
            PasswordHasher(rounds=3)
        with self.assertRaises(ValueError):
            PasswordHasher(rounds=32)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
