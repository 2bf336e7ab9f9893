"""Tests for localvault.core.keys module."""

import hashlib

import pytest

from localvault.core.errors import InvalidInputError, NotInitializedError
from localvault.core.keys import KEY_LEN, SALT_LEN, KeyManager

TEST_PASSPHRASE = "correct horse battery staple"
FIXED_SALT = b"\x01" * 16


class TestDeriveKey:
    """Tests for KeyManager.derive_key."""

    def test_derives_256_bit_key(self, key_manager):
        """Derived key is 32 bytes with a 16-byte salt."""
        material = key_manager.derive_key(TEST_PASSPHRASE)

        assert len(material.key) == KEY_LEN
        assert len(material.salt) == SALT_LEN
        assert material.iterations >= 100_000
        assert material.algorithm == "sha256"

    def test_same_inputs_yield_identical_key(self):
        """Derivation is deterministic for a (passphrase, salt) pair."""
        first = KeyManager().derive_key(TEST_PASSPHRASE, salt=FIXED_SALT)
        second = KeyManager().derive_key(TEST_PASSPHRASE, salt=FIXED_SALT)

        assert bytes(first.key) == bytes(second.key)
        assert first.salt == second.salt

    def test_fresh_salt_each_time(self, key_manager):
        """Without a salt, every derivation gets a new random one."""
        first = key_manager.derive_key(TEST_PASSPHRASE)
        first_key = bytes(first.key)
        second = key_manager.derive_key(TEST_PASSPHRASE)

        assert first.salt != second.salt
        assert first_key != bytes(second.key)

    def test_different_passphrase_different_key(self):
        """Different passphrases give different keys under the same salt."""
        first = KeyManager().derive_key("passphrase one", salt=FIXED_SALT)
        second = KeyManager().derive_key("passphrase two", salt=FIXED_SALT)

        assert bytes(first.key) != bytes(second.key)

    def test_known_pbkdf2_vector(self):
        """Key matches hashlib's PBKDF2-HMAC-SHA256 for the same parameters."""
        expected = hashlib.pbkdf2_hmac(
            "sha256", TEST_PASSPHRASE.encode(), FIXED_SALT, 100_000, dklen=32
        )
        material = KeyManager(iterations=100_000).derive_key(
            TEST_PASSPHRASE, salt=FIXED_SALT
        )

        assert bytes(material.key) == expected

    def test_empty_passphrase_rejected(self, key_manager):
        """Empty passphrase raises InvalidInputError."""
        with pytest.raises(InvalidInputError):
            key_manager.derive_key("")

        assert key_manager.current_key() is None

    def test_low_iterations_rejected(self):
        """Iteration counts below the minimum are refused."""
        with pytest.raises(InvalidInputError):
            KeyManager(iterations=1000).derive_key(TEST_PASSPHRASE)

    def test_wrong_salt_length_rejected(self, key_manager):
        """Salt must be 16 bytes."""
        with pytest.raises(InvalidInputError):
            key_manager.derive_key(TEST_PASSPHRASE, salt=b"short")

    def test_second_derivation_replaces_and_wipes_first(self, key_manager):
        """A new derivation becomes current and zeroes the old key."""
        first = key_manager.derive_key(TEST_PASSPHRASE, salt=FIXED_SALT)
        second = key_manager.derive_key("another passphrase", salt=FIXED_SALT)

        assert key_manager.current_key() is second
        assert first.is_wiped

    def test_repr_hides_key(self, key):
        """repr() never contains key bytes."""
        assert "key=" not in repr(key)
        assert repr(bytes(key.key)) not in repr(key)


class TestKeyLifetime:
    """Tests for current_key / require_key / clear."""

    def test_absent_before_derivation(self, key_manager):
        """No key before derive_key."""
        assert key_manager.current_key() is None
        assert key_manager.is_unlocked is False

    def test_require_key_raises_when_absent(self, key_manager):
        """require_key raises NotInitializedError without a key."""
        with pytest.raises(NotInitializedError):
            key_manager.require_key()

    def test_clear_zeroes_and_drops_key(self, key_manager, key):
        """clear() wipes the buffer and makes the key absent."""
        key_manager.clear()

        assert key.is_wiped
        assert key_manager.current_key() is None
        with pytest.raises(NotInitializedError):
            key_manager.require_key()

    def test_clear_is_idempotent(self, key_manager):
        """clear() on an empty manager is a no-op."""
        key_manager.clear()
        key_manager.clear()

        assert key_manager.is_unlocked is False

    def test_derive_after_clear(self, key_manager, key):
        """A new derivation works after clear."""
        key_manager.clear()
        material = key_manager.derive_key(TEST_PASSPHRASE, salt=FIXED_SALT)

        assert key_manager.require_key() is material
