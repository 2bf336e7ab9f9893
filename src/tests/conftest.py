"""Shared test fixtures and configuration."""

from __future__ import annotations

import itertools

import pytest

from localvault.core.keys import KeyManager
from localvault.core.store import VaultStore

TEST_PASSPHRASE = "correct horse battery staple"
FIXED_SALT = b"\x01" * 16


@pytest.fixture
def db_path(tmp_path):
    """Provide a temporary vault database path."""
    return tmp_path / "vault.db"


@pytest.fixture
def key_manager():
    """KeyManager with the minimum allowed iteration count."""
    manager = KeyManager(iterations=100_000)
    yield manager
    manager.clear()


@pytest.fixture
def key(key_manager):
    """Derived key material with a fixed salt."""
    return key_manager.derive_key(TEST_PASSPHRASE, salt=FIXED_SALT)


@pytest.fixture
def fake_clock(monkeypatch):
    """Replace the store clock with a strictly increasing counter."""
    counter = itertools.count(1_700_000_000_000, 1000)
    monkeypatch.setattr("localvault.core.store._now_ms", lambda: next(counter))
    return counter


@pytest.fixture
def store(db_path, fake_clock):
    """An initialized VaultStore on a temp database."""
    vault = VaultStore(db_path=db_path)
    vault.initialize(TEST_PASSPHRASE)
    yield vault
    vault.close()


@pytest.fixture
def sample_messages():
    """Sample conversation messages."""
    return [
        {"role": "user", "content": "Hello", "timestamp": 1_700_000_000_000},
        {"role": "assistant", "content": "Hi! How can I help?", "timestamp": 1_700_000_001_000},
    ]
