"""Configuration management for LocalVault core."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# Lower bound for PBKDF2 iterations; weaker settings are rejected
MIN_KDF_ITERATIONS = 100_000


def get_env(key: str, default: str | None = None) -> str | None:
    """Get environment variable with optional default."""
    return os.getenv(key, default)


def get_env_int(key: str, default: int) -> int:
    """Get environment variable as integer."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Invalid integer for %s=%r, using %s", key, value, default)
        return default


# LocalVault Data Directory (XDG-style, defaults to ~/.localvault)
LOCALVAULT_DATA_DIR = Path(
    get_env("LOCALVAULT_DATA_DIR", os.path.expanduser("~/.localvault"))
    or os.path.expanduser("~/.localvault")
)

# Database path
DATABASE_PATH = Path(
    get_env("LOCALVAULT_DB_PATH") or LOCALVAULT_DATA_DIR / "vault.db"
)

# Key derivation
KDF_ITERATIONS = get_env_int("LOCALVAULT_KDF_ITERATIONS", MIN_KDF_ITERATIONS)


def validate_core_environment() -> tuple[bool, str]:
    """
    Validate environment settings for the vault.

    Returns:
        (is_valid, message) - If not valid, message explains what's wrong.
    """
    if KDF_ITERATIONS < MIN_KDF_ITERATIONS:
        return (
            False,
            f"LOCALVAULT_KDF_ITERATIONS must be at least {MIN_KDF_ITERATIONS}, "
            f"got {KDF_ITERATIONS}",
        )

    return True, ""
