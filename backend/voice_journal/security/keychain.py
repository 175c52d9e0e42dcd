"""OS keychain access helpers."""

from __future__ import annotations

import logging

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

logger = logging.getLogger(__name__)

SERVICE_NAME = "voice-journal"
API_KEY_ACCOUNT = "openai_api_key"


def store_secret(name: str, value: str) -> None:
    keyring.set_password(SERVICE_NAME, name, value)


def get_secret(name: str) -> str | None:
    """Return the stored secret, or None when absent or no keyring backend exists."""
    try:
        return keyring.get_password(SERVICE_NAME, name)
    except KeyringError as exc:
        logger.debug("Keychain lookup for %s failed: %s", name, exc)
        return None


def delete_secret(name: str) -> bool:
    try:
        keyring.delete_password(SERVICE_NAME, name)
    except PasswordDeleteError:
        # nothing stored under this name
        return True
    except KeyringError as exc:
        logger.warning("Keychain delete for %s failed: %s", name, exc)
        return False
    return True


def is_valid_api_key_format(api_key: str) -> bool:
    """OpenAI keys start with ``sk-`` and are at least 20 characters long."""
    return api_key.startswith("sk-") and len(api_key) >= 20


__all__ = [
    "SERVICE_NAME",
    "API_KEY_ACCOUNT",
    "store_secret",
    "get_secret",
    "delete_secret",
    "is_valid_api_key_format",
]
