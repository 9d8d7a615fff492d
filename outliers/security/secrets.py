"""Utilities for loading sensitive configuration without leaking values."""
from __future__ import annotations

import os
from typing import Final

__all__ = ["MissingSecretError", "require_secret", "optional_secret", "is_placeholder"]


class MissingSecretError(RuntimeError):
    """Raised when a required secret is not configured."""


_PLACEHOLDER_VALUES: Final[set[str]] = {
    "changeme",
    "change-me",
    "placeholder",
    "example",
    "your-key-here",
}


def is_placeholder(value: str | None) -> bool:
    if not value:
        return True
    normalized = value.strip().lower()
    return not normalized or normalized in _PLACEHOLDER_VALUES


def optional_secret(name: str, value: str | None = None) -> str | None:
    """Return a trimmed secret from ``value`` or the environment, or ``None`` when unset."""

    candidate = value if value is not None else os.getenv(name)
    if is_placeholder(candidate):
        return None
    return candidate.strip()


def require_secret(name: str, value: str | None = None) -> str:
    """Return a trimmed secret value or raise :class:`MissingSecretError`."""

    secret = optional_secret(name, value)
    if secret is None:
        raise MissingSecretError(f"{name} is required and must not use placeholder defaults")
    return secret
