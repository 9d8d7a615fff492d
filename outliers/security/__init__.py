"""Security helpers for secret loading."""
from .secrets import MissingSecretError, is_placeholder, optional_secret, require_secret

__all__ = ["MissingSecretError", "is_placeholder", "optional_secret", "require_secret"]
