"""Identity module: authenticated callers and their permission grants."""

from src.modules.identity.auth import AuthenticatedUser, get_current_user

__all__ = [
    "AuthenticatedUser",
    "get_current_user",
]
