"""Token storage, browser login and session claiming."""

from .store import get_config_path, get_stored_token, store_token, resolve_token
from .login import claim_session, login

__all__ = [
    "get_config_path",
    "get_stored_token",
    "store_token",
    "resolve_token",
    "claim_session",
    "login",
]
