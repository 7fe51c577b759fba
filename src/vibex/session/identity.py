"""Session identifiers: generation and normalization."""

import secrets
import string
from typing import Optional

SESSION_PREFIX = "vibex-"
_ALPHABET = string.ascii_lowercase + string.digits
_SLUG_LENGTH = 6


def generate_session_id() -> str:
    """New random session id, e.g. ``vibex-k3x9a1``."""
    return SESSION_PREFIX + "".join(secrets.choice(_ALPHABET) for _ in range(_SLUG_LENGTH))


def normalize_session_id(session_id: Optional[str]) -> Optional[str]:
    """Add the ``vibex-`` prefix when missing. Empty input gives None."""
    if not session_id:
        return None
    session_id = session_id.strip()
    if not session_id:
        return None
    if not session_id.startswith(SESSION_PREFIX):
        return SESSION_PREFIX + session_id
    return session_id


def session_slug(session_id: str) -> str:
    """The id without its prefix, as users type it after ``-s``."""
    return session_id[len(SESSION_PREFIX):] if session_id.startswith(SESSION_PREFIX) else session_id


__all__ = ["SESSION_PREFIX", "generate_session_id", "normalize_session_id", "session_slug"]
