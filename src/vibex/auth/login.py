"""
Browser login and session claiming against the vibex web API.

Login opens ``{web}/api/cli-auth?token=<temp>`` in the browser and polls the
same URL until the web app hands back a real token.
"""

import asyncio
import secrets
import time
import webbrowser
from pathlib import Path
from typing import Callable, Optional

import aiohttp

from .store import get_config_path, load_stored_config, store_token
from ..session.identity import normalize_session_id
from ..utils.errors import AuthenticationError
from ..utils.logging import get_logger

logger = get_logger("vibex.auth.login")

LOGIN_POLL_INTERVAL = 1.0
LOGIN_MAX_ATTEMPTS = 60
HTTP_TIMEOUT = aiohttp.ClientTimeout(total=10)


def make_temp_token() -> str:
    return f"temp_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def auth_url(web_url: str, temp_token: str) -> str:
    return f"{web_url.rstrip('/')}/api/cli-auth?token={temp_token}"


async def claim_session(
    session_id: str,
    token: Optional[str],
    web_url: str,
    http: Optional[aiohttp.ClientSession] = None,
) -> bool:
    """Attach a new session to the token's account. Never raises."""
    if not token:
        return False

    url = f"{web_url.rstrip('/')}/api/auth/claim-session-with-token"
    payload = {"sessionId": normalize_session_id(session_id), "token": token}

    owns_http = http is None
    http = http or aiohttp.ClientSession(timeout=HTTP_TIMEOUT)
    try:
        async with http.post(url, json=payload) as resp:
            ok = 200 <= resp.status < 300
            logger.info("session_claim", session_id=payload["sessionId"], status=resp.status)
            return ok
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.warning("session_claim_failed", error=str(e))
        return False
    finally:
        if owns_http:
            await http.close()


async def poll_for_token(
    http: aiohttp.ClientSession,
    url: str,
    interval: float = LOGIN_POLL_INTERVAL,
    max_attempts: int = LOGIN_MAX_ATTEMPTS,
) -> Optional[str]:
    """Poll the auth URL until it returns ``{success, token}``."""
    for attempt in range(1, max_attempts + 1):
        await asyncio.sleep(interval)
        try:
            async with http.get(url) as resp:
                if not 200 <= resp.status < 300:
                    continue
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.debug("login_poll_error", attempt=attempt, error=str(e))
            continue

        if isinstance(data, dict) and data.get("success") and data.get("token"):
            return data["token"]

    return None


async def login(
    web_url: str,
    reporter,
    config_path: Optional[Path] = None,
    open_browser: Callable[[str], bool] = webbrowser.open,
    interval: float = LOGIN_POLL_INTERVAL,
    max_attempts: int = LOGIN_MAX_ATTEMPTS,
) -> str:
    """
    Run the browser login flow and store the resulting token.

    Raises:
        AuthenticationError: If no token arrives before the polling ends
    """
    path = config_path or get_config_path()
    existing = await load_stored_config(path)
    temp_token = make_temp_token()
    url = auth_url(web_url, temp_token)
    reporter.login_started(url, path, replacing=bool(existing and existing.get("token")))

    try:
        open_browser(url)
    except webbrowser.Error as e:
        logger.warning("browser_open_failed", error=str(e))

    async with aiohttp.ClientSession(timeout=HTTP_TIMEOUT) as http:
        token = await poll_for_token(http, url, interval=interval, max_attempts=max_attempts)

    if token is None:
        reporter.login_timeout()
        raise AuthenticationError("Authentication timed out")

    await store_token(token, web_url, path=path)
    reporter.login_succeeded(path)
    return token


__all__ = ["claim_session", "login", "poll_for_token", "make_temp_token", "auth_url"]
