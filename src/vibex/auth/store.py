"""
On-disk token storage.

The token lives in a small JSON file, ``~/.vibex/config.json`` unless
``VIBEX_CONFIG_PATH`` points elsewhere.
"""

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import aiofiles

from ..utils.logging import get_logger

logger = get_logger("vibex.auth.store")


def get_config_path(environ: Optional[Mapping[str, str]] = None) -> Path:
    env = os.environ if environ is None else environ
    custom = env.get("VIBEX_CONFIG_PATH")
    if custom:
        return Path(custom).expanduser()
    return Path.home() / ".vibex" / "config.json"


async def load_stored_config(path: Optional[Path] = None) -> Optional[Dict[str, Any]]:
    """Stored config dict, or None when missing or unreadable."""
    path = path or get_config_path()
    if not path.exists():
        return None
    try:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            data = json.loads(await f.read())
    except (OSError, ValueError) as e:
        logger.debug("stored_config_unreadable", path=str(path), error=str(e))
        return None
    return data if isinstance(data, dict) else None


async def get_stored_token(path: Optional[Path] = None) -> Optional[str]:
    config = await load_stored_config(path)
    if not config:
        return None
    return config.get("token") or None


async def store_token(token: str, web_url: Optional[str] = None, path: Optional[Path] = None) -> bool:
    """Write the token (and the web URL it belongs to). Returns success."""
    path = path or get_config_path()
    config: Dict[str, Any] = {"token": token}
    if web_url:
        config["webUrl"] = web_url
    config["updatedAt"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(config, indent=2))
    except OSError as e:
        logger.error("token_store_failed", path=str(path), error=str(e))
        return False

    logger.info("token_stored", path=str(path))
    return True


async def resolve_token(
    explicit: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    path: Optional[Path] = None,
) -> Optional[str]:
    """Token from the flag, then ``VIBEX_TOKEN``, then the stored config."""
    env = os.environ if environ is None else environ
    return explicit or env.get("VIBEX_TOKEN") or await get_stored_token(path or get_config_path(env))


__all__ = [
    "get_config_path",
    "load_stored_config",
    "get_stored_token",
    "store_token",
    "resolve_token",
]
