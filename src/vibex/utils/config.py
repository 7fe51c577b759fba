"""
Configuration loader for vibex.

This module provides configuration management with:
- Typed, validated settings (pydantic)
- Environment variable overrides (VIBEX_<SECTION>__<FIELD>)
- Explicit overrides from the command line
- Web / socket URL resolution
"""

import os
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, List, Mapping, NamedTuple
from urllib.parse import urlsplit, urlunsplit

from pydantic import BaseModel, Field, field_validator, ValidationError

from .logging import get_logger
from .errors import ConfigurationError


logger = get_logger("vibex.config")

ENV_PREFIX = "VIBEX_"
ENV_NESTING = "__"

DEFAULT_WEB_URL = "https://vibex.sh"
DEFAULT_SOCKET_URL = "https://socket.vibex.sh"
LOCAL_WEB_URL = "http://localhost:3000"
LOCAL_SOCKET_URL = "http://localhost:3001"


class OverflowPolicy(str, Enum):
    """What a bounded delivery queue does when it is full."""
    DROP_OLDEST = "drop_oldest"
    REJECT_NEW = "reject_new"


class ConnectionConfig(BaseModel):
    """Transport and reconnect settings."""
    reconnection_delay: float = Field(default=1.0, gt=0)
    reconnection_delay_max: float = Field(default=5.0, gt=0)
    backoff_factor: float = Field(default=2.0, ge=1.0)
    backoff_jitter: float = Field(default=0.5, ge=0.0, le=1.0)
    handshake_timeout: float = Field(default=20.0, gt=0)
    join_settle_delay: float = Field(default=0.1, ge=0)
    transports: List[str] = Field(default_factory=lambda: ["websocket", "polling"])

    @field_validator('transports', mode='before')
    @classmethod
    def parse_transports(cls, v):
        """Accept a comma-separated string as well as a list."""
        if isinstance(v, str):
            return [t.strip() for t in v.split(",") if t.strip()]
        return v


class StreamConfig(BaseModel):
    """Delivery queue and shutdown settings."""
    max_queue_size: Optional[int] = Field(default=None, gt=0)
    overflow_policy: OverflowPolicy = OverflowPolicy.DROP_OLDEST
    shutdown_poll_interval: float = Field(default=0.1, gt=0)
    shutdown_forfeit_after: int = Field(default=3, ge=1)


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "WARNING"
    format: str = "console"
    file: Optional[Path] = None

    @field_validator('level')
    @classmethod
    def validate_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator('format')
    @classmethod
    def validate_format(cls, v):
        if v not in ("console", "json"):
            raise ValueError(f"Invalid log format: {v}")
        return v


class VibexConfig(BaseModel):
    """Main vibex configuration."""
    app_name: str = "vibex"
    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _load_env_vars(environ: Mapping[str, str]) -> Dict[str, Any]:
    """Collect VIBEX_<SECTION>__<FIELD> variables into a nested dict."""
    result: Dict[str, Any] = {}

    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX) or ENV_NESTING not in key:
            continue

        parts = key[len(ENV_PREFIX):].lower().split(ENV_NESTING)
        current = result
        for part in parts[:-1]:
            current = current.setdefault(part, {})
        current[parts[-1]] = value

    return result


def _deep_merge(base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()

    for key, value in update.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_config(
    overrides: Optional[Dict[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> VibexConfig:
    """
    Build the configuration from defaults, environment and overrides.

    Args:
        overrides: Highest-priority values, usually from the command line
        environ: Environment to read (defaults to ``os.environ``)

    Returns:
        Validated configuration

    Raises:
        ConfigurationError: If any value fails validation
    """
    env = os.environ if environ is None else environ
    merged = _deep_merge(_load_env_vars(env), overrides or {})

    try:
        config = VibexConfig(**merged)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            field = ".".join(str(x) for x in error["loc"])
            errors.append(f"{field}: {error['msg']}")
        raise ConfigurationError(
            f"Configuration validation failed: {'; '.join(errors)}"
        ) from e

    logger.debug("configuration_loaded", sources=["defaults", "env", "overrides"])
    return config


# URL resolution

class ServerUrls(NamedTuple):
    web_url: str
    socket_url: str


def derive_socket_url(web_url: str) -> str:
    """
    Guess the socket server URL from the web URL.

    Localhost keeps the scheme and host and moves to port 3001 (or the web
    port plus one). Any other host gets a ``socket.`` subdomain.
    """
    parts = urlsplit(web_url)
    if not parts.scheme or not parts.hostname:
        raise ConfigurationError(f"Invalid web URL: {web_url!r}")

    host = parts.hostname
    try:
        port = parts.port
    except ValueError as e:
        raise ConfigurationError(f"Invalid port in web URL: {web_url!r}") from e

    if host in ("localhost", "127.0.0.1"):
        socket_port = 3001 if port in (None, 3000) else port + 1
        return f"{parts.scheme}://{host}:{socket_port}"

    netloc = parts.netloc.replace(host, f"socket.{host}", 1)
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def resolve_urls(
    web: Optional[str] = None,
    socket: Optional[str] = None,
    server: Optional[str] = None,
    local: bool = False,
    environ: Optional[Mapping[str, str]] = None,
) -> ServerUrls:
    """
    Pick the web and socket URLs.

    Priority: ``--web``, ``--server``, ``--local``, ``VIBEX_WEB_URL``,
    production defaults. An explicit ``--socket`` always wins for the
    socket URL unless ``--local`` finds ``VIBEX_SOCKET_URL``.
    """
    env = os.environ if environ is None else environ
    env_web = env.get("VIBEX_WEB_URL")
    env_socket = env.get("VIBEX_SOCKET_URL")

    if web:
        return ServerUrls(web, socket or derive_socket_url(web))

    if server:
        return ServerUrls(server, socket or derive_socket_url(server))

    if local:
        return ServerUrls(env_web or LOCAL_WEB_URL, env_socket or socket or LOCAL_SOCKET_URL)

    if env_web:
        return ServerUrls(env_web, env_socket or socket or derive_socket_url(env_web))

    return ServerUrls(DEFAULT_WEB_URL, socket or DEFAULT_SOCKET_URL)


__all__ = [
    'VibexConfig',
    'ConnectionConfig',
    'StreamConfig',
    'LoggingConfig',
    'OverflowPolicy',
    'ServerUrls',
    'load_config',
    'derive_socket_url',
    'resolve_urls',
]
