"""Command-line entry points: ``vibex`` and ``vibex login``."""

import asyncio
import sys
from typing import Optional

import click

from . import __version__
from .auth.login import login as run_login
from .auth.store import resolve_token
from .console import Reporter
from .runner import run_stream
from .session.identity import generate_session_id, normalize_session_id
from .utils.config import load_config, resolve_urls
from .utils.errors import AuthenticationError, ConfigurationError, InputError, TransportError, VibexError
from .utils.logging import get_logger, setup_logging

logger = get_logger("vibex.cli")

LOG_LEVELS = click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False)


def _fail(error: VibexError) -> None:
    logger.debug("command_failed", **error.to_dict())
    click.echo(f"Error: {error.message}", err=True)
    for suggestion in error.get_suggestions():
        click.echo(f"  - {suggestion}", err=True)
    sys.exit(1)


def _setup(log_level: Optional[str], log_file: Optional[str], overrides: Optional[dict] = None):
    logging_overrides = {}
    if log_level:
        logging_overrides["level"] = log_level
    if log_file:
        logging_overrides["file"] = log_file
    merged = dict(overrides or {})
    if logging_overrides:
        merged["logging"] = logging_overrides

    config = load_config(merged)
    setup_logging(
        app_name=config.app_name,
        log_level=config.logging.level,
        log_file=config.logging.file,
        enable_json=config.logging.format == "json",
    )
    return config


@click.group(invoke_without_command=True)
@click.option("-s", "--session-id", help="Reuse an existing session (with or without the vibex- prefix)")
@click.option("-l", "--local", is_flag=True, help="Use localhost (web: 3000, socket: 3001)")
@click.option("--web", help="Web server URL (e.g. http://localhost:3000)")
@click.option("--socket", help="Socket server URL (e.g. http://localhost:3001)")
@click.option("--server", help="Shorthand for --web (auto-derives socket URL)")
@click.option("--token", help="Authentication token (or set VIBEX_TOKEN)")
@click.option("--log-level", type=LOG_LEVELS, help="Diagnostic log level on stderr")
@click.option("--log-file", type=click.Path(dir_okay=False), help="Also write JSON logs to this file")
@click.version_option(__version__, prog_name="vibex")
@click.pass_context
def main(ctx, session_id, local, web, socket, server, token, log_level, log_file):
    """Pipe logs to vibex.sh: ``your-app | vibex``."""
    if ctx.invoked_subcommand is not None:
        ctx.obj = {"log_level": log_level, "log_file": log_file}
        return

    try:
        config = _setup(log_level, log_file)
        urls = resolve_urls(web=web, socket=socket, server=server, local=local)
    except ConfigurationError as e:
        _fail(e)

    reused = session_id is not None
    session = normalize_session_id(session_id) if reused else generate_session_id()
    if reused and session is None:
        raise click.BadParameter("session id must not be blank", param_hint="'-s' / '--session-id'")

    async def _run() -> int:
        resolved = await resolve_token(token)
        return await run_stream(config, session, urls, token=resolved, reused=reused, reporter=Reporter())

    try:
        code = asyncio.run(_run())
    except (InputError, TransportError) as e:
        _fail(e)
    except KeyboardInterrupt:
        code = 0
    sys.exit(code)


@main.command()
@click.option("-l", "--local", is_flag=True, help="Use localhost (web: 3000)")
@click.option("--web", help="Web server URL")
@click.option("--server", help="Shorthand for --web")
@click.pass_obj
def login(obj, local, web, server):
    """Authenticate in the browser and store the token."""
    obj = obj or {}
    try:
        _setup(obj.get("log_level"), obj.get("log_file"))
        urls = resolve_urls(web=web, server=server, local=local)
    except ConfigurationError as e:
        _fail(e)

    try:
        asyncio.run(run_login(urls.web_url, Reporter()))
    except AuthenticationError as e:
        _fail(e)
    except KeyboardInterrupt:
        sys.exit(1)


if __name__ == "__main__":
    main()
