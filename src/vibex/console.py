"""User-facing output: banner, tips and connection status lines."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from .session.identity import session_slug
from .streaming.controller import StatusSink


class Reporter(StatusSink):
    """Prints status to stdout; logs go to stderr separately."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(highlight=False, soft_wrap=True)

    def _print(self, *lines: str) -> None:
        for line in lines:
            self.console.print(f"  {line}" if line else "")

    # Startup

    def banner(self, session_id: str, web_url: str) -> None:
        self.console.print()
        self.console.print(
            Panel.fit("🔍 Vibex is watching...", padding=(0, 8)),
        )
        self._print("", f"Session ID: {session_id}", f"Dashboard:  {dashboard_url(web_url, session_id)}", "")

    def reuse_tip(self, session_id: str, web_url: str) -> None:
        local_flag = " --local" if "localhost" in web_url else ""
        sample = '{"cpu": 45, "memory": 78, "timestamp": "%s"}' % (
            datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        )
        self._print(
            "💡 Tip: Use -s to send more logs to this session",
            f"Example: echo '{sample}' | vibex -s {session_slug(session_id)}{local_flag}",
            "",
        )

    def reusing_session(self, session_id: str, web_url: str) -> None:
        self._print(
            f"🔍 Sending logs to session: {session_id}",
            f"Dashboard: {dashboard_url(web_url, session_id)}",
            "",
        )

    def session_claimed(self) -> None:
        self._print("[green]✓[/green] Session automatically claimed to your account", "")

    # Connection status

    def connected(self, attempt: int, reconnect: bool) -> None:
        if reconnect:
            self._print(f"↻ Reconnected (attempt {attempt})", "")
        else:
            self._print("[green]✓[/green] Connected to server", "")

    def connection_error(self, error: str, attempt: int) -> None:
        self._print(f"[red]✗[/red] Connection error: {escape(error)}", "↻ Retrying connection...", "")

    def disconnected(self, reason: str) -> None:
        self._print(f"[yellow]⚠[/yellow]  Disconnected ({escape(reason)}), reconnecting...", "")

    def rate_limited(self, limit, remaining, reset_at, message=None) -> None:
        details = ", ".join(
            f"{name}={value}"
            for name, value in (("limit", limit), ("remaining", remaining), ("resets", reset_at))
            if value is not None
        )
        self._print(f"[yellow]⚠[/yellow]  Rate limit exceeded{f' ({details})' if details else ''}")
        if message:
            self._print(f"   {escape(str(message))}")
        self._print("")

    def quota_reached(self, current, limit, discarded: int, message=None) -> None:
        usage = f" ({current}/{limit})" if current is not None and limit is not None else ""
        self._print(f"[red]✗[/red] Session quota reached{usage}. Further logs will not be delivered.")
        if discarded:
            self._print(f"   {discarded} queued log(s) discarded")
        if message:
            self._print(f"   {escape(str(message))}")
        self._print("")

    def stream_ended(self, forfeited: int) -> None:
        self.console.print()
        if forfeited:
            self._print(f"[yellow]⚠[/yellow]  Server unreachable, {forfeited} queued log(s) not sent")
        self._print("Stream ended. Closing connection...", "")

    def interrupted(self, pending: int) -> None:
        self.console.print()
        self._print("Interrupted. Closing connection...", "")

    # Login

    def login_started(self, url: str, config_path: Path, replacing: bool = False) -> None:
        self.console.print()
        self._print("🔐 Vibex CLI Authentication", "", f"📁 Config location: {config_path}")
        if replacing:
            self._print("⚠️  You already have a token stored. This will replace it.")
        self._print("", "Opening browser for authentication...", "", f"If browser doesn't open, visit: {url}", "")
        self._print("Waiting for authentication...")

    def login_succeeded(self, config_path: Path) -> None:
        self.console.print()
        self._print(
            "[green]✅ Authentication successful![/green]",
            f"📁 Token saved to: {config_path}",
            "💡 This token will be used automatically for future commands.",
            "",
        )

    def login_timeout(self) -> None:
        self.console.print()
        self._print("⏱️  Authentication timeout. Please try again.", "")


def dashboard_url(web_url: str, session_id: str) -> str:
    return f"{web_url.rstrip('/')}/{session_id}"


__all__ = ["Reporter", "dashboard_url"]
