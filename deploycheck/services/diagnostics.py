"""
Diagnostic Reporter

Fetches the tail of the remote service log and prints the failure report:
failing stage, error, comparison values and the log tail together, so one
run is enough to diagnose a failure without logging into the host.
"""

import shlex
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from deploycheck.constants import LOG_TAIL_LINES
from deploycheck.exceptions import ContentInvalid, ProtocolFailure, SSHError
from deploycheck.logger import DeployLogger
from deploycheck.models.results import StageResult
from deploycheck.services.ssh_service import SSHService


class DiagnosticReporter:
    """Captures remote diagnostics on the failure path."""

    def __init__(
        self,
        ssh_service: SSHService,
        remote_log: str,
        logger: Optional[DeployLogger] = None,
        console: Optional[Console] = None,
    ):
        self.ssh = ssh_service
        self.remote_log = remote_log
        self.logger = logger
        self.console = console or Console()
        self.captures = 0

    def capture_log_tail(self, host: str, n_lines: int = LOG_TAIL_LINES) -> Optional[str]:
        """
        Return the last n_lines of the service log, or None if unavailable.

        A missing log or a failed SSH call is reported, never raised.
        """
        self.captures += 1
        try:
            result = self.ssh.execute_command(
                host, f"tail -n {int(n_lines)} {shlex.quote(self.remote_log)}"
            )
        except SSHError as e:
            self._note(f"Could not fetch server log: {e.message}")
            return None

        if result.is_failure:
            self._note(f"No server log found at {self.remote_log}")
            return None

        return result.stdout

    def _note(self, message: str) -> None:
        if self.logger:
            self.logger.warning(message)
        else:
            self.console.print(f"[yellow]⚠ {message}[/yellow]")

    def report_failure(self, result: StageResult, log_tail: Optional[str]) -> None:
        """Print the failure report for a failed stage."""
        error = result.error
        message = f"Stage {result.stage} failed: {result.detail}"
        context = getattr(error, "context", None)

        if self.logger:
            self.logger.log_error(message, context=context)
        else:
            self.console.print(f"\n[bold red]✗ {escape(message)}[/bold red]")
            if context:
                self.console.print(f"  [color(208)]{escape(context)}[/color(208)]")

        if isinstance(error, ProtocolFailure) and error.raw_output:
            self.console.print(
                Panel(Text(error.raw_output), title="Fallback HTTPS output", border_style="dim")
            )
        elif isinstance(error, ContentInvalid) and error.preview:
            self.console.print(
                Panel(Text(error.preview), title="Response content", border_style="dim")
            )

        if log_tail:
            self.console.print(
                Panel(Text(log_tail.rstrip()), title="Server log (tail)", border_style="red")
            )
            if self.logger:
                self.logger.log_output(log_tail, "server.log")
