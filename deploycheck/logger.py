"""
Logging system for DeployCheck
Provides real-time logging to files with clean console output
"""

import re
import subprocess
from pathlib import Path
from datetime import datetime
from typing import Optional, Sequence, TextIO
from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.spinner import Spinner
from rich.text import Text
from rich.padding import Padding

from deploycheck.constants import DEFAULT_LOG_DIR, LOG_DATE_FORMAT, LOG_TIME_FORMAT
from deploycheck.models.results import ExecutionResult

console = Console()

ANSI_ESCAPE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


class DeployLogger:
    """
    Manages logging for verification runs
    - Writes all output to log files in real-time
    - Shows clean stage-by-stage progress in console (unless verbose)
    - Captures errors with context
    """

    def __init__(
        self,
        host: str,
        operation: str,
        verbose: bool = False,
        log_dir: Optional[Path] = None,
    ):
        """
        Initialize logger

        Args:
            host: Target host name (groups log files per host)
            operation: Operation name (e.g., 'verify')
            verbose: If True, show all output in console
            log_dir: Root directory for log files
        """
        self.host = host
        self.operation = operation
        self.verbose = verbose
        self.log_file: Optional[TextIO] = None
        self.log_path: Optional[Path] = None
        self.current_step = ""
        self.has_errors = False

        # Structure: logs/{host}/{date}/{time}_{operation}.log
        now = datetime.now()
        host_logs_dir = Path(log_dir or DEFAULT_LOG_DIR) / host / now.strftime(
            LOG_DATE_FORMAT
        )
        host_logs_dir.mkdir(parents=True, exist_ok=True)

        self.log_path = host_logs_dir / f"{now.strftime(LOG_TIME_FORMAT)}_{operation}.log"

        # Line buffered so a killed run still leaves a usable log
        self.log_file = open(self.log_path, "w", buffering=1)

        self._write_log_header()

    def _write_log_header(self):
        """Write log file header"""
        header = f"""
{"=" * 80}
DeployCheck Verification Log
{"=" * 80}
Host: {self.host}
Operation: {self.operation}
Started: {datetime.now().isoformat()}
{"=" * 80}

"""
        self.log_file.write(header)
        self.log_file.flush()

    def log(self, message: str, level: str = "INFO"):
        """
        Log a message to file and optionally console

        Args:
            message: Message to log
            level: Log level (INFO, WARNING, ERROR, DEBUG)
        """
        timestamp = datetime.now().strftime("%H:%M:%S")
        log_line = f"[{timestamp}] [{level}] {message}\n"

        if self.log_file:
            self.log_file.write(log_line)
            self.log_file.flush()

        if self.verbose:
            if level == "ERROR":
                console.print(f"[red]{message}[/red]")
            elif level == "WARNING":
                console.print(f"[yellow]{message}[/yellow]")
            elif level == "DEBUG":
                console.print(f"[dim]{message}[/dim]")
            else:
                console.print(message)

    def log_command(self, command: str):
        """Log a command being executed"""
        self.log(f"Executing: {command}", "DEBUG")

    def log_output(self, output: str, stream: str = "stdout"):
        """
        Log command output

        Always written to the log file, shown in console only if verbose.

        Args:
            output: Command output (single line or multiline)
            stream: Stream name (stdout, stderr)
        """
        if not output:
            return

        clean_output = ANSI_ESCAPE.sub("", output)

        if self.log_file:
            for line in clean_output.splitlines():
                self.log_file.write(f"  [{stream}] {line}\n")
            self.log_file.flush()

        if self.verbose:
            console.print(output, markup=False, highlight=False)

    def log_error(self, error: str, context: Optional[str] = None):
        """
        Log an error with context

        Args:
            error: Error message
            context: Additional context (e.g., comparison values)
        """
        self.has_errors = True

        error_block = f"""
{"!" * 80}
ERROR OCCURRED
{"!" * 80}
{error}
"""
        if context:
            error_block += f"\nContext: {context}\n"

        error_block += f"{'!' * 80}\n\n"

        if self.log_file:
            self.log_file.write(error_block)
            self.log_file.flush()

        if not self.verbose:
            console.print()

        console.print(f"[bold red]✗ {escape(error)}[/bold red]", highlight=False)
        if context:
            console.print(f"  [color(208)]{escape(context)}[/color(208)]", highlight=False)

    def step(self, step_name: str):
        """
        Start a new step

        Args:
            step_name: Name of the step
        """
        if self.current_step and not self.verbose:
            console.print()

        self.current_step = step_name
        self.log(f"Step: {step_name}", "INFO")

        if not self.verbose:
            console.print(f"[color(214)]▶[/color(214)] [white]{step_name}[/white]")

    def success(self, message: str):
        """Log a success message"""
        self.log(message, "INFO")

        if not self.verbose:
            console.print(f"  [dim]✓ {message}[/dim]")

    def warning(self, message: str):
        """Log a warning message"""
        self.log(message, "WARNING")

        if not self.verbose:
            console.print(f"  [yellow]⚠[/yellow] [dim]{message}[/dim]")

    def close(self):
        """Close log file"""
        if self.log_file:
            footer = f"""
{"=" * 80}
Completed: {datetime.now().isoformat()}
Status: {"FAILED" if self.has_errors else "SUCCESS"}
{"=" * 80}
"""
            self.log_file.write(footer)
            self.log_file.close()
            self.log_file = None

    def __enter__(self):
        """Context manager entry"""
        return self

    def __exit__(self, exc_type, exc_val, _exc_tb):
        """Context manager exit"""
        if exc_type is not None and exc_type != SystemExit:
            self.log_error(
                str(exc_val) if exc_val else "Operation failed",
                context=f"{exc_type.__name__}",
            )
        self.close()
        return False


def run_with_progress(
    logger: DeployLogger,
    command: Sequence[str],
    description: str,
    cwd: Optional[Path] = None,
    timeout: Optional[float] = None,
) -> ExecutionResult:
    """
    Run a local command with progress indicator

    Args:
        logger: DeployLogger instance
        command: Command argv
        description: Description for progress indicator
        cwd: Working directory
        timeout: Overall timeout in seconds

    Returns:
        ExecutionResult with captured output
    """
    command_str = " ".join(command)
    logger.log_command(command_str)

    if logger.verbose:
        result = subprocess.run(
            list(command), cwd=cwd, capture_output=True, text=True, timeout=timeout
        )
        logger.log_output(result.stdout, "stdout")
        logger.log_output(result.stderr, "stderr")
        return ExecutionResult(
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
            command=command_str,
        )

    # Non-verbose: show spinner, capture output
    spinner = Spinner("dots", text=f"[cyan]{description}...[/cyan]")
    padded_spinner = Padding(spinner, (0, 0, 0, 2))

    with Live(padded_spinner, console=console, refresh_per_second=10) as live:
        result = subprocess.run(
            list(command), cwd=cwd, capture_output=True, text=True, timeout=timeout
        )

        logger.log_output(result.stdout, "stdout")
        logger.log_output(result.stderr, "stderr")

        if result.returncode == 0:
            checkmark = Text("  ✓ ", style="dim")
            checkmark.append(description, style="dim")
            live.update(checkmark)
        else:
            x_mark = Text("  ✗ ", style="red")
            x_mark.append(description, style="dim")
            live.update(x_mark)

    return ExecutionResult(
        returncode=result.returncode,
        stdout=result.stdout,
        stderr=result.stderr,
        command=command_str,
    )
