"""
Base Command Class

Abstract base for DeployCheck CLI commands.
Provides common functionality and structure.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Any, Dict

from rich.console import Console
from rich.markup import escape

from deploycheck.exceptions import DeployCheckError
from deploycheck.logger import DeployLogger
from deploycheck.ui_components import show_header


class BaseCommand(ABC):
    """
    Abstract base command class.

    Provides:
    - Logger initialization
    - Header display
    - Error handling and exit codes
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.console = Console()
        self.logger: Optional[DeployLogger] = None

    def init_logger(
        self, host: str, command_name: str, log_dir: Optional[Path] = None
    ) -> DeployLogger:
        """
        Initialize command logger.

        Args:
            host: Target host (groups log files)
            command_name: Command name
            log_dir: Root directory for log files

        Returns:
            DeployLogger instance
        """
        self.logger = DeployLogger(
            host, command_name, verbose=self.verbose, log_dir=log_dir
        )
        return self.logger

    def show_header(
        self,
        title: str,
        subtitle: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Show command header (skip in verbose mode)."""
        if not self.verbose:
            show_header(
                title=title, subtitle=subtitle, details=details, console=self.console
            )

    def print_success(self, message: str) -> None:
        self.console.print(f"[green]✓ {message}[/green]")

    def print_log_path(self) -> None:
        if self.logger:
            self.console.print(f"\n[dim]Logs saved to:[/dim] {self.logger.log_path}\n")

    @abstractmethod
    def execute(self, **kwargs) -> None:
        """
        Execute command logic.

        Must be implemented by subclasses.
        """
        pass

    def run(self, **kwargs) -> None:
        """
        Run command with error handling.

        Args:
            **kwargs: Command arguments
        """
        try:
            self.execute(**kwargs)
        except KeyboardInterrupt:
            self.console.print("\n[yellow]⚠️  Operation cancelled by user[/yellow]")
            self.print_log_path()
            raise SystemExit(130)
        except SystemExit:
            raise
        except DeployCheckError as e:
            if self.logger:
                self.logger.log_error(e.message, context=e.context)
            else:
                self.console.print(f"\n[bold red]✗ {escape(e.message)}[/bold red]")
                if e.context:
                    self.console.print(f"  [dim]{escape(e.context)}[/dim]")
            self.print_log_path()
            raise SystemExit(1)
        except Exception as e:
            error_type = type(e).__name__
            self.console.print(f"\n[bold red]✗ {error_type}:[/bold red] {escape(str(e))}\n")
            if self.logger:
                self.logger.log_error(f"{error_type}: {e}")
            self.print_log_path()
            raise SystemExit(1)
        finally:
            if self.logger:
                self.logger.close()
