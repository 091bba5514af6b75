"""
DeployCheck - UI Components
Standardized headers and summary elements
"""

from typing import Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from deploycheck.models.results import StageStatus
from deploycheck.models.run import PipelineRun

LOGO = "deploycheck"

# Color scheme
BRAND_COLOR = "cyan"
SUCCESS_COLOR = "green"
WARNING_COLOR = "yellow"
ERROR_COLOR = "red"

STATUS_STYLES = {
    StageStatus.PASSED: f"[{SUCCESS_COLOR}]passed[/{SUCCESS_COLOR}]",
    StageStatus.FAILED: f"[{ERROR_COLOR}]failed[/{ERROR_COLOR}]",
    StageStatus.SKIPPED: "[dim]skipped[/dim]",
}


def show_header(
    title: str,
    subtitle: Optional[str] = None,
    details: Optional[dict] = None,
    console: Optional[Console] = None,
):
    """
    Display a standardized command header.

    Args:
        title: Main title (e.g., "Release Verification")
        subtitle: Optional subtitle line
        details: Additional key-value pairs to display
        console: Rich Console instance (creates new if None)
    """
    if console is None:
        console = Console()

    prefix = f" [bold color(214)]{LOGO}[/bold color(214)] [dim]›[/dim]"

    console.print(f"{prefix} [bold white]{title}[/bold white]")

    if subtitle:
        console.print(f"{prefix} [dim]{subtitle}[/dim]")

    if details:
        for key, value in details.items():
            console.print(f"{prefix} {key}: [cyan]{value}[/cyan]")

    console.print()


def stage_table(run: PipelineRun) -> Table:
    """Summary table of every stage result in a run."""
    table = Table(title="Verification Report", title_justify="left", padding=(0, 1))
    table.add_column("Stage", style="cyan", no_wrap=True)
    table.add_column("Status")
    table.add_column("Details", style="dim")

    for result in run.results:
        table.add_row(result.stage, STATUS_STYLES[result.status], Text(result.detail))

    return table
