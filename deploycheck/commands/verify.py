"""
Verify Command

Build, deploy and verify the service on one host.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

import rich_click as click

from deploycheck.base import BaseCommand
from deploycheck.constants import QUIT_AFTER_TOKEN
from deploycheck.core import HealthCheckPipeline
from deploycheck.exceptions import ConfigurationError
from deploycheck.logger import DeployLogger
from deploycheck.models.run import RunConfig
from deploycheck.services import (
    BuildService,
    CertStabilityChecker,
    ConfigService,
    DiagnosticReporter,
    PortDetector,
    RemoteService,
    SSHService,
)
from deploycheck.ui_components import stage_table


def parse_invocation(args: Sequence[str]) -> tuple[bool, Optional[str]]:
    """
    Split positional arguments into (keepalive, host).

    A leading 'quitafter' token selects teardown at the end and is consumed.

    Raises:
        ConfigurationError: More than one host given
    """
    args = list(args)
    keepalive = True
    if args and args[0] == QUIT_AFTER_TOKEN:
        keepalive = False
        args = args[1:]

    if len(args) > 1:
        raise ConfigurationError(
            f"Unexpected arguments: {' '.join(args[1:])}",
            context="Usage: deploycheck [quitafter] [HOST]",
        )

    return keepalive, (args[0] if args else None)


@dataclass
class VerifyOptions:
    """Options for verify command."""

    args: tuple[str, ...] = ()
    config_path: Optional[Path] = None


class VerifyCommand(BaseCommand):
    """
    Release verification.

    Features:
    - Rebuild if stale, ship and restart the service
    - HTTP/HTTPS checks with TLS fallback
    - Certificate stability across requests, restarts and privilege modes
    - Remote log capture on failure
    """

    def __init__(
        self,
        options: VerifyOptions,
        verbose: bool = False,
        config_service: Optional[ConfigService] = None,
    ):
        super().__init__(verbose=verbose)
        self.options = options
        self.config_service = config_service or ConfigService()

    def build_pipeline(self, config: RunConfig, logger: DeployLogger) -> HealthCheckPipeline:
        ssh_service = SSHService(config.ssh, logger=logger)
        remote = RemoteService(config, ssh_service)
        return HealthCheckPipeline(
            config=config,
            build_service=BuildService(config, logger=logger),
            remote=remote,
            detector=PortDetector(),
            checker=CertStabilityChecker(config, remote, logger=logger),
            reporter=DiagnosticReporter(
                ssh_service, config.remote_log, logger=logger, console=self.console
            ),
            logger=logger,
        )

    def execute(self) -> None:
        """Execute verify command."""
        keepalive, host = parse_invocation(self.options.args)
        config = self.config_service.build_run_config(
            host,
            keepalive=keepalive,
            verbose=self.verbose,
            config_path=self.options.config_path,
        )

        self.show_header(
            title="Release Verification",
            subtitle="Build, deploy and verify certificate stability",
            details={
                "Host": config.host,
                "CA": config.cert_authority,
                "Profile": config.profile,
                "After tests": "stop server" if config.quit_after else "keep running",
            },
        )

        logger = self.init_logger(config.host, "verify", config.log_dir)
        run = self.build_pipeline(config, logger).run()

        self.console.print()
        self.console.print(stage_table(run))

        if not run.is_success:
            self.print_log_path()
            raise SystemExit(run.exit_code)

        self.console.print()
        self.print_success("All verification stages passed")
        self.print_log_path()


@click.command()
@click.argument("args", nargs=-1, metavar="[quitafter] [HOST]")
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="YAML config file (default: ./deploycheck.yml if present)",
)
@click.option("--verbose", "-v", is_flag=True, help="Show all command output")
def verify(args, config_path, verbose):
    """
    Build, deploy and verify a TLS server on one host

    Rebuilds the binary if sources changed, ships it over SSH, restarts
    the service and runs the health checks. The host defaults to the
    first line of ./.remote.

    Examples:
        # Verify and leave the server running
        deploycheck example.org

        # Verify the default host and stop the server afterwards
        deploycheck quitafter
    """
    options = VerifyOptions(args=tuple(args), config_path=config_path)
    cmd = VerifyCommand(options, verbose=verbose)
    cmd.run()
