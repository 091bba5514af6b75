"""
Remote Service Controller

Drives the service process on the target host over SSH: kill, directory
setup, binary transfer, launch under a privilege mode, liveness checks and
log access.
"""

import shlex
import time
from pathlib import Path
from typing import Callable

from deploycheck.constants import CERT_AUTHORITY_MODES, SERVER_LOG_NAME
from deploycheck.exceptions import DeploymentError, RestartTimeout
from deploycheck.models.results import SSHResult
from deploycheck.models.run import Mode, RunConfig
from deploycheck.services.ssh_service import SSHService


class RemoteService:
    """Process lifecycle of the deployed service on one host."""

    def __init__(
        self,
        config: RunConfig,
        ssh_service: SSHService,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.ssh = ssh_service
        self.sleep = sleep

    @property
    def host(self) -> str:
        return self.config.host

    def kill(self) -> SSHResult:
        """Stop every instance, escalating to SIGKILL after a second."""
        name = shlex.quote(self.config.binary)
        return self.ssh.execute_command(
            self.host, f"pkill -x {name}; sleep 1; pkill -9 -x {name}; true"
        )

    def prepare_directories(self) -> None:
        """
        Create the certificate store subpaths and the working directory.

        The certificate subpaths are handed to the unprivileged user so the
        service can persist certificates in either launch mode.
        """
        cert_dirs = [
            shlex.quote(f"{self.config.cert_root}/{mode}") for mode in CERT_AUTHORITY_MODES
        ]
        owner = shlex.quote(self.config.unprivileged_user)
        command = (
            f"mkdir -p {' '.join(cert_dirs)} {shlex.quote(self.config.remote_dir)} && "
            f"chown -R {owner} {' '.join(cert_dirs)}"
        )
        result = self.ssh.execute_command(self.host, command)
        if result.is_failure:
            raise DeploymentError(
                "Failed to create remote directories", context=result.output
            )

    def transfer(self, artifact: Path) -> None:
        """Copy the binary into the working directory and mark it executable."""
        result = self.ssh.copy_file(self.host, artifact, self.config.remote_dir)
        if result.is_failure:
            raise DeploymentError(
                f"Failed to transfer {artifact.name}", context=result.output
            )

        chmod = self.ssh.execute_command(
            self.host, f"chmod +x {shlex.quote(self.config.remote_binary)}"
        )
        if chmod.is_failure:
            raise DeploymentError(
                f"Failed to mark {self.config.remote_binary} executable",
                context=chmod.output,
            )

    def launch_command(self, mode: Mode) -> str:
        """Shell command starting the service detached, appending to its log."""
        argv = [f"./{self.config.binary}"] + list(self.config.launch_flags)
        if mode is Mode.UNPRIVILEGED:
            argv = ["runuser", "-u", self.config.unprivileged_user, "--"] + argv

        return (
            f"cd {shlex.quote(self.config.remote_dir)} && "
            f"nohup {' '.join(shlex.quote(a) for a in argv)} "
            f">> {SERVER_LOG_NAME} 2>&1 < /dev/null &"
        )

    def launch(self, mode: Mode) -> None:
        result = self.ssh.execute_command(self.host, self.launch_command(mode))
        if result.is_failure:
            raise DeploymentError(
                f"Failed to start {self.config.binary} ({mode.value})",
                context=result.output,
            )

    def restart(self, mode: Mode) -> None:
        self.kill()
        self.launch(mode)

    def is_running(self) -> bool:
        result = self.ssh.execute_command(
            self.host, f"pgrep -x {shlex.quote(self.config.binary)} > /dev/null"
        )
        return result.is_success

    def wait_until_running(self) -> int:
        """
        Poll process liveness until it is up.

        Returns:
            Number of attempts it took

        Raises:
            RestartTimeout: If the process is not running after the last attempt
        """
        attempts = self.config.restart_attempts
        for attempt in range(1, attempts + 1):
            if self.is_running():
                return attempt
            if attempt < attempts:
                self.sleep(self.config.restart_delay)

        raise RestartTimeout(
            f"{self.config.binary} not running after {attempts} checks",
            context=f"Host: {self.host}, delay: {self.config.restart_delay}s",
        )

    def log_tail(self, n_lines: int) -> SSHResult:
        return self.ssh.execute_command(
            self.host, f"tail -n {int(n_lines)} {shlex.quote(self.config.remote_log)}"
        )
