"""SSH service for executing commands and copying files to the target host."""

import subprocess
import time
from pathlib import Path
from typing import Optional

from deploycheck.constants import RSYNC_TIMEOUT, SSH_COMMAND_TIMEOUT
from deploycheck.exceptions import SSHError
from deploycheck.logger import DeployLogger
from deploycheck.models.results import ExecutionResult, SSHResult
from deploycheck.models.ssh import SSHConfig


class SSHService:
    """Service for SSH operations."""

    def __init__(self, config: SSHConfig, logger: Optional[DeployLogger] = None):
        """
        Initialize SSH service.

        Args:
            config: SSH configuration
            logger: Optional logger receiving every command and its output
        """
        self.config = config
        self.logger = logger

    def build_command(self, host: str, command: str) -> list[str]:
        """Build full ssh argv for a remote command."""
        return (
            ["ssh"]
            + self.config.ssh_options()
            + [self.config.connection_string(host), command]
        )

    def execute_command(
        self,
        host: str,
        command: str,
        timeout: Optional[int] = SSH_COMMAND_TIMEOUT,
    ) -> SSHResult:
        """
        Execute command on remote host via SSH.

        Args:
            host: Host IP or hostname
            command: Command to execute
            timeout: Command timeout in seconds

        Returns:
            SSHResult with execution details

        Raises:
            SSHError: If ssh cannot be run or the command times out
        """
        ssh_cmd = self.build_command(host, command)

        if self.logger:
            self.logger.log_command(f"ssh {self.config.connection_string(host)} {command}")

        start_time = time.time()

        try:
            result = subprocess.run(
                ssh_cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            raise SSHError(
                f"SSH command timed out after {timeout}s",
                context=f"Host: {host}, Command: {command}",
            )
        except OSError as e:
            raise SSHError(
                f"SSH command failed: {e}",
                context=f"Host: {host}, Command: {command}",
            )

        duration = time.time() - start_time

        if self.logger:
            self.logger.log_output(result.stdout, "stdout")
            self.logger.log_output(result.stderr, "stderr")

        return SSHResult(
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
            host=host,
            command=command,
            duration_seconds=duration,
        )

    def copy_file(
        self,
        host: str,
        local_path: Path,
        remote_dir: str,
        timeout: Optional[int] = RSYNC_TIMEOUT,
    ) -> ExecutionResult:
        """
        Copy a local file into a remote directory with rsync.

        Args:
            host: Host IP or hostname
            local_path: File to copy
            remote_dir: Destination directory on the host
            timeout: Transfer timeout in seconds

        Returns:
            ExecutionResult of the rsync invocation
        """
        remote_shell = " ".join(["ssh"] + self.config.ssh_options())
        rsync_cmd = [
            "rsync",
            "-avz",
            "-e",
            remote_shell,
            str(local_path),
            f"{self.config.connection_string(host)}:{remote_dir}/",
        ]
        command_str = " ".join(rsync_cmd)

        if self.logger:
            self.logger.log_command(command_str)

        try:
            result = subprocess.run(
                rsync_cmd, capture_output=True, text=True, timeout=timeout
            )
        except subprocess.TimeoutExpired:
            raise SSHError(
                f"File transfer timed out after {timeout}s",
                context=f"Host: {host}, File: {local_path}",
            )
        except OSError as e:
            raise SSHError(
                f"File transfer failed: {e}",
                context=f"Host: {host}, File: {local_path}",
            )

        if self.logger:
            self.logger.log_output(result.stdout, "stdout")
            self.logger.log_output(result.stderr, "stderr")

        return ExecutionResult(
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
            command=command_str,
        )
