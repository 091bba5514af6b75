"""
SSH Configuration Models

Dataclass models for SSH operations.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from deploycheck.constants import SSH_CONNECTION_TIMEOUT


@dataclass(frozen=True)
class SSHConfig:
    """SSH configuration for connecting to the target host."""

    user: str
    key_path: Optional[str] = None
    connect_timeout: int = SSH_CONNECTION_TIMEOUT

    @property
    def key_path_expanded(self) -> Optional[Path]:
        """Get expanded key path (resolves ~)."""
        if self.key_path:
            return Path(self.key_path).expanduser()
        return None

    def connection_string(self, host: str) -> str:
        """Get SSH connection string (user@host)."""
        return f"{self.user}@{host}"

    def ssh_options(self) -> list[str]:
        """Options shared by ssh and rsync's remote shell."""
        options = []
        if self.key_path_expanded:
            options.extend(["-i", str(self.key_path_expanded)])
        options.extend(
            [
                "-o",
                "StrictHostKeyChecking=no",
                "-o",
                "LogLevel=QUIET",
                "-o",
                f"ConnectTimeout={self.connect_timeout}",
            ]
        )
        return options

    def __repr__(self) -> str:
        return f"SSHConfig(user={self.user}, key={self.key_path})"
