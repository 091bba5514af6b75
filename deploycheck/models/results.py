"""
Result Models

Dataclass models for command outputs and pipeline stage results.
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any
from enum import Enum


@dataclass
class ExecutionResult:
    """Result of a local command execution (build tool, rsync)."""

    returncode: int
    stdout: str = ""
    stderr: str = ""
    command: str = ""

    @property
    def is_success(self) -> bool:
        """Check if execution succeeded."""
        return self.returncode == 0

    @property
    def is_failure(self) -> bool:
        """Check if execution failed."""
        return self.returncode != 0

    @property
    def output(self) -> str:
        """Get combined output (stdout + stderr)."""
        return f"{self.stdout}\n{self.stderr}".strip()

    def __repr__(self) -> str:
        return f"ExecutionResult(returncode={self.returncode}, command='{self.command[:50]}...')"


@dataclass
class SSHResult:
    """Result of an SSH command execution."""

    returncode: int
    stdout: str = ""
    stderr: str = ""
    host: str = ""
    command: str = ""
    duration_seconds: float = 0.0

    @property
    def is_success(self) -> bool:
        """Check if SSH command succeeded."""
        return self.returncode == 0

    @property
    def is_failure(self) -> bool:
        """Check if SSH command failed."""
        return self.returncode != 0

    @property
    def output(self) -> str:
        """Get combined output (stdout + stderr)."""
        return f"{self.stdout}\n{self.stderr}".strip()

    def __repr__(self) -> str:
        return f"SSHResult(host={self.host}, returncode={self.returncode}, duration={self.duration_seconds:.2f}s)"


@dataclass
class ProbeResponse:
    """Response of an HTTP or HTTPS probe."""

    url: str
    status_code: int
    body: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    transcript: str = ""

    def __repr__(self) -> str:
        return f"ProbeResponse(url={self.url}, status={self.status_code}, bytes={len(self.body)})"


class StageStatus(Enum):
    """Outcome of a pipeline stage."""

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class StageResult:
    """Result of one pipeline stage."""

    stage: str
    status: StageStatus
    detail: str = ""
    error: Optional[Exception] = None
    diagnostics: Optional[Dict[str, Any]] = None

    @property
    def is_success(self) -> bool:
        """Passed or skipped stages do not stop the pipeline."""
        return self.status != StageStatus.FAILED

    @property
    def is_failure(self) -> bool:
        return self.status == StageStatus.FAILED

    def __repr__(self) -> str:
        return f"StageResult(stage={self.stage}, status={self.status.value})"
