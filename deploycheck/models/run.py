"""
Run Models

Dataclass models for a single verification run: configuration, artifacts,
certificate snapshots and the stage ledger.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any
from enum import Enum

from deploycheck.constants import (
    CERT_SETTLE_SECONDS,
    DEFAULT_BINARY_NAME,
    DEFAULT_BUILD_PROFILE,
    DEFAULT_CERT_ROOT,
    DEFAULT_LOG_DIR,
    DEFAULT_REMOTE_DIR,
    DEFAULT_SSH_USER,
    DEFAULT_UNPRIVILEGED_USER,
    DEFAULT_WEB_ROOT,
    DEPLOY_SETTLE_SECONDS,
    RESTART_MAX_ATTEMPTS,
    RESTART_RETRY_DELAY,
    SERVER_LOG_NAME,
    STAGE_PAUSE_SECONDS,
    STAGING_FLAG,
)
from deploycheck.models.results import StageResult
from deploycheck.models.ssh import SSHConfig


class Mode(Enum):
    """Privilege mode the service runs under."""

    PRIVILEGED = "privileged"
    UNPRIVILEGED = "unprivileged"

    @property
    def alternate(self) -> "Mode":
        if self is Mode.PRIVILEGED:
            return Mode.UNPRIVILEGED
        return Mode.PRIVILEGED


class Stage(Enum):
    """Pipeline stages in execution order."""

    BUILD_CHECK = "build_check"
    DEPLOY = "deploy"
    PORT_PROBE = "port_probe"
    HTTP_CHECK = "http_check"
    HTTPS_CHECK = "https_check"
    SESSION_CERT_STABLE = "session_cert_stable"
    RESTART_CERT_STABLE = "restart_cert_stable"
    CONTENT_CHECK = "content_check"
    MODE_SWITCH_CERT_STABLE = "mode_switch_cert_stable"
    TEARDOWN_DECISION = "teardown_decision"

    @property
    def title(self) -> str:
        return self.value.replace("_", " ").title()


class StabilityCondition(Enum):
    """Conditions under which certificate stability is checked."""

    SESSION = "session"
    RESTART = "restart"
    MODE_SWITCH = "mode_switch"


@dataclass(frozen=True)
class RunConfig:
    """
    Immutable configuration for one verification run.

    Built once at startup from defaults, the YAML config file, environment
    overrides and the command line.
    """

    host: str
    keepalive: bool = True
    staging: bool = False
    profile: str = DEFAULT_BUILD_PROFILE
    extra_flags: tuple[str, ...] = ()
    ssh: SSHConfig = field(default_factory=lambda: SSHConfig(user=DEFAULT_SSH_USER))
    build_dir: Path = Path(".")
    build_command: Optional[tuple[str, ...]] = None
    artifact_path: Optional[Path] = None
    binary: str = DEFAULT_BINARY_NAME
    remote_dir: str = DEFAULT_REMOTE_DIR
    web_root: str = DEFAULT_WEB_ROOT
    cert_root: str = DEFAULT_CERT_ROOT
    unprivileged_user: str = DEFAULT_UNPRIVILEGED_USER
    launch_mode: Mode = Mode.PRIVILEGED
    settle_seconds: float = DEPLOY_SETTLE_SECONDS
    cert_settle_seconds: float = CERT_SETTLE_SECONDS
    stage_pause_seconds: float = STAGE_PAUSE_SECONDS
    restart_attempts: int = RESTART_MAX_ATTEMPTS
    restart_delay: float = RESTART_RETRY_DELAY
    log_dir: Path = Path(DEFAULT_LOG_DIR)
    verbose: bool = False

    @property
    def quit_after(self) -> bool:
        return not self.keepalive

    @property
    def cert_authority(self) -> str:
        return "staging" if self.staging else "production"

    @property
    def resolved_build_command(self) -> tuple[str, ...]:
        if self.build_command:
            return self.build_command
        return ("cargo", "build", "--bin", self.binary, "--profile", self.profile)

    @property
    def resolved_artifact_path(self) -> Path:
        if self.artifact_path:
            return self.artifact_path
        return self.build_dir / "target" / self.profile / self.binary

    @property
    def remote_binary(self) -> str:
        return f"{self.remote_dir}/{self.binary}"

    @property
    def remote_log(self) -> str:
        return f"{self.remote_dir}/{SERVER_LOG_NAME}"

    @property
    def launch_flags(self) -> tuple[str, ...]:
        flags = ("--root", self.web_root)
        if self.staging:
            flags += (STAGING_FLAG,)
        return flags + self.extra_flags


@dataclass(frozen=True)
class BuildArtifact:
    """A built binary and the profile it was built with."""

    path: Path
    profile: str
    rebuilt: bool = False


@dataclass(frozen=True)
class CertSnapshot:
    """A certificate fingerprint captured at a point in time."""

    fingerprint: str
    port: int
    captured_at: datetime = field(default_factory=datetime.now)

    def same_certificate(self, other: "CertSnapshot") -> bool:
        return self.fingerprint == other.fingerprint

    def __repr__(self) -> str:
        return f"CertSnapshot(port={self.port}, fingerprint={self.fingerprint[:23]}...)"


@dataclass
class PipelineRun:
    """State of one pipeline run, advanced stage by stage."""

    config: RunConfig
    artifact: Optional[BuildArtifact] = None
    port: Optional[int] = None
    mode: Optional[Mode] = None
    sessions: int = 0
    snapshots: list[CertSnapshot] = field(default_factory=list)
    results: list[StageResult] = field(default_factory=list)

    @property
    def host(self) -> str:
        return self.config.host

    @property
    def failed(self) -> Optional[StageResult]:
        for result in self.results:
            if result.is_failure:
                return result
        return None

    @property
    def is_success(self) -> bool:
        return bool(self.results) and self.failed is None

    @property
    def exit_code(self) -> int:
        return 0 if self.is_success else 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for log output."""
        return {
            "host": self.host,
            "port": self.port,
            "mode": self.mode.value if self.mode else None,
            "stages": [
                {"stage": r.stage, "status": r.status.value, "detail": r.detail}
                for r in self.results
            ],
        }
