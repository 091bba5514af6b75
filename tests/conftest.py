"""Shared fakes for pipeline tests: network probes, remote host and SSH."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Callable, Optional

import pytest
from rich.console import Console

from deploycheck.core import HealthCheckPipeline
from deploycheck.models.results import ProbeResponse, SSHResult
from deploycheck.models.run import BuildArtifact, Mode, RunConfig
from deploycheck.services.cert_stability import CertStabilityChecker
from deploycheck.services.diagnostics import DiagnosticReporter
from deploycheck.services.port_detector import PortDetector

HOST = "server.example.test"
CERT_A = "AB:C1:23"
CERT_B = "DE:F4:56"
HTML = "<!DOCTYPE html>\n<html><body>It works</body></html>\n"

LISTENERS = {
    Mode.PRIVILEGED: {80, 443},
    Mode.UNPRIVILEGED: {80, 9443},
}


class FakeProbes:
    """Stands in for deploycheck.services.probes with scripted outcomes."""

    def __init__(self, open_ports=(80, 443), fingerprint: str = CERT_A):
        self.open_ports = set(open_ports)
        self.fingerprint = fingerprint
        self.fingerprint_queue: list[str] = []
        self.http_result: object = ProbeResponse(url=f"http://{HOST}", status_code=200, body=HTML)
        self.https_queue: list[object] = []
        self.body = HTML
        self.calls: list[tuple] = []

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    def tcp_reachable(self, host, port, timeout):
        self.calls.append(("tcp_reachable", port))
        return port in self.open_ports

    def http_get(self, url, connect_timeout, max_time):
        self.calls.append(("http_get", url))
        if isinstance(self.http_result, Exception):
            raise self.http_result
        return self.http_result

    def https_get(self, url, **kwargs):
        self.calls.append(("https_get", url, kwargs))
        if self.https_queue:
            outcome = self.https_queue.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return ProbeResponse(url=url, status_code=200, body=self.body)

    def fetch_cert_fingerprint(self, host, port, timeout):
        self.calls.append(("fetch_cert_fingerprint", port))
        if self.fingerprint_queue:
            return self.fingerprint_queue.pop(0)
        return self.fingerprint


class FakeRemote:
    """Remote host whose listener set follows the mode the service runs in."""

    def __init__(self, probes: FakeProbes, follow_mode: bool = True):
        self.probes = probes
        self.follow_mode = follow_mode
        self.running = False
        self.alive_after_launch = True
        self.events: list[tuple] = []
        self.on_restart: Optional[Callable[[Mode], None]] = None

    def kill(self):
        self.events.append(("kill",))
        self.running = False
        return SSHResult(returncode=0)

    def prepare_directories(self):
        self.events.append(("prepare_directories",))

    def transfer(self, artifact: Path):
        self.events.append(("transfer", artifact))

    def launch(self, mode: Mode):
        self.events.append(("launch", mode))
        self.running = self.alive_after_launch
        if self.follow_mode and self.running:
            self.probes.open_ports = set(LISTENERS[mode])

    def restart(self, mode: Mode):
        self.events.append(("restart", mode))
        self.kill()
        self.launch(mode)
        if self.on_restart:
            self.on_restart(mode)

    def is_running(self) -> bool:
        return self.running

    def wait_until_running(self) -> int:
        from deploycheck.exceptions import RestartTimeout

        if not self.running:
            raise RestartTimeout("not running")
        return 1

    def log_tail(self, n_lines: int) -> SSHResult:
        return SSHResult(returncode=0, stdout="listening\n")

    @property
    def restarts(self) -> list[Mode]:
        return [event[1] for event in self.events if event[0] == "restart"]


class FakeSSH:
    """SSHService stand-in returning scripted results by command prefix."""

    def __init__(self, responses: Optional[dict[str, SSHResult]] = None):
        self.responses = responses or {}
        self.commands: list[str] = []
        self.copies: list[tuple] = []

    def execute_command(self, host, command, timeout=30):
        self.commands.append(command)
        for prefix, result in self.responses.items():
            if command.startswith(prefix):
                if isinstance(result, Exception):
                    raise result
                return result
        return SSHResult(returncode=0, stdout="", host=host, command=command)

    def copy_file(self, host, local_path, remote_dir, timeout=300):
        from deploycheck.models.results import ExecutionResult

        self.copies.append((host, local_path, remote_dir))
        return ExecutionResult(returncode=0)


class FakeBuild:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls = 0

    def ensure_artifact(self) -> BuildArtifact:
        self.calls += 1
        if self.error:
            raise self.error
        return BuildArtifact(path=Path("target/lto/easyp"), profile="lto")


class Harness:
    """Pipeline wired to fakes, with handles on every collaborator."""

    def __init__(self, config: RunConfig, probes: FakeProbes, build: Optional[FakeBuild] = None):
        self.config = config
        self.probes = probes
        self.remote = FakeRemote(probes)
        self.ssh = FakeSSH({"tail": SSHResult(returncode=0, stdout="error: boom\n")})
        self.build = build or FakeBuild()
        self.sleeps: list[float] = []
        self.reporter = DiagnosticReporter(
            self.ssh, config.remote_log, console=Console(file=io.StringIO())
        )
        self.checker = CertStabilityChecker(
            config, self.remote, probes=probes, sleep=self.sleeps.append
        )
        self.pipeline = HealthCheckPipeline(
            config=config,
            build_service=self.build,
            remote=self.remote,
            detector=PortDetector(probes=probes),
            checker=self.checker,
            reporter=self.reporter,
            probes=probes,
            sleep=self.sleeps.append,
        )

    def run(self):
        return self.pipeline.run()

    @property
    def log_captures(self) -> int:
        return sum(1 for c in self.ssh.commands if c.startswith("tail"))


@pytest.fixture
def run_config(tmp_path) -> RunConfig:
    return RunConfig(
        host=HOST,
        settle_seconds=0,
        cert_settle_seconds=3,
        stage_pause_seconds=0,
        restart_attempts=3,
        restart_delay=0,
        log_dir=tmp_path / "logs",
    )


@pytest.fixture
def probes() -> FakeProbes:
    return FakeProbes()


@pytest.fixture
def harness(run_config, probes) -> Harness:
    return Harness(run_config, probes)


@pytest.fixture
def make_harness(run_config):
    def _make(probes: Optional[FakeProbes] = None, config: Optional[RunConfig] = None, **kwargs):
        return Harness(config or run_config, probes or FakeProbes(), **kwargs)

    return _make
