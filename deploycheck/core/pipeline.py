"""
Health-Check Pipeline

Ordered stages sharing one PipelineRun. Execution stops at the first failing
stage; failures from DEPLOY onward capture the remote log tail exactly once
before the run is reported.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional

from rich.markup import escape

from deploycheck.constants import (
    CONTENT_CONNECT_TIMEOUT,
    CONTENT_MAX_TIME,
    CONTENT_PREVIEW_LINES,
    HTML_MARKERS,
    HTTP_CONNECT_TIMEOUT,
    HTTP_MAX_TIME,
    HTTP_PORT,
    HTTPS_CONNECT_TIMEOUT,
    HTTPS_FALLBACK_RETRIES,
    HTTPS_FALLBACK_RETRY_DELAY,
    HTTPS_MAX_TIME,
    HTTPS_PRIMARY_CIPHERS,
    HTTPS_PRIMARY_RETRIES,
    HTTPS_PRIMARY_RETRY_DELAY,
    LOG_TAIL_LINES,
    PORT_PROBE_TIMEOUT,
    PRIVILEGED_HTTPS_PORT,
    STARTUP_LOG_LINES,
)
from deploycheck.exceptions import (
    ContentInvalid,
    DeployCheckError,
    DeploymentError,
    ProbeError,
    ProtocolFailure,
    TeardownError,
)
from deploycheck.logger import DeployLogger
from deploycheck.models.results import StageResult, StageStatus
from deploycheck.models.run import Mode, PipelineRun, RunConfig, Stage, StabilityCondition
from deploycheck.services import probes as network_probes
from deploycheck.services.build_service import BuildService
from deploycheck.services.cert_stability import CertStabilityChecker
from deploycheck.services.diagnostics import DiagnosticReporter
from deploycheck.services.port_detector import PortDetector
from deploycheck.services.remote_service import RemoteService


@dataclass(frozen=True)
class StageSpec:
    """One pipeline stage: what it runs and when it applies."""

    stage: Stage
    action: Callable[[PipelineRun], Optional[str]]
    captures_diagnostics: bool = True
    applies: Optional[Callable[[PipelineRun], bool]] = None


class HealthCheckPipeline:
    """Runs build, deploy and every health check against one host."""

    def __init__(
        self,
        config: RunConfig,
        build_service: BuildService,
        remote: RemoteService,
        detector: PortDetector,
        checker: CertStabilityChecker,
        reporter: DiagnosticReporter,
        probes=network_probes,
        logger: Optional[DeployLogger] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.build_service = build_service
        self.remote = remote
        self.detector = detector
        self.checker = checker
        self.reporter = reporter
        self.probes = probes
        self.logger = logger
        self.sleep = sleep

    def stages(self) -> list[StageSpec]:
        return [
            StageSpec(Stage.BUILD_CHECK, self.build_check, captures_diagnostics=False),
            StageSpec(Stage.DEPLOY, self.deploy),
            StageSpec(Stage.PORT_PROBE, self.port_probe),
            StageSpec(Stage.HTTP_CHECK, self.http_check),
            StageSpec(Stage.HTTPS_CHECK, self.https_check),
            StageSpec(Stage.SESSION_CERT_STABLE, self.session_cert_stable),
            StageSpec(Stage.RESTART_CERT_STABLE, self.restart_cert_stable),
            StageSpec(Stage.CONTENT_CHECK, self.content_check),
            StageSpec(
                Stage.MODE_SWITCH_CERT_STABLE,
                self.mode_switch_cert_stable,
                applies=lambda run: run.mode is Mode.UNPRIVILEGED,
            ),
            StageSpec(Stage.TEARDOWN_DECISION, self.teardown_decision),
        ]

    def run(self) -> PipelineRun:
        """Execute stages in order until one fails or all pass."""
        run = PipelineRun(config=self.config)
        run.snapshots = self.checker.snapshots

        for spec in self.stages():
            if spec.applies is not None and not spec.applies(run):
                run.results.append(
                    StageResult(spec.stage.value, StageStatus.SKIPPED, "not applicable")
                )
                self._log(f"Skipped {spec.stage.value}")
                continue

            self._step(spec.stage.title)
            try:
                detail = spec.action(run) or ""
            except DeployCheckError as e:
                result = StageResult(
                    spec.stage.value, StageStatus.FAILED, detail=e.message, error=e
                )
                run.results.append(result)
                self._handle_failure(spec, result)
                break

            run.results.append(StageResult(spec.stage.value, StageStatus.PASSED, detail))
            self._success(detail or f"{spec.stage.title} passed")

        self._log(f"Run summary: {run.to_dict()}")
        return run

    def _handle_failure(self, spec: StageSpec, result: StageResult) -> None:
        log_tail = None
        if spec.captures_diagnostics:
            log_tail = self.reporter.capture_log_tail(self.config.host, LOG_TAIL_LINES)
            result.diagnostics = {"log_tail": log_tail}

        self.reporter.report_failure(result, log_tail)

    # Stages

    def build_check(self, run: PipelineRun) -> str:
        run.artifact = self.build_service.ensure_artifact()
        if run.artifact.rebuilt:
            return f"Built {run.artifact.path} ({run.artifact.profile})"
        return f"Artifact up to date: {run.artifact.path}"

    def deploy(self, run: PipelineRun) -> str:
        cfg = self.config

        self._log(f"Killing existing {cfg.binary} processes")
        self.remote.kill()

        self._log(f"Preparing {cfg.cert_root} and {cfg.remote_dir}")
        self.remote.prepare_directories()

        self._log(f"Transferring {run.artifact.path}")
        self.remote.transfer(run.artifact.path)

        self._log(
            f"Starting {cfg.binary} ({cfg.launch_mode.value}, {cfg.cert_authority} CA)"
        )
        self.remote.launch(cfg.launch_mode)
        run.sessions += 1

        self._log(f"Waiting {cfg.settle_seconds}s for server to initialize")
        self.sleep(cfg.settle_seconds)

        if not self.remote.is_running():
            raise DeploymentError(f"Server process not found on {cfg.host}")

        startup = self.remote.log_tail(STARTUP_LOG_LINES)
        if startup.is_success and self.logger:
            self.logger.log_output(startup.stdout, "server.log")

        return f"{cfg.binary} running on {cfg.host}"

    def port_probe(self, run: PipelineRun) -> str:
        host = self.config.host
        for port in (HTTP_PORT, PRIVILEGED_HTTPS_PORT):
            if not self.probes.tcp_reachable(host, port, PORT_PROBE_TIMEOUT):
                self._warn(f"Port {port} is not accessible")

        run.port, run.mode = self.detector.detect_https_port(host)
        return f"HTTPS listening on port {run.port} ({run.mode.value})"

    def http_check(self, run: PipelineRun) -> str:
        response = self.probes.http_get(
            f"http://{self.config.host}", HTTP_CONNECT_TIMEOUT, HTTP_MAX_TIME
        )
        self._transcript(response.transcript)
        return f"HTTP {response.status_code}"

    def https_check(self, run: PipelineRun) -> str:
        self.sleep(self.config.stage_pause_seconds)
        url = self._https_url(run)

        try:
            response = self.probes.https_get(
                url,
                tls_min="1.2",
                cipher_list=HTTPS_PRIMARY_CIPHERS,
                verify_peer=False,
                retry_count=HTTPS_PRIMARY_RETRIES,
                retry_delay=HTTPS_PRIMARY_RETRY_DELAY,
                connect_timeout=HTTPS_CONNECT_TIMEOUT,
                max_time=HTTPS_MAX_TIME,
            )
            self._transcript(response.transcript)
            return f"HTTPS {response.status_code}"
        except ProbeError as e:
            self._transcript(e.transcript)
            self._warn(f"HTTPS test failed ({e.message}), trying fallback TLS options")

        try:
            response = self.probes.https_get(
                url,
                tls_min="1.2",
                tls_max="1.3",
                cipher_list=None,
                verify_peer=False,
                retry_count=HTTPS_FALLBACK_RETRIES,
                retry_delay=HTTPS_FALLBACK_RETRY_DELAY,
                connect_timeout=HTTPS_CONNECT_TIMEOUT,
                max_time=HTTPS_MAX_TIME,
            )
        except ProbeError as e:
            self._transcript(e.transcript)
            raise ProtocolFailure(
                "HTTPS test failed with all TLS options", raw_output=e.transcript
            )

        self._transcript(response.transcript)
        return f"HTTPS {response.status_code} (fallback TLS options)"

    def session_cert_stable(self, run: PipelineRun) -> str:
        self.sleep(self.config.stage_pause_seconds)
        self.checker.check_stability(
            self.config.host, run.port, StabilityCondition.SESSION, run.mode
        )
        return "Same certificate on repeated requests"

    def restart_cert_stable(self, run: PipelineRun) -> str:
        self.checker.check_stability(
            self.config.host, run.port, StabilityCondition.RESTART, run.mode
        )
        run.sessions += 1
        return "Same certificate after restart"

    def content_check(self, run: PipelineRun) -> str:
        response = self.probes.https_get(
            self._https_url(run),
            verify_peer=False,
            retry_count=0,
            connect_timeout=CONTENT_CONNECT_TIMEOUT,
            max_time=CONTENT_MAX_TIME,
        )
        body = response.body or ""

        if not body.strip():
            raise ContentInvalid("Received empty response")

        lowered = body.lower()
        if not any(marker in lowered for marker in HTML_MARKERS):
            preview = "\n".join(body.splitlines()[:CONTENT_PREVIEW_LINES])
            raise ContentInvalid("Response doesn't appear to be HTML", preview=preview)

        return f"Received valid HTML ({len(body)} bytes)"

    def mode_switch_cert_stable(self, run: PipelineRun) -> str:
        self.checker.check_stability(
            self.config.host, run.port, StabilityCondition.MODE_SWITCH, run.mode
        )
        run.sessions += 3
        return f"Same certificate across {run.mode.alternate.value} mode and back"

    def teardown_decision(self, run: PipelineRun) -> str:
        if not self.config.quit_after:
            return f"{self.config.binary} left running"

        self.remote.kill()
        if self.remote.is_running():
            raise TeardownError(f"{self.config.binary} still running after quit-after teardown")
        return f"{self.config.binary} stopped"

    # Helpers

    def _https_url(self, run: PipelineRun) -> str:
        if run.port == PRIVILEGED_HTTPS_PORT:
            return f"https://{self.config.host}"
        return f"https://{self.config.host}:{run.port}"

    def _step(self, name: str) -> None:
        if self.logger:
            self.logger.step(name)

    def _log(self, message: str) -> None:
        if self.logger:
            self.logger.log(message)

    def _success(self, message: str) -> None:
        if self.logger:
            self.logger.success(escape(message))

    def _warn(self, message: str) -> None:
        if self.logger:
            self.logger.warning(escape(message))

    def _transcript(self, transcript: str) -> None:
        if self.logger and transcript:
            self.logger.log_output(transcript, "probe")
