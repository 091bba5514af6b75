"""
Certificate Stability Checker

Certificate material is expected to be persisted and reused by the service.
A fingerprint change between two probes that should see the same certificate
means uncontrolled re-issuance, so any mismatch raises Drift and is never
retried.
"""

import time
from typing import Callable, Optional

from deploycheck.constants import CERT_FETCH_TIMEOUT, PORT_PROBE_TIMEOUT
from deploycheck.exceptions import Drift, RestartTimeout
from deploycheck.logger import DeployLogger
from deploycheck.models.run import CertSnapshot, Mode, RunConfig, StabilityCondition
from deploycheck.services import probes as network_probes
from deploycheck.services.port_detector import DEFAULT_CANDIDATES, port_for_mode
from deploycheck.services.remote_service import RemoteService


class CertStabilityChecker:
    """Compares certificate fingerprints across sessions, restarts and mode switches."""

    def __init__(
        self,
        config: RunConfig,
        remote: RemoteService,
        probes=network_probes,
        logger: Optional[DeployLogger] = None,
        sleep: Callable[[float], None] = time.sleep,
        candidates=DEFAULT_CANDIDATES,
    ):
        self.config = config
        self.remote = remote
        self.probes = probes
        self.logger = logger
        self.sleep = sleep
        self.candidates = candidates
        self.snapshots: list[CertSnapshot] = []

    def _log(self, message: str) -> None:
        if self.logger:
            self.logger.log(message)

    def snapshot(self, host: str, port: int) -> CertSnapshot:
        fingerprint = self.probes.fetch_cert_fingerprint(host, port, CERT_FETCH_TIMEOUT)
        snap = CertSnapshot(fingerprint=fingerprint, port=port)
        self.snapshots.append(snap)
        self._log(f"Certificate on port {port}: {fingerprint}")
        return snap

    def mode_for_port(self, port: int) -> Mode:
        for candidate in self.candidates:
            if candidate.port == port:
                return candidate.mode
        raise ValueError(f"Port {port} is not a known HTTPS port")

    def check_stability(
        self,
        host: str,
        port: int,
        condition: StabilityCondition,
        mode: Optional[Mode] = None,
    ) -> None:
        """
        Verify the certificate on host:port does not change under condition.

        Raises:
            Drift: Fingerprints differ
            RestartTimeout: Service did not come back after a restart
            ProbeError: A fingerprint could not be fetched
        """
        mode = mode or self.mode_for_port(port)

        if condition is StabilityCondition.SESSION:
            self.check_session(host, port)
        elif condition is StabilityCondition.RESTART:
            self.check_restart(host, port, mode)
        elif condition is StabilityCondition.MODE_SWITCH:
            self.check_mode_switch(host, port, mode)
        else:
            raise ValueError(f"Unknown stability condition: {condition}")

    def check_session(self, host: str, port: int) -> None:
        first = self.snapshot(host, port)
        self.sleep(self.config.cert_settle_seconds)
        second = self.snapshot(host, port)
        self._compare(first, second, StabilityCondition.SESSION)

    def check_restart(self, host: str, port: int, mode: Mode) -> None:
        before = self.snapshot(host, port)
        self._log(f"Restarting {self.config.binary} ({mode.value})")
        self.remote.restart(mode)
        self.wait_for_service(host, port)
        after = self.snapshot(host, port)
        self._compare(before, after, StabilityCondition.RESTART)

    def check_mode_switch(self, host: str, port: int, mode: Mode) -> None:
        alternate = mode.alternate
        alt_port = port_for_mode(alternate, self.candidates)

        self._log(f"Switching to {alternate.value} mode on port {alt_port}")
        self.remote.restart(alternate)
        self.wait_for_service(host, alt_port)

        self.check_session(host, alt_port)
        self.check_restart(host, alt_port, alternate)

        self._log(f"Restoring {mode.value} mode on port {port}")
        self.remote.restart(mode)
        self.wait_for_service(host, port)

    def wait_for_service(self, host: str, port: int) -> None:
        """
        Wait for the process to be alive and then for its port to accept connections.

        Raises:
            RestartTimeout: Either wait ran out of attempts
        """
        self.remote.wait_until_running()

        attempts = self.config.restart_attempts
        for attempt in range(1, attempts + 1):
            if self.probes.tcp_reachable(host, port, PORT_PROBE_TIMEOUT):
                return
            if attempt < attempts:
                self.sleep(self.config.restart_delay)

        raise RestartTimeout(
            f"Port {port} not accepting connections after {attempts} checks",
            context=f"Host: {host}",
        )

    def _compare(
        self, first: CertSnapshot, second: CertSnapshot, condition: StabilityCondition
    ) -> None:
        if not first.same_certificate(second):
            raise Drift(first.fingerprint, second.fingerprint, condition.value)
