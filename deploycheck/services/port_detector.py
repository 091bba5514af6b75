"""HTTPS port and privilege-mode detection."""

from dataclasses import dataclass
from typing import Optional, Sequence

from deploycheck.constants import (
    PORT_PROBE_TIMEOUT,
    PRIVILEGED_HTTPS_PORT,
    UNPRIVILEGED_HTTPS_PORT,
)
from deploycheck.exceptions import NoListener
from deploycheck.models.run import Mode
from deploycheck.services import probes as network_probes


@dataclass(frozen=True)
class PortCandidate:
    """A port the service may listen on and the mode it implies."""

    port: int
    mode: Mode


DEFAULT_CANDIDATES = (
    PortCandidate(PRIVILEGED_HTTPS_PORT, Mode.PRIVILEGED),
    PortCandidate(UNPRIVILEGED_HTTPS_PORT, Mode.UNPRIVILEGED),
)


def port_for_mode(mode: Mode, candidates: Sequence[PortCandidate] = DEFAULT_CANDIDATES) -> int:
    for candidate in candidates:
        if candidate.mode is mode:
            return candidate.port
    raise ValueError(f"No port candidate for mode {mode.value}")


class PortDetector:
    """
    Detects which HTTPS port the service bound.

    Candidates are tried in order and the first reachable one wins.
    """

    def __init__(
        self,
        probes=network_probes,
        candidates: Sequence[PortCandidate] = DEFAULT_CANDIDATES,
        timeout: float = PORT_PROBE_TIMEOUT,
    ):
        self.probes = probes
        self.candidates = tuple(candidates)
        self.timeout = timeout

    def find(self, host: str) -> Optional[PortCandidate]:
        for candidate in self.candidates:
            if self.probes.tcp_reachable(host, candidate.port, self.timeout):
                return candidate
        return None

    def detect_https_port(self, host: str) -> tuple[int, Mode]:
        """
        Return the (port, mode) of the first reachable candidate.

        Raises:
            NoListener: If no candidate port accepts connections
        """
        candidate = self.find(host)
        if candidate is None:
            raise NoListener(host, [c.port for c in self.candidates])
        return candidate.port, candidate.mode
