"""
DeployCheck Services Layer

Build, transport, probe and verification services used by the pipeline.
"""

from .ssh_service import SSHService
from .config_service import ConfigService
from .build_service import BuildService
from .remote_service import RemoteService
from .port_detector import PortDetector, PortCandidate
from .cert_stability import CertStabilityChecker
from .diagnostics import DiagnosticReporter

__all__ = [
    "SSHService",
    "ConfigService",
    "BuildService",
    "RemoteService",
    "PortDetector",
    "PortCandidate",
    "CertStabilityChecker",
    "DiagnosticReporter",
]
