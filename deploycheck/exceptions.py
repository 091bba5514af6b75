"""
DeployCheck Exception Hierarchy

Clean exception hierarchy for consistent error handling across the pipeline.
"""

from typing import Optional


class DeployCheckError(Exception):
    """Base exception for all DeployCheck errors."""

    def __init__(self, message: str, context: Optional[str] = None):
        self.message = message
        self.context = context
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format error message with optional context."""
        if self.context:
            return f"{self.message}\nContext: {self.context}"
        return self.message


class ConfigurationError(DeployCheckError):
    """Raised when configuration is invalid or missing."""

    pass


class SSHError(DeployCheckError):
    """Raised when SSH operations fail."""

    pass


class BuildFailure(DeployCheckError):
    """Raised when the build tool exits non-zero."""

    pass


class DeploymentError(DeployCheckError):
    """Raised when the artifact cannot be shipped or launched."""

    pass


class ProbeError(DeployCheckError):
    """Base for network probe failures."""

    def __init__(
        self, message: str, context: Optional[str] = None, transcript: str = ""
    ):
        self.transcript = transcript
        super().__init__(message, context)


class Unreachable(ProbeError):
    """Raised when a connection or handshake cannot be completed."""

    pass


class ProbeTimeout(ProbeError):
    """Raised when a probe exceeds its timeout."""

    pass


class NoCertificate(ProbeError):
    """Raised when a TLS peer presents no certificate."""

    pass


class NoListener(DeployCheckError):
    """Raised when none of the expected HTTPS ports is listening."""

    def __init__(self, host: str, ports: list[int]):
        self.host = host
        self.ports = ports
        message = f"No HTTPS listener on {host}"
        context = f"Tried ports: {', '.join(str(p) for p in ports)}"
        super().__init__(message, context)


class ProtocolFailure(DeployCheckError):
    """Raised when both the primary and fallback HTTPS attempts fail."""

    def __init__(self, message: str, raw_output: str = ""):
        self.raw_output = raw_output
        super().__init__(message)


class Drift(DeployCheckError):
    """Raised when a certificate fingerprint changes between two probes."""

    def __init__(self, first: str, second: str, condition: str):
        self.first = first
        self.second = second
        self.condition = condition
        message = f"Certificate changed ({condition})"
        context = f"First cert:  {first}\nSecond cert: {second}"
        super().__init__(message, context)


class ContentInvalid(DeployCheckError):
    """Raised when the fetched document is empty or not HTML."""

    def __init__(self, message: str, preview: str = ""):
        self.preview = preview
        super().__init__(message)


class RestartTimeout(DeployCheckError):
    """Raised when the service does not come back within the polling bound."""

    pass


class TeardownError(DeployCheckError):
    """Raised when the service is still running after a quit-after teardown."""

    pass
