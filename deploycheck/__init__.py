"""DeployCheck - build, deploy and verify a TLS server on one host."""

__version__ = "1.0.0"
