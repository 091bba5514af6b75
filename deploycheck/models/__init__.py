"""
DeployCheck Domain Models

Clean dataclass-based models for type-safe data handling.
"""

from .results import (
    ExecutionResult,
    SSHResult,
    ProbeResponse,
    StageStatus,
    StageResult,
)
from .run import (
    Mode,
    Stage,
    StabilityCondition,
    RunConfig,
    BuildArtifact,
    CertSnapshot,
    PipelineRun,
)
from .ssh import SSHConfig

__all__ = [
    # Results
    "ExecutionResult",
    "SSHResult",
    "ProbeResponse",
    "StageStatus",
    "StageResult",
    # Run
    "Mode",
    "Stage",
    "StabilityCondition",
    "RunConfig",
    "BuildArtifact",
    "CertSnapshot",
    "PipelineRun",
    # SSH
    "SSHConfig",
]
