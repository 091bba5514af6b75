"""
DeployCheck Core

The verification pipeline.
"""

from .pipeline import HealthCheckPipeline, StageSpec

__all__ = [
    "HealthCheckPipeline",
    "StageSpec",
]
