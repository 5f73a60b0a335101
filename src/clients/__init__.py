"""
Client modules for external service communication
"""

from .generation import GenerationError, GenerationProvider, HTTPGenerationProvider
from .deployment import (
    DeploymentClient,
    DeploymentError,
    DeploymentPlatform,
    DeploymentState,
    DeploymentStatus,
)

__all__ = [
    "GenerationError",
    "GenerationProvider",
    "HTTPGenerationProvider",
    "DeploymentClient",
    "DeploymentError",
    "DeploymentPlatform",
    "DeploymentState",
    "DeploymentStatus",
]
