"""Deployment Service Client"""

from datetime import datetime
from enum import Enum
from typing import Any

import httpx
import pybreaker
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from core import get_logger

from .breaker import create_breaker

logger = get_logger(__name__)


class DeploymentPlatform(str, Enum):
    VERCEL = "vercel"
    NETLIFY = "netlify"
    GITHUB_PAGES = "github-pages"


class DeploymentState(str, Enum):
    PENDING = "pending"
    BUILDING = "building"
    DEPLOYING = "deploying"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = {DeploymentState.SUCCESS, DeploymentState.FAILED, DeploymentState.CANCELLED}


class DeploymentStatus(BaseModel):
    """Status object reported by the deployment service."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    status: DeploymentState
    url: str | None = None
    log_url: str | None = Field(default=None, alias="logUrl")
    progress: float | None = Field(default=None, ge=0, le=100)
    error: str | None = None
    created_at: datetime = Field(alias="createdAt")
    completed_at: datetime | None = Field(default=None, alias="completedAt")

    @property
    def finished(self) -> bool:
        return self.status in TERMINAL_STATES


class DeploymentError(Exception):
    """The deployment service refused or could not be reached."""


class DeploymentClient:
    """
    Client for the deployment collaborator with circuit breaker protection.
    """

    def __init__(self, url: str, timeout: float = 30.0, client: httpx.Client | None = None) -> None:
        self.url = url.rstrip("/")
        self.timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)
        self._breaker = create_breaker("deployment-http")

        logger.info("client_init", url=self.url)

    def _request(self, method: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self._breaker.call(self._client.request, method, self.url, **kwargs)
            data = response.json()
        except pybreaker.CircuitBreakerError as e:
            logger.error("deployment_failed", error="Circuit breaker open - deployment service unavailable")
            raise DeploymentError("Deployment service unavailable") from e
        except httpx.HTTPError as e:
            logger.warning("http_error", error=str(e))
            raise DeploymentError(f"Deployment request failed: {e}") from e
        except ValueError as e:
            raise DeploymentError(f"Deployment service returned invalid JSON: {e}") from e

        if response.is_error or not isinstance(data, dict):
            detail = data.get("error") if isinstance(data, dict) else None
            raise DeploymentError(detail or f"Deployment service returned {response.status_code}")
        return data

    @staticmethod
    def _status(raw: Any) -> DeploymentStatus:
        try:
            return DeploymentStatus.model_validate(raw)
        except ValidationError as e:
            raise DeploymentError(f"Malformed deployment status: {e.error_count()} errors") from e

    def deploy(self, platform: DeploymentPlatform | str, config: dict[str, Any]) -> DeploymentStatus:
        """
        Trigger a deployment.

        Raises:
            DeploymentError: On transport failure or a rejected request
            ValueError: If ``platform`` is unknown
        """
        platform = DeploymentPlatform(platform)
        data = self._request("POST", json={"platform": platform.value, "config": config})
        status = self._status(data.get("deployment"))
        logger.info("deployment_started", platform=platform.value, id=status.id, status=status.status.value)
        return status

    def get_status(self, platform: DeploymentPlatform | str, deployment_id: str) -> DeploymentStatus:
        platform = DeploymentPlatform(platform)
        data = self._request("GET", params={"platform": platform.value, "deploymentId": deployment_id})
        return self._status(data.get("status"))

    def cancel(self, platform: DeploymentPlatform | str, deployment_id: str) -> bool:
        platform = DeploymentPlatform(platform)
        data = self._request("DELETE", params={"platform": platform.value, "deploymentId": deployment_id})
        success = bool(data.get("success", False))
        logger.info("deployment_cancel", platform=platform.value, id=deployment_id, success=success)
        return success

    def close(self) -> None:
        """Close HTTP client"""
        self._client.close()

    def __enter__(self) -> "DeploymentClient":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


__all__ = [
    "DeploymentClient",
    "DeploymentError",
    "DeploymentPlatform",
    "DeploymentState",
    "DeploymentStatus",
]
