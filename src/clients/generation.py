"""Generation Provider Client"""

import time
from typing import Any, Protocol

import httpx
import pybreaker
from returns.result import Failure

from core import GenerationRequest, JSONParseError, extract_json, get_logger, validate_generation_payload
from monitoring import metrics_collector

from .breaker import create_breaker

logger = get_logger(__name__)


class GenerationError(Exception):
    """The provider could not produce a usable payload."""


class GenerationProvider(Protocol):
    """Turns a prompt into ``{components, layout, componentDetails}``."""

    def generate(self, request: GenerationRequest) -> dict[str, Any]: ...


class HTTPGenerationProvider:
    """
    Generation provider reached over HTTP, with circuit breaker protection.

    The reply body is parsed tolerantly: markdown fences, surrounding prose
    and minor JSON damage are accepted.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 60.0,
        provider: str | None = None,
        model: str | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        """
        Args:
            url: Generation endpoint
            timeout: Request timeout in seconds
            provider: Optional upstream provider name forwarded in ``config``
            model: Optional model name forwarded in ``config``
            client: Preconfigured httpx client (tests)
        """
        self.url = url
        self.timeout = timeout
        self.provider = provider
        self.model = model
        self._client = client or httpx.Client(timeout=timeout)
        self._breaker = create_breaker("generation-http")

        logger.info("client_init", url=self.url)

    def _body(self, request: GenerationRequest) -> dict[str, Any]:
        config = {k: v for k, v in {"provider": self.provider, "model": self.model}.items() if v}
        return {"aiRequest": request.model_dump(mode="json"), "config": config}

    def generate(self, request: GenerationRequest) -> dict[str, Any]:
        """
        Request a component tree for ``request``.

        Raises:
            GenerationError: On transport failure, open breaker or unusable reply
        """
        start = time.time()
        try:
            response = self._breaker.call(self._client.post, self.url, json=self._body(request))
            response.raise_for_status()
            payload = extract_json(response.text)
        except pybreaker.CircuitBreakerError as e:
            self._record("unavailable", start)
            logger.error("generate_failed", error="Circuit breaker open - provider unavailable")
            raise GenerationError("Generation provider unavailable") from e
        except httpx.HTTPError as e:
            self._record("http_error", start)
            logger.warning("http_error", error=str(e))
            raise GenerationError(f"Generation request failed: {e}") from e
        except JSONParseError as e:
            self._record("invalid_reply", start)
            logger.warning("invalid_reply", error=str(e))
            raise GenerationError(f"Provider reply is not JSON: {e}") from e

        # Some providers wrap the tree in an envelope
        for key in ("result", "data"):
            if "layout" not in payload and isinstance(payload.get(key), dict):
                payload = payload[key]

        validated = validate_generation_payload(payload)
        if isinstance(validated, Failure):
            self._record("invalid_reply", start)
            raise GenerationError(f"Provider reply rejected: {validated.failure().message}")

        result = validated.unwrap()
        self._record("success", start)
        logger.info("generated", prompt=request.prompt[:50], nodes=len(result.get("componentDetails", {})))
        return result

    def _record(self, status: str, start: float) -> None:
        metrics_collector.record_generation(status, time.time() - start)

    def close(self) -> None:
        """Close HTTP client"""
        self._client.close()

    def __enter__(self) -> "HTTPGenerationProvider":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


__all__ = ["GenerationError", "GenerationProvider", "HTTPGenerationProvider"]
