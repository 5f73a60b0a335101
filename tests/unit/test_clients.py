"""Tests for the generation and deployment clients."""

from unittest.mock import patch

import httpx
import pybreaker
import pytest
import respx

from clients import (
    DeploymentClient,
    DeploymentError,
    DeploymentState,
    GenerationError,
    HTTPGenerationProvider,
)
from core import GenerationRequest, dumps, loads

GENERATE_URL = "http://provider.test/api/generate"
DEPLOY_URL = "http://deploy.test/api/deploy"

PAYLOAD = {
    "layout": {"root": {"children": ["title"]}},
    "componentDetails": {"title": {"type": "text", "content": "Hi"}},
}

STATUS = {"id": "dep_1", "status": "building", "progress": 40, "createdAt": "2026-01-01T00:00:00Z"}


@pytest.fixture
def request_():
    return GenerationRequest(prompt="A landing page")


@pytest.mark.unit
class TestGenerationProvider:
    @respx.mock
    def test_generate(self, request_):
        route = respx.post(GENERATE_URL).mock(return_value=httpx.Response(200, json=PAYLOAD))

        provider = HTTPGenerationProvider(GENERATE_URL, model="small")
        result = provider.generate(request_)

        assert result == PAYLOAD
        body = loads(route.calls.last.request.content)
        assert body["aiRequest"]["prompt"] == "A landing page"
        assert body["config"] == {"model": "small"}

    @respx.mock
    def test_fenced_reply_with_prose(self, request_):
        text = "Here you go:\n```json\n" + dumps(PAYLOAD) + "\n```\nEnjoy!"
        respx.post(GENERATE_URL).mock(return_value=httpx.Response(200, text=text))

        assert HTTPGenerationProvider(GENERATE_URL).generate(request_) == PAYLOAD

    @respx.mock
    def test_enveloped_reply(self, request_):
        respx.post(GENERATE_URL).mock(return_value=httpx.Response(200, json={"result": PAYLOAD}))

        assert HTTPGenerationProvider(GENERATE_URL).generate(request_) == PAYLOAD

    @respx.mock
    def test_reply_missing_layout(self, request_):
        respx.post(GENERATE_URL).mock(return_value=httpx.Response(200, json={"componentDetails": {}}))

        with pytest.raises(GenerationError, match="layout"):
            HTTPGenerationProvider(GENERATE_URL).generate(request_)

    @respx.mock
    def test_reply_not_json(self, request_):
        respx.post(GENERATE_URL).mock(return_value=httpx.Response(200, text="I cannot help with that"))

        with pytest.raises(GenerationError, match="not JSON"):
            HTTPGenerationProvider(GENERATE_URL).generate(request_)

    @respx.mock
    def test_http_error_status(self, request_):
        respx.post(GENERATE_URL).mock(return_value=httpx.Response(500))

        with pytest.raises(GenerationError, match="request failed"):
            HTTPGenerationProvider(GENERATE_URL).generate(request_)

    @respx.mock
    def test_breaker_opens_after_repeated_failures(self, request_):
        route = respx.post(GENERATE_URL).mock(side_effect=httpx.ConnectError("refused"))
        provider = HTTPGenerationProvider(GENERATE_URL)

        for _ in range(5):
            with pytest.raises(GenerationError):
                provider.generate(request_)

        assert provider._breaker.current_state == pybreaker.STATE_OPEN
        with pytest.raises(GenerationError, match="unavailable"):
            provider.generate(request_)
        assert route.call_count == 5

    def test_breaker_listener_logs_state_change(self):
        provider = HTTPGenerationProvider(GENERATE_URL)
        listener = provider._breaker.listeners[0]

        with patch("clients.breaker.logger") as mock_logger:
            listener.state_change(provider._breaker, "closed", "open")

        mock_logger.warning.assert_called_once()
        assert mock_logger.warning.call_args[0][0] == "breaker_state_change"
        assert mock_logger.warning.call_args[1]["breaker"] == "generation-http"

    def test_context_manager_closes(self):
        with HTTPGenerationProvider(GENERATE_URL) as provider:
            pass
        assert provider._client.is_closed


@pytest.mark.unit
class TestDeploymentClient:
    @respx.mock
    def test_deploy(self):
        route = respx.post(DEPLOY_URL).mock(
            return_value=httpx.Response(200, json={"success": True, "deployment": STATUS})
        )

        status = DeploymentClient(DEPLOY_URL).deploy("vercel", {"projectName": "demo"})

        assert status.id == "dep_1"
        assert status.status is DeploymentState.BUILDING
        assert not status.finished
        assert loads(route.calls.last.request.content) == {"platform": "vercel", "config": {"projectName": "demo"}}

    @respx.mock
    def test_get_status(self):
        done = {**STATUS, "status": "success", "url": "https://demo.example", "completedAt": "2026-01-01T00:01:00Z"}
        respx.get(DEPLOY_URL, params={"platform": "netlify", "deploymentId": "dep_1"}).mock(
            return_value=httpx.Response(200, json={"status": done})
        )

        status = DeploymentClient(DEPLOY_URL).get_status("netlify", "dep_1")

        assert status.finished
        assert status.url == "https://demo.example"

    @respx.mock
    def test_cancel(self):
        respx.delete(DEPLOY_URL).mock(return_value=httpx.Response(200, json={"success": True}))

        assert DeploymentClient(DEPLOY_URL).cancel("github-pages", "dep_1") is True

    @respx.mock
    def test_service_error_detail(self):
        respx.post(DEPLOY_URL).mock(return_value=httpx.Response(400, json={"error": "Missing token"}))

        with pytest.raises(DeploymentError, match="Missing token"):
            DeploymentClient(DEPLOY_URL).deploy("vercel", {})

    @respx.mock
    def test_malformed_status(self):
        respx.post(DEPLOY_URL).mock(return_value=httpx.Response(200, json={"deployment": {"id": "x"}}))

        with pytest.raises(DeploymentError, match="Malformed"):
            DeploymentClient(DEPLOY_URL).deploy("vercel", {})

    @respx.mock
    def test_transport_error(self):
        respx.post(DEPLOY_URL).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(DeploymentError, match="request failed"):
            DeploymentClient(DEPLOY_URL).deploy("vercel", {})

    def test_unknown_platform(self):
        with pytest.raises(ValueError):
            DeploymentClient(DEPLOY_URL).deploy("heroku", {})
