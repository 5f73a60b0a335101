"""Pytest configuration and fixtures."""

import os
from typing import Any

import pytest

from canvas import ComponentTreeStore, create_component
from core import get_settings
from core.config import Settings
from fakes import FakeContext
from sandbox import ExecutionChannel, MessageBus
from versions import MemoryKeyValueStore, VersionStore


# ============================================================================
# Pytest Hooks
# ============================================================================

def pytest_configure(config):
    """Configure pytest with environment variables."""
    os.environ["ARTIFACT_LOG_LEVEL"] = "DEBUG"
    os.environ["ARTIFACT_SANDBOX_TIMEOUT_MS"] = "5000"


# ============================================================================
# Core Fixtures
# ============================================================================

@pytest.fixture
def settings() -> Settings:
    """Test settings."""
    return get_settings()


@pytest.fixture
def storage() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def store() -> ComponentTreeStore:
    """Store with one root container holding a text node."""
    root = create_component("container", id="root", width=400, height=300)
    title = create_component("text", id="title", props={"text": "Hello"}, x=10, y=10)
    root.children.append(title)
    return ComponentTreeStore([root])


@pytest.fixture
def versions(storage) -> VersionStore:
    clock = iter(range(1_000, 1_000_000, 10))
    return VersionStore(storage, clock=lambda: next(clock))


@pytest.fixture
def bus() -> MessageBus:
    return MessageBus()


@pytest.fixture
async def context(bus) -> FakeContext:
    ctx = FakeContext(bus)
    await ctx.start()
    return ctx


@pytest.fixture
def channel(bus) -> ExecutionChannel:
    return ExecutionChannel(bus, timeout_ms=200)


# ============================================================================
# Data Fixtures
# ============================================================================

@pytest.fixture
def generation_payload() -> dict[str, Any]:
    """Provider reply describing a small form."""
    return {
        "components": [],
        "layout": {
            "root": {"children": ["heading", "form"]},
            "form": {"children": ["email", "submit"]},
        },
        "componentDetails": {
            "heading": {"type": "text", "props": {"text": "Sign up"}},
            "form": {"type": "container", "styles": {"display": "flex"}},
            "email": {"type": "input", "props": {"placeholder": "Email"}},
            "submit": {"type": "button", "props": {"text": "Join"}},
        },
    }
