import random

import pytest

from config import AgentConfig, ProviderConfig
from services.agent import WeatherAgent
from services.tools import build_tool_registry


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def registry(rng):
    return build_tool_registry(rng=rng)


@pytest.fixture
def provider_config():
    return ProviderConfig(model="test-model", api_key="sk-test", timeout_seconds=5.0, retry_backoff_seconds=0.0)


@pytest.fixture
def agent_config(provider_config):
    return AgentConfig(provider=provider_config, disconnect_poll_interval=0.01)


@pytest.fixture
def make_agent(registry, agent_config):
    """Build a WeatherAgent around a given provider."""
    def _make(provider, config=None):
        return WeatherAgent(provider=provider, registry=registry, config=config or agent_config)
    return _make
