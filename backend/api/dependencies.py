"""
FastAPI dependency injection (Dependency Inversion Principle).

The agent and its configuration are built once in the application lifespan and
stored on ``app.state``; routes receive them through these providers, and tests
swap them with ``app.dependency_overrides``.
"""
from fastapi import Request

from config import AgentConfig
from services.agent import WeatherAgent


def get_weather_agent(request: Request) -> WeatherAgent:
    """Get the process-wide weather agent."""
    agent = getattr(request.app.state, "weather_agent", None)
    if agent is None:
        raise RuntimeError("Weather agent is not initialized")
    return agent


def get_agent_config(request: Request) -> AgentConfig:
    """Get the configuration resolved at startup."""
    config = getattr(request.app.state, "agent_config", None)
    if config is None:
        raise RuntimeError("Agent configuration is not initialized")
    return config
