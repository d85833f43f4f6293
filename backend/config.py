"""
Weather agent configuration dataclasses.

Resolved once at startup and injected into the provider client and the agent:
- Provider (base URL, API key, model, timeout, retries)
- Agent behaviour (tool choice mode, instruction role)
- Server (host, port, log level)

APP_ENV switches between a local OpenAI-compatible server (development) and
the OpenAI API (production).
"""

from dataclasses import dataclass, field
from typing import Optional
import logging
import os

logger = logging.getLogger(__name__)

DEVELOPMENT = "development"
PRODUCTION = "production"

TOOL_CHOICE_MODES = ("required", "auto")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Ignoring invalid value for {name}: {value!r}")
        return default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring invalid value for {name}: {value!r}")
        return default


def _is_log_level(name: str) -> bool:
    return isinstance(logging.getLevelName(name), int)


def _env_log_level(default: str = "INFO") -> str:
    value = os.getenv("LOG_LEVEL")
    if value is None:
        return default
    if not _is_log_level(value.upper()):
        logger.warning(f"Ignoring invalid value for LOG_LEVEL: {value!r}")
        return default
    return value.upper()


@dataclass
class ProviderConfig:
    """Configuration for the chat completion provider."""

    model: str = "gpt-5"
    api_key: Optional[str] = None
    base_url: Optional[str] = None  # None = OpenAI API
    timeout_seconds: float = 30.0  # Per provider call
    max_retries: int = 1  # Retries after the first attempt
    retry_backoff_seconds: float = 0.5  # Doubled on every retry

    def __post_init__(self):
        """Validate configuration."""
        if not self.model:
            raise ValueError("model must be set")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if self.max_retries < 0:
            raise ValueError("max_retries must not be negative")
        if self.retry_backoff_seconds < 0:
            raise ValueError("retry_backoff_seconds must not be negative")


@dataclass
class AgentConfig:
    """Aggregated weather agent configuration."""

    provider: ProviderConfig = field(default_factory=ProviderConfig)
    environment: str = PRODUCTION
    tool_choice: str = "required"  # "auto" lets the model answer without a tool
    instruction_role: str = "developer"  # Some local servers only accept "system"
    disconnect_poll_interval: float = 0.25  # Seconds between client disconnect checks
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000

    def __post_init__(self):
        """Validate configuration."""
        if self.environment not in (DEVELOPMENT, PRODUCTION):
            raise ValueError(f"environment must be '{DEVELOPMENT}' or '{PRODUCTION}'")
        if self.tool_choice not in TOOL_CHOICE_MODES:
            raise ValueError(f"tool_choice must be one of {', '.join(TOOL_CHOICE_MODES)}")
        if self.instruction_role not in ("developer", "system"):
            raise ValueError("instruction_role must be 'developer' or 'system'")
        if self.disconnect_poll_interval <= 0:
            raise ValueError("disconnect_poll_interval must be positive")
        if not _is_log_level(self.log_level):
            raise ValueError(f"log_level must be a logging level name, got {self.log_level!r}")

    @property
    def is_development(self) -> bool:
        return self.environment == DEVELOPMENT

    def require_api_key(self) -> None:
        """Fail startup when production has no API key."""
        if not self.is_development and not self.provider.api_key:
            raise RuntimeError("OPENAI_API_KEY must be set")

    @classmethod
    def from_env(cls) -> "AgentConfig":
        """Create configuration from environment variables."""
        environment = os.getenv("APP_ENV", PRODUCTION).lower()

        if environment == DEVELOPMENT:
            base_url = os.getenv("LOCAL_BASE_URL", "http://localhost:1234/v1")
            api_key = os.getenv("LOCAL_API_KEY", "lm-studio")
            model = os.getenv("LOCAL_MODEL_ID", "")
        else:
            base_url = os.getenv("OPENAI_BASE_URL") or None
            api_key = os.getenv("OPENAI_API_KEY")
            model = os.getenv("OPENAI_MODEL_ID", "gpt-5")

        provider = ProviderConfig(
            model=model,
            api_key=api_key,
            base_url=base_url,
            timeout_seconds=_env_float("PROVIDER_TIMEOUT_SECONDS", 30.0),
            max_retries=_env_int("PROVIDER_MAX_RETRIES", 1),
            retry_backoff_seconds=_env_float("PROVIDER_RETRY_BACKOFF_SECONDS", 0.5)
        )

        return cls(
            provider=provider,
            environment=environment,
            tool_choice=os.getenv("AGENT_TOOL_CHOICE", "required").lower(),
            instruction_role=os.getenv("AGENT_INSTRUCTION_ROLE", "developer").lower(),
            disconnect_poll_interval=_env_float("DISCONNECT_POLL_INTERVAL", 0.25),
            log_level=_env_log_level(),
            host=os.getenv("HOST", "0.0.0.0"),
            port=_env_int("PORT", 3000)
        )
