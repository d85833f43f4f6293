"""
Domain interfaces - Abstractions for the LLM provider.
Following SOLID: Dependency Inversion Principle - the agent depends on this abstraction,
not on a concrete SDK client.
"""
from abc import ABC, abstractmethod
from typing import List, Dict, Any, Type, TypeVar

from pydantic import BaseModel

from domain.models import AssistantReply

ModelT = TypeVar("ModelT", bound=BaseModel)


class IChatProvider(ABC):
    """Interface for a chat completion provider with tool and structured-output support."""

    @abstractmethod
    async def request_tool_call(
        self,
        messages: List[Dict[str, Any]],
        tools: List[Dict[str, Any]],
        tool_choice: str
    ) -> AssistantReply:
        """
        Send the conversation with tool definitions and return the assistant reply.

        Raises:
            EmptyReplyError: the provider returned no message
            ProviderError: the provider could not be reached
        """
        pass

    @abstractmethod
    async def request_structured(
        self,
        messages: List[Dict[str, Any]],
        response_model: Type[ModelT],
        schema_name: str
    ) -> ModelT:
        """
        Send the conversation constrained to the JSON schema of ``response_model``.

        Raises:
            EmptyReplyError: the provider returned no message
            ProviderError: the provider could not be reached
            ResponseParseError: the reply does not validate against ``response_model``
        """
        pass

    async def close(self) -> None:
        """Release network resources."""
        return None
