"""
Infrastructure layer - OpenAI-compatible chat completion client.
Following SOLID: Single Responsibility - this module only talks to the provider,
the agent decides what to do with the replies.

Features:
- One AsyncOpenAI client per process
- Bounded timeout per call
- Exponential backoff retry for transient failures and empty replies
"""
import asyncio
import logging
from typing import List, Dict, Any, Type

import openai
from openai import AsyncOpenAI
from pydantic import ValidationError

from config import ProviderConfig
from domain.exceptions import EmptyReplyError, ProviderError, ResponseParseError
from domain.interfaces import IChatProvider, ModelT
from domain.models import AssistantReply, ToolCallRequest

logger = logging.getLogger(__name__)

# Transient failures worth another attempt
RETRYABLE_ERRORS = (
    openai.APIConnectionError,  # includes APITimeoutError
    openai.RateLimitError,
    openai.InternalServerError,
    EmptyReplyError,
)


def create_openai_client(config: ProviderConfig) -> AsyncOpenAI:
    """Create the process-wide AsyncOpenAI client. Retries are handled by OpenAIChatProvider."""
    return AsyncOpenAI(
        base_url=config.base_url,
        api_key=config.api_key,
        timeout=config.timeout_seconds,
        max_retries=0
    )


def structured_output_format(response_model: Type[ModelT], schema_name: str) -> Dict[str, Any]:
    """Build a strict ``json_schema`` response format from a pydantic model."""
    return {
        "type": "json_schema",
        "json_schema": {
            "name": schema_name,
            "strict": True,
            "schema": response_model.model_json_schema(by_alias=True)
        }
    }


class OpenAIChatProvider(IChatProvider):
    """Chat completion provider backed by the OpenAI SDK (OpenAI or any compatible local server)."""

    def __init__(self, client: AsyncOpenAI, config: ProviderConfig):
        self.client = client
        self.config = config
        self.model = config.model

        logger.info(f"Initialized chat provider with model: {self.model}")

    async def request_tool_call(
        self,
        messages: List[Dict[str, Any]],
        tools: List[Dict[str, Any]],
        tool_choice: str
    ) -> AssistantReply:
        """Phase 1: let the model pick a tool."""
        completion = await self._create_completion(
            "tool selection",
            model=self.model,
            messages=messages,
            tools=tools,
            tool_choice=tool_choice,
            parallel_tool_calls=False
        )
        logger.info(f"First call to determine function calling used model: {completion.model}")

        message = completion.choices[0].message
        tool_calls = []
        for call in message.tool_calls or []:
            function = getattr(call, "function", None)
            if call.type != "function" or function is None:
                logger.warning(f"Ignoring non-function tool call of type {call.type}")
                continue
            tool_calls.append(ToolCallRequest(
                call_id=call.id,
                name=function.name,
                arguments=function.arguments or "{}"
            ))

        return AssistantReply(content=message.content, tool_calls=tool_calls, model=completion.model)

    async def request_structured(
        self,
        messages: List[Dict[str, Any]],
        response_model: Type[ModelT],
        schema_name: str
    ) -> ModelT:
        """Phase 2: ask for output that matches ``response_model``."""
        completion = await self._create_completion(
            "finalization",
            model=self.model,
            messages=messages,
            response_format=structured_output_format(response_model, schema_name)
        )
        logger.info(f"Second call to put final response together used model: {completion.model}")

        message = completion.choices[0].message
        refusal = getattr(message, "refusal", None)
        if refusal:
            raise ResponseParseError(f"Model refused to answer: {refusal}")
        if not message.content:
            raise ResponseParseError("Model returned no content for the structured answer")

        try:
            return response_model.model_validate_json(message.content)
        except ValidationError as e:
            raise ResponseParseError(
                f"Structured answer does not match {schema_name}",
                details={"errors": e.errors(include_url=False)}
            ) from e

    async def close(self) -> None:
        await self.client.close()
        logger.info("Chat provider client closed")

    async def _create_completion(self, purpose: str, **params: Any):
        """
        Call chat.completions.create with at most ``max_retries`` retries.

        Implements exponential backoff for transient errors. Client errors
        (bad request, authentication) are not retried.
        """
        attempts = self.config.max_retries + 1

        for attempt in range(attempts):
            try:
                completion = await self.client.chat.completions.create(**params)
                if not completion.choices or completion.choices[0].message is None:
                    raise EmptyReplyError(f"Provider returned no message for {purpose}")
                return completion

            except RETRYABLE_ERRORS as e:
                if attempt == attempts - 1:
                    logger.error(f"Provider call for {purpose} failed after {attempts} attempt(s): {e}")
                    if isinstance(e, ProviderError):
                        raise
                    raise ProviderError(f"Provider call for {purpose} failed: {e}") from e

                wait_time = self.config.retry_backoff_seconds * (2 ** attempt)
                logger.warning(
                    f"Provider call for {purpose} failed ({type(e).__name__}), "
                    f"retrying in {wait_time:.2f}s (attempt {attempt + 1}/{attempts})"
                )
                await asyncio.sleep(wait_time)

            except openai.APIError as e:
                logger.error(f"Provider rejected {purpose} request: {e}")
                raise ProviderError(f"Provider rejected {purpose} request: {e}") from e

        raise ProviderError(f"Provider call for {purpose} failed")
