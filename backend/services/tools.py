"""
Service layer - Weather agent tools using LangChain StructuredTool format.
Following SOLID: Single Responsibility - each executor has one clear purpose,
the registry only declares and dispatches.
"""
from typing import Dict, Any, List, Optional, Sequence
import copy
import json
import logging
import random

from langchain_core.tools import BaseTool, StructuredTool
from langchain_core.utils.function_calling import convert_to_openai_tool
from pydantic import BaseModel, ValidationError

from domain.exceptions import (
    InvalidToolArgumentsError, ToolExecutionError, ToolRegistryError, UnknownToolError
)
from domain.models import (
    GetWeatherArgs, ReturnErrorArgs, ToolCall, ToolCallRequest,
    Weather, WeatherResponse, WEATHER_CONDITIONS, MIN_TEMPERATURE, MAX_TEMPERATURE
)

logger = logging.getLogger(__name__)

GET_WEATHER = "get_weather"
RETURN_ERROR = "return_error"

DEFAULT_REFUSAL = "Sorry, I can only answer weather questions."


# ============================================================================
# Local tool executors
# ============================================================================

def get_weather(city: str, rng: Optional[random.Random] = None) -> Weather:
    """Mock weather lookup: the city is ignored, temperature and condition are random."""
    source = rng or random
    logger.info(f"Function get_weather called with: {city}")
    weather = Weather(
        temperature=source.randint(MIN_TEMPERATURE, MAX_TEMPERATURE),
        condition=source.choice(WEATHER_CONDITIONS)
    )
    logger.info(f"Function get_weather returning: {weather.model_dump()}")
    return weather


def return_error(message: str) -> WeatherResponse:
    """Wrap a refusal message into the failure envelope."""
    return WeatherResponse.failure(message if message.strip() else DEFAULT_REFUSAL)


def serialize_tool_result(result: Any) -> str:
    """JSON-encode a tool result for the tool message."""
    if isinstance(result, BaseModel):
        return result.model_dump_json(by_alias=True)
    return json.dumps(result)


# ============================================================================
# Tool registry
# ============================================================================

class ToolRegistry:
    """
    Name -> tool dispatch table advertised to the model.

    Every declaration sent to the model is generated from a registered tool, so
    each advertised name has exactly one handler. The table is checked once on
    construction.
    """

    def __init__(self, tools: Sequence[BaseTool]):
        self._tools: Dict[str, BaseTool] = {}

        for tool in tools:
            if tool.name in self._tools:
                raise ToolRegistryError(f"Duplicate tool name: {tool.name}")
            if tool.args_schema is None:
                raise ToolRegistryError(f"Tool {tool.name} has no argument schema")
            if getattr(tool, "coroutine", None) is None:
                raise ToolRegistryError(f"Tool {tool.name} has no async handler")
            self._tools[tool.name] = tool

        if not self._tools:
            raise ToolRegistryError("At least one tool must be registered")

        self._definitions = [convert_to_openai_tool(tool, strict=True) for tool in self._tools.values()]

        declared = [definition["function"]["name"] for definition in self._definitions]
        if sorted(declared) != sorted(self._tools):
            raise ToolRegistryError(f"Tool declarations {declared} do not match handlers {list(self._tools)}")

        logger.info(f"Tool registry initialized with: {', '.join(declared)}")

    def names(self) -> List[str]:
        return list(self._tools)

    def definitions(self) -> List[Dict[str, Any]]:
        """Tool declarations in the chat-completions ``tools`` format."""
        return copy.deepcopy(self._definitions)

    async def dispatch(self, tool_call: ToolCallRequest) -> ToolCall:
        """
        Execute the local function named by ``tool_call``.

        Raises:
            UnknownToolError: no tool with that name is registered
            InvalidToolArgumentsError: arguments are not a JSON object matching the tool schema
            ToolExecutionError: the executor itself failed
        """
        tool = self._tools.get(tool_call.name)
        if tool is None:
            raise UnknownToolError(tool_call.name)

        try:
            arguments = json.loads(tool_call.arguments or "{}")
        except json.JSONDecodeError as e:
            raise InvalidToolArgumentsError(tool_call.name, f"not valid JSON ({e.msg})") from e

        if not isinstance(arguments, dict):
            raise InvalidToolArgumentsError(tool_call.name, "arguments must be a JSON object")

        logger.info(f"Function {tool_call.name} will be called with: {json.dumps(arguments)}")

        try:
            result = await tool.ainvoke(arguments)
        except ValidationError as e:
            raise InvalidToolArgumentsError(
                tool_call.name,
                "arguments do not match the tool schema",
                details={"errors": e.errors(include_url=False)}
            ) from e
        except Exception as e:
            logger.error(f"Tool {tool_call.name} error: {e}", exc_info=True)
            raise ToolExecutionError(tool_call.name, str(e)) from e

        return ToolCall(tool_name=tool_call.name, arguments=arguments, result=result)


def build_tool_registry(rng: Optional[random.Random] = None) -> ToolRegistry:
    """Create the registry with the get_weather and return_error tools."""

    async def _get_weather(city: str) -> Weather:
        return get_weather(city, rng=rng)

    async def _return_error(message: str) -> WeatherResponse:
        return return_error(message)

    return ToolRegistry([
        StructuredTool.from_function(
            coroutine=_get_weather,
            name=GET_WEATHER,
            description="Get current temperature for a given location.",
            args_schema=GetWeatherArgs
        ),
        StructuredTool.from_function(
            coroutine=_return_error,
            name=RETURN_ERROR,
            description="Return an error when the user asks something that is NOT about the weather.",
            args_schema=ReturnErrorArgs
        ),
    ])
