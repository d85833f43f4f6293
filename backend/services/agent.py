"""
Service layer - LangGraph weather agent implementing the two-phase tool-calling flow.
Following SOLID:
- Single Responsibility - Agent handles orchestration, delegates tool execution to the registry.
- Dependency Inversion - Agent depends on the IChatProvider abstraction.

Graph structure: agent_decide → tool_execution → agent_finalize → END
Any node can end the run early with status ERROR.
"""
from typing import Any, Dict, List, Optional, Union
from typing_extensions import TypedDict
import json
import logging

from langgraph.graph import StateGraph, END

from config import AgentConfig
from domain.conversation import Conversation
from domain.exceptions import (
    WeatherAgentError, ModelProtocolViolationError, ProviderError
)
from domain.interfaces import IChatProvider
from domain.models import (
    AgentOutcome, AgentStatus, ToolCall, ToolCallRequest, Weather, WeatherResponse
)
from services.tools import ToolRegistry, GET_WEATHER, RETURN_ERROR, DEFAULT_REFUSAL, serialize_tool_result

logger = logging.getLogger(__name__)

RESPONSE_SCHEMA_NAME = "WeatherResponse"

WEATHER_INSTRUCTIONS = f"""You are a strict weather assistant.
• If the user asks for the weather in a city, CALL the "{GET_WEATHER}" tool with the city's name.
• Otherwise CALL the "{RETURN_ERROR}" tool with a short message like "{DEFAULT_REFUSAL}"
Respond ONLY by calling one of those two tools.
When writing the final answer, use the "remark" field for tips or insight based on the conditions and temperature."""


def _recorded_arguments(tool_call: ToolCallRequest) -> Union[Dict[str, Any], str]:
    """Arguments as the model sent them: a dict when they parse to a JSON object, else the raw text."""
    try:
        arguments = json.loads(tool_call.arguments or "{}")
    except json.JSONDecodeError:
        return tool_call.arguments
    return arguments if isinstance(arguments, dict) else tool_call.arguments


def _check_answer_matches_tool(response: WeatherResponse, tool_result: Any) -> None:
    """The final answer must report the weather the tool produced, and must not turn a refusal into weather."""
    if not response.success:
        return

    if isinstance(tool_result, Weather):
        reported = (response.weather_data.temperature, response.weather_data.condition)
        if reported != (tool_result.temperature, tool_result.condition):
            raise ModelProtocolViolationError(
                "Final answer does not match the get_weather result",
                details={"reported": reported, "tool_result": tool_result.model_dump()}
            )
    elif isinstance(tool_result, WeatherResponse):
        raise ModelProtocolViolationError("Final answer reports weather after return_error was called")


class WeatherAgentState(TypedDict, total=False):
    """State object for one weather conversation."""
    conversation: Conversation
    status: AgentStatus
    tool_call: Optional[ToolCallRequest]
    tools_called: List[ToolCall]
    response: Optional[WeatherResponse]
    failure: Optional[WeatherAgentError]


class WeatherAgent:
    """
    LangGraph-based weather agent:
    Prompt → Tool decision (model call #1) → Local tool → Final answer (model call #2)

    The agent holds no per-request data; one instance serves concurrent requests.
    """

    def __init__(self, provider: IChatProvider, registry: ToolRegistry, config: AgentConfig):
        self.provider = provider
        self.registry = registry
        self.config = config

        # Build LangGraph workflow
        self.workflow = self._build_graph()

    def _build_graph(self):
        """
        Build the LangGraph workflow graph.

        Nodes:
        - agent_decide: model call with tool definitions
        - tool_execution: run the local function the model picked
        - agent_finalize: model call constrained to the WeatherResponse schema
        """
        workflow = StateGraph(WeatherAgentState)

        workflow.add_node("agent_decide", self._agent_decide_node)
        workflow.add_node("tool_execution", self._tool_execution_node)
        workflow.add_node("agent_finalize", self._agent_finalize_node)

        workflow.set_entry_point("agent_decide")

        workflow.add_conditional_edges(
            "agent_decide",
            self._route_on_status,
            {"continue": "tool_execution", "error": END}
        )
        workflow.add_conditional_edges(
            "tool_execution",
            self._route_on_status,
            {"continue": "agent_finalize", "error": END}
        )
        workflow.add_edge("agent_finalize", END)

        return workflow.compile()

    def _route_on_status(self, state: WeatherAgentState) -> str:
        return "error" if state.get("status") == AgentStatus.ERROR else "continue"

    def _fail(self, state: WeatherAgentState, error: WeatherAgentError) -> WeatherAgentState:
        """Move the run to ERROR and record why."""
        if isinstance(error, ModelProtocolViolationError):
            logger.warning(f"Model protocol violation: {error.message}")
        elif isinstance(error, ProviderError):
            logger.error(f"Provider failure: {error.message}")
        else:
            logger.error(f"Weather agent failure ({type(error).__name__}): {error.message}")

        state["status"] = AgentStatus.ERROR
        state["failure"] = error
        state["response"] = WeatherResponse.failure(error.public_message)
        return state

    async def _agent_decide_node(self, state: WeatherAgentState) -> WeatherAgentState:
        """Agent decide node: ask the model which tool to call."""
        conversation = state["conversation"]

        try:
            reply = await self.provider.request_tool_call(
                messages=conversation.messages,
                tools=self.registry.definitions(),
                tool_choice=self.config.tool_choice
            )

            if not reply.tool_calls:
                raise ModelProtocolViolationError(
                    "Model didn't return a valid function call",
                    details={"content": reply.content}
                )

            tool_call = reply.tool_calls[0]
            if len(reply.tool_calls) > 1:
                dropped = [call.name for call in reply.tool_calls[1:]]
                logger.warning(f"Model requested {len(reply.tool_calls)} tool calls, ignoring: {dropped}")

            conversation.append_assistant(reply, tool_call)

        except WeatherAgentError as e:
            return self._fail(state, e)

        state["tool_call"] = tool_call
        state["status"] = AgentStatus.TOOL_DISPATCHED
        return state

    async def _tool_execution_node(self, state: WeatherAgentState) -> WeatherAgentState:
        """Tool execution node: run the selected local function and feed the result back."""
        tool_call = state["tool_call"]
        logger.info(f"Executing tool: {tool_call.name}")

        try:
            record = await self.registry.dispatch(tool_call)
            state["conversation"].append_tool_result(tool_call.call_id, serialize_tool_result(record.result))
        except WeatherAgentError as e:
            state["tools_called"].append(
                ToolCall(tool_name=tool_call.name, arguments=_recorded_arguments(tool_call), error=e.message)
            )
            return self._fail(state, e)

        state["tools_called"].append(record)
        state["status"] = AgentStatus.AWAITING_FINAL_ANSWER
        logger.info(f"Tool {tool_call.name} completed")
        return state

    async def _agent_finalize_node(self, state: WeatherAgentState) -> WeatherAgentState:
        """Agent finalize node: compose the structured answer."""
        try:
            response = await self.provider.request_structured(
                messages=state["conversation"].messages,
                response_model=WeatherResponse,
                schema_name=RESPONSE_SCHEMA_NAME
            )
            _check_answer_matches_tool(response, state["tools_called"][-1].result)
        except WeatherAgentError as e:
            return self._fail(state, e)

        state["response"] = response
        state["status"] = AgentStatus.DONE
        logger.info("Agent finalized response")
        return state

    def _new_conversation(self, prompt: str) -> Conversation:
        return Conversation(
            instructions=WEATHER_INSTRUCTIONS,
            prompt=prompt,
            instruction_role=self.config.instruction_role
        )

    async def run(self, prompt: str) -> AgentOutcome:
        """
        Run the weather workflow for one prompt.

        Args:
            prompt: User's natural-language question (already validated)

        Returns:
            AgentOutcome with the final status and the response envelope
        """
        logger.info("Weather agent run started")

        initial_state: WeatherAgentState = {
            "conversation": self._new_conversation(prompt),
            "status": AgentStatus.AWAITING_TOOL_DECISION,
            "tool_call": None,
            "tools_called": [],
            "response": None,
            "failure": None
        }

        final_state = await self.workflow.ainvoke(initial_state)

        failure = final_state.get("failure")
        outcome = AgentOutcome(
            status=final_state["status"],
            response=final_state["response"],
            tools_called=final_state.get("tools_called", []),
            error_kind=type(failure).__name__ if failure else None
        )

        logger.info(f"Weather agent run completed with status {outcome.status.value}")
        return outcome
