import pytest

from domain.conversation import Conversation
from domain.exceptions import ConversationError
from domain.models import AssistantReply, ToolCallRequest


def _conversation(role: str = "developer") -> Conversation:
    return Conversation(instructions="Only weather.", prompt="Weather in Tokyo?", instruction_role=role)


def test_conversation_starts_with_instructions_and_prompt():
    conversation = _conversation()

    assert len(conversation) == 2
    assert conversation.messages == [
        {"role": "developer", "content": "Only weather."},
        {"role": "user", "content": "Weather in Tokyo?"},
    ]


def test_instruction_role_can_be_system():
    assert _conversation("system").messages[0]["role"] == "system"


def test_messages_returns_copies():
    conversation = _conversation()
    conversation.messages[1]["content"] = "changed"
    assert conversation.messages[1]["content"] == "Weather in Tokyo?"


def test_assistant_message_keeps_only_honoured_call():
    conversation = _conversation()
    first = ToolCallRequest(call_id="call_1", name="get_weather", arguments='{"city": "Tokyo"}')
    second = ToolCallRequest(call_id="call_2", name="get_weather", arguments='{"city": "Paris"}')

    conversation.append_assistant(AssistantReply(tool_calls=[first, second]), first)

    assistant = conversation.messages[-1]
    assert assistant["role"] == "assistant"
    assert assistant["tool_calls"] == [{
        "id": "call_1",
        "type": "function",
        "function": {"name": "get_weather", "arguments": '{"city": "Tokyo"}'}
    }]


def test_tool_result_follows_its_call():
    conversation = _conversation()
    call = ToolCallRequest(call_id="call_1", name="get_weather", arguments='{"city": "Tokyo"}')
    conversation.append_assistant(AssistantReply(tool_calls=[call]), call)

    conversation.append_tool_result("call_1", '{"temperature": 20, "condition": "sunny"}')

    assert [m["role"] for m in conversation.messages] == ["developer", "user", "assistant", "tool"]
    assert conversation.messages[-1]["tool_call_id"] == "call_1"


def test_tool_result_without_assistant_message_is_rejected():
    with pytest.raises(ConversationError):
        _conversation().append_tool_result("call_1", "{}")


def test_tool_result_with_unknown_call_id_is_rejected():
    conversation = _conversation()
    call = ToolCallRequest(call_id="call_1", name="get_weather", arguments='{"city": "Tokyo"}')
    conversation.append_assistant(AssistantReply(tool_calls=[call]), call)

    with pytest.raises(ConversationError):
        conversation.append_tool_result("call_9", "{}")
