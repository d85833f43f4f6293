"""
Request-local conversation with the model.

Messages are plain dicts in the chat-completions wire format. The list is
append-only; a tool result may only answer a call id of the assistant message
directly before it.
"""
from typing import List, Dict, Any, Optional

from domain.exceptions import ConversationError
from domain.models import AssistantReply, ToolCallRequest


class Conversation:
    """Ordered message list exchanged with the model during one request."""

    def __init__(self, instructions: str, prompt: str, instruction_role: str = "developer"):
        self._messages: List[Dict[str, Any]] = [
            {"role": instruction_role, "content": instructions},
            {"role": "user", "content": prompt},
        ]

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> List[Dict[str, Any]]:
        """Copy of the messages, safe to hand to a provider."""
        return [dict(message) for message in self._messages]

    def append_assistant(self, reply: AssistantReply, tool_call: Optional[ToolCallRequest] = None) -> None:
        """
        Append the assistant reply.

        Only ``tool_call`` is kept in the message so that every advertised call
        gets an answer in the following tool message.
        """
        message: Dict[str, Any] = {"role": "assistant", "content": reply.content}
        if tool_call is not None:
            message["tool_calls"] = [{
                "id": tool_call.call_id,
                "type": "function",
                "function": {
                    "name": tool_call.name,
                    "arguments": tool_call.arguments
                }
            }]
        self._messages.append(message)

    def append_tool_result(self, call_id: str, content: str) -> None:
        last = self._messages[-1]
        if last.get("role") != "assistant":
            raise ConversationError("Tool result must follow an assistant message")

        call_ids = {call["id"] for call in last.get("tool_calls", [])}
        if call_id not in call_ids:
            raise ConversationError(
                f"Tool result references unknown call id {call_id!r}",
                details={"known_call_ids": sorted(call_ids)}
            )

        self._messages.append({"role": "tool", "tool_call_id": call_id, "content": content})
