"""
Core types for tool execution.

These types represent the data that flows between the conversation loop,
the executor, and the handlers. A ToolCall arrives from the model, is
decoded into a ParsedToolCall, and every path through the executor ends
in exactly one ToolResult.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Role(str, Enum):
    """Message roles in the conversation."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class ToolCall:
    """
    A request from the model to execute a tool.

    The arguments are kept exactly as the model emitted them: a serialized
    JSON string. Nothing downstream may assume they are well-formed.
    """
    id: str
    name: str
    arguments: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ToolCall":
        """Create from the OpenAI tool_calls format."""
        function = data.get("function") or {}
        arguments = function.get("arguments", "")
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments)
        return cls(
            id=data["id"],
            name=function.get("name", ""),
            arguments=arguments,
        )


@dataclass(frozen=True)
class ParsedToolCall:
    """A tool call whose argument payload has been decoded."""
    id: str
    name: str
    arguments: Any


@dataclass
class ToolResult:
    """
    Outcome of a single tool call.

    success is the single source of truth: error is set iff success is
    False. data and summary enrich a success; summary may accompany a
    failure for display but is never sent to the model in that case.
    """
    success: bool
    data: Any = None
    error: str | None = None
    summary: str | None = None

    def __post_init__(self) -> None:
        if self.success and self.error is not None:
            raise ValueError("A successful ToolResult cannot carry an error")
        if not self.success and not self.error:
            raise ValueError("A failed ToolResult must carry an error message")

    @classmethod
    def ok(cls, data: Any = None, summary: str | None = None) -> "ToolResult":
        return cls(success=True, data=data, summary=summary)

    @classmethod
    def fail(cls, error: str, summary: str | None = None) -> "ToolResult":
        return cls(success=False, error=error, summary=summary)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        result: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            result["data"] = self.data
        if self.error is not None:
            result["error"] = self.error
        if self.summary is not None:
            result["summary"] = self.summary
        return result


@dataclass
class ToolMessage:
    """A role=tool message fed back into the conversation."""
    tool_call_id: str
    content: str
    role: Role = field(default=Role.TOOL)

    def to_dict(self) -> dict[str, Any]:
        """Convert to OpenAI API format."""
        return {
            "role": self.role.value,
            "tool_call_id": self.tool_call_id,
            "content": self.content,
        }
