"""
bibliotool - validated, permission-gated tool execution for a research
assistant's language model.
"""

from bibliotool.catalog import ToolDefinition, get_schemas, tool_definitions
from bibliotool.config import AgentConfig, LibraryScope, ServiceConfig
from bibliotool.executor import ToolExecutor, format_tool_result, tool_result_message
from bibliotool.parser import EnvelopeError, parse_tool_call
from bibliotool.safety import PermissionGate, SensitivityLevel, get_tool_sensitivity
from bibliotool.schemas import Rejected, Unvalidated, Validated, validate_tool_args
from bibliotool.state import AgentState
from bibliotool.tool_names import ToolName
from bibliotool.toolbox import Toolbox
from bibliotool.types import ToolCall, ToolMessage, ToolResult

__version__ = "0.1.0"

__all__ = [
    "AgentConfig",
    "AgentState",
    "EnvelopeError",
    "LibraryScope",
    "PermissionGate",
    "Rejected",
    "SensitivityLevel",
    "ServiceConfig",
    "ToolCall",
    "ToolDefinition",
    "ToolExecutor",
    "ToolMessage",
    "ToolName",
    "ToolResult",
    "Toolbox",
    "Unvalidated",
    "Validated",
    "format_tool_result",
    "get_schemas",
    "get_tool_sensitivity",
    "parse_tool_call",
    "tool_definitions",
    "tool_result_message",
    "validate_tool_args",
]
