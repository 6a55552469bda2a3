"""
Tool Executor.

The controlled entry point for every side effect the model can cause. Each
call goes through parse -> lookup -> validate -> authorize -> execute, and
every exit, including the failing ones, is a ToolResult. Nothing raises to
the conversation loop.
"""

import asyncio
import json
import logging
from collections.abc import Mapping, Sequence

from bibliotool.config import AgentConfig
from bibliotool.handlers.base import Handler, error_message
from bibliotool.parser import EnvelopeError, parse_tool_call
from bibliotool.safety import PermissionGate
from bibliotool.schemas import SCHEMAS, Rejected, ToolSchema, validate_tool_args
from bibliotool.types import ToolCall, ToolMessage, ToolResult

logger = logging.getLogger(__name__)

RETRY_GUIDANCE = (
    'The tool "{name}" failed. Please analyze the error message above and either: '
    "(1) retry with corrected arguments, (2) try a different approach, or "
    "(3) inform the user if the operation is not possible."
)


def format_tool_result(result: ToolResult) -> str:
    """
    Serialize a result for the model.

    Successes carry data and summary when present; failures carry only the
    error.
    """
    if result.success:
        payload = {"success": True}
        if result.data is not None:
            payload["data"] = result.data
        if result.summary is not None:
            payload["summary"] = result.summary
    else:
        payload = {"success": False, "error": result.error}
    return json.dumps(payload, default=str)


def tool_result_message(tool_call: ToolCall, result: ToolResult) -> ToolMessage:
    """Build the role=tool message for a result, with guidance on failure."""
    if result.success:
        return ToolMessage(tool_call_id=tool_call.id, content=format_tool_result(result))
    content = json.dumps(
        {
            "success": False,
            "error": result.error,
            "guidance": RETRY_GUIDANCE.format(name=tool_call.name),
        },
        default=str,
    )
    return ToolMessage(tool_call_id=tool_call.id, content=content)


class ToolExecutor:
    """
    Runs tool calls against a dispatch table.

    The executor keeps no per-call state, so one instance serves every
    conversation and every call of a batch concurrently.
    """

    def __init__(
        self,
        handlers: Mapping[str, Handler],
        schemas: Mapping[str, ToolSchema] = SCHEMAS,
        gate: PermissionGate | None = None,
    ) -> None:
        self.handlers = handlers
        self.schemas = schemas
        self.gate = gate or PermissionGate()

    async def execute_tool_call(self, tool_call: ToolCall, config: AgentConfig) -> ToolResult:
        """Execute one tool call. Never raises."""
        try:
            parsed = parse_tool_call(tool_call)
        except EnvelopeError as e:
            logger.warning(f"Tool call {tool_call.id} ({tool_call.name}): {e}")
            return ToolResult.fail(str(e))

        logger.debug(f"Executing tool: {parsed.name}")
        logger.debug(f"Tool arguments: {parsed.arguments}")

        handler = self.handlers.get(parsed.name)
        if handler is None:
            logger.warning(f"Unknown tool: {parsed.name}")
            return ToolResult.fail(f"Unknown tool: {parsed.name}")

        outcome = validate_tool_args(parsed.name, parsed.arguments, self.schemas)
        if isinstance(outcome, Rejected):
            logger.info(f"Tool validation failed for {parsed.name}: {outcome.message}")
            return ToolResult.fail(
                f"Validation Error: {outcome.message}. "
                "Please retry the tool call with corrected arguments."
            )
        arguments = outcome.value

        decision = await self.gate.authorize(parsed.id, parsed.name, config)
        if not decision.allowed:
            return ToolResult.fail(f"Permission Denied: {decision.reason}")

        logger.info(f"Executing tool: {parsed.name}")
        try:
            result = await handler(arguments, config)
        except Exception as e:
            logger.error(f"Tool execution error for {parsed.name}: {e}")
            return ToolResult.fail(error_message(e))

        if not isinstance(result, ToolResult):
            logger.error(f"Tool {parsed.name} returned {type(result).__name__}, not a ToolResult")
            return ToolResult.fail(f"Tool {parsed.name} returned no result")
        if not result.success:
            logger.debug(f"Tool {parsed.name} failed: {result.error}")
        return result

    async def execute_tool_calls(
        self, tool_calls: Sequence[ToolCall], config: AgentConfig
    ) -> dict[str, ToolResult]:
        """
        Execute a turn's tool calls concurrently.

        Returns one result per distinct call id. A call that fails never
        cancels its siblings.
        """
        if not tool_calls:
            return {}
        outcomes = await asyncio.gather(
            *(self.execute_tool_call(call, config) for call in tool_calls),
            return_exceptions=True,
        )
        results: dict[str, ToolResult] = {}
        for call, outcome in zip(tool_calls, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Tool call {call.id} raised: {outcome}")
                outcome = ToolResult.fail(error_message(outcome))
            results[call.id] = outcome
        return results
