"""
One tool round of the conversation loop.

The loop itself (model streaming, message history, UI) lives outside this
package. run_tool_round is what it calls when the model's turn contains
tool calls: execute them, update the conversation state and return the
role=tool messages to append.
"""

import asyncio
import dataclasses
import logging
from collections.abc import Sequence

from bibliotool.config import AgentConfig
from bibliotool.executor import ToolExecutor, tool_result_message
from bibliotool.state import AgentState
from bibliotool.types import ToolCall, ToolMessage

logger = logging.getLogger(__name__)


class IterationLimitReached(Exception):
    """The conversation used up its agent iterations."""
    pass


def _track_approvals(config: AgentConfig, state: AgentState) -> AgentConfig:
    """
    Wrap the approval channel so the pending call is visible in state.

    AgentState has a single pending-approval slot, so approval prompts
    within a round are asked one at a time. Calls that need no approval
    keep running concurrently.
    """
    handler = config.permission_handler
    if handler is None:
        return config
    one_at_a_time = asyncio.Lock()

    async def tracked(call_id: str, tool_name: str) -> bool:
        async with one_at_a_time:
            state.set_pending_approval(call_id, tool_name)
            try:
                return await handler(call_id, tool_name)
            finally:
                state.clear_pending_approval(call_id)

    return dataclasses.replace(config, permission_handler=tracked)


async def run_tool_round(
    executor: ToolExecutor,
    state: AgentState,
    tool_calls: Sequence[ToolCall],
    config: AgentConfig,
) -> list[ToolMessage]:
    """
    Execute one turn's tool calls and build the messages to feed back.

    Raises:
        IterationLimitReached: If the conversation has no iterations left
    """
    if state.iterations_exhausted(config):
        raise IterationLimitReached(
            f"Reached the maximum of {config.max_agent_iterations} agent iterations"
        )
    iteration = state.start_iteration()
    logger.debug(f"Iteration {iteration}: {len(tool_calls)} tool call(s)")

    results = await executor.execute_tool_calls(tool_calls, _track_approvals(config, state))
    state.record_results(list(tool_calls), results)

    messages = []
    seen: set[str] = set()
    for call in tool_calls:
        if call.id in seen:
            continue
        seen.add(call.id)
        result = results[call.id]
        if not result.success and not state.can_retry(call.name, config):
            logger.warning(f"Tool {call.name} has failed {state.retry_counts[call.name]} times")
        messages.append(tool_result_message(call, result))
    return messages
