"""
Tests for AgentState and the tool round of the conversation loop.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from bibliotool.config import AgentConfig
from bibliotool.executor import ToolExecutor
from bibliotool.loop import IterationLimitReached, run_tool_round
from bibliotool.state import AgentState, PendingApproval
from bibliotool.types import ToolCall, ToolResult


class TestAgentState:
    def test_failures_count_as_retries(self):
        state = AgentState()
        calls = [ToolCall(id="a", name="web"), ToolCall(id="b", name="note")]
        state.record_results(calls, {"a": ToolResult.fail("x"), "b": ToolResult.ok()})

        assert state.total_tool_calls == 2
        assert state.failed_tool_calls == 1
        assert state.retry_counts == {"web": 1}

    def test_success_resets_retry_count(self):
        state = AgentState(retry_counts={"web": 2})
        state.record_results([ToolCall(id="a", name="web")], {"a": ToolResult.ok()})
        assert state.retry_counts == {}

    def test_duplicate_call_ids_counted_once(self):
        """A repeated call id is counted once."""
        state = AgentState()
        calls = [ToolCall(id="a", name="web"), ToolCall(id="a", name="web")]
        state.record_results(calls, {"a": ToolResult.fail("x")})

        assert state.total_tool_calls == 1
        assert state.retry_counts == {"web": 1}

    def test_can_retry_up_to_the_limit(self):
        config = AgentConfig(max_tool_retries=2)
        state = AgentState()

        state.record_retry("web")
        state.record_retry("web")
        assert state.can_retry("web", config)
        state.record_retry("web")
        assert not state.can_retry("web", config)

    def test_iterations_exhausted(self):
        config = AgentConfig(max_agent_iterations=2)
        state = AgentState()
        state.start_iteration()
        assert not state.iterations_exhausted(config)
        state.start_iteration()
        assert state.iterations_exhausted(config)

    def test_pending_approval_cleared_only_for_its_call(self):
        state = AgentState()
        state.set_pending_approval("c1", "remove_from_context")

        state.clear_pending_approval("other")
        assert state.pending_approval == PendingApproval("c1", "remove_from_context")
        state.clear_pending_approval("c1")
        assert state.pending_approval is None

    def test_reset_and_to_dict(self):
        state = AgentState(iteration=3, total_tool_calls=5, failed_tool_calls=1, retry_counts={"web": 1})
        state.set_pending_approval("c1", "move_item")
        assert state.to_dict()["pending_approval"] == {"call_id": "c1", "tool_name": "move_item"}

        state.reset()
        assert state.to_dict() == {
            "iteration": 0,
            "total_tool_calls": 0,
            "failed_tool_calls": 0,
            "retry_counts": {},
            "pending_approval": None,
        }


class TestRunToolRound:
    @pytest.fixture
    def executor(self):
        async def ok(args, config):
            return ToolResult.ok(summary="fine")

        async def broken(args, config):
            return ToolResult.fail("always broken")

        return ToolExecutor({"ok": ok, "broken": broken})

    @pytest.mark.asyncio
    async def test_messages_follow_call_order(self, executor):
        state = AgentState()
        calls = [ToolCall(id="2", name="broken"), ToolCall(id="1", name="ok")]
        messages = await run_tool_round(executor, state, calls, AgentConfig())

        assert [m.tool_call_id for m in messages] == ["2", "1"]
        assert "guidance" in json.loads(messages[0].content)
        assert json.loads(messages[1].content) == {"success": True, "summary": "fine"}
        assert state.iteration == 1
        assert state.failed_tool_calls == 1

    @pytest.mark.asyncio
    async def test_iteration_limit(self, executor):
        state = AgentState(iteration=1)
        with pytest.raises(IterationLimitReached):
            await run_tool_round(executor, state, [ToolCall(id="1", name="ok")], AgentConfig(max_agent_iterations=1))

    @pytest.mark.asyncio
    async def test_repeated_failures_still_produce_messages(self, executor):
        state = AgentState()
        config = AgentConfig(max_tool_retries=1)
        for turn in range(3):
            messages = await run_tool_round(executor, state, [ToolCall(id=str(turn), name="broken")], config)
            assert len(messages) == 1

        assert state.retry_counts == {"broken": 3}
        assert not state.can_retry("broken", config)

    @pytest.mark.asyncio
    async def test_pending_approval_visible_while_waiting(self, executor):
        """The loop exposes the call awaiting approval through the state."""
        state = AgentState()
        seen = []

        async def approve(call_id, tool_name):
            seen.append(state.pending_approval)
            return True

        config = AgentConfig(tool_permissions={"*": "ask"}, permission_handler=approve)
        await run_tool_round(executor, state, [ToolCall(id="c1", name="ok")], config)

        assert seen == [PendingApproval("c1", "ok")]
        assert state.pending_approval is None

    @pytest.mark.asyncio
    async def test_concurrent_approvals_are_asked_one_at_a_time(self, executor):
        """With two calls awaiting approval, the pending slot always names the one being asked."""
        state = AgentState()
        seen = []
        active = 0
        peak = 0

        async def approve(call_id, tool_name):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            seen.append((call_id, state.pending_approval.call_id))
            await asyncio.sleep(0)
            active -= 1
            return True

        config = AgentConfig(tool_permissions={"*": "ask"}, permission_handler=approve)
        calls = [ToolCall(id="c1", name="ok"), ToolCall(id="c2", name="ok")]
        messages = await run_tool_round(executor, state, calls, config)

        assert peak == 1
        assert seen == [("c1", "c1"), ("c2", "c2")]
        assert state.pending_approval is None
        assert all(json.loads(m.content)["success"] for m in messages)

    @pytest.mark.asyncio
    async def test_refused_approval(self, executor):
        state = AgentState()
        config = AgentConfig(
            tool_permissions={"*": "ask"}, permission_handler=AsyncMock(return_value=False)
        )
        messages = await run_tool_round(executor, state, [ToolCall(id="c1", name="ok")], config)

        content = json.loads(messages[0].content)
        assert content["error"] == "Permission Denied: User denied permission to execute tool 'ok'."
