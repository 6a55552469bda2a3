"""
Tests for the Sensitivity Registry and Permission Gate.
"""

from unittest.mock import AsyncMock

import pytest

from bibliotool.config import AgentConfig
from bibliotool.safety import (
    SENSITIVITY,
    PermissionGate,
    SensitivityLevel,
    get_tool_sensitivity,
    requires_approval,
)
from bibliotool.tool_names import ToolName

DESTRUCTIVE = "remove_item_from_collection"


class TestSensitivityRegistry:
    """Every tool has exactly one sensitivity."""

    def test_every_tool_has_a_sensitivity(self):
        assert set(SENSITIVITY) == {name.value for name in ToolName}

    def test_dispatch_table_names_are_covered(self, toolbox):
        assert set(toolbox.handlers) == set(SENSITIVITY)

    def test_reads_writes_and_destructive(self):
        assert get_tool_sensitivity("search_library") is SensitivityLevel.READ
        assert get_tool_sensitivity("create_note") is SensitivityLevel.WRITE
        assert get_tool_sensitivity(DESTRUCTIVE) is SensitivityLevel.DESTRUCTIVE
        assert get_tool_sensitivity("remove_from_context") is SensitivityLevel.DESTRUCTIVE

    def test_unknown_tool_is_destructive(self):
        assert get_tool_sensitivity("format_disk") is SensitivityLevel.DESTRUCTIVE

    def test_requires_approval_only_for_destructive(self):
        config = AgentConfig(require_approval_for_destructive=True)
        assert requires_approval(DESTRUCTIVE, config)
        assert not requires_approval("create_collection", config)
        assert not requires_approval(DESTRUCTIVE, AgentConfig())


class TestPermissionGate:
    """Policy resolution for destructive tools."""

    @pytest.mark.asyncio
    async def test_read_and_write_always_allowed(self):
        gate = PermissionGate()
        config = AgentConfig(tool_permissions={"*": "deny", "create_note": "deny"})

        for name in ("search_library", "create_note"):
            decision = await gate.authorize("c1", name, config)
            assert decision.allowed

    @pytest.mark.asyncio
    async def test_destructive_allowed_by_default(self):
        decision = await PermissionGate().authorize("c1", DESTRUCTIVE, AgentConfig())
        assert decision.allowed
        assert decision.policy == "allow"

    @pytest.mark.asyncio
    async def test_deny_override(self):
        config = AgentConfig(tool_permissions={DESTRUCTIVE: "deny"})
        decision = await PermissionGate().authorize("c1", DESTRUCTIVE, config)

        assert not decision.allowed
        assert decision.reason == f"Tool '{DESTRUCTIVE}' is disabled in settings."

    @pytest.mark.asyncio
    async def test_exact_override_beats_wildcard(self):
        config = AgentConfig(tool_permissions={"*": "deny", DESTRUCTIVE: "allow"})
        decision = await PermissionGate().authorize("c1", DESTRUCTIVE, config)
        assert decision.allowed

    @pytest.mark.asyncio
    async def test_wildcard_applies(self):
        config = AgentConfig(tool_permissions={"*": "deny"})
        decision = await PermissionGate().authorize("c1", DESTRUCTIVE, config)
        assert not decision.allowed

    @pytest.mark.asyncio
    async def test_ask_without_handler_denies(self):
        config = AgentConfig(tool_permissions={DESTRUCTIVE: "ask"})
        decision = await PermissionGate().authorize("c1", DESTRUCTIVE, config)

        assert not decision.allowed
        assert "no approval channel" in decision.reason

    @pytest.mark.asyncio
    async def test_question_mark_is_ask(self):
        handler = AsyncMock(return_value=True)
        config = AgentConfig(tool_permissions={DESTRUCTIVE: "?"}, permission_handler=handler)
        decision = await PermissionGate().authorize("c7", DESTRUCTIVE, config)

        assert decision.allowed
        handler.assert_awaited_once_with("c7", DESTRUCTIVE)

    @pytest.mark.asyncio
    async def test_ask_refused(self):
        handler = AsyncMock(return_value=False)
        config = AgentConfig(tool_permissions={DESTRUCTIVE: "ask"}, permission_handler=handler)
        decision = await PermissionGate().authorize("c1", DESTRUCTIVE, config)

        assert not decision.allowed
        assert decision.reason == f"User denied permission to execute tool '{DESTRUCTIVE}'."

    @pytest.mark.asyncio
    async def test_ask_handler_failure_denies(self):
        handler = AsyncMock(side_effect=RuntimeError("UI closed"))
        config = AgentConfig(tool_permissions={DESTRUCTIVE: "ask"}, permission_handler=handler)
        decision = await PermissionGate().authorize("c1", DESTRUCTIVE, config)

        assert not decision.allowed
        assert "UI closed" in decision.reason

    @pytest.mark.asyncio
    async def test_unknown_policy_denies(self):
        config = AgentConfig(tool_permissions={DESTRUCTIVE: "maybe"})
        decision = await PermissionGate().authorize("c1", DESTRUCTIVE, config)

        assert not decision.allowed
        assert "Unknown permission setting 'maybe'" in decision.reason

    @pytest.mark.asyncio
    async def test_require_approval_makes_default_ask(self):
        handler = AsyncMock(return_value=True)
        config = AgentConfig(require_approval_for_destructive=True, permission_handler=handler)
        decision = await PermissionGate().authorize("c1", DESTRUCTIVE, config)

        assert decision.allowed
        assert decision.policy == "ask"
        handler.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_require_approval_never_gates_writes(self):
        handler = AsyncMock(return_value=False)
        config = AgentConfig(require_approval_for_destructive=True, permission_handler=handler)
        decision = await PermissionGate().authorize("c1", "move_item", config)

        assert decision.allowed
        handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_decision_to_dict(self):
        config = AgentConfig(tool_permissions={DESTRUCTIVE: "deny"})
        decision = await PermissionGate().authorize("c1", DESTRUCTIVE, config)

        assert decision.to_dict() == {
            "allowed": False,
            "sensitivity": "destructive",
            "policy": "deny",
            "reason": f"Tool '{DESTRUCTIVE}' is disabled in settings.",
        }
