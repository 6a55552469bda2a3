"""
Sensitivity Registry & Permission Gate.

Every tool is classified by blast radius:

- read: never changes anything; always auto-executes
- write: changes the library or context; always auto-executes
- destructive: removes something; subject to an allow/ask/deny policy

The policy for a destructive tool is resolved from the per-tool override,
then the ``*`` wildcard, then the default (allow, or ask when approval for
destructive tools is required). ``ask`` suspends on the injected approval
channel. Anything that cannot be resolved safely denies: an ``ask`` with
no channel, a channel that errors, or a policy string we do not know.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any

from bibliotool.config import AgentConfig
from bibliotool.tool_names import ToolName

logger = logging.getLogger(__name__)


class SensitivityLevel(str, Enum):
    """How much damage a tool can do."""
    READ = "read"
    WRITE = "write"
    DESTRUCTIVE = "destructive"


class PermissionPolicy(str, Enum):
    """What to do with a destructive tool call."""
    ALLOW = "allow"
    ASK = "ask"
    DENY = "deny"


WILDCARD = "*"

# Unknown tools are treated as destructive so they always pass the gate.
UNKNOWN_SENSITIVITY = SensitivityLevel.DESTRUCTIVE

_R, _W, _D = SensitivityLevel.READ, SensitivityLevel.WRITE, SensitivityLevel.DESTRUCTIVE

SENSITIVITY: Mapping[str, SensitivityLevel] = MappingProxyType({
    # Core tools
    ToolName.SEARCH_LIBRARY.value: _R,
    ToolName.SEARCH_EXTERNAL.value: _R,
    ToolName.GET_ITEM_METADATA.value: _R,
    ToolName.READ_ITEM_CONTENT.value: _R,
    ToolName.IMPORT_PAPER.value: _W,
    ToolName.GENERATE_ITEM_TAGS.value: _W,

    # Unified tools span read and write actions
    ToolName.CONTEXT.value: _W,
    ToolName.COLLECTION.value: _W,
    ToolName.TABLE.value: _W,
    ToolName.NOTE.value: _W,
    ToolName.RELATED_PAPERS.value: _R,
    ToolName.WEB.value: _R,

    # Legacy aliases
    ToolName.ADD_TO_CONTEXT.value: _W,
    ToolName.REMOVE_FROM_CONTEXT.value: _D,
    ToolName.LIST_CONTEXT.value: _R,
    ToolName.LIST_TABLES.value: _R,
    ToolName.CREATE_TABLE.value: _W,
    ToolName.ADD_TO_TABLE.value: _W,
    ToolName.CREATE_TABLE_COLUMN.value: _W,
    ToolName.GENERATE_TABLE_DATA.value: _W,
    ToolName.READ_TABLE.value: _R,
    ToolName.CREATE_NOTE.value: _W,
    ToolName.EDIT_NOTE.value: _W,
    ToolName.FIND_COLLECTION.value: _R,
    ToolName.CREATE_COLLECTION.value: _W,
    ToolName.LIST_COLLECTION.value: _R,
    ToolName.MOVE_ITEM.value: _W,
    ToolName.REMOVE_ITEM_FROM_COLLECTION.value: _D,
    ToolName.SEARCH_WEB.value: _R,
    ToolName.READ_WEBPAGE.value: _R,
    ToolName.GET_CITATIONS.value: _R,
    ToolName.GET_REFERENCES.value: _R,
})


def get_tool_sensitivity(
    tool_name: str,
    registry: Mapping[str, SensitivityLevel] = SENSITIVITY,
) -> SensitivityLevel:
    """Get the sensitivity level for a tool."""
    level = registry.get(tool_name)
    if level is None:
        logger.warning(f"No sensitivity registered for tool: {tool_name}; treating as destructive")
        return UNKNOWN_SENSITIVITY
    return level


def requires_approval(tool_name: str, config: AgentConfig) -> bool:
    """Whether the global approval flag applies to this tool."""
    if not config.require_approval_for_destructive:
        return False
    return get_tool_sensitivity(tool_name) is SensitivityLevel.DESTRUCTIVE


@dataclass(frozen=True)
class PermissionDecision:
    """Result of authorizing one tool call."""
    allowed: bool
    sensitivity: SensitivityLevel
    policy: str | None = None
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "allowed": self.allowed,
            "sensitivity": self.sensitivity.value,
            "policy": self.policy,
            "reason": self.reason,
        }


class PermissionGate:
    """
    Decides whether a validated tool call may run.

    The gate holds no per-call state; concurrent calls of one batch are
    authorized independently and an approval in flight for one call never
    blocks another.
    """

    def __init__(self, sensitivities: Mapping[str, SensitivityLevel] = SENSITIVITY) -> None:
        self.sensitivities = sensitivities

    def sensitivity(self, tool_name: str) -> SensitivityLevel:
        return get_tool_sensitivity(tool_name, self.sensitivities)

    def resolve_policy(self, tool_name: str, config: AgentConfig) -> str:
        """Exact override, then wildcard, then the configured default."""
        permissions = config.tool_permissions
        if tool_name in permissions:
            return permissions[tool_name]
        if WILDCARD in permissions:
            return permissions[WILDCARD]
        if config.require_approval_for_destructive:
            return PermissionPolicy.ASK.value
        return PermissionPolicy.ALLOW.value

    async def authorize(
        self, call_id: str, tool_name: str, config: AgentConfig
    ) -> PermissionDecision:
        """Authorize one call. Never raises."""
        level = self.sensitivity(tool_name)
        if level is not SensitivityLevel.DESTRUCTIVE:
            return PermissionDecision(allowed=True, sensitivity=level)

        policy = self.resolve_policy(tool_name, config)

        if policy == PermissionPolicy.ALLOW.value:
            logger.debug(f"Permission 'allow' for tool '{tool_name}'")
            return PermissionDecision(allowed=True, sensitivity=level, policy=policy)

        if policy == PermissionPolicy.DENY.value:
            logger.info(f"Tool '{tool_name}' denied by permission settings")
            return PermissionDecision(
                allowed=False,
                sensitivity=level,
                policy=policy,
                reason=f"Tool '{tool_name}' is disabled in settings.",
            )

        if policy in (PermissionPolicy.ASK.value, "?"):
            return await self._ask(call_id, tool_name, level, config)

        logger.warning(f"Unknown permission setting '{policy}' for tool '{tool_name}'; denying")
        return PermissionDecision(
            allowed=False,
            sensitivity=level,
            policy=policy,
            reason=f"Unknown permission setting '{policy}' for tool '{tool_name}'.",
        )

    async def _ask(
        self,
        call_id: str,
        tool_name: str,
        level: SensitivityLevel,
        config: AgentConfig,
    ) -> PermissionDecision:
        policy = PermissionPolicy.ASK.value
        handler = config.permission_handler
        if handler is None:
            logger.warning(f"Tool '{tool_name}' requires approval but no permission handler is configured")
            return PermissionDecision(
                allowed=False,
                sensitivity=level,
                policy=policy,
                reason=f"Tool '{tool_name}' requires approval but no approval channel is available.",
            )

        logger.info(f"Requesting approval for tool '{tool_name}' (call {call_id})")
        try:
            approved = await handler(call_id, tool_name)
        except Exception as e:
            logger.error(f"Approval request for tool '{tool_name}' failed: {e}")
            return PermissionDecision(
                allowed=False,
                sensitivity=level,
                policy=policy,
                reason=f"Approval request for tool '{tool_name}' failed: {e}",
            )

        if approved is True:
            return PermissionDecision(allowed=True, sensitivity=level, policy=policy)
        return PermissionDecision(
            allowed=False,
            sensitivity=level,
            policy=policy,
            reason=f"User denied permission to execute tool '{tool_name}'.",
        )
