"""
Per-conversation counters used by the conversation loop.
"""

from dataclasses import dataclass, field
from typing import Any

from bibliotool.config import AgentConfig
from bibliotool.types import ToolCall, ToolResult


@dataclass
class PendingApproval:
    call_id: str
    tool_name: str


@dataclass
class AgentState:
    """
    Mutable state for one conversation.

    Only the loop mutates it: the counters between turns, and the
    pending-approval slot while a round waits on the user. The executor
    never sees it.
    """
    iteration: int = 0
    total_tool_calls: int = 0
    failed_tool_calls: int = 0
    retry_counts: dict[str, int] = field(default_factory=dict)
    pending_approval: PendingApproval | None = None

    def start_iteration(self) -> int:
        self.iteration += 1
        return self.iteration

    def iterations_exhausted(self, config: AgentConfig) -> bool:
        return self.iteration >= config.max_agent_iterations

    def record_results(self, tool_calls: list[ToolCall], results: dict[str, ToolResult]) -> None:
        """Count a turn's results. A failure counts as a retry of that tool."""
        seen: set[str] = set()
        for call in tool_calls:
            if call.id in seen or call.id not in results:
                continue
            seen.add(call.id)
            self.total_tool_calls += 1
            if results[call.id].success:
                self.retry_counts.pop(call.name, None)
            else:
                self.failed_tool_calls += 1
                self.record_retry(call.name)

    def record_retry(self, tool_name: str) -> int:
        self.retry_counts[tool_name] = self.retry_counts.get(tool_name, 0) + 1
        return self.retry_counts[tool_name]

    def can_retry(self, tool_name: str, config: AgentConfig) -> bool:
        """Whether the model may try this tool again after a failure."""
        return self.retry_counts.get(tool_name, 0) <= config.max_tool_retries

    def set_pending_approval(self, call_id: str, tool_name: str) -> None:
        self.pending_approval = PendingApproval(call_id=call_id, tool_name=tool_name)

    def clear_pending_approval(self, call_id: str | None = None) -> None:
        if call_id is None or (self.pending_approval and self.pending_approval.call_id == call_id):
            self.pending_approval = None

    def reset(self) -> None:
        self.iteration = 0
        self.total_tool_calls = 0
        self.failed_tool_calls = 0
        self.retry_counts.clear()
        self.pending_approval = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "iteration": self.iteration,
            "total_tool_calls": self.total_tool_calls,
            "failed_tool_calls": self.failed_tool_calls,
            "retry_counts": dict(self.retry_counts),
            "pending_approval": (
                {"call_id": self.pending_approval.call_id, "tool_name": self.pending_approval.tool_name}
                if self.pending_approval else None
            ),
        }
