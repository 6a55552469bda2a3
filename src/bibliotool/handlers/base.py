"""
Shared handler plumbing.

Handlers return a ToolResult for every outcome. The boundary decorator
turns anything that escapes a handler into a failed result, so a bug or an
unexpected backend error surfaces to the model as a message rather than
tearing down the turn.
"""

import functools
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from bibliotool.config import AgentConfig
from bibliotool.types import ToolResult

logger = logging.getLogger(__name__)

Handler = Callable[[Any, AgentConfig], Awaitable[ToolResult]]

F = TypeVar("F", bound=Callable[..., Awaitable[ToolResult]])


def error_message(error: BaseException) -> str:
    """The exception's message, or its type when the message is empty."""
    if isinstance(error, KeyError) and error.args:
        return str(error.args[0])
    return str(error) or type(error).__name__


def handler_boundary(label: str) -> Callable[[F], F]:
    """Convert exceptions escaping the wrapped handler into failed results."""

    def decorate(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> ToolResult:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                logger.error(f"Tool {label} failed: {e}")
                return ToolResult.fail(error_message(e))

        return wrapper  # type: ignore[return-value]

    return decorate


def batch_result(
    verb: str,
    succeeded: int,
    total: int,
    noun: str,
    target: str,
    count_key: str,
    failures: list[str],
    extra: dict[str, Any] | None = None,
) -> ToolResult:
    """
    Aggregate a bulk action.

    Bulk actions succeed even when some entries fail; the count and the
    per-entry failures tell the model what happened.
    """
    data: dict[str, Any] = {count_key: succeeded, "requested": total}
    if failures:
        data["failures"] = failures
    if extra:
        data.update(extra)
    return ToolResult.ok(
        data=data,
        summary=f"{verb} {succeeded} of {total} {noun} {target}",
    )
