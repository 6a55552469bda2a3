"""
Tool Call Parser.

Decodes the serialized argument payload of a ToolCall. A payload that is
not valid JSON is an envelope error, distinct from a well-formed payload
that fails validation: the model has to re-emit the call rather than fix
a field.
"""

import json

from bibliotool.types import ParsedToolCall, ToolCall


class EnvelopeError(Exception):
    """The argument payload is not well-formed JSON."""
    pass


def parse_tool_call(tool_call: ToolCall) -> ParsedToolCall:
    """
    Decode a tool call's arguments.

    An empty payload decodes as an empty object, since some backends omit
    arguments for parameterless tools.

    Raises:
        EnvelopeError: If the payload is not valid JSON
    """
    raw = tool_call.arguments
    if raw is None or raw.strip() == "":
        arguments = {}
    else:
        try:
            arguments = json.loads(raw)
        except json.JSONDecodeError as e:
            raise EnvelopeError(f"Failed to parse tool arguments: {e}") from e

    return ParsedToolCall(id=tool_call.id, name=tool_call.name, arguments=arguments)
