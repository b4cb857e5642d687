"""
Model response types.

The loop never inspects LangChain messages directly: every model reply is
converted once into a ModelResponse, a tagged union discriminated by ``kind``.
"""

from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Union

from reasonloop.utils.tokens import TokenUsage


@dataclass
class ToolCallRequest:
    """One tool call requested by the model in a turn."""

    name: str
    args: dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None


@dataclass
class TextResponse:
    """Plain text reply: the model is answering, not acting."""

    kind: Literal["text"] = "text"
    text: str = ""


@dataclass
class ToolCallResponse:
    """Reply carrying tool calls, optionally with accompanying thinking text."""

    kind: Literal["tool_calls"] = "tool_calls"
    text: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)


ModelResponse = Union[TextResponse, ToolCallResponse]


@dataclass
class LlmResult:
    """What one model invocation returns to the loop."""

    response: ModelResponse
    usage: Optional[TokenUsage] = None
