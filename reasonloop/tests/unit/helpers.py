from typing import Any, Callable, Optional

from langchain_core.tools import StructuredTool

from reasonloop.model.types import (
    LlmResult,
    TextResponse,
    ToolCallRequest,
    ToolCallResponse,
)
from reasonloop.tools.registry import RegisteredTool
from reasonloop.utils.tokens import TokenUsage


def text_result(text: str, usage: Optional[TokenUsage] = None) -> LlmResult:
    return LlmResult(response=TextResponse(text=text), usage=usage)


def tool_call_result(
    *calls: ToolCallRequest,
    text: str = "",
    usage: Optional[TokenUsage] = None,
) -> LlmResult:
    return LlmResult(
        response=ToolCallResponse(text=text, tool_calls=list(calls)),
        usage=usage,
    )


def call(name: str, **args: Any) -> ToolCallRequest:
    return ToolCallRequest(name=name, args=args, id=f"call_{name}")


class ScriptedModel:
    """Stands in for llm_call: replays results (or raises exceptions) in order."""

    def __init__(self, script: list[Any], default: Optional[Any] = None):
        self.script = list(script)
        self.default = default
        self.prompts: list[str] = []
        self.kwargs: list[dict[str, Any]] = []

    @property
    def call_count(self) -> int:
        return len(self.prompts)

    async def __call__(self, prompt: str, **kwargs: Any) -> LlmResult:
        self.prompts.append(prompt)
        self.kwargs.append(kwargs)
        if self.script:
            item = self.script.pop(0)
        elif self.default is not None:
            item = self.default
        else:
            raise AssertionError("ScriptedModel ran out of responses")
        if isinstance(item, BaseException):
            raise item
        return item


def make_tool(
    name: str,
    coroutine: Callable[..., Any],
    requires_approval: bool = False,
    description: str = "",
) -> RegisteredTool:
    tool = StructuredTool.from_function(
        coroutine=coroutine,
        name=name,
        description=description or f"Test tool {name}",
    )
    return RegisteredTool(
        name=name,
        tool=tool,
        description=description or f"Test tool {name}",
        requires_approval=requires_approval,
    )


async def collect(events) -> list[Any]:
    return [event async for event in events]
