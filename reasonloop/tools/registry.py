"""
Tool registry contract for the reasoning loop.

Tool implementations live outside this package; callers register them here.

This module provides:
- RegisteredTool: A Pydantic model for a tool plus its prompt description and approval policy
- build_tool_map: Name -> RegisteredTool lookup used by the executor
- get_tools: Just the tool instances, for binding to the LLM
- build_tool_descriptions: Format tool descriptions for the system prompt
"""

from typing import Any

from pydantic import BaseModel, Field


class RegisteredTool(BaseModel):
    """A registered tool with its rich description and approval policy."""

    name: str = Field(
        ..., description="Tool name (must match the tool's name property)"
    )
    tool: Any = Field(
        ..., description="The invocable tool instance (anything with async ainvoke(args))"
    )
    description: str = Field(
        "",
        description="Rich description for the system prompt (when to use, when not to use)",
    )
    requires_approval: bool = Field(
        False,
        description="Whether a human must approve each call (or the session) before it runs",
    )


def build_tool_map(registry: list[RegisteredTool]) -> dict[str, RegisteredTool]:
    """
    Index registered tools by name.

    Raises:
        ValueError: Two tools share a name.
    """
    tool_map: dict[str, RegisteredTool] = {}
    for registered in registry:
        if registered.name in tool_map:
            raise ValueError(f"Duplicate tool name: {registered.name}")
        tool_map[registered.name] = registered
    return tool_map


def get_tools(registry: list[RegisteredTool]) -> list[Any]:
    """Tool instances for binding to the LLM."""
    return [t.tool for t in registry]


def build_tool_descriptions(registry: list[RegisteredTool]) -> str:
    """
    Build the tool descriptions section for the system prompt.
    Formats each tool's rich description with a header.
    """
    sections = []
    for t in registry:
        description = t.description or getattr(t.tool, "description", "") or ""
        approval_note = "\n\n_Requires user approval before it runs._" if t.requires_approval else ""
        sections.append(f"### {t.name}\n\n{description.strip()}{approval_note}")
    return "\n\n".join(sections)
