from reasonloop.tools.registry import (
    RegisteredTool,
    build_tool_map,
    get_tools,
    build_tool_descriptions,
)

__all__ = [
    "RegisteredTool",
    "build_tool_map",
    "get_tools",
    "build_tool_descriptions",
]
