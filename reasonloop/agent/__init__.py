"""
Agent module - the iterative reasoning loop.

Core components:
- Agent: Main agent class with the model/tool loop
- AgentToolExecutor: Approval gate, concurrent dispatch, cancellation
- Scratchpad: Run-scoped log of thinking and tool results, with pruning
- RunContext: Per-run state bundle (query, iteration, scratchpad, token counter)
- Types: Config, event and record types
- Prompts: Customization layer (swap for different agent types)

Usage:
    from reasonloop.agent import Agent, AgentConfig

    agent = Agent.create(AgentConfig(model="your-model"), tools=registry)
    async for event in agent.run("Your query"):
        print(event)
"""

from reasonloop.agent.agent import Agent
from reasonloop.agent.run_context import RunContext, create_run_context
from reasonloop.agent.scratchpad import Scratchpad
from reasonloop.agent.tool_executor import AgentToolExecutor
from reasonloop.agent.types import (
    AgentConfig,
    AgentEvent,
    ApprovalCallback,
    ApprovalDecision,
    ThinkingEvent,
    ToolStartEvent,
    ToolEndEvent,
    ToolErrorEvent,
    ToolApprovedEvent,
    ToolDeniedEvent,
    ContextClearedEvent,
    DoneEvent,
    ToolCallRecord,
    ToolSuccess,
    ToolFailure,
    ToolOutcome,
)

__all__ = [
    "Agent",
    "AgentConfig",
    "AgentToolExecutor",
    "Scratchpad",
    "RunContext",
    "create_run_context",
    "AgentEvent",
    "ApprovalCallback",
    "ApprovalDecision",
    "ThinkingEvent",
    "ToolStartEvent",
    "ToolEndEvent",
    "ToolErrorEvent",
    "ToolApprovedEvent",
    "ToolDeniedEvent",
    "ContextClearedEvent",
    "DoneEvent",
    "ToolCallRecord",
    "ToolSuccess",
    "ToolFailure",
    "ToolOutcome",
]
