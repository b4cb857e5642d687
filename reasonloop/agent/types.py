"""
Type definitions for the Agent system.

Includes:
- AgentConfig for agent configuration
- ApprovalDecision / ApprovalCallback for the tool approval gate
- ToolOutcome (ToolSuccess | ToolFailure) and ToolCallRecord for tracking tool calls
- AgentEvent types for real-time UI updates
"""

import os

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Literal, Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from reasonloop.utils.tokens import TokenUsage


# ============================================================================
# Agent Configuration
# ============================================================================

DEFAULT_MODEL = "gpt-5.2"
DEFAULT_MAX_ITERATIONS = 10
MAX_OVERFLOW_RETRIES = 2
OVERFLOW_KEEP_TOOL_USES = 3
CONTEXT_THRESHOLD = 100_000
KEEP_TOOL_USES = 5


class AgentConfig(BaseModel):
    """Configuration options for the Agent."""

    model: str = DEFAULT_MODEL
    max_iterations: int = Field(DEFAULT_MAX_ITERATIONS, ge=1)

    # Reactive pruning after the provider rejects a request as too large
    max_overflow_retries: int = Field(MAX_OVERFLOW_RETRIES, ge=0)
    overflow_keep_tool_uses: int = Field(OVERFLOW_KEEP_TOOL_USES, ge=0)

    # Proactive pruning before the next call (estimated tokens)
    context_threshold: int = Field(CONTEXT_THRESHOLD, ge=0)
    keep_tool_uses: int = Field(KEEP_TOOL_USES, ge=0)

    # Prior-turn window for the initial prompt
    history_turn_limit: int = Field(5, ge=0)
    history_answer_chars: Optional[int] = Field(300, ge=0)  # None = whole answers

    tool_timeout: Optional[float] = Field(None, gt=0)  # seconds, None = unbounded
    scratchpad_dir: Optional[str] = None  # JSONL debug log, None = off

    @classmethod
    def from_env(cls, **overrides: Any) -> "AgentConfig":
        """Build a config from AGENT_* environment variables (and .env)."""
        load_dotenv()
        env_map = {
            "model": "AGENT_MODEL",
            "max_iterations": "AGENT_MAX_ITERATIONS",
            "context_threshold": "AGENT_CONTEXT_THRESHOLD",
            "tool_timeout": "AGENT_TOOL_TIMEOUT",
            "scratchpad_dir": "AGENT_SCRATCHPAD_DIR",
        }
        values: dict[str, Any] = {}
        for field_name, env_name in env_map.items():
            value = os.getenv(env_name)
            if value:
                values[field_name] = value
        values.update(overrides)
        return cls.model_validate(values)


# ============================================================================
# Approval Gate
# ============================================================================


class ApprovalDecision(str, Enum):
    ALLOW_ONCE = "allow-once"
    ALLOW_SESSION = "allow-session"
    DENY = "deny"


# (tool_name, args) -> decision; may be sync or async
ApprovalCallback = Callable[
    [str, dict[str, Any]],
    Union[ApprovalDecision, Awaitable[ApprovalDecision]],
]


# ============================================================================
# Tool Outcomes & Records
# ============================================================================


@dataclass
class ToolSuccess:
    result: str
    ok: Literal[True] = True


@dataclass
class ToolFailure:
    error: str
    ok: Literal[False] = False


ToolOutcome = Union[ToolSuccess, ToolFailure]


@dataclass
class ToolCallRecord:
    """Record of a tool call for external consumers. Never pruned."""

    tool: str
    args: dict[str, Any]
    result: Optional[str] = None
    error: Optional[str] = None
    timestamp: str = ""


# ============================================================================
# Agent Events (for async generator yielding)
# ============================================================================


@dataclass
class ThinkingEvent:
    """Emitted when the model's reply carries reasoning text alongside tool calls."""

    type: Literal["thinking"] = "thinking"
    message: str = ""


@dataclass
class ToolStartEvent:
    """Emitted when a tool execution starts."""

    type: Literal["tool_start"] = "tool_start"
    tool: str = ""
    args: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolEndEvent:
    """Emitted when a tool execution completes successfully."""

    type: Literal["tool_end"] = "tool_end"
    tool: str = ""
    args: dict[str, Any] = field(default_factory=dict)
    result: str = ""
    duration: int = 0  # milliseconds


@dataclass
class ToolErrorEvent:
    """Emitted when a tool execution fails (unknown tool, exception, timeout, cancel)."""

    type: Literal["tool_error"] = "tool_error"
    tool: str = ""
    error: str = ""


@dataclass
class ToolApprovedEvent:
    """Emitted when the approval callback lets a gated tool run."""

    type: Literal["tool_approved"] = "tool_approved"
    tool: str = ""
    decision: ApprovalDecision = ApprovalDecision.ALLOW_ONCE


@dataclass
class ToolDeniedEvent:
    """Emitted when a gated tool is denied; the run ends right after."""

    type: Literal["tool_denied"] = "tool_denied"
    tool: str = ""
    args: dict[str, Any] = field(default_factory=dict)


@dataclass
class ContextClearedEvent:
    """Emitted when older tool results were dropped from the prompt."""

    type: Literal["context_cleared"] = "context_cleared"
    cleared_count: int = 0
    kept_count: int = 0


@dataclass
class DoneEvent:
    """Emitted exactly once, last, when the run is over."""

    type: Literal["done"] = "done"
    answer: str = ""
    tool_calls: list[ToolCallRecord] = field(default_factory=list)
    iterations: int = 0
    total_time: int = 0  # milliseconds
    token_usage: TokenUsage = field(default_factory=TokenUsage)
    tokens_per_second: float = 0.0


# Per-call lifecycle events yielded by the tool executor
ToolProgressEvent = Union[
    ToolStartEvent,
    ToolEndEvent,
    ToolErrorEvent,
    ToolApprovedEvent,
]

# Union type for all events
AgentEvent = Union[
    ThinkingEvent,
    ToolStartEvent,
    ToolEndEvent,
    ToolErrorEvent,
    ToolApprovedEvent,
    ToolDeniedEvent,
    ContextClearedEvent,
    DoneEvent,
]
