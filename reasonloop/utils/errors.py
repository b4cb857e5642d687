"""
Error types and classification for the reasoning loop.

Taxonomy used by the agent:
- Tool-level failures (unknown tool, tool exception, timeout, cancellation)
  are recorded as failed outcomes and never raised out of the executor.
- ContextOverflowError is the only model failure the loop retries.
- Everything else ends the run with a formatted, user-facing message.
"""

import re
from typing import Optional, Union


class AgentError(Exception):
    """Base class for errors raised by the reasoning loop."""


class ContextOverflowError(AgentError):
    """The model provider rejected the request for exceeding its context window."""


class OperationCancelledError(AgentError):
    """The run's cancellation signal was observed by an in-flight operation."""

    def __init__(self, message: str = "Operation cancelled."):
        super().__init__(message)


class ToolNotFoundError(AgentError):
    """The model requested a tool that is not in the registry."""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Tool '{tool_name}' not found")


# Provider wording for "request too large", across OpenAI-compatible backends.
CONTEXT_OVERFLOW_RE = re.compile(
    r"context.{0,10}(length|window|limit)"
    r"|maximum.{0,10}(context|token)"
    r"|token.{0,10}limit"
    r"|exceed.{0,10}(context|prompt)"
    r"|prompt is too long"
    r"|request too large",
    re.IGNORECASE,
)

RATE_LIMIT_RE = re.compile(r"rate.?limit|too many requests|\b429\b", re.IGNORECASE)
AUTH_RE = re.compile(
    r"api.?key|unauthori[sz]ed|authentication|\b401\b|\b403\b", re.IGNORECASE
)
TIMEOUT_RE = re.compile(r"timed? ?out|timeout", re.IGNORECASE)
CONNECTION_RE = re.compile(
    r"connection (error|refused|reset)|network|could not connect|getaddrinfo",
    re.IGNORECASE,
)

MAX_ERROR_CHARS = 200


def _message_of(error: Union[BaseException, str]) -> str:
    if isinstance(error, str):
        return error
    return str(error) or type(error).__name__


def is_context_overflow_error(error: Union[BaseException, str, None]) -> bool:
    """
    Check whether a model failure means "the request was too large".

    Typed ContextOverflowError wins; otherwise the message is matched against
    the known provider wordings.
    """
    if error is None:
        return False
    if isinstance(error, ContextOverflowError):
        return True
    return bool(CONTEXT_OVERFLOW_RE.search(_message_of(error)))


def format_user_facing_error(error: Union[BaseException, str]) -> str:
    """Turn a raw failure into one short line of human-readable text."""
    if isinstance(error, OperationCancelledError):
        return "The request was cancelled."

    message = _message_of(error).strip()

    if is_context_overflow_error(error):
        return (
            "The conversation grew too large for the model's context window, "
            "even after clearing older tool results. Try a narrower question."
        )
    if RATE_LIMIT_RE.search(message):
        return "The model provider is rate limiting requests. Please wait and try again."
    if AUTH_RE.search(message):
        return "Authentication with the model provider failed. Please check your API key."
    if isinstance(error, TimeoutError) or TIMEOUT_RE.search(message):
        return "The model provider took too long to respond. Please try again."
    if CONNECTION_RE.search(message):
        return "Could not reach the model provider. Please check your network connection."

    first_line = _first_line(message) or "An unexpected error occurred."
    if len(first_line) > MAX_ERROR_CHARS:
        first_line = first_line[: MAX_ERROR_CHARS - 3] + "..."
    return first_line


def _first_line(message: str) -> Optional[str]:
    for line in message.splitlines():
        if line.strip():
            return line.strip()
    return None


__all__ = [
    "AgentError",
    "ContextOverflowError",
    "OperationCancelledError",
    "ToolNotFoundError",
    "is_context_overflow_error",
    "format_user_facing_error",
]
