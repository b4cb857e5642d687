"""
Utility modules for the reasoning loop.

- logger: Structured logging with loguru
- errors: Error types, overflow classification, user-facing messages
- tokens: Token estimation and per-run usage counter
- cancellation: Signal-aware awaiting
- chat_history: In-memory prior turns
"""

from reasonloop.utils.logger import get_logger, set_log_level, LoggerManager
from reasonloop.utils.errors import (
    AgentError,
    ContextOverflowError,
    OperationCancelledError,
    ToolNotFoundError,
    is_context_overflow_error,
    format_user_facing_error,
)
from reasonloop.utils.tokens import TokenUsage, TokenCounter, estimate_tokens
from reasonloop.utils.cancellation import run_cancellable
from reasonloop.utils.chat_history import InMemoryChatHistory, ChatTurn

__all__ = [
    # Logger
    "get_logger",
    "set_log_level",
    "LoggerManager",
    # Errors
    "AgentError",
    "ContextOverflowError",
    "OperationCancelledError",
    "ToolNotFoundError",
    "is_context_overflow_error",
    "format_user_facing_error",
    # Tokens
    "TokenUsage",
    "TokenCounter",
    "estimate_tokens",
    # Cancellation
    "run_cancellable",
    # Chat history
    "InMemoryChatHistory",
    "ChatTurn",
]
