"""
reasonloop - an iterative "think, call tools, observe" loop for LLM agents.

    from reasonloop import Agent, AgentConfig, RegisteredTool
"""

from reasonloop.agent import Agent, AgentConfig, ApprovalDecision, DoneEvent
from reasonloop.tools import RegisteredTool
from reasonloop.utils.chat_history import InMemoryChatHistory

__version__ = "0.1.0"

__all__ = [
    "Agent",
    "AgentConfig",
    "ApprovalDecision",
    "DoneEvent",
    "RegisteredTool",
    "InMemoryChatHistory",
]
