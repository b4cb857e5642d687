"""
InMemoryChatHistory 将对话回合保存在内存中，进程重启后清空。

  - 记录每一轮 (query + answer)
  - 提供最近 N 轮，用于构建带历史上下文的初始 prompt

Persisted history is a caller concern; the agent only reads recent turns.
"""

import time

from dataclasses import dataclass, field

from reasonloop.utils.logger import get_logger

log = get_logger(__name__)


# 代表一个对话回合（查询 + 回答）
@dataclass
class ChatTurn:
    id: int
    query: str
    answer: str
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))


class InMemoryChatHistory:
    def __init__(self) -> None:
        self.turns: list[ChatTurn] = []

    def add_turn(self, query: str, answer: str) -> ChatTurn:
        """
        Append a completed turn.

        Args:
            query: User's query
            answer: Final answer given for it

        Returns:
            The stored ChatTurn
        """
        turn = ChatTurn(id=len(self.turns), query=query, answer=answer)
        self.turns.append(turn)
        log.debug(f"Added chat turn id={turn.id} (answer_len={len(answer)})")
        return turn

    def get_recent_turns(self, limit: int = 5) -> list[ChatTurn]:
        """Most recent ``limit`` turns, oldest first."""
        if limit <= 0:
            return []
        return self.turns[-limit:]

    def get_turns(self) -> list[ChatTurn]:
        return self.turns.copy()

    def has_messages(self) -> bool:
        return len(self.turns) > 0

    def clear(self) -> None:
        self.turns.clear()
