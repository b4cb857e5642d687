import time

from dataclasses import dataclass, field
from typing import Optional

from reasonloop.agent.scratchpad import Scratchpad
from reasonloop.utils.tokens import TokenCounter


@dataclass
class RunContext:
    """State owned by one invocation of the agent loop."""

    query: str
    scratchpad: Scratchpad
    token_counter: TokenCounter = field(default_factory=TokenCounter)
    iteration: int = 0
    start_time: float = field(default_factory=time.time)

    def elapsed_ms(self) -> int:
        return int((time.time() - self.start_time) * 1000)


def create_run_context(query: str, scratchpad_dir: Optional[str] = None) -> RunContext:
    return RunContext(query=query, scratchpad=Scratchpad(query, scratchpad_dir))
