"""
Token accounting for a single run.

- TokenUsage: one usage sample (or a cumulative total)
- TokenCounter: additive accumulator with throughput reporting
- estimate_tokens: character-based estimate used for the context threshold
"""

from typing import Optional

from pydantic import BaseModel


def estimate_tokens(text: str) -> int:
    """Rough token estimate (4 chars per token)."""
    return len(text) // 4


class TokenUsage(BaseModel):
    """Prompt/completion token counts as reported by the model provider."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


class TokenCounter:
    """Accumulates usage across every model call of one run."""

    def __init__(self) -> None:
        self._usage = TokenUsage()

    def add(self, usage: Optional[TokenUsage]) -> None:
        """Add a sample; providers that report nothing contribute nothing."""
        if usage is None:
            return
        self._usage = self._usage + usage

    def get_usage(self) -> TokenUsage:
        return self._usage.model_copy()

    def get_tokens_per_second(self, elapsed_ms: float) -> float:
        if elapsed_ms <= 0 or self._usage.total_tokens == 0:
            return 0.0
        return self._usage.total_tokens / (elapsed_ms / 1000)
