"""
Run-scoped scratchpad for tracking agent work on a query.

Holds thinking notes and tool-use records in chronological order. This is the
single source of truth for everything the agent has done in a run.

Two read projections:
- get_tool_results(): full payloads of the tool results still retained
- format_tool_usage_for_prompt(): compact listing of every call ever made

Pruning (clear_oldest_tool_results) drops old payloads only. Thinking notes,
the compact listing and the tool call records are never pruned.

Optionally mirrors every entry to a JSONL file for debugging/history.
"""

import os
import json
import hashlib
from pathlib import Path
from datetime import datetime
from dataclasses import dataclass, field
from typing import Any, Optional

from reasonloop.agent.types import ToolCallRecord, ToolFailure, ToolOutcome
from reasonloop.utils.logger import get_logger

log = get_logger(__name__)

# Args longer than this are shortened in the compact listing
MAX_ARG_CHARS = 80


# ============================================================================
# Data Types
# ============================================================================


@dataclass
class ScratchpadEntry:
    """A single entry in the scratchpad."""

    type: str  # 'thinking' | 'tool_result'
    timestamp: str
    position: int
    content: Optional[str] = None
    tool_name: Optional[str] = None
    args: dict[str, Any] = field(default_factory=dict)
    result: Optional[str] = None
    error: Optional[str] = None
    cleared: bool = False  # payload dropped from the prompt

    @property
    def failed(self) -> bool:
        return self.error is not None


# ============================================================================
# Scratchpad Implementation
# ============================================================================


class Scratchpad:
    """
    Ordered log of thinking notes and tool-use records for one run.

    When ``scratchpad_dir`` is given, entries are also appended to
    ``<scratchpad_dir>/<timestamp>_<query-hash>.jsonl``.
    """

    def __init__(self, query: str, scratchpad_dir: Optional[str] = None):
        self.query = query
        self.entries: list[ScratchpadEntry] = []
        self.tool_call_records: list[ToolCallRecord] = []
        self.filepath: Optional[str] = None

        if scratchpad_dir:
            Path(scratchpad_dir).mkdir(parents=True, exist_ok=True)
            query_hash = hashlib.md5(query.encode()).hexdigest()[:12]
            timestamp = datetime.now().strftime("%Y-%m-%d-%H%M%S")
            self.filepath = os.path.join(
                scratchpad_dir, f"{timestamp}_{query_hash}.jsonl"
            )
            self._write({"type": "init", "timestamp": _now(), "content": query})

    # ========================================================================
    # Core Methods
    # ========================================================================

    def add_thinking(self, thought: str) -> None:
        """Append thinking/reasoning. Callers skip whitespace-only text."""
        entry = ScratchpadEntry(
            type="thinking",
            timestamp=_now(),
            position=len(self.entries),
            content=thought,
        )
        self.entries.append(entry)
        self._write({"type": "thinking", "timestamp": entry.timestamp, "content": thought})

    def add_tool_result(
        self,
        tool_name: str,
        args: Optional[dict[str, Any]],
        outcome: ToolOutcome,
    ) -> None:
        """Append a tool-use record. Never raises."""
        args = dict(args or {})
        timestamp = _now()
        if isinstance(outcome, ToolFailure):
            result, error = None, outcome.error
        else:
            result, error = _stringify(outcome.result), None

        self.entries.append(
            ScratchpadEntry(
                type="tool_result",
                timestamp=timestamp,
                position=len(self.entries),
                tool_name=tool_name,
                args=args,
                result=result,
                error=error,
            )
        )
        self.tool_call_records.append(
            ToolCallRecord(
                tool=tool_name,
                args=args,
                result=result,
                error=error,
                timestamp=timestamp,
            )
        )

        data: dict[str, Any] = {
            "type": "tool_result",
            "timestamp": timestamp,
            "toolName": tool_name,
            "args": args,
        }
        if error is not None:
            data["error"] = error
        else:
            data["result"] = result
        self._write(data)

    def clear_oldest_tool_results(self, keep_count: int) -> int:
        """
        Keep full payloads for only the ``keep_count`` most recent tool results.

        Older payloads are dropped from get_tool_results() but the calls stay
        in format_tool_usage_for_prompt() and get_tool_call_records().

        Returns:
            Number of records whose payload was dropped by this call.
        """
        retained = [e for e in self._tool_entries() if not e.cleared]
        excess = len(retained) - max(keep_count, 0)
        if excess <= 0:
            return 0

        for entry in retained[:excess]:
            entry.cleared = True

        log.debug(f"Cleared {excess} tool result(s), kept {len(retained) - excess}")
        self._write(
            {
                "type": "context_cleared",
                "timestamp": _now(),
                "clearedCount": excess,
                "keptCount": len(retained) - excess,
            }
        )
        return excess

    # ========================================================================
    # Query Methods
    # ========================================================================

    def get_tool_results(self) -> str:
        """Full payloads of retained tool results, oldest first, for the prompt."""
        blocks = []
        for e in self._tool_entries():
            if e.cleared:
                continue
            description = _describe_call(e.tool_name or "", e.args)
            if e.failed:
                blocks.append(f"### {description}\nError: {e.error}")
            else:
                blocks.append(f"### {description}\n{_pretty(e.result or '')}")
        return "\n\n".join(blocks)

    def format_tool_usage_for_prompt(self) -> Optional[str]:
        """Compact chronological listing of every tool call made this run."""
        entries = self._tool_entries()
        if not entries:
            return None

        lines = []
        for e in entries:
            status = " [FAILED]" if e.failed else ""
            cleared = " (result cleared from context)" if e.cleared else ""
            lines.append(f"- {_describe_call(e.tool_name or '', e.args)}{status}{cleared}")

        return (
            "## Tool Calls Made This Query\n\n"
            + "\n".join(lines)
            + "\n\nNote: Do not repeat a call that already succeeded unless you "
            "need fresher data; try a different tool or arguments instead."
        )

    def get_tool_call_records(self) -> list[ToolCallRecord]:
        """Every tool call of the run, for DoneEvent. Unaffected by pruning."""
        return list(self.tool_call_records)

    def get_thinking(self) -> list[str]:
        return [e.content or "" for e in self.entries if e.type == "thinking"]

    # ========================================================================
    # Private Methods
    # ========================================================================

    def _tool_entries(self) -> list[ScratchpadEntry]:
        return [e for e in self.entries if e.type == "tool_result"]

    def _write(self, data: dict[str, Any]) -> None:
        """Append-only mirror to the JSONL file, if enabled."""
        if not self.filepath:
            return
        try:
            with open(self.filepath, "a", encoding="utf-8") as f:
                f.write(json.dumps(data, ensure_ascii=False, default=str) + "\n")
        except OSError as e:
            log.warning(f"Scratchpad log write failed ({self.filepath}): {e}")


def _now() -> str:
    return datetime.now().isoformat()


def _stringify(result: Any) -> str:
    if isinstance(result, str):
        return result
    try:
        return json.dumps(result, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(result)


def _pretty(result: str) -> str:
    """Indent JSON payloads; leave plain text alone."""
    try:
        return json.dumps(json.loads(result), indent=2, ensure_ascii=False)
    except (json.JSONDecodeError, TypeError):
        return result


def _describe_call(tool_name: str, args: dict[str, Any]) -> str:
    """Format: tool_name(key=value, ...)"""
    if not args:
        return f"{tool_name}()"
    parts = []
    for key, value in args.items():
        text = value if isinstance(value, str) else _stringify(value)
        if len(text) > MAX_ARG_CHARS:
            text = text[: MAX_ARG_CHARS - 3] + "..."
        parts.append(f"{key}={text}")
    return f"{tool_name}({', '.join(parts)})"
