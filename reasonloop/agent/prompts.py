from datetime import datetime
from typing import Optional

from reasonloop.utils.chat_history import ChatTurn

# ======================================================================
# Helper Time Function
# ======================================================================


def get_current_time() -> str:
    """Returns the current date formatted for prompts.

    Returns:
        str: such as 'Thursday, January 22, 2026'
    """
    return datetime.now().strftime("%A, %B %d, %Y")


# ======================================================================
# System Prompt
# ======================================================================

SYSTEM_PROMPT_TEMPLATE = """You are a research agent that answers questions by reasoning step by step and calling tools.

Current date: {current_date}

## How to work

- Think about what data you need, then call the tools that fetch it.
- You may call several independent tools in one turn; they run in parallel.
- Read the tool results you are given before deciding the next step.
- Do not repeat a call that already succeeded. If a tool fails or returns
  nothing useful, try different arguments or a different tool.
- Some older tool results may be cleared from your context to save space.
  The list of calls you already made is always shown; rely on it.
- When you have enough information, answer directly in plain text without
  calling any tool. Be accurate and concise, and note any data gaps.

## Available tools

{tool_descriptions}
"""


def build_system_prompt(tool_descriptions: str) -> str:
    """System prompt with the registered tool descriptions injected."""
    return SYSTEM_PROMPT_TEMPLATE.format(
        current_date=get_current_time(),
        tool_descriptions=tool_descriptions or "(no tools registered)",
    )


# ======================================================================
# Iteration Prompt
# ======================================================================


def build_iteration_prompt(
    query: str,
    tool_results: str,
    tool_usage: Optional[str] = None,
) -> str:
    """Prompt for every model call after the first: query + gathered data."""
    results_section = (
        f"""## Data Gathered So Far

{tool_results}
"""
        if tool_results
        else ""
    )  # fmt: skip
    usage_section = f"\n{tool_usage}\n" if tool_usage else ""

    return f"""<query>
{query}
</query>

{results_section}{usage_section}
Continue working on the query. Call more tools if data is still missing, otherwise give your final answer.
"""


# ======================================================================
# History Context (initial prompt)
# ======================================================================


def build_history_context(
    turns: list[ChatTurn],
    current_message: str,
    max_answer_chars: Optional[int] = 300,
) -> str:
    """Prefix the current message with a window of prior conversation turns.

    Answers longer than ``max_answer_chars`` are cut and marked with "...";
    None keeps them whole.
    """
    if not turns:
        return current_message

    lines = []
    for turn in turns:
        answer = turn.answer
        if max_answer_chars is not None and len(answer) > max_answer_chars:
            answer = answer[:max_answer_chars] + "..."
        lines.append(f"User: {turn.query}\nAssistant: {answer}")

    history = "\n\n".join(lines)
    return f"""Previous conversation (for context):
{history}

---

Current message:
{current_message}
"""
