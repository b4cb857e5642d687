import asyncio
import os

from dotenv import load_dotenv
from typing import Any, Optional
from openai import BadRequestError
from langchain_openai import ChatOpenAI
from langchain_core.messages import (
    AIMessage,
    HumanMessage,
    SystemMessage,
    BaseMessage,
)

from reasonloop.model.types import (
    LlmResult,
    ModelResponse,
    TextResponse,
    ToolCallRequest,
    ToolCallResponse,
)
from reasonloop.utils.cancellation import run_cancellable
from reasonloop.utils.errors import ContextOverflowError, is_context_overflow_error
from reasonloop.utils.logger import get_logger
from reasonloop.utils.tokens import TokenUsage


load_dotenv()

log = get_logger(__name__)

DEFAULT_MODEL = "gpt-5.2"
DEFAULT_BASE_URL = "https://api.openai.com/v1"
REQUEST_TIMEOUT = 120


def _get_chat_llm(
    model: str = DEFAULT_MODEL,
    base_url: str = DEFAULT_BASE_URL,
) -> ChatOpenAI:
    """Build a ChatOpenAI client from OPENAI_API_KEY / OPENAI_BASE_URL."""
    base_url = os.getenv("OPENAI_BASE_URL", base_url)
    api_key = os.getenv("OPENAI_API_KEY", "")

    if not api_key:
        raise ValueError("OPENAI_API_KEY environment variable is not set.")

    return ChatOpenAI(
        model=model,
        api_key=api_key,
        base_url=base_url,
        timeout=REQUEST_TIMEOUT,
    )


def extract_text_content(message: AIMessage) -> str:
    """Visible text of an AIMessage (string content or text blocks)."""
    if isinstance(message.content, str):
        return message.content
    if isinstance(message.content, list):
        return "".join(
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in message.content
        )
    return ""


def extract_usage(message: AIMessage) -> Optional[TokenUsage]:
    """Read LangChain's usage_metadata; None when the provider reported nothing."""
    metadata = getattr(message, "usage_metadata", None)
    if not metadata:
        return None
    prompt_tokens = metadata.get("input_tokens", 0) or 0
    completion_tokens = metadata.get("output_tokens", 0) or 0
    return TokenUsage(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=metadata.get("total_tokens") or prompt_tokens + completion_tokens,
    )


def to_model_response(message: AIMessage) -> ModelResponse:
    """Convert an AIMessage into the loop's tagged response union."""
    text = extract_text_content(message)
    if not message.tool_calls:
        return TextResponse(text=text)
    return ToolCallResponse(
        text=text,
        tool_calls=[
            ToolCallRequest(
                name=tc["name"],
                args=tc.get("args") or {},
                id=tc.get("id"),
            )
            for tc in message.tool_calls
        ],
    )


async def llm_call(
    prompt: str,
    system_prompt: Optional[str] = None,
    model: str = DEFAULT_MODEL,
    tools: Optional[list[Any]] = None,
    signal: Optional[asyncio.Event] = None,
) -> LlmResult:
    """
    Makes a call to the chat LLM with the given prompt.

    Args:
        prompt (str): The user-turn prompt.
        system_prompt (str): Optional system prompt.
        model (str): Model id.
        tools (Optional[list]): LangChain tools to bind for tool calling.
        signal (Optional[asyncio.Event]): Cancellation signal for this run.

    Returns:
        LlmResult: The converted response plus usage, if reported.

    Raises:
        ContextOverflowError: The provider rejected the request as too large.
        OperationCancelledError: The signal fired before the reply arrived.
    """
    llm = _get_chat_llm(model=model)

    messages: list[BaseMessage] = []

    # 1. System prompt
    if system_prompt:
        messages.append(SystemMessage(content=system_prompt))

    # 2. User prompt
    messages.append(HumanMessage(content=prompt))

    # 3. Bind tools
    runnable = llm.bind_tools(tools) if tools else llm

    # 4. Call, translating the provider's size rejection
    try:
        response: AIMessage = await run_cancellable(runnable.ainvoke(messages), signal)
    except BadRequestError as e:
        if e.code == "context_length_exceeded" or is_context_overflow_error(e):
            log.warning(f"Provider rejected request as too large: {e}")
            raise ContextOverflowError(str(e)) from e
        raise

    return LlmResult(response=to_model_response(response), usage=extract_usage(response))
