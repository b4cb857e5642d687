from reasonloop.model.llm import (
    llm_call,
    to_model_response,
    extract_text_content,
    extract_usage,
    DEFAULT_MODEL,
)
from reasonloop.model.types import (
    LlmResult,
    ModelResponse,
    TextResponse,
    ToolCallResponse,
    ToolCallRequest,
)

__all__ = [
    "llm_call",
    "to_model_response",
    "extract_text_content",
    "extract_usage",
    "DEFAULT_MODEL",
    "LlmResult",
    "ModelResponse",
    "TextResponse",
    "ToolCallResponse",
    "ToolCallRequest",
]
