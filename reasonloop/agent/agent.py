"""
Core Agent implementation.

This is the generic reasoning loop. It handles:
- The main agent loop (query → model → tools → ... → answer)
- Tool execution through AgentToolExecutor (approval gate, concurrency, cancellation)
- Context management: full tool results each iteration, with the oldest
  results cleared when the estimated context passes a threshold, and
  reactive clearing + retry when the provider rejects a request as too large
- Event yielding for UI updates, always ending in exactly one DoneEvent

Customize behavior by modifying prompts.py - this file stays unchanged.
"""

import asyncio
from typing import AsyncGenerator, Awaitable, Callable, Iterator, Optional

from reasonloop.agent.prompts import (
    build_history_context,
    build_iteration_prompt,
    build_system_prompt,
)
from reasonloop.agent.run_context import RunContext, create_run_context
from reasonloop.agent.tool_executor import AgentToolExecutor
from reasonloop.agent.types import (
    AgentConfig,
    AgentEvent,
    ApprovalCallback,
    ContextClearedEvent,
    DoneEvent,
    ThinkingEvent,
    ToolDeniedEvent,
)
from reasonloop.model.llm import llm_call
from reasonloop.model.types import LlmResult, TextResponse, ToolCallResponse
from reasonloop.tools.registry import (
    RegisteredTool,
    build_tool_descriptions,
    build_tool_map,
    get_tools,
)
from reasonloop.utils.cancellation import run_cancellable
from reasonloop.utils.chat_history import InMemoryChatHistory
from reasonloop.utils.errors import format_user_facing_error, is_context_overflow_error
from reasonloop.utils.logger import get_logger
from reasonloop.utils.tokens import estimate_tokens

log = get_logger(__name__)

# (prompt, *, system_prompt, model, tools, signal) -> LlmResult
ModelInvoker = Callable[..., Awaitable[LlmResult]]

NO_TOOLS_MESSAGE = "No tools available. Please check your configuration."
EMPTY_RESPONSE_MESSAGE = "The model returned an empty response."


class Agent:
    """
    Core agent that runs the reasoning loop for one query at a time.

    Usage:
        agent = Agent.create(AgentConfig(), tools=[RegisteredTool(...)])
        async for event in agent.run("What is AAPL trading at?"):
            print(event)
    """

    def __init__(
        self,
        config: AgentConfig,
        registry: list[RegisteredTool],
        system_prompt: str,
        model_invoker: ModelInvoker = llm_call,
        request_tool_approval: Optional[ApprovalCallback] = None,
        session_approved_tools: Optional[set[str]] = None,
        signal: Optional[asyncio.Event] = None,
    ):
        self.config = config
        self.model = config.model
        self.max_iterations = config.max_iterations
        self.registry = registry
        self.tools = get_tools(registry)
        self.tool_map = build_tool_map(registry)
        self.system_prompt = system_prompt
        self.model_invoker = model_invoker
        self.signal = signal
        self.tool_executor = AgentToolExecutor(
            self.tool_map,
            request_tool_approval=request_tool_approval,
            session_approved_tools=session_approved_tools,
            signal=signal,
            tool_timeout=config.tool_timeout,
        )

        log.info(
            f"Agent initialized with model={self.model}, "
            f"max_iterations={self.max_iterations}, tools={len(self.tools)}"
        )

    @classmethod
    def create(
        cls,
        config: Optional[AgentConfig] = None,
        tools: Optional[list[RegisteredTool]] = None,
        **kwargs,
    ) -> "Agent":
        """
        Create a new Agent with the system prompt built from the tool registry.

        Args:
            config: Agent configuration (model, max_iterations, thresholds, ...)
            tools: Registered tools the model may call
            **kwargs: Passed through to __init__ (model_invoker,
                request_tool_approval, session_approved_tools, signal)
        """
        config = config or AgentConfig()
        tools = tools or []
        system_prompt = build_system_prompt(build_tool_descriptions(tools))
        return cls(config, tools, system_prompt, **kwargs)

    async def run(
        self,
        query: str,
        chat_history: Optional[InMemoryChatHistory] = None,
    ) -> AsyncGenerator[AgentEvent, None]:
        """
        Run the agent and yield events for real-time UI updates.

        Args:
            query: The user's query
            chat_history: Optional prior turns; the most recent ones are
                          prepended to the first prompt.

        Yields:
            AgentEvent objects, ending with exactly one DoneEvent
        """
        events = self._run(query, chat_history)
        try:
            async for event in events:
                yield event
        finally:
            # Also reached when the consumer stops early (aclose)
            await events.aclose()

    async def _run(
        self,
        query: str,
        chat_history: Optional[InMemoryChatHistory],
    ) -> AsyncGenerator[AgentEvent, None]:
        ctx = create_run_context(query, self.config.scratchpad_dir)
        log.info(f"Starting agent run: query='{query[:50]}...'")

        if not self.tools:
            log.warning("No tools available")
            yield self._done(ctx, NO_TOOLS_MESSAGE)
            return

        current_prompt = self._build_initial_prompt(query, chat_history)
        overflow_retries = 0

        # Main agent loop
        while ctx.iteration < self.max_iterations:
            ctx.iteration += 1
            log.debug(f"Iteration {ctx.iteration}/{self.max_iterations}")

            while True:
                try:
                    result = await self._call_model(current_prompt)
                    overflow_retries = 0
                    break
                except Exception as e:
                    if (
                        is_context_overflow_error(e)
                        and overflow_retries < self.config.max_overflow_retries
                    ):
                        overflow_retries += 1
                        keep = self.config.overflow_keep_tool_uses
                        cleared_count = ctx.scratchpad.clear_oldest_tool_results(keep)

                        if cleared_count > 0:
                            log.warning(
                                f"Context overflow, cleared {cleared_count} tool result(s) "
                                f"(retry {overflow_retries}/{self.config.max_overflow_retries})"
                            )
                            yield ContextClearedEvent(
                                cleared_count=cleared_count, kept_count=keep
                            )
                            current_prompt = self._build_iteration_prompt(ctx)
                            continue

                    log.error(f"Model call failed: {e}")
                    yield self._done(ctx, f"Error: {format_user_facing_error(e)}")
                    return

            ctx.token_counter.add(result.usage)
            response = result.response

            if isinstance(response, TextResponse) or not response.tool_calls:
                # No tool calls = final answer is in this response
                yield self._final_answer(ctx, response.text)
                return

            # Emit thinking if there are also tool calls (skip whitespace-only)
            thinking = response.text.strip()
            if thinking:
                ctx.scratchpad.add_thinking(thinking)
                yield ThinkingEvent(message=thinking)

            denied = False
            async for event in self.tool_executor.execute_all(response.tool_calls, ctx):
                yield event
                if isinstance(event, ToolDeniedEvent):
                    denied = True

            if denied:
                yield self._done(ctx, "")
                return

            for event in self._manage_context_threshold(ctx):
                yield event

            # Build iteration prompt with full tool results
            current_prompt = self._build_iteration_prompt(ctx)

        # Max iterations reached with no final response
        log.warning(f"Max iterations ({self.max_iterations}) reached")
        yield self._done(
            ctx,
            f"Reached maximum iterations ({self.max_iterations}). "
            "I was unable to complete the research in the allotted steps.",
        )

    async def _call_model(self, prompt: str) -> LlmResult:
        """Call the LLM with the current prompt, system prompt and full tool catalog."""
        log.debug(f"Calling LLM: prompt_len={len(prompt)}")
        # Invokers may ignore the signal; the loop still honors it.
        result = await run_cancellable(
            self.model_invoker(
                prompt,
                system_prompt=self.system_prompt,
                model=self.model,
                tools=self.tools,
                signal=self.signal,
            ),
            self.signal,
        )
        if not isinstance(result.response, (TextResponse, ToolCallResponse)):
            raise TypeError(f"Unsupported model response: {type(result.response).__name__}")
        return result

    def _final_answer(self, ctx: RunContext, text: str) -> DoneEvent:
        answer = text.strip()
        if not answer:
            log.warning("Model returned no tool calls and no text")
            answer = EMPTY_RESPONSE_MESSAGE
        return self._done(ctx, answer)

    def _done(self, ctx: RunContext, answer: str) -> DoneEvent:
        total_time = ctx.elapsed_ms()
        log.info(
            f"Run completed: iterations={ctx.iteration}, "
            f"answer_len={len(answer)}, total_time={total_time}ms"
        )
        return DoneEvent(
            answer=answer,
            tool_calls=ctx.scratchpad.get_tool_call_records(),
            iterations=ctx.iteration,
            total_time=total_time,
            token_usage=ctx.token_counter.get_usage(),
            tokens_per_second=ctx.token_counter.get_tokens_per_second(total_time),
        )

    def _manage_context_threshold(self, ctx: RunContext) -> Iterator[ContextClearedEvent]:
        """Clear oldest tool results if the estimated context exceeds the threshold."""
        full_tool_results = ctx.scratchpad.get_tool_results()
        estimated_tokens = estimate_tokens(self.system_prompt + ctx.query + full_tool_results)

        if estimated_tokens > self.config.context_threshold:
            keep = self.config.keep_tool_uses
            cleared_count = ctx.scratchpad.clear_oldest_tool_results(keep)
            if cleared_count > 0:
                log.warning(
                    f"Estimated context {estimated_tokens} tokens > "
                    f"{self.config.context_threshold}; cleared {cleared_count} tool result(s)"
                )
                yield ContextClearedEvent(cleared_count=cleared_count, kept_count=keep)

    def _build_iteration_prompt(self, ctx: RunContext) -> str:
        return build_iteration_prompt(
            ctx.query,
            ctx.scratchpad.get_tool_results(),
            ctx.scratchpad.format_tool_usage_for_prompt(),
        )

    def _build_initial_prompt(
        self,
        query: str,
        chat_history: Optional[InMemoryChatHistory] = None,
    ) -> str:
        """Raw query, or the query prefixed with recent conversation turns."""
        if chat_history is None or not chat_history.has_messages():
            return query

        recent_turns = chat_history.get_recent_turns(self.config.history_turn_limit)
        if not recent_turns:
            return query

        return build_history_context(
            recent_turns,
            query,
            max_answer_chars=self.config.history_answer_chars,
        )
