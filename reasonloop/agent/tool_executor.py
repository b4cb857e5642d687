import asyncio
import inspect
import json
import time

from typing import Any, AsyncGenerator, Optional, Union

from reasonloop.agent.run_context import RunContext
from reasonloop.agent.types import (
    ApprovalCallback,
    ApprovalDecision,
    ToolApprovedEvent,
    ToolDeniedEvent,
    ToolEndEvent,
    ToolErrorEvent,
    ToolFailure,
    ToolOutcome,
    ToolProgressEvent,
    ToolStartEvent,
    ToolSuccess,
)
from reasonloop.model.types import ToolCallRequest
from reasonloop.tools.registry import RegisteredTool
from reasonloop.utils.cancellation import run_cancellable
from reasonloop.utils.errors import OperationCancelledError, ToolNotFoundError
from reasonloop.utils.logger import get_logger

log = get_logger(__name__)

CANCELLED_MESSAGE = "Tool execution cancelled."


# ======================================================================
## Tool Executor Implementation
# ======================================================================


# Executes one model turn's tool calls against the registry.
#
# Calls run concurrently in groups. A call that needs an approval prompt is a
# barrier: the group before it finishes first, then the user is asked. A
# denial ends the batch (and the run). Outcomes are written to the scratchpad
# in call order, after each group is joined.
class AgentToolExecutor:
    def __init__(
        self,
        tool_map: dict[str, RegisteredTool],
        request_tool_approval: Optional[ApprovalCallback] = None,
        session_approved_tools: Optional[set[str]] = None,
        signal: Optional[asyncio.Event] = None,
        tool_timeout: Optional[float] = None,
    ) -> None:
        self.tool_map = tool_map
        self.request_tool_approval = request_tool_approval
        # Shared with the caller so approvals survive across runs
        self.session_approved_tools: set[str] = (
            session_approved_tools if session_approved_tools is not None else set()
        )
        self.signal = signal
        self.tool_timeout = tool_timeout

    async def execute_all(
        self,
        tool_calls: list[ToolCallRequest],
        ctx: RunContext,
    ) -> AsyncGenerator[Union[ToolProgressEvent, ToolDeniedEvent], None]:
        """执行一轮中模型请求的全部工具调用

        Args:
            tool_calls (list[ToolCallRequest]): Calls in the order the model gave them
            ctx (RunContext): The run whose scratchpad receives every outcome

        Yields:
            ToolStartEvent / ToolEndEvent / ToolErrorEvent / ToolApprovedEvent per call,
            or a single ToolDeniedEvent after which nothing else is executed.
        """
        log.debug(f"Executing {len(tool_calls)} tool call(s)")
        group: list[ToolCallRequest] = []

        for call in tool_calls:
            if not self._needs_approval(call.name):
                group.append(call)
                continue

            # Barrier: earlier calls finish before the user is asked
            async for event in self._run_group(group, ctx):
                yield event
            group = []

            try:
                decision = await self._request_approval(call)
            except OperationCancelledError:
                ctx.scratchpad.add_tool_result(
                    call.name, call.args, ToolFailure(error=CANCELLED_MESSAGE)
                )
                yield ToolErrorEvent(tool=call.name, error=CANCELLED_MESSAGE)
                continue

            if decision == ApprovalDecision.DENY:
                log.warning(f"Tool {call.name} denied; stopping batch")
                yield ToolDeniedEvent(tool=call.name, args=call.args)
                return

            if decision == ApprovalDecision.ALLOW_SESSION:
                self.session_approved_tools.add(call.name)
            yield ToolApprovedEvent(tool=call.name, decision=decision)
            group.append(call)

        async for event in self._run_group(group, ctx):
            yield event

    def _needs_approval(self, tool_name: str) -> bool:
        registered = self.tool_map.get(tool_name)
        # Unknown tools are recorded as failures, never gated
        if registered is None or not registered.requires_approval:
            return False
        return tool_name not in self.session_approved_tools

    async def _request_approval(self, call: ToolCallRequest) -> ApprovalDecision:
        """Ask the approval callback; no callback means deny."""
        if self.request_tool_approval is None:
            log.info(f"No approval callback; auto-denying {call.name}")
            return ApprovalDecision.DENY

        async def ask() -> Any:
            decision = self.request_tool_approval(call.name, call.args)
            if inspect.isawaitable(decision):
                decision = await decision
            return decision

        try:
            decision = await run_cancellable(ask(), self.signal)
        except OperationCancelledError:
            raise
        except Exception as e:
            log.error(f"Approval callback failed for {call.name}: {e}")
            return ApprovalDecision.DENY

        try:
            return ApprovalDecision(decision)
        except ValueError:
            log.warning(f"Unrecognized approval decision {decision!r} for {call.name}; denying")
            return ApprovalDecision.DENY

    async def _run_group(
        self,
        calls: list[ToolCallRequest],
        ctx: RunContext,
    ) -> AsyncGenerator[ToolProgressEvent, None]:
        if not calls:
            return

        for call in calls:
            log.info(f"Executing tool: {call.name}")
            yield ToolStartEvent(tool=call.name, args=call.args)

        # gather() keeps call order; each coroutine returns its own outcome,
        # so siblings never see each other's failures.
        results = await asyncio.gather(*(self._invoke(call) for call in calls))

        # Apply every outcome before handing events back
        for call, (outcome, _) in zip(calls, results):
            ctx.scratchpad.add_tool_result(call.name, call.args, outcome)

        for call, (outcome, duration) in zip(calls, results):
            if isinstance(outcome, ToolSuccess):
                yield ToolEndEvent(
                    tool=call.name,
                    args=call.args,
                    result=outcome.result,
                    duration=duration,
                )
            else:
                yield ToolErrorEvent(tool=call.name, error=outcome.error)

    async def _invoke(self, call: ToolCallRequest) -> tuple[ToolOutcome, int]:
        """Run one tool; every failure becomes a ToolFailure."""
        start_time = time.time()

        def elapsed() -> int:
            return int((time.time() - start_time) * 1000)

        registered = self.tool_map.get(call.name)
        if registered is None:
            error = str(ToolNotFoundError(call.name))
            log.warning(error)
            return ToolFailure(error=error), 0

        try:
            raw_result = await run_cancellable(
                registered.tool.ainvoke(call.args),
                self.signal,
                timeout=self.tool_timeout,
            )
            result = (
                raw_result
                if isinstance(raw_result, str)
                else json.dumps(raw_result, ensure_ascii=False, default=str)
            )
        except OperationCancelledError:
            log.info(f"Tool {call.name} cancelled")
            return ToolFailure(error=CANCELLED_MESSAGE), elapsed()
        except asyncio.TimeoutError:
            error = f"Tool '{call.name}' timed out after {self.tool_timeout}s"
            log.warning(error)
            return ToolFailure(error=error), elapsed()
        except Exception as e:
            # !!! Mark as failed but do not interrupt sibling calls
            error = str(e) or type(e).__name__
            log.error(f"Tool {call.name} failed: {error}")
            return ToolFailure(error=error), elapsed()

        duration = elapsed()
        log.info(f"Tool {call.name} completed in {duration}ms (result_len={len(result)})")
        return ToolSuccess(result=result), duration
