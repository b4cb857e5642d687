"""
单元测试用于测试 agent.py 主循环

测试覆盖：
- 直接回答 / 最大迭代次数
- 上下文溢出后的剪枝重试
- 审批拒绝后立即结束
- 单个工具失败不影响整批
- 基于阈值的主动剪枝
- 终止事件唯一且位于最后
- 取消信号在模型调用前后生效
"""

import asyncio

import pytest

from reasonloop.agent.agent import EMPTY_RESPONSE_MESSAGE, NO_TOOLS_MESSAGE, Agent
from reasonloop.agent.types import (
    AgentConfig,
    ApprovalDecision,
    ContextClearedEvent,
    DoneEvent,
    ThinkingEvent,
    ToolDeniedEvent,
    ToolEndEvent,
    ToolStartEvent,
)
from reasonloop.tests.unit.helpers import (
    ScriptedModel,
    call,
    collect,
    make_tool,
    text_result,
    tool_call_result,
)
from reasonloop.utils.chat_history import InMemoryChatHistory
from reasonloop.utils.errors import ContextOverflowError
from reasonloop.utils.tokens import TokenUsage


def _agent(model, tools, config=None, **kwargs) -> Agent:
    return Agent.create(config or AgentConfig(), tools=tools, model_invoker=model, **kwargs)


def _assert_single_terminal(events):
    done = [e for e in events if isinstance(e, DoneEvent)]
    assert len(done) == 1
    assert events[-1] is done[0]


async def _big(query: str) -> str:
    return f"{query}:" + "x" * 400


class TestAgentDirectAnswer:
    @pytest.mark.asyncio
    async def test_text_response_is_the_answer(self, echo_tool):
        model = ScriptedModel([text_result("Paris is the capital of France.")])
        events = await collect(_agent(model, [echo_tool]).run("Capital of France?"))

        assert len(events) == 1
        done = events[0]
        assert done.answer == "Paris is the capital of France."
        assert done.iterations == 1
        assert done.tool_calls == []
        assert model.prompts == ["Capital of France?"]

    @pytest.mark.asyncio
    async def test_model_receives_system_prompt_and_tools(self, echo_tool):
        model = ScriptedModel([text_result("ok")])
        agent = _agent(model, [echo_tool], AgentConfig(model="test-model"))
        await collect(agent.run("hi"))

        kwargs = model.kwargs[0]
        assert kwargs["model"] == "test-model"
        assert kwargs["tools"] == [echo_tool.tool]
        assert "### echo" in kwargs["system_prompt"]

    @pytest.mark.asyncio
    async def test_blank_response_gets_readable_answer(self, echo_tool):
        model = ScriptedModel([text_result("   ")])
        events = await collect(_agent(model, [echo_tool]).run("hi"))

        assert events[-1].answer == EMPTY_RESPONSE_MESSAGE

    @pytest.mark.asyncio
    async def test_no_tools(self):
        model = ScriptedModel([])
        events = await collect(_agent(model, []).run("hi"))

        assert len(events) == 1
        assert events[0].answer == NO_TOOLS_MESSAGE
        assert events[0].iterations == 0
        assert model.call_count == 0


class TestAgentToolLoop:
    @pytest.mark.asyncio
    async def test_tool_then_answer(self, echo_tool):
        model = ScriptedModel(
            [
                tool_call_result(call("echo", query="AAPL"), text="Let me look that up."),
                text_result("AAPL looks fine."),
            ]
        )
        events = await collect(_agent(model, [echo_tool]).run("How is AAPL?"))

        assert [type(e) for e in events] == [
            ThinkingEvent,
            ToolStartEvent,
            ToolEndEvent,
            DoneEvent,
        ]
        assert events[0].message == "Let me look that up."

        done = events[-1]
        assert done.answer == "AAPL looks fine."
        assert done.iterations == 2
        assert done.tool_calls[0].result == "echo: AAPL"

        # Second prompt carries the full tool result and the usage listing
        second_prompt = model.prompts[1]
        assert "How is AAPL?" in second_prompt
        assert "echo: AAPL" in second_prompt
        assert "- echo(query=AAPL)" in second_prompt

    @pytest.mark.asyncio
    async def test_whitespace_thinking_is_skipped(self, echo_tool):
        model = ScriptedModel(
            [tool_call_result(call("echo", query="a"), text="  \n "), text_result("done")]
        )
        events = await collect(_agent(model, [echo_tool]).run("q"))

        assert not any(isinstance(e, ThinkingEvent) for e in events)

    @pytest.mark.asyncio
    async def test_max_iterations(self, echo_tool):
        model = ScriptedModel([], default=tool_call_result(call("echo", query="again")))
        agent = _agent(model, [echo_tool], AgentConfig(max_iterations=3))
        events = await collect(agent.run("loop forever"))

        assert model.call_count == 3
        done = events[-1]
        assert done.answer.startswith("Reached maximum iterations (3)")
        assert done.iterations == 3
        assert len(done.tool_calls) == 3
        _assert_single_terminal(events)

    @pytest.mark.asyncio
    async def test_single_tool_failure_does_not_abort_batch(self, echo_tool, failing_tool):
        model = ScriptedModel(
            [
                tool_call_result(
                    call("echo", query="1"),
                    call("boom", query="2"),
                    call("echo", query="3"),
                ),
                text_result("Partial answer."),
            ]
        )
        events = await collect(_agent(model, [echo_tool, failing_tool]).run("q"))

        done = events[-1]
        failures = [r for r in done.tool_calls if r.error is not None]
        successes = [r for r in done.tool_calls if r.error is None]
        assert len(failures) == 1
        assert len(successes) == 2
        assert failures[0].tool == "boom"
        assert model.call_count == 2
        assert done.answer == "Partial answer."

    @pytest.mark.asyncio
    async def test_token_usage_is_accumulated(self, echo_tool):
        model = ScriptedModel(
            [
                tool_call_result(
                    call("echo", query="a"),
                    usage=TokenUsage(prompt_tokens=100, completion_tokens=10, total_tokens=110),
                ),
                tool_call_result(call("echo", query="b")),  # provider reported nothing
                text_result(
                    "done",
                    usage=TokenUsage(prompt_tokens=200, completion_tokens=20, total_tokens=220),
                ),
            ]
        )
        events = await collect(_agent(model, [echo_tool]).run("q"))

        usage = events[-1].token_usage
        assert usage.prompt_tokens == 300
        assert usage.completion_tokens == 30
        assert usage.total_tokens == 330
        assert events[-1].tokens_per_second >= 0


class TestAgentModelFailures:
    @pytest.mark.asyncio
    async def test_non_overflow_failure_ends_run(self, echo_tool):
        model = ScriptedModel(
            [
                tool_call_result(call("echo", query="a")),
                RuntimeError("Error code: 429 - rate limit exceeded"),
            ]
        )
        events = await collect(_agent(model, [echo_tool]).run("q"))

        done = events[-1]
        assert done.answer.startswith("Error: ")
        assert "rate limiting" in done.answer
        assert len(done.tool_calls) == 1
        assert model.call_count == 2
        _assert_single_terminal(events)

    @pytest.mark.asyncio
    async def test_overflow_with_nothing_to_prune_fails(self, echo_tool):
        model = ScriptedModel([ContextOverflowError("maximum context length exceeded")])
        events = await collect(_agent(model, [echo_tool]).run("q"))

        assert not any(isinstance(e, ContextClearedEvent) for e in events)
        assert events[-1].answer.startswith("Error: ")
        assert model.call_count == 1

    @pytest.mark.asyncio
    async def test_overflow_prunes_and_retries(self):
        tool = make_tool("big", _big)
        batch_one = [call("big", query=f"first-{i}") for i in range(5)]
        batch_two = [call("big", query=f"second-{i}") for i in range(4)]
        model = ScriptedModel(
            [
                tool_call_result(*batch_one),
                ContextOverflowError("context_length_exceeded"),
                tool_call_result(*batch_two),
                RuntimeError("This model's maximum context length is 8192 tokens"),
                text_result("Answer after pruning."),
            ]
        )
        events = await collect(_agent(model, [tool]).run("q"))

        cleared = [e for e in events if isinstance(e, ContextClearedEvent)]
        assert [(e.cleared_count, e.kept_count) for e in cleared] == [(2, 3), (4, 3)]
        assert events[-1].answer == "Answer after pruning."
        assert events[-1].iterations == 3
        assert len(events[-1].tool_calls) == 9

        # Retried prompt keeps only the three most recent payloads
        retried_prompt = model.prompts[2]
        assert "first-0:xxx" not in retried_prompt
        assert "first-1:xxx" not in retried_prompt
        assert "first-4:xxx" in retried_prompt
        assert "big(query=first-0)" in retried_prompt
        _assert_single_terminal(events)

    @pytest.mark.asyncio
    async def test_overflow_retries_are_bounded(self):
        tool = make_tool("big", _big)
        model = ScriptedModel(
            [
                tool_call_result(*[call("big", query=str(i)) for i in range(6)]),
                ContextOverflowError("too big"),
                ContextOverflowError("too big"),
                ContextOverflowError("too big"),
            ]
        )
        config = AgentConfig(overflow_keep_tool_uses=3)
        events = await collect(_agent(model, [tool], config).run("q"))

        cleared = [e for e in events if isinstance(e, ContextClearedEvent)]
        # First retry prunes 3; second finds nothing left to prune and gives up
        assert [e.cleared_count for e in cleared] == [3]
        assert events[-1].answer.startswith("Error: ")
        assert model.call_count == 3

    @pytest.mark.asyncio
    async def test_unsupported_response_type_is_an_error(self, echo_tool):
        class Weird:
            pass

        async def weird_model(prompt, **kwargs):
            result = text_result("x")
            result.response = Weird()
            return result

        events = await collect(_agent(weird_model, [echo_tool]).run("q"))
        assert events[-1].answer.startswith("Error: Unsupported model response")


class TestAgentApproval:
    @pytest.mark.asyncio
    async def test_denied_tool_ends_run(self, gated_tool):
        model = ScriptedModel([tool_call_result(call("delete_file", path="/etc/hosts"))])
        events = await collect(_agent(model, [gated_tool]).run("clean up"))

        assert [type(e) for e in events] == [ToolDeniedEvent, DoneEvent]
        assert events[-1].answer == ""
        assert model.call_count == 1

    @pytest.mark.asyncio
    async def test_approved_tool_continues(self, gated_tool):
        model = ScriptedModel(
            [tool_call_result(call("delete_file", path="a")), text_result("Deleted.")]
        )
        agent = _agent(
            model,
            [gated_tool],
            request_tool_approval=lambda name, args: ApprovalDecision.ALLOW_ONCE,
        )
        events = await collect(agent.run("clean up"))

        assert events[-1].answer == "Deleted."
        assert events[-1].tool_calls[0].result == "deleted a"


class TestAgentContextThreshold:
    @pytest.mark.asyncio
    async def test_proactive_pruning_before_next_call(self):
        tool = make_tool("big", _big)
        model = ScriptedModel(
            [
                tool_call_result(*[call("big", query=f"r{i}") for i in range(3)]),
                text_result("done"),
            ]
        )
        config = AgentConfig(context_threshold=10, keep_tool_uses=1)
        events = await collect(_agent(model, [tool], config).run("q"))

        types = [e.type for e in events]
        assert types.index("context_cleared") > max(
            i for i, t in enumerate(types) if t == "tool_end"
        )
        cleared = next(e for e in events if isinstance(e, ContextClearedEvent))
        assert (cleared.cleared_count, cleared.kept_count) == (2, 1)

        next_prompt = model.prompts[1]
        assert "r0:xxx" not in next_prompt
        assert "r2:xxx" in next_prompt
        assert "big(query=r0)" in next_prompt

    @pytest.mark.asyncio
    async def test_below_threshold_keeps_everything(self):
        tool = make_tool("big", _big)
        model = ScriptedModel(
            [tool_call_result(*[call("big", query=f"r{i}") for i in range(3)]), text_result("done")]
        )
        events = await collect(_agent(model, [tool]).run("q"))

        assert not any(isinstance(e, ContextClearedEvent) for e in events)
        assert "r0:xxx" in model.prompts[1]


class TestAgentInitialPrompt:
    @pytest.mark.asyncio
    async def test_history_is_prepended(self, echo_tool):
        history = InMemoryChatHistory()
        history.add_turn("What does ACME sell?", "Anvils.")
        history.add_turn("Where is it based?", "Arizona.")

        model = ScriptedModel([text_result("ok")])
        await collect(_agent(model, [echo_tool]).run("And its revenue?", chat_history=history))

        prompt = model.prompts[0]
        assert "User: What does ACME sell?\nAssistant: Anvils." in prompt
        assert prompt.rstrip().endswith("And its revenue?")

    @pytest.mark.asyncio
    async def test_history_window_is_bounded(self, echo_tool):
        history = InMemoryChatHistory()
        for i in range(10):
            history.add_turn(f"question {i}", f"answer {i}")

        model = ScriptedModel([text_result("ok")])
        config = AgentConfig(history_turn_limit=2)
        await collect(_agent(model, [echo_tool], config).run("next", chat_history=history))

        prompt = model.prompts[0]
        assert "question 7" not in prompt
        assert "question 8" in prompt
        assert "question 9" in prompt

    @pytest.mark.asyncio
    async def test_empty_history_uses_raw_query(self, echo_tool):
        model = ScriptedModel([text_result("ok")])
        await collect(_agent(model, [echo_tool]).run("raw", chat_history=InMemoryChatHistory()))

        assert model.prompts == ["raw"]


class TestAgentEventStream:
    @pytest.mark.asyncio
    async def test_consumer_can_stop_early(self, echo_tool):
        model = ScriptedModel([], default=tool_call_result(call("echo", query="a")))
        agent = _agent(model, [echo_tool], AgentConfig(max_iterations=5))

        events = agent.run("q")
        first = await events.__anext__()
        await events.aclose()

        assert isinstance(first, ToolStartEvent)
        assert model.call_count == 1

    @pytest.mark.asyncio
    async def test_runs_are_independent(self, echo_tool):
        model = ScriptedModel(
            [
                tool_call_result(call("echo", query="a")),
                text_result("one"),
                text_result("two"),
            ]
        )
        agent = _agent(model, [echo_tool])

        first = await collect(agent.run("first"))
        second = await collect(agent.run("second"))

        assert len(first[-1].tool_calls) == 1
        assert second[-1].tool_calls == []
        assert second[-1].iterations == 1


class TestAgentCancellation:
    @pytest.mark.asyncio
    async def test_signal_set_during_tool_batch_stops_the_run(self, cancel_signal):
        async def _stop(query: str) -> str:
            cancel_signal.set()
            return f"stopped at {query}"

        stop_tool = make_tool("stop", _stop)
        # The model itself never looks at the signal
        model = ScriptedModel([], default=tool_call_result(call("stop", query="a")))
        agent = _agent(model, [stop_tool], AgentConfig(max_iterations=5), signal=cancel_signal)

        events = await collect(agent.run("q"))

        _assert_single_terminal(events)
        assert model.call_count == 1
        assert events[-1].answer == "Error: The request was cancelled."
        assert events[-1].iterations == 2
        assert len(events[-1].tool_calls) == 1

    @pytest.mark.asyncio
    async def test_signal_set_before_run_skips_the_model(self, echo_tool, cancel_signal):
        cancel_signal.set()
        model = ScriptedModel([text_result("never")])
        agent = _agent(model, [echo_tool], signal=cancel_signal)

        events = await collect(agent.run("q"))

        assert model.call_count == 0
        assert [e.type for e in events] == ["done"]
        assert events[-1].answer == "Error: The request was cancelled."

    @pytest.mark.asyncio
    async def test_signal_set_during_model_call_interrupts_it(self, echo_tool, cancel_signal):
        started = asyncio.Event()

        async def slow_model(prompt, **kwargs):
            started.set()
            await asyncio.sleep(30)
            return text_result("too late")

        agent = _agent(slow_model, [echo_tool], signal=cancel_signal)

        async def _cancel_when_started():
            await started.wait()
            cancel_signal.set()

        canceller = asyncio.ensure_future(_cancel_when_started())
        events = await asyncio.wait_for(collect(agent.run("q")), timeout=5)
        await canceller

        assert events[-1].answer == "Error: The request was cancelled."
