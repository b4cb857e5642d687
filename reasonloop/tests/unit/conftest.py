import asyncio

import pytest

from reasonloop.agent.run_context import RunContext, create_run_context
from reasonloop.tools.registry import RegisteredTool
from reasonloop.tests.unit.helpers import make_tool


async def _echo(query: str) -> str:
    return f"echo: {query}"


async def _boom(query: str) -> str:
    raise RuntimeError(f"upstream failure for {query}")


async def _lookup(ticker: str) -> dict:
    return {"ticker": ticker, "price": 123.45}


async def _delete_file(path: str) -> str:
    return f"deleted {path}"


@pytest.fixture
def echo_tool() -> RegisteredTool:
    return make_tool("echo", _echo)


@pytest.fixture
def failing_tool() -> RegisteredTool:
    return make_tool("boom", _boom)


@pytest.fixture
def lookup_tool() -> RegisteredTool:
    return make_tool("lookup", _lookup)


@pytest.fixture
def gated_tool() -> RegisteredTool:
    return make_tool("delete_file", _delete_file, requires_approval=True)


@pytest.fixture
def run_context() -> RunContext:
    return create_run_context("What is going on?")


@pytest.fixture
def cancel_signal() -> asyncio.Event:
    return asyncio.Event()
