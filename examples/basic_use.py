from langchain_core.tools import tool

from reasonloop import Agent, AgentConfig, DoneEvent, InMemoryChatHistory, RegisteredTool


PRICES = {"AAPL": 231.4, "MSFT": 418.2, "NVDA": 121.9}


@tool
async def get_price(ticker: str) -> dict:
    """Latest closing price for a stock ticker."""
    ticker = ticker.upper()
    if ticker not in PRICES:
        raise ValueError(f"Unknown ticker: {ticker}")
    return {"ticker": ticker, "close": PRICES[ticker]}


async def main():
    config = AgentConfig.from_env(max_iterations=5)
    agent = Agent.create(
        config=config,
        tools=[
            RegisteredTool(
                name="get_price",
                tool=get_price,
                description="Look up a closing price. Call once per ticker; calls run in parallel.",
            )
        ],
    )
    history = InMemoryChatHistory()

    print("reasonloop 基础示例\n")

    for query in ["Which is more expensive, AAPL or MSFT?", "And how does NVDA compare?"]:
        print(f"> {query}")
        async for event in agent.run(query, chat_history=history):
            if isinstance(event, DoneEvent):
                print(f"Response: {event.answer}")
                print(
                    f"({event.iterations} iterations, {len(event.tool_calls)} tool calls, "
                    f"{event.token_usage.total_tokens} tokens)\n"
                )
                history.add_turn(query, event.answer)
            else:
                print(f"  [{event.type}]")


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
