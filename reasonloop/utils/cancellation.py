import asyncio

from typing import Awaitable, Optional, TypeVar

from reasonloop.utils.errors import OperationCancelledError

T = TypeVar("T")


async def run_cancellable(
    awaitable: Awaitable[T],
    signal: Optional[asyncio.Event] = None,
    timeout: Optional[float] = None,
) -> T:
    """Await ``awaitable`` unless ``signal`` fires first.

    Args:
        awaitable: The model call or tool invocation to run.
        signal (Optional[asyncio.Event]): Run-wide cancellation signal.
        timeout (Optional[float]): Seconds before raising ``asyncio.TimeoutError``.

    Raises:
        OperationCancelledError: The signal was already set, or was set while
            the operation was in flight. The inner task is cancelled and
            awaited before this is raised.
    """
    if signal is not None and signal.is_set():
        # Never started: close the coroutine so it doesn't warn.
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise OperationCancelledError()

    task = asyncio.ensure_future(awaitable)
    if signal is None:
        return await asyncio.wait_for(task, timeout=timeout)

    waiter = asyncio.ensure_future(signal.wait())
    try:
        done, _ = await asyncio.wait(
            {task, waiter},
            timeout=timeout,
            return_when=asyncio.FIRST_COMPLETED,
        )
    except asyncio.CancelledError:
        task.cancel()
        waiter.cancel()
        await asyncio.gather(task, waiter, return_exceptions=True)
        raise

    if task in done:
        waiter.cancel()
        await asyncio.gather(waiter, return_exceptions=True)
        return task.result()

    task.cancel()
    waiter.cancel()
    await asyncio.gather(task, waiter, return_exceptions=True)
    if not done:
        raise asyncio.TimeoutError()
    raise OperationCancelledError()
