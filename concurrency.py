import asyncio
from typing import Awaitable, Callable, Iterable, Optional, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def gather_limited(
    func: Callable[[T], Awaitable[R]],
    items: Iterable[T],
    max_in_flight: Optional[int] = None,
) -> list[R]:
    """
    Run func over items with at most max_in_flight calls awaiting at once.
    None means unbounded, 1 means strictly sequential. Results keep input order.
    The first failure cancels whatever is still pending and is re-raised.
    """
    items = list(items)
    if max_in_flight is not None and max_in_flight < 1:
        raise ValueError("max_in_flight must be at least 1")

    if max_in_flight == 1:
        return [await func(item) for item in items]

    semaphore = asyncio.Semaphore(max_in_flight) if max_in_flight else None

    async def _run(item: T) -> R:
        if semaphore is None:
            return await func(item)
        async with semaphore:
            return await func(item)

    tasks = [asyncio.ensure_future(_run(item)) for item in items]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
