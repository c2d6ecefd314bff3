import asyncio
from typing import Awaitable, Iterable, TypeVar

T = TypeVar("T")


async def bounded_gather(aws: Iterable[Awaitable[T]], limit: int) -> list[T]:
    """Gather with at most ``limit`` awaitables in flight. Results keep input order."""
    semaphore = asyncio.Semaphore(max(1, limit))

    async def run(aw: Awaitable[T]) -> T:
        async with semaphore:
            return await aw

    return list(await asyncio.gather(*(run(aw) for aw in aws)))
