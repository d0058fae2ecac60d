import asyncio
from typing import Callable, TypeVar

T = TypeVar("T")


async def run_blocking(func: Callable[..., T], *args, **kwargs) -> T:
    """Run a blocking function in the default executor.

    Used for extractor fan-out and for synchronous database drivers.
    """
    return await asyncio.to_thread(func, *args, **kwargs)
