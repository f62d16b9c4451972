"""
Concurrent fan-out helpers.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, Hashable, Iterable, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
T = TypeVar("T")


async def gather_by_key(
    keys: Iterable[K],
    fetch: Callable[[K], Awaitable[T]],
    max_concurrency: Optional[int] = None,
) -> Dict[K, Union[T, Exception]]:
    """
    Run ``fetch`` for every key concurrently and collect the outcomes.

    A failing key never cancels the others: its entry holds the raised
    exception instead of a result. Duplicate keys are fetched once.

    Args:
        keys: Keys to fetch
        fetch: Coroutine function called with each key
        max_concurrency: Upper bound on in-flight calls (None = unbounded)

    Returns:
        Mapping from key to result or exception, in key order
    """
    unique_keys = list(dict.fromkeys(keys))
    if not unique_keys:
        return {}

    semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None

    async def run(key: K) -> T:
        if semaphore is None:
            return await fetch(key)
        async with semaphore:
            return await fetch(key)

    outcomes = await asyncio.gather(
        *(run(key) for key in unique_keys),
        return_exceptions=True,
    )

    results: Dict[K, Union[T, Exception]] = {}
    for key, outcome in zip(unique_keys, outcomes):
        if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, Exception):
            logger.debug(f"Fetch for {key!r} failed: {outcome}")
        results[key] = outcome
    return results
