import asyncio
import itertools
import logging
from typing import Any, Awaitable, Callable, Dict, Hashable

from .exceptions import QuerySuperseded

logger = logging.getLogger("cafe_console.querying")


class LatestQueryGate:
    """
    Latest request wins, per key.

    Every call takes a fresh generation for its key. A call that sees a newer
    generation after its debounce sleep skips the fetch; one that sees it after
    the fetch drops the result. Either way it raises QuerySuperseded.

    A key is forgotten once its latest call has finished, so the map only
    holds keys with a call in flight.
    """

    def __init__(self):
        self._generations: Dict[Hashable, int] = {}
        # Shared across keys so a generation is never reused after a key is forgotten
        self._counter = itertools.count(1)

    def _bump(self, key: Hashable) -> int:
        generation = next(self._counter)
        self._generations[key] = generation
        return generation

    def _is_current(self, key: Hashable, generation: int) -> bool:
        return self._generations.get(key) == generation

    def in_flight(self) -> int:
        return len(self._generations)

    async def run(
        self,
        key: Hashable,
        fetch: Callable[[], Awaitable[Any]],
        delay: float = 0.0,
    ) -> Any:
        generation = self._bump(key)
        try:
            if delay > 0:
                await asyncio.sleep(delay)
                if not self._is_current(key, generation):
                    logger.debug(f"Skipping superseded query {key}")
                    raise QuerySuperseded(str(key))

            result = await fetch()

            if not self._is_current(key, generation):
                logger.debug(f"Discarding stale result for {key}")
                raise QuerySuperseded(str(key))
            return result
        finally:
            if self._is_current(key, generation):
                del self._generations[key]
