"""Per-resource request queue that serializes overlapping calls to the same key."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable


logger = logging.getLogger(__name__)


@dataclass
class RequestQueue:
    """
    Chains calls per resource key.

    Each caller takes the key's slot, waits for the previous holder to finish
    (success or failure), sleeps ``spacing`` seconds, then runs. Because the
    slot is claimed before waiting, any number of overlapping calls to one key
    run strictly one after another. Distinct keys never wait on each other.

    Not thread-safe: all access happens on the event loop.
    """
    spacing: float = 0.1
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    _slots: dict[str, asyncio.Future] = field(default_factory=dict, init=False)

    # Stats
    _total_acquired: int = field(default=0, init=False)
    _total_waited: int = field(default=0, init=False)

    @asynccontextmanager
    async def acquire(self, key: str) -> AsyncIterator[None]:
        """Hold the slot for ``key`` for the duration of the block."""
        slot = asyncio.get_running_loop().create_future()
        previous = self._slots.get(key)
        self._slots[key] = slot
        self._total_acquired += 1

        try:
            if previous is not None:
                self._total_waited += 1
                logger.debug(f"Waiting for in-flight request on {key}")
                await asyncio.wait([previous])
                await self.sleep(self.spacing)
            yield
        finally:
            if previous is not None and not previous.done():
                # Cancelled while queued: the slot is held until the predecessor finishes
                previous.add_done_callback(lambda _: self._release(key, slot))
            else:
                self._release(key, slot)

    def _release(self, key: str, slot: asyncio.Future) -> None:
        if not slot.done():
            slot.set_result(None)
        if self._slots.get(key) is slot:
            del self._slots[key]

    def in_flight(self, key: str) -> bool:
        """True if a call for ``key`` is running or queued."""
        return key in self._slots

    @property
    def stats(self) -> dict:
        """Queue statistics."""
        return {
            "in_flight_keys": len(self._slots),
            "total_acquired": self._total_acquired,
            "total_waited": self._total_waited,
        }
