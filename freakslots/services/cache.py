"""In-memory response caches with request coalescing and a quota circuit."""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar
from freakslots.core.errors import TemporarilyUnavailable, is_quota_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]


class CircuitBreaker:
    """
    Opens for a fixed cooldown after a quota error.

    Shared by every cache that reads from the same storage backend.
    """

    def __init__(self, cooldown_seconds: float, clock: Clock = time.monotonic):
        self.cooldown_seconds = cooldown_seconds
        self.clock = clock
        self.open_until = 0.0

    def is_open(self) -> bool:
        return self.clock() < self.open_until

    def trip(self):
        self.open_until = self.clock() + self.cooldown_seconds
        logger.warning(f"Storage quota circuit open for {self.cooldown_seconds:.0f}s")

    def reset(self):
        self.open_until = 0.0


@dataclass
class CacheEntry(Generic[T]):
    value: T
    stored_at: float


def _consume_exception(task: "asyncio.Task[Any]"):
    # Nobody may be awaiting a rebuild that outlived its callers
    if not task.cancelled():
        task.exception()


class ResponseCache(Generic[T]):
    """
    TTL cache for one logical endpoint.

    - Fresh entries are served directly.
    - While the circuit is open, storage is skipped: last value or 503.
    - Concurrent misses for a key share one in-flight load.
    - Callers wait at most ``wait_timeout`` seconds, then get the stale
      value if one exists.
    - Quota errors trip the circuit and degrade to the stale value.
    """

    def __init__(
        self,
        name: str,
        ttl_seconds: float,
        wait_timeout: float,
        circuit: CircuitBreaker,
        clock: Clock = time.monotonic
    ):
        self.name = name
        self.ttl_seconds = ttl_seconds
        self.wait_timeout = wait_timeout
        self.circuit = circuit
        self.clock = clock
        self._entries: Dict[Hashable, CacheEntry[T]] = {}
        self._in_flight: Dict[Hashable, "asyncio.Task[T]"] = {}
        # Bumped per key by invalidate(key); the epoch covers whole-cache resets
        self._generations: Dict[Hashable, int] = {}
        self._epoch = 0

    def _is_fresh(self, entry: Optional[CacheEntry[T]]) -> bool:
        return entry is not None and self.clock() - entry.stored_at < self.ttl_seconds

    def peek(self, key: Hashable) -> Optional[T]:
        """Last stored value for ``key`` regardless of age."""
        entry = self._entries.get(key)
        return entry.value if entry else None

    def in_flight(self, key: Hashable) -> bool:
        return key in self._in_flight

    def _generation(self, key: Hashable) -> Tuple[int, int]:
        return self._epoch, self._generations.get(key, 0)

    async def _load(self, key: Hashable, loader: Callable[[], Awaitable[T]]) -> T:
        generation = self._generation(key)
        try:
            value = await loader()
        except Exception as e:
            if is_quota_error(e):
                self.circuit.trip()
            raise
        else:
            # A load that started before an invalidation is kept only as stale
            stored_at = self.clock() if generation == self._generation(key) else float("-inf")
            self._entries[key] = CacheEntry(value=value, stored_at=stored_at)
            return value
        finally:
            self._in_flight.pop(key, None)

    def _stale_or_unavailable(self, key: Hashable, entry: Optional[CacheEntry[T]], reason: str) -> T:
        if entry is not None:
            logger.warning(f"[{self.name}] serving stale value for {key!r} ({reason})")
            return entry.value
        raise TemporarilyUnavailable("Temporarily unavailable")

    async def get(self, key: Hashable, loader: Callable[[], Awaitable[T]]) -> T:
        """
        Return the cached value for ``key``, loading it on a miss.

        Raises:
            TemporarilyUnavailable: No value could be produced or reused
            Exception: Non-quota loader errors propagate unchanged
        """
        entry = self._entries.get(key)
        if self._is_fresh(entry):
            logger.debug(f"[{self.name}] hit {key!r}")
            return entry.value

        if self.circuit.is_open():
            return self._stale_or_unavailable(key, entry, "circuit open")

        task = self._in_flight.get(key)
        if task is None:
            logger.debug(f"[{self.name}] miss {key!r}, loading")
            task = asyncio.ensure_future(self._load(key, loader))
            task.add_done_callback(_consume_exception)
            self._in_flight[key] = task
        else:
            logger.debug(f"[{self.name}] joining in-flight load for {key!r}")

        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self.wait_timeout)
        except asyncio.TimeoutError:
            return self._stale_or_unavailable(key, entry, "load timed out")
        except Exception as e:
            if is_quota_error(e):
                return self._stale_or_unavailable(key, entry, "quota error")
            raise

    def invalidate(self, key: Optional[Hashable] = None):
        """
        Expire one key, or every key when ``key`` is None.

        Expired values stay available as stale fallbacks.
        """
        if key is None:
            self._epoch += 1
        else:
            self._generations[key] = self._generations.get(key, 0) + 1
        targets = [key] if key is not None else list(self._entries)
        for target in targets:
            entry = self._entries.get(target)
            if entry is not None:
                entry.stored_at = float("-inf")

    def clear(self):
        """Drop every entry, including stale fallbacks."""
        self._epoch += 1
        self._generations.clear()
        self._entries.clear()
