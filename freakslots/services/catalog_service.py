"""Read side of the catalog: home aggregate, single game and category views."""
import logging
import time
from typing import Any, Dict, List, Optional, Sequence
from freakslots.core.config import settings
from freakslots.core.errors import GameNotFound, CategoryNotFound
from freakslots.services.cache import CircuitBreaker, ResponseCache, Clock
from freakslots.services.categories import CATEGORY_DEFS, CATEGORIES_BY_ID, order_pinned, select_buckets
from freakslots.services.normalization import GameRecord
from freakslots.storage import StorageGateway

logger = logging.getLogger(__name__)

HOME_KEY = "home"


class CatalogService:
    """
    Serves catalog reads through per-endpoint caches.

    One instance lives for the whole process; its caches and circuit
    breaker are plain fields so tests can build it with a fake storage
    gateway and a fake clock.
    """

    def __init__(
        self,
        storage: StorageGateway,
        home_limit: Optional[int] = None,
        home_pool_size: Optional[int] = None,
        exclusive_keywords: Optional[Sequence[str]] = None,
        home_ttl: Optional[float] = None,
        game_ttl: Optional[float] = None,
        wait_timeout: Optional[float] = None,
        quota_cooldown: Optional[float] = None,
        clock: Clock = time.monotonic
    ):
        self.storage = storage
        self.home_limit = home_limit or settings.home_limit
        self.home_pool_size = home_pool_size or settings.home_pool_size
        self.exclusive_keywords = (
            list(exclusive_keywords) if exclusive_keywords is not None
            else settings.exclusive_keywords_list
        )

        wait_timeout = wait_timeout if wait_timeout is not None else settings.cache_wait_timeout_seconds
        self.circuit = CircuitBreaker(
            quota_cooldown if quota_cooldown is not None else settings.quota_cooldown_seconds,
            clock=clock
        )
        self.home_cache: ResponseCache[List[Dict[str, Any]]] = ResponseCache(
            "home",
            home_ttl if home_ttl is not None else settings.home_cache_ttl_seconds,
            wait_timeout,
            self.circuit,
            clock=clock
        )
        self.game_cache: ResponseCache[Dict[str, Any]] = ResponseCache(
            "game",
            game_ttl if game_ttl is not None else settings.game_cache_ttl_seconds,
            wait_timeout,
            self.circuit,
            clock=clock
        )
        self.category_cache: ResponseCache[Dict[str, Any]] = ResponseCache(
            "category",
            home_ttl if home_ttl is not None else settings.home_cache_ttl_seconds,
            wait_timeout,
            self.circuit,
            clock=clock
        )

    async def _pinned_records(self, pool: Sequence[GameRecord]) -> List[GameRecord]:
        """Pinned best games in curated order, fetching any outside the pool."""
        pinned_ids = await self.storage.get_pinned_best_ids()
        if not pinned_ids:
            return []

        in_pool = {g.id for g in pool}
        missing = [i for i in pinned_ids if i not in in_pool]
        extra = await self.storage.get_games(missing) if missing else []
        return order_pinned(pinned_ids, list(pool) + list(extra))

    async def _build_home(self) -> List[Dict[str, Any]]:
        pool = await self.storage.list_enabled_games(self.home_pool_size)
        pinned = await self._pinned_records(pool)
        buckets = select_buckets(pool, self.home_limit, self.exclusive_keywords, pinned)

        logger.info(f"Built home aggregate from {len(pool)} games ({len(pinned)} pinned)")
        return [
            {
                "id": definition.id,
                "title": definition.title,
                "icon": definition.icon,
                "games": [g.to_summary() for g in buckets.get(definition.id, [])],
            }
            for definition in CATEGORY_DEFS
        ]

    async def get_home(self) -> List[Dict[str, Any]]:
        """Home sections ``exclusive, best, new, rtp97`` with game summaries."""
        return await self.home_cache.get(HOME_KEY, self._build_home)

    async def get_game(self, game_id: str) -> Dict[str, Any]:
        """
        Single game summary.

        Raises:
            GameNotFound: If no such game is stored
        """
        game_id = str(game_id)

        async def load() -> Dict[str, Any]:
            record = await self.storage.get_game(game_id)
            if record is None:
                raise GameNotFound(game_id)
            return record.to_summary()

        return await self.game_cache.get(game_id, load)

    async def get_category(self, category_id: str) -> Dict[str, Any]:
        """
        A rebuilt category bucket, following its active run.

        Raises:
            CategoryNotFound: If the category id is unknown
        """
        if category_id not in CATEGORIES_BY_ID:
            raise CategoryNotFound(category_id)

        async def load() -> Dict[str, Any]:
            definition = CATEGORIES_BY_ID[category_id]
            snapshot = await self.storage.get_category(category_id)
            game_ids = snapshot.game_ids if snapshot else []
            records = {g.id: g for g in await self.storage.get_games(game_ids)} if game_ids else {}
            return {
                "id": definition.id,
                "title": snapshot.title if snapshot else definition.title,
                "icon": snapshot.icon if snapshot else definition.icon,
                "runId": snapshot.active_run_id if snapshot else None,
                "games": [records[i].to_summary() for i in game_ids if i in records and records[i].enabled],
            }

        return await self.category_cache.get(category_id, load)

    def invalidate_catalog(self):
        """Expire every catalog cache after a sync or admin mutation."""
        self.home_cache.invalidate()
        self.game_cache.invalidate()
        self.category_cache.invalidate()
        logger.info("Catalog caches invalidated")

    def clear_catalog(self):
        """Drop every cached value, including stale fallbacks."""
        self.home_cache.clear()
        self.game_cache.clear()
        self.category_cache.clear()
        logger.info("Catalog caches cleared")
