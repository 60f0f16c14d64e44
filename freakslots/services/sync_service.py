"""Catalog sync engine: upstream pages into storage, then category buckets."""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence
from freakslots.core.config import settings
from freakslots.providers import CatalogProvider
from freakslots.services.categories import CATEGORY_DEFS, order_pinned, select_buckets
from freakslots.services.normalization import GameRecord, normalize_game
from freakslots.storage import StorageGateway
from freakslots.utils.time import utc_today, to_date_string, epoch_millis

logger = logging.getLogger(__name__)


# Why a page loop ended
STOP_EMPTY_PAGE = "empty_page"
STOP_LAST_PAGE = "last_page"
STOP_SHORT_PAGE = "short_page"
STOP_PAGE_CEILING = "page_ceiling"
STOP_TARGET_REACHED = "target_reached"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def chunked(items: Sequence[Any], size: int) -> List[Sequence[Any]]:
    """Split a sequence into consecutive chunks of at most ``size``."""
    return [items[i:i + size] for i in range(0, len(items), size)]


@dataclass
class SyncStats:
    """Outcome of one sync run."""
    total_fetched: int = 0
    pages_fetched: int = 0
    skipped: int = 0
    updated_at_used: Optional[str] = None
    last_seen_updated_at: Optional[str] = None
    full: bool = False
    stop_reason: Optional[str] = None
    categories_rebuilt: bool = False
    category_run_id: Optional[int] = None
    watermark: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalFetched": self.total_fetched,
            "pagesFetched": self.pages_fetched,
            "skipped": self.skipped,
            "updatedAtUsed": self.updated_at_used,
            "lastSeenUpdatedAt": self.last_seen_updated_at,
            "full": self.full,
            "stopReason": self.stop_reason,
            "categoriesRebuilt": self.categories_rebuilt,
            "categoryRunId": self.category_run_id,
            "watermark": self.watermark,
        }


@dataclass
class RebuildStats:
    """Outcome of one category rebuild."""
    run_id: int
    counts: Dict[str, int] = field(default_factory=dict)


class CatalogSyncEngine:
    """
    Runs sync passes against the upstream catalog.

    Pages are fetched and committed strictly in order; page N+1 is not
    requested until every chunk of page N is written.
    """

    def __init__(
        self,
        provider: CatalogProvider,
        storage: StorageGateway,
        per_page: Optional[int] = None,
        max_pages: Optional[int] = None,
        chunk_size: Optional[int] = None,
        category_limit: Optional[int] = None,
        category_pool_size: Optional[int] = None,
        exclusive_keywords: Optional[Sequence[str]] = None,
        clock: Callable[[], datetime] = _utc_now
    ):
        self.provider = provider
        self.storage = storage
        self.per_page = per_page or settings.sync_per_page
        self.max_pages = max_pages or settings.sync_max_pages
        self.chunk_size = chunk_size or settings.sync_chunk_size
        self.category_limit = category_limit or settings.category_limit
        self.category_pool_size = category_pool_size or settings.category_pool_size
        self.exclusive_keywords = (
            list(exclusive_keywords) if exclusive_keywords is not None
            else settings.exclusive_keywords_list
        )
        self.clock = clock

    def normalize_page(self, raw_records: Sequence[Dict[str, Any]]) -> List[GameRecord]:
        """Normalize raw records, dropping malformed ones."""
        records = []
        for raw in raw_records:
            try:
                records.append(normalize_game(raw, self.provider.build_embed_url))
            except ValueError as e:
                logger.warning(f"Skipping malformed upstream record: {e}")
        return records

    async def _upsert_in_chunks(self, records: Sequence[GameRecord]):
        for chunk in chunked(records, self.chunk_size):
            await self.storage.upsert_games(chunk)

    async def run_sync(self, full: bool = False, rebuild_categories: Optional[bool] = None) -> SyncStats:
        """
        Run one sync pass.

        Args:
            full: Ignore the watermark and walk the whole published catalog
            rebuild_categories: Rebuild buckets after the page loop
                (defaults to ``settings.sync_rebuild_categories``)

        Returns:
            SyncStats

        Raises:
            UpstreamError: A page fetch failed; earlier pages stay committed
            StorageError: A write failed
        """
        if rebuild_categories is None:
            rebuild_categories = settings.sync_rebuild_categories

        watermark = await self.storage.get_sync_watermark()
        since = None if full else watermark

        stats = SyncStats(updated_at_used=since, full=full or watermark is None)
        logger.info(f"Starting sync (full={stats.full}, since={since})")

        page = 1
        while True:
            if page > self.max_pages:
                stats.stop_reason = STOP_PAGE_CEILING
                logger.warning(f"Sync hit page ceiling ({self.max_pages}), stopping")
                break

            result = await self.provider.fetch_page(page, self.per_page, since)
            stats.pages_fetched += 1

            if not result.records:
                stats.stop_reason = STOP_EMPTY_PAGE
                break

            normalized = self.normalize_page(result.records)
            published = [r for r in normalized if r.published]
            stats.skipped += len(result.records) - len(published)

            await self._upsert_in_chunks(published)

            stats.total_fetched += len(published)
            if published and published[-1].updated_at:
                stats.last_seen_updated_at = published[-1].updated_at

            logger.debug(f"Page {page}: {len(result.records)} raw, {len(published)} published")

            if result.is_last_page(page):
                stats.stop_reason = STOP_LAST_PAGE
                break
            if (result.meta is None or result.meta.last_page is None) and len(result.records) < self.per_page:
                stats.stop_reason = STOP_SHORT_PAGE
                break

            page += 1

        if rebuild_categories:
            rebuild = await self.rebuild_categories()
            stats.categories_rebuilt = True
            stats.category_run_id = rebuild.run_id

        stats.watermark = await self._advance_watermark(watermark)

        logger.info(
            f"Sync finished: {stats.total_fetched} games over {stats.pages_fetched} pages "
            f"(stop={stats.stop_reason}, watermark={stats.watermark})"
        )
        return stats

    async def _advance_watermark(self, current: Optional[str]) -> str:
        """Persist today's UTC date, never moving the watermark backwards."""
        today = to_date_string(utc_today(self.clock()))
        new_value = max(today, current) if current else today
        await self.storage.set_sync_watermark(new_value)
        return new_value

    async def rebuild_categories(self, limit: Optional[int] = None) -> RebuildStats:
        """
        Recompute every bucket under a fresh run id.

        Each bucket's items are fully written before its active-run pointer
        moves, so readers keep seeing the previous run until then.
        """
        limit = limit or self.category_limit
        run_id = epoch_millis(self.clock())

        pool = await self.storage.list_enabled_games(self.category_pool_size)
        pinned_ids = await self.storage.get_pinned_best_ids()
        pinned = order_pinned(pinned_ids, pool)
        found = {g.id for g in pinned}
        missing = [i for i in pinned_ids if i not in found]
        if missing:
            pinned = order_pinned(pinned_ids, list(pool) + await self.storage.get_games(missing))

        buckets = select_buckets(pool, limit, self.exclusive_keywords, pinned)
        stats = RebuildStats(run_id=run_id)

        for definition in CATEGORY_DEFS:
            games = buckets.get(definition.id, [])
            await self.storage.ensure_category(definition)
            await self.storage.write_category_run(definition.id, run_id, [g.id for g in games])
            await self.storage.activate_category_run(definition.id, run_id)
            await self.storage.delete_stale_category_runs(definition.id, run_id)
            stats.counts[definition.id] = len(games)

        logger.info(f"Rebuilt categories (run={run_id}): {stats.counts}")
        return stats

    async def seed_newest_published(self, target: int) -> Dict[str, Any]:
        """
        Walk the catalog newest-first until ``target`` published games are stored.

        Used after a wipe; no date filter is applied.
        """
        collected: List[GameRecord] = []
        seen = set()
        page = 1
        pages_fetched = 0
        stop_reason = None

        while len(collected) < target:
            if page > self.max_pages:
                stop_reason = STOP_PAGE_CEILING
                break

            result = await self.provider.fetch_page(page, self.per_page, None)
            pages_fetched += 1
            if not result.records:
                stop_reason = STOP_EMPTY_PAGE
                break

            for record in self.normalize_page(result.records):
                if not record.published or record.id in seen:
                    continue
                seen.add(record.id)
                collected.append(record)
                if len(collected) >= target:
                    break

            if result.is_last_page(page):
                stop_reason = STOP_LAST_PAGE
                break
            if (result.meta is None or result.meta.last_page is None) and len(result.records) < self.per_page:
                stop_reason = STOP_SHORT_PAGE
                break
            page += 1
        else:
            stop_reason = STOP_TARGET_REACHED

        await self._upsert_in_chunks(collected)
        logger.info(f"Seeded {len(collected)}/{target} newest published games over {pages_fetched} pages")

        return {
            "target": target,
            "seeded": len(collected),
            "pagesFetched": pages_fetched,
            "stopReason": stop_reason,
        }

    async def reset_catalog(self, target: int) -> Dict[str, Any]:
        """Wipe stored games and reseed with the newest ``target`` published ones."""
        deleted = await self.storage.delete_all_games(batch_size=300)
        info = await self.seed_newest_published(target)
        info["deleted"] = deleted
        return info
