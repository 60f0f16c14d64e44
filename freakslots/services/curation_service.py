"""Best-games curation: fuzzy-match curated titles upstream and pin them."""
import logging
from typing import Any, Dict, List, Optional, Sequence
from freakslots.core.config import settings
from freakslots.providers import CatalogProvider
from freakslots.services.normalization import GameRecord, normalize_game
from freakslots.storage import StorageGateway
from freakslots.utils.text import key_name, names_match

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGES = 400
DEFAULT_PER_PAGE = 150


class CurationService:
    """Pulls a curated list of titles from the upstream and pins them as best games."""

    def __init__(self, provider: CatalogProvider, storage: StorageGateway):
        self.provider = provider
        self.storage = storage

    def _match_page(
        self,
        raw_records: Sequence[Dict[str, Any]],
        wanted: List[Dict[str, str]],
        found: Dict[str, GameRecord]
    ):
        for raw in raw_records:
            candidate = key_name(raw.get("name") or raw.get("title") or "")
            for want in wanted:
                if want["key"] in found or not names_match(candidate, want["key"]):
                    continue
                try:
                    record = normalize_game(raw, self.provider.build_embed_url)
                except ValueError:
                    continue
                if record.published:
                    found[want["key"]] = record

    async def pull_best_games(
        self,
        names: Optional[Sequence[str]] = None,
        max_pages: int = DEFAULT_MAX_PAGES,
        per_page: int = DEFAULT_PER_PAGE
    ) -> Dict[str, Any]:
        """
        Scan upstream pages for each wanted title and pin the matches.

        Args:
            names: Titles to look for (defaults to ``settings.best_game_names_list``)
            max_pages: Hard ceiling on pages scanned
            per_page: Upstream page size

        Returns:
            Dict with ``requested``, ``found``, ``missing``, ``pagesScanned``
            and the last upstream ``meta`` object

        Raises:
            UpstreamError: If a page fetch fails
        """
        names = [str(n) for n in names] if names else settings.best_game_names_list
        wanted = [{"raw": n, "key": key_name(n)} for n in names]
        wanted_keys = {w["key"] for w in wanted}

        found: Dict[str, GameRecord] = {}
        last_meta = None
        pages_scanned = 0
        page = 1

        while page <= max_pages and len(found) < len(wanted_keys):
            result = await self.provider.fetch_page(page, per_page, None)
            pages_scanned += 1
            last_meta = result.meta.raw if result.meta else None

            if not result.records:
                break

            self._match_page(result.records, wanted, found)

            if result.is_last_page(page):
                break
            page += 1

        found_records: List[GameRecord] = []
        missing: List[str] = []
        for want in wanted:
            record = found.get(want["key"])
            if record is None:
                missing.append(want["raw"])
            elif record.id not in {r.id for r in found_records}:
                found_records.append(record)

        if found_records:
            await self.storage.upsert_games(found_records)
            await self.storage.set_pinned_best_ids([r.id for r in found_records])

        logger.info(
            f"Best-games pull: {len(found_records)} pinned, {len(missing)} missing "
            f"after {pages_scanned} pages"
        )

        return {
            "requested": names,
            "found": [{"id": r.id, "name": r.name, "provider": r.provider} for r in found_records],
            "missing": missing,
            "pagesScanned": pages_scanned,
            "meta": last_meta,
        }
