"""Shared pytest fixtures for catalog, cache and bot tests."""
import asyncio
import dataclasses
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple
import pytest
from freakslots.providers import CatalogProvider
from freakslots.providers.models import GamesPage, PageMeta
from freakslots.services.categories import CategoryDef
from freakslots.services.normalization import GameRecord
from freakslots.storage import CategorySnapshot, StorageGateway


# ============================================================================
# Factories
# ============================================================================

def create_raw_game(
    game_id: Any,
    name: Optional[str] = None,
    published: Any = 1,
    updated_at: str = "2026-10-01T10:00:00Z",
    created_at: str = "2026-09-01T10:00:00Z",
    rtp: Any = 96.5,
    provider: Any = "Pragmatic Play",
    url: str = "https://slotslaunch.com/iframe/1"
) -> Dict[str, Any]:
    """Factory for raw upstream game JSON."""
    return {
        "id": game_id,
        "name": name if name is not None else f"Game {game_id}",
        "published": published,
        "updated_at": updated_at,
        "created_at": created_at,
        "published_at": created_at,
        "rtp": rtp,
        "provider": provider,
        "thumb": f"https://cdn.example.com/{game_id}.png",
        "url": url,
    }


def create_record(
    game_id: str,
    name: Optional[str] = None,
    enabled: bool = True,
    rtp: Optional[float] = None,
    updated_at_ts: int = 0,
    created_at_ts: int = 0
) -> GameRecord:
    """Factory for normalized records."""
    return GameRecord(
        id=game_id,
        name=name if name is not None else f"Game {game_id}",
        provider="Provider",
        thumb=f"https://cdn.example.com/{game_id}.png",
        rtp=rtp,
        published=enabled,
        enabled=enabled,
        api_url=f"https://slotslaunch.com/iframe/{game_id}",
        embed_url=f"https://slotslaunch.com/iframe/{game_id}?token=t",
        updated_at_ts=updated_at_ts,
        created_at_ts=created_at_ts,
    )


def create_page(
    records: List[Dict[str, Any]],
    last_page: Optional[int] = None
) -> GamesPage:
    """Factory for an upstream page, with paging meta only when given."""
    meta = PageMeta(last_page=last_page, raw={"last_page": last_page}) if last_page is not None else None
    return GamesPage(records=records, meta=meta)


# ============================================================================
# Fakes
# ============================================================================

class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeProvider(CatalogProvider):
    """Serves prepared pages and records every request."""

    def __init__(self, pages: Optional[List[GamesPage]] = None, error: Optional[Exception] = None):
        self.pages = pages or []
        self.error = error
        self.fail_on_page: Optional[int] = None
        self.requests: List[Tuple[int, int, Optional[str]]] = []
        self.closed = False

    async def fetch_page(self, page: int, per_page: int, since_date: Optional[str] = None) -> GamesPage:
        self.requests.append((page, per_page, since_date))
        if self.error is not None and (self.fail_on_page is None or page == self.fail_on_page):
            raise self.error
        if page > len(self.pages):
            return GamesPage(records=[])
        return self.pages[page - 1]

    def build_embed_url(self, raw_url: str) -> str:
        return f"{raw_url}?token=t"

    async def close(self):
        self.closed = True


class FakeStorageGateway(StorageGateway):
    """In-memory storage gateway with call recording and failure injection."""

    def __init__(self):
        self.games: Dict[str, GameRecord] = {}
        self.watermark: Optional[str] = None
        self.pinned_ids: List[str] = []
        self.categories: Dict[str, Dict[str, Any]] = {}
        self.category_runs: Dict[Tuple[str, int], List[str]] = {}
        self.users: Dict[int, str] = {}
        self.calls: List[str] = []
        self.upsert_batches: List[int] = []
        self.read_error: Optional[Exception] = None
        self.write_error: Optional[Exception] = None
        self.read_delay = 0.0
        self.pings = 0
        self.closed = False

    async def _read(self, name: str):
        self.calls.append(name)
        if self.read_delay:
            await asyncio.sleep(self.read_delay)
        if self.read_error is not None:
            raise self.read_error

    def _write(self, name: str):
        self.calls.append(name)
        if self.write_error is not None:
            raise self.write_error

    async def upsert_games(self, records: Sequence[GameRecord]) -> None:
        self._write("upsert_games")
        self.upsert_batches.append(len(records))
        for record in records:
            self.games[record.id] = dataclasses.replace(record)

    async def get_game(self, game_id: str) -> Optional[GameRecord]:
        await self._read("get_game")
        return self.games.get(game_id)

    async def get_games(self, game_ids: Sequence[str]) -> List[GameRecord]:
        await self._read("get_games")
        return [self.games[i] for i in game_ids if i in self.games]

    async def list_enabled_games(self, limit: int) -> List[GameRecord]:
        await self._read("list_enabled_games")
        enabled = [g for g in self.games.values() if g.enabled]
        records: Dict[str, GameRecord] = {}
        for key in (lambda g: (-g.updated_at_ts, g.id), lambda g: (-g.created_at_ts, g.id)):
            for g in sorted(enabled, key=key)[:limit]:
                records.setdefault(g.id, g)
        return list(records.values())

    async def delete_all_games(self, batch_size: int = 300) -> int:
        self._write("delete_all_games")
        count = len(self.games)
        self.games.clear()
        return count

    async def get_sync_watermark(self) -> Optional[str]:
        await self._read("get_sync_watermark")
        return self.watermark

    async def set_sync_watermark(self, date_str: str) -> None:
        self._write("set_sync_watermark")
        self.watermark = date_str

    async def get_pinned_best_ids(self) -> List[str]:
        await self._read("get_pinned_best_ids")
        return list(self.pinned_ids)

    async def set_pinned_best_ids(self, game_ids: Sequence[str]) -> None:
        self._write("set_pinned_best_ids")
        self.pinned_ids = [str(i) for i in game_ids]

    async def ensure_category(self, definition: CategoryDef) -> None:
        self._write(f"ensure_category:{definition.id}")
        entry = self.categories.setdefault(definition.id, {"active_run_id": None})
        entry.update({"title": definition.title, "icon": definition.icon})

    async def write_category_run(self, category_id: str, run_id: int, game_ids: Sequence[str]) -> None:
        self._write(f"write_category_run:{category_id}")
        self.category_runs[(category_id, run_id)] = list(game_ids)

    async def activate_category_run(self, category_id: str, run_id: int) -> None:
        self._write(f"activate_category_run:{category_id}")
        self.categories[category_id]["active_run_id"] = run_id

    async def delete_stale_category_runs(self, category_id: str, keep_run_id: int) -> int:
        self._write(f"delete_stale_category_runs:{category_id}")
        stale = [k for k in self.category_runs if k[0] == category_id and k[1] != keep_run_id]
        for key in stale:
            del self.category_runs[key]
        return len(stale)

    async def get_category(self, category_id: str) -> Optional[CategorySnapshot]:
        await self._read("get_category")
        entry = self.categories.get(category_id)
        if entry is None:
            return None
        run_id = entry["active_run_id"]
        return CategorySnapshot(
            id=category_id,
            title=entry["title"],
            icon=entry["icon"],
            active_run_id=run_id,
            game_ids=list(self.category_runs.get((category_id, run_id), [])) if run_id else []
        )

    async def upsert_user(self, chat_id: int, username: Optional[str] = None) -> None:
        self._write("upsert_user")
        if username is not None or chat_id not in self.users:
            self.users[chat_id] = username or self.users.get(chat_id, "")

    async def list_user_ids(self) -> List[int]:
        await self._read("list_user_ids")
        return list(self.users)

    async def ping(self) -> None:
        self._write("ping")
        self.pings += 1

    async def close(self):
        self.closed = True


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def fake_storage():
    """Empty in-memory storage gateway."""
    return FakeStorageGateway()


@pytest.fixture
def fake_provider():
    """Provider with no pages."""
    return FakeProvider()


@pytest.fixture
def fake_clock():
    """Monotonic clock starting at 1000s."""
    return FakeClock()


@pytest.fixture
def fixed_now():
    """Wall clock pinned to 2026-10-18 12:00 UTC."""
    return lambda: datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)
