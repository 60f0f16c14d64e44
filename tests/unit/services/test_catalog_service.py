"""Unit tests for CatalogService read paths."""
import asyncio
import pytest

from freakslots.core.errors import CategoryNotFound, GameNotFound, QuotaExceededError, TemporarilyUnavailable
from freakslots.services.catalog_service import CatalogService
from freakslots.services.categories import CATEGORIES_BY_ID
from tests.conftest import create_record


def make_service(storage, clock, **overrides):
    options = dict(
        home_limit=3,
        home_pool_size=100,
        exclusive_keywords=[],
        home_ttl=10,
        game_ttl=300,
        wait_timeout=2.5,
        quota_cooldown=60,
        clock=clock,
    )
    options.update(overrides)
    return CatalogService(storage, **options)


async def seed(storage, *records):
    await storage.upsert_games(list(records))


def section(home, section_id):
    return next(s for s in home if s["id"] == section_id)


# ============================================================================
# Tests for get_home
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestGetHome:
    """Test home aggregate."""

    async def test_sections_in_display_order(self, fake_storage, fake_clock):
        """✅ exclusive, best, new, rtp97 with titles and icons."""
        await seed(fake_storage, create_record("1", rtp=98))
        home = await make_service(fake_storage, fake_clock).get_home()

        assert [s["id"] for s in home] == ["exclusive", "best", "new", "rtp97"]
        assert home[0]["title"] and home[0]["icon"]
        assert home[3]["games"][0] == {
            "id": "1",
            "name": "Game 1",
            "provider": "Provider",
            "thumb": "https://cdn.example.com/1.png",
            "demoUrl": "https://slotslaunch.com/iframe/1?token=t",
            "rtp": 98,
        }

    async def test_pinned_lead_best(self, fake_storage, fake_clock):
        """✅ Pinned [A, B] then ranked, capped at limit 3."""
        await seed(
            fake_storage,
            create_record("A", updated_at_ts=1),
            create_record("B", updated_at_ts=30),
            create_record("C", updated_at_ts=20),
            create_record("D", updated_at_ts=10),
        )
        fake_storage.pinned_ids = ["A", "B"]

        home = await make_service(fake_storage, fake_clock).get_home()

        assert [g["id"] for g in section(home, "best")["games"]] == ["A", "B", "C"]

    async def test_pinned_outside_pool(self, fake_storage, fake_clock):
        """✅ Pinned games beyond the pool are still shown."""
        await seed(fake_storage, create_record("A"), create_record("B"), create_record("Z"))
        fake_storage.pinned_ids = ["Z"]

        home = await make_service(fake_storage, fake_clock, home_pool_size=2).get_home()

        assert section(home, "best")["games"][0]["id"] == "Z"
        assert "get_games" in fake_storage.calls

    async def test_newest_games_survive_pool_cap(self, fake_storage, fake_clock):
        """✅ Catalog larger than the pool → new and best still the newest."""
        await seed(fake_storage, *[
            create_record(f"old{i}", updated_at_ts=i, created_at_ts=i) for i in range(300)
        ])
        await seed(fake_storage, *[
            create_record(f"new{i}", updated_at_ts=100_000 + i, created_at_ts=100_000 + i) for i in range(5)
        ])

        home = await make_service(fake_storage, fake_clock, home_limit=5, home_pool_size=220).get_home()

        expected = ["new4", "new3", "new2", "new1", "new0"]
        assert [g["id"] for g in section(home, "new")["games"]] == expected
        assert [g["id"] for g in section(home, "best")["games"]] == expected

    async def test_cached_within_ttl(self, fake_storage, fake_clock):
        """✅ Second call does not touch storage."""
        service = make_service(fake_storage, fake_clock)
        await service.get_home()
        reads = len(fake_storage.calls)

        await service.get_home()
        assert len(fake_storage.calls) == reads

    async def test_concurrent_requests_coalesce(self, fake_storage, fake_clock):
        """✅ Concurrent cold requests → one pool read."""
        fake_storage.read_delay = 0.02
        service = make_service(fake_storage, fake_clock)

        await asyncio.gather(*(service.get_home() for _ in range(5)))

        assert fake_storage.calls.count("list_enabled_games") == 1

    async def test_quota_error_serves_stale_then_skips_storage(self, fake_storage, fake_clock):
        """✅ Quota error → stale home, and storage untouched while open."""
        await seed(fake_storage, create_record("1"))
        service = make_service(fake_storage, fake_clock)
        first = await service.get_home()

        fake_clock.advance(11)
        fake_storage.read_error = QuotaExceededError("RESOURCE_EXHAUSTED")
        assert await service.get_home() == first

        reads = len(fake_storage.calls)
        fake_clock.advance(5)
        assert await service.get_home() == first
        assert len(fake_storage.calls) == reads

    async def test_quota_error_cold_cache(self, fake_storage, fake_clock):
        """❌ Nothing cached and quota exceeded → TemporarilyUnavailable."""
        fake_storage.read_error = QuotaExceededError("quota")

        with pytest.raises(TemporarilyUnavailable):
            await make_service(fake_storage, fake_clock).get_home()

    async def test_invalidate_refreshes(self, fake_storage, fake_clock):
        """✅ invalidate_catalog → next call sees new games."""
        service = make_service(fake_storage, fake_clock)
        await service.get_home()

        await seed(fake_storage, create_record("fresh"))
        service.invalidate_catalog()

        home = await service.get_home()
        assert section(home, "new")["games"][0]["id"] == "fresh"


# ============================================================================
# Tests for get_game
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestGetGame:
    """Test single game reads."""

    async def test_returns_summary(self, fake_storage, fake_clock):
        """✅ Stored game → summary."""
        await seed(fake_storage, create_record("42", name="Mental"))
        game = await make_service(fake_storage, fake_clock).get_game("42")

        assert game["id"] == "42"
        assert game["name"] == "Mental"

    async def test_not_found(self, fake_storage, fake_clock):
        """❌ Unknown id → GameNotFound."""
        with pytest.raises(GameNotFound):
            await make_service(fake_storage, fake_clock).get_game("404")

    async def test_not_found_is_not_cached(self, fake_storage, fake_clock):
        """✅ A game stored after a miss is found on the next call."""
        service = make_service(fake_storage, fake_clock)
        with pytest.raises(GameNotFound):
            await service.get_game("7")

        await seed(fake_storage, create_record("7"))
        assert (await service.get_game("7"))["id"] == "7"

    async def test_game_cache_ttl(self, fake_storage, fake_clock):
        """✅ Game reads cached for their own TTL."""
        await seed(fake_storage, create_record("1"))
        service = make_service(fake_storage, fake_clock)

        await service.get_game("1")
        fake_clock.advance(299)
        await service.get_game("1")

        assert fake_storage.calls.count("get_game") == 1


# ============================================================================
# Tests for get_category
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestGetCategory:
    """Test persisted category reads."""

    async def test_active_run(self, fake_storage, fake_clock):
        """✅ Games of the active run, disabled ones dropped."""
        await seed(fake_storage, create_record("1"), create_record("2", enabled=False), create_record("3"))
        await fake_storage.ensure_category(CATEGORIES_BY_ID["new"])
        await fake_storage.write_category_run("new", 5, ["3", "2", "1"])
        await fake_storage.activate_category_run("new", 5)

        category = await make_service(fake_storage, fake_clock).get_category("new")

        assert category["runId"] == 5
        assert [g["id"] for g in category["games"]] == ["3", "1"]

    async def test_never_rebuilt(self, fake_storage, fake_clock):
        """✅ Known but never rebuilt → empty with static title."""
        category = await make_service(fake_storage, fake_clock).get_category("rtp97")

        assert category["games"] == []
        assert category["runId"] is None
        assert category["title"] == CATEGORIES_BY_ID["rtp97"].title

    async def test_unknown(self, fake_storage, fake_clock):
        """❌ Unknown id → CategoryNotFound without a storage read."""
        with pytest.raises(CategoryNotFound):
            await make_service(fake_storage, fake_clock).get_category("slots")
        assert fake_storage.calls == []


@pytest.mark.unit
@pytest.mark.asyncio
class TestClearCatalog:
    """Test clear_catalog."""

    async def test_clear_drops_fallbacks(self, fake_storage, fake_clock):
        """✅ After clear, a quota error has no stale home to serve."""
        service = make_service(fake_storage, fake_clock)
        await service.get_home()
        service.clear_catalog()

        fake_storage.read_error = QuotaExceededError("quota")
        with pytest.raises(TemporarilyUnavailable):
            await service.get_home()
