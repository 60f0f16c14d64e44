"""Unit tests for raw game normalization."""
import pytest

from freakslots.services.normalization import coerce_published, coerce_rtp, normalize_game
from tests.conftest import create_raw_game


def embed(url: str) -> str:
    return f"{url}?token=t"


# ============================================================================
# Tests for coerce_published
# ============================================================================

@pytest.mark.unit
class TestCoercePublished:
    """Test coerce_published function."""

    @pytest.mark.parametrize("value", [True, 1, "1", 1.0])
    def test_published_values(self, value):
        """✅ true, 1 and "1" are published."""
        assert coerce_published(value) is True

    @pytest.mark.parametrize("value", [False, 0, "0", "true", "yes", None, 2, "", [], {}])
    def test_everything_else_unpublished(self, value):
        """❌ Any other value is unpublished."""
        assert coerce_published(value) is False


# ============================================================================
# Tests for coerce_rtp
# ============================================================================

@pytest.mark.unit
class TestCoerceRtp:
    """Test coerce_rtp function."""

    def test_numbers_and_numeric_strings(self):
        """✅ Numbers and numeric strings become floats."""
        assert coerce_rtp(96) == 96.0
        assert coerce_rtp(" 97.5 ") == 97.5

    def test_rejects_non_numeric(self):
        """❌ Text, bools, percent strings and infinities → None."""
        assert coerce_rtp("97%") is None
        assert coerce_rtp("high") is None
        assert coerce_rtp(True) is None
        assert coerce_rtp(float("inf")) is None
        assert coerce_rtp(None) is None


# ============================================================================
# Tests for normalize_game
# ============================================================================

@pytest.mark.unit
class TestNormalizeGame:
    """Test normalize_game function."""

    def test_full_record(self):
        """✅ Every field mapped and timestamps shadowed."""
        record = normalize_game(create_raw_game(42, name="Mental 2", rtp="96.1"), embed)

        assert record.id == "42"
        assert record.name == "Mental 2"
        assert record.provider == "Pragmatic Play"
        assert record.rtp == 96.1
        assert record.published is True
        assert record.enabled is True
        assert record.api_url == "https://slotslaunch.com/iframe/1"
        assert record.embed_url == "https://slotslaunch.com/iframe/1?token=t"
        assert record.updated_at_ts > record.created_at_ts > 0

    def test_unpublished_is_disabled(self):
        """✅ enabled mirrors published."""
        record = normalize_game(create_raw_game(1, published="0"), embed)
        assert record.published is False
        assert record.enabled is False

    def test_nested_provider_and_fallbacks(self):
        """✅ Provider object, title and thumbnail fallbacks."""
        raw = {"id": 5, "title": "Brute Force", "provider": {"name": "Nolimit"}, "thumbnail": "t.png"}
        record = normalize_game(raw, embed)
        assert record.name == "Brute Force"
        assert record.provider == "Nolimit"
        assert record.thumb == "t.png"

    def test_provider_name_field(self):
        """✅ provider_name used when provider is absent."""
        record = normalize_game({"id": 5, "provider_name": "Hacksaw"}, embed)
        assert record.provider == "Hacksaw"

    def test_no_url_means_no_embed(self):
        """✅ Embed builder not called without a URL."""
        def explode(url):
            raise AssertionError("should not be called")

        record = normalize_game({"id": 7, "name": "X"}, explode)
        assert record.embed_url == ""

    def test_missing_id(self):
        """❌ No id → ValueError."""
        with pytest.raises(ValueError):
            normalize_game({"name": "Nameless"}, embed)

    def test_idempotent(self):
        """✅ Same raw input → equal records."""
        raw = create_raw_game(9)
        assert normalize_game(raw, embed) == normalize_game(raw, embed)

    def test_summary_shape(self):
        """✅ Client summary exposes demoUrl."""
        summary = normalize_game(create_raw_game(3, rtp=97), embed).to_summary()
        assert set(summary) == {"id", "name", "provider", "thumb", "demoUrl", "rtp"}
        assert summary["demoUrl"].endswith("?token=t")
