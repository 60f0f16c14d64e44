"""Unit tests for GeoService and its helpers using httpx.MockTransport."""
import pytest
import httpx
from unittest.mock import patch
from tenacity import wait_none

from freakslots.core.errors import GeoLookupError
from freakslots.services.geo_service import (
    GeoService,
    TTLCache,
    location_label,
    normalize_ip,
    resolve_client_ip,
)


IPWHO_OK = {
    "success": True,
    "ip": "8.8.8.8",
    "country": "United States",
    "country_code": "US",
    "city": "Mountain View",
    "region": "California",
    "timezone": {"id": "America/Los_Angeles"},
}

IPAPI_OK = {
    "ip": "8.8.8.8",
    "country_name": "United States",
    "country_code": "US",
    "city": "Mountain View",
    "region": "California",
    "timezone": "America/Los_Angeles",
}

NOMINATIM_OK = {
    "address": {"city": "Berlin", "state": "Berlin", "country": "Germany", "country_code": "de"},
}


class Router:
    """MockTransport handler keyed by host, recording each request."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request):
        self.requests.append(request)
        route = self.routes[request.url.host]
        if isinstance(route, Exception):
            raise route
        # Fresh response per call so repeated requests do not share state
        return httpx.Response(route.status_code, headers=route.headers, content=route.content)


def make_service(routes, fake_clock):
    router = Router(routes)
    client = httpx.AsyncClient(transport=httpx.MockTransport(router))
    return GeoService(client=client, ttl_seconds=60, clock=fake_clock), router


@pytest.fixture
def no_retry_wait():
    """Retry immediately."""
    with patch.object(GeoService._get.retry, "wait", wait_none()):
        yield


# ============================================================================
# Tests for helpers
# ============================================================================

@pytest.mark.unit
class TestIpHelpers:
    """Test IP and label helpers."""

    def test_strip_mapped_prefix(self):
        """✅ ::ffff:1.2.3.4 → 1.2.3.4."""
        assert normalize_ip("::ffff:1.2.3.4") == "1.2.3.4"
        assert normalize_ip("2001:db8::1") == "2001:db8::1"
        assert normalize_ip(None) == ""

    def test_first_forwarded_hop(self):
        """✅ First X-Forwarded-For entry wins."""
        assert resolve_client_ip(" 1.1.1.1 , 10.0.0.1", "127.0.0.1") == "1.1.1.1"

    def test_remote_addr_fallback(self):
        """✅ Socket peer when no forwarded header."""
        assert resolve_client_ip(None, "::ffff:9.9.9.9") == "9.9.9.9"
        assert resolve_client_ip("  ", "9.9.9.9") == "9.9.9.9"

    def test_unknown(self):
        """✅ Nothing known → 'unknown'."""
        assert resolve_client_ip(None, None) == "unknown"

    @pytest.mark.parametrize("country,city,expected", [
        ("Germany", "Berlin", "Germany (Berlin)"),
        ("Germany", None, "Germany"),
        (None, "Berlin", "Berlin"),
        (None, None, "Unknown"),
    ])
    def test_location_label(self, country, city, expected):
        """✅ Label uses whichever parts exist."""
        assert location_label(country, city) == expected


# ============================================================================
# Tests for TTLCache
# ============================================================================

@pytest.mark.unit
class TestTTLCache:
    """Test the lookup expiry map."""

    def test_expired_entries_pruned_on_write(self, fake_clock):
        """✅ Visitors never seen again do not pile up."""
        cache = TTLCache(60, clock=fake_clock)
        for i in range(50):
            cache.set(f"10.0.0.{i}", {"ip": i})

        fake_clock.advance(61)
        cache.set("8.8.8.8", {"ip": "8.8.8.8"})

        assert len(cache) == 1
        assert cache.get("8.8.8.8") == {"ip": "8.8.8.8"}

    def test_fresh_entries_kept(self, fake_clock):
        """✅ Entries within the TTL survive a later write."""
        cache = TTLCache(60, clock=fake_clock)
        cache.set("a", {"n": 1})
        fake_clock.advance(30)
        cache.set("b", {"n": 2})

        assert cache.get("a") == {"n": 1}
        assert len(cache) == 2

    def test_size_capped_oldest_evicted(self, fake_clock):
        """✅ Never more than max_items; oldest write goes first."""
        cache = TTLCache(60, clock=fake_clock, max_items=3)
        for key in ("a", "b", "c"):
            cache.set(key, {"k": key})
        cache.set("a", {"k": "a2"})
        cache.set("d", {"k": "d"})

        assert len(cache) == 3
        assert cache.get("b") is None
        assert cache.get("a") == {"k": "a2"}
        assert cache.get("d") == {"k": "d"}


# ============================================================================
# Tests for lookup_ip
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestLookupIp:
    """Test lookup_ip method."""

    async def test_primary_provider(self, fake_clock):
        """✅ ipwho.is answer mapped to the location payload."""
        service, router = make_service({"ipwho.is": httpx.Response(200, json=IPWHO_OK)}, fake_clock)

        result = await service.lookup_ip("8.8.8.8")

        assert result == {
            "cached": False,
            "ip": "8.8.8.8",
            "country": "United States",
            "countryCode": "US",
            "city": "Mountain View",
            "region": "California",
            "timezone": "America/Los_Angeles",
            "label": "United States (Mountain View)",
        }
        assert router.requests[0].url.path == "/8.8.8.8"
        assert router.requests[0].headers["user-agent"] == "FreakSlots/1.0"

    async def test_fallback_provider(self, fake_clock):
        """✅ ipwho.is reports failure → ipapi.co used."""
        service, router = make_service({
            "ipwho.is": httpx.Response(200, json={"success": False, "message": "Reserved range"}),
            "ipapi.co": httpx.Response(200, json=IPAPI_OK),
        }, fake_clock)

        result = await service.lookup_ip("8.8.8.8")

        assert result["country"] == "United States"
        assert result["timezone"] == "America/Los_Angeles"
        assert router.requests[1].url.path == "/8.8.8.8/json/"

    async def test_unknown_ip_uses_caller_endpoint(self, fake_clock):
        """✅ Unknown IP → ipapi.co /json/."""
        service, router = make_service({
            "ipwho.is": httpx.Response(500, text="oops"),
            "ipapi.co": httpx.Response(200, json=IPAPI_OK),
        }, fake_clock)

        await service.lookup_ip("unknown")

        assert router.requests[1].url.path == "/json/"

    async def test_both_fail(self, fake_clock):
        """❌ Both providers fail → GeoLookupError with diagnostics."""
        service, _ = make_service({
            "ipwho.is": httpx.Response(503, text="busy"),
            "ipapi.co": httpx.Response(429, json={"error": True, "reason": "RateLimited"}),
        }, fake_clock)

        with pytest.raises(GeoLookupError) as exc_info:
            await service.lookup_ip("8.8.8.8")

        details = exc_info.value.details
        assert details["providerA"] == {"status": 503, "details": "busy"}
        assert details["providerB"]["status"] == 429
        assert details["providerB"]["details"]["reason"] == "RateLimited"

    async def test_transport_errors_retried_then_reported(self, fake_clock, no_retry_wait):
        """❌ Connection errors retried, then reported without a status."""
        service, router = make_service({
            "ipwho.is": httpx.ConnectError("down"),
            "ipapi.co": httpx.ConnectError("down"),
        }, fake_clock)

        with pytest.raises(GeoLookupError) as exc_info:
            await service.lookup_ip("8.8.8.8")

        assert len(router.requests) == 6
        assert exc_info.value.details["providerA"]["status"] is None

    async def test_cached_within_ttl(self, fake_clock):
        """✅ Repeat lookup served from cache and flagged."""
        service, router = make_service({"ipwho.is": httpx.Response(200, json=IPWHO_OK)}, fake_clock)

        await service.lookup_ip("8.8.8.8")
        fake_clock.advance(30)
        result = await service.lookup_ip("::ffff:8.8.8.8")

        assert result["cached"] is True
        assert len(router.requests) == 1

    async def test_cache_expires(self, fake_clock):
        """✅ After TTL the provider is asked again."""
        service, router = make_service({"ipwho.is": httpx.Response(200, json=IPWHO_OK)}, fake_clock)

        await service.lookup_ip("8.8.8.8")
        fake_clock.advance(61)
        result = await service.lookup_ip("8.8.8.8")

        assert result["cached"] is False
        assert len(router.requests) == 2


# ============================================================================
# Tests for reverse
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestReverse:
    """Test reverse method."""

    async def test_reverse_lookup(self, fake_clock):
        """✅ Coordinates → city, region and country code."""
        service, router = make_service(
            {"nominatim.openstreetmap.org": httpx.Response(200, json=NOMINATIM_OK)}, fake_clock
        )

        result = await service.reverse(52.52001, 13.40512)

        assert result["city"] == "Berlin"
        assert result["countryCode"] == "DE"
        assert result["label"] == "Germany (Berlin)"
        params = router.requests[0].url.params
        assert params["lat"] == "52.52"
        assert params["lon"] == "13.405"
        assert params["format"] == "jsonv2"

    async def test_rounded_coordinates_share_cache(self, fake_clock):
        """✅ Nearby points within rounding hit the cache."""
        service, router = make_service(
            {"nominatim.openstreetmap.org": httpx.Response(200, json=NOMINATIM_OK)}, fake_clock
        )

        await service.reverse(52.5200, 13.4050)
        result = await service.reverse(52.52004, 13.40496)

        assert result["cached"] is True
        assert len(router.requests) == 1

    @pytest.mark.parametrize("lat,lon", [(91, 0), (-91, 0), (0, 181), (0, -180.5)])
    async def test_out_of_range(self, fake_clock, lat, lon):
        """❌ Invalid coordinates → ValueError before any request."""
        service, router = make_service({}, fake_clock)

        with pytest.raises(ValueError):
            await service.reverse(lat, lon)
        assert router.requests == []

    async def test_provider_error(self, fake_clock):
        """❌ Nominatim error body → GeoLookupError."""
        service, _ = make_service(
            {"nominatim.openstreetmap.org": httpx.Response(200, json={"error": "Unable to geocode"})},
            fake_clock
        )

        with pytest.raises(GeoLookupError):
            await service.reverse(0.0, 0.0)
