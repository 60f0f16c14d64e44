"""Visitor location lookups through public geo providers."""
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Hashable, Optional, Tuple
import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log
)
from freakslots.core.config import settings
from freakslots.core.errors import GeoLookupError

logger = logging.getLogger(__name__)

USER_AGENT = "FreakSlots/1.0"
IPWHO_URL = "https://ipwho.is"
IPAPI_URL = "https://ipapi.co"
NOMINATIM_URL = "https://nominatim.openstreetmap.org/reverse"

UNKNOWN_IP = "unknown"
IPV4_MAPPED_PREFIX = "::ffff:"

# Diagnostics text kept per failed provider
DETAILS_LIMIT = 200
MAX_CACHED_LOOKUPS = 10_000


def normalize_ip(ip: Optional[str]) -> str:
    """Strip the IPv4-mapped IPv6 prefix."""
    if not ip:
        return ""
    if ip.startswith(IPV4_MAPPED_PREFIX):
        return ip[len(IPV4_MAPPED_PREFIX):]
    return ip


def resolve_client_ip(forwarded_for: Optional[str], remote_addr: Optional[str]) -> str:
    """First ``X-Forwarded-For`` hop, else the socket peer, else ``"unknown"``."""
    if forwarded_for and forwarded_for.strip():
        ip = forwarded_for.split(",")[0].strip()
    else:
        ip = remote_addr or ""
    return normalize_ip(ip) or UNKNOWN_IP


def location_label(country: Optional[str], city: Optional[str]) -> str:
    """``"Country (City)"``, whichever half exists, or ``"Unknown"``."""
    if country and city:
        return f"{country} ({city})"
    return country or city or "Unknown"


@dataclass
class ProviderResponse:
    """Outcome of one provider call, kept for diagnostics."""
    ok: bool
    status: Optional[int]
    json: Any = None
    text: str = ""

    def details(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "details": self.json if self.json is not None else self.text[:DETAILS_LIMIT],
        }


class TTLCache:
    """
    Tiny per-key expiry map.

    Expired entries are pruned on every write and the map never holds more
    than ``max_items``; the oldest writes are evicted first.
    """

    def __init__(self, ttl_seconds: float, clock=time.monotonic, max_items: int = MAX_CACHED_LOOKUPS):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.max_items = max_items
        self._items: Dict[Hashable, Tuple[float, Dict[str, Any]]] = {}

    def get(self, key: Hashable) -> Optional[Dict[str, Any]]:
        item = self._items.get(key)
        if item is None:
            return None
        stored_at, value = item
        if self.clock() - stored_at > self.ttl_seconds:
            del self._items[key]
            return None
        return value

    def _prune(self, now: float):
        # Items are kept in write order, so expired ones sit at the front
        while self._items:
            key, (stored_at, _) = next(iter(self._items.items()))
            if now - stored_at <= self.ttl_seconds:
                break
            del self._items[key]

    def set(self, key: Hashable, value: Dict[str, Any]):
        now = self.clock()
        self._prune(now)
        self._items.pop(key, None)
        while len(self._items) >= self.max_items:
            del self._items[next(iter(self._items))]
        self._items[key] = (now, value)

    def __len__(self) -> int:
        return len(self._items)

    def clear(self):
        self._items.clear()


def _payload_from_ipwho(data: Dict[str, Any], ip: str) -> Dict[str, Any]:
    timezone = data.get("timezone")
    if isinstance(timezone, dict):
        timezone = timezone.get("id")
    return {
        "ip": data.get("ip") or ip,
        "country": data.get("country") or None,
        "countryCode": data.get("country_code") or None,
        "city": data.get("city") or None,
        "region": data.get("region") or None,
        "timezone": timezone or None,
    }


def _payload_from_ipapi(data: Dict[str, Any], ip: str) -> Dict[str, Any]:
    return {
        "ip": data.get("ip") or ip,
        "country": data.get("country_name") or None,
        "countryCode": data.get("country_code") or None,
        "city": data.get("city") or None,
        "region": data.get("region") or None,
        "timezone": data.get("timezone") or None,
    }


def _payload_from_nominatim(data: Dict[str, Any]) -> Dict[str, Any]:
    address = data.get("address") or {}
    code = address.get("country_code")
    return {
        "ip": None,
        "country": address.get("country") or None,
        "countryCode": code.upper() if code else None,
        "city": address.get("city") or address.get("town") or address.get("village") or None,
        "region": address.get("state") or None,
        "timezone": None,
    }


class GeoService:
    """
    IP and coordinate lookups with a per-process TTL cache.

    Responses are passed through from the providers; nothing is stored.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        ttl_seconds: Optional[float] = None,
        clock=time.monotonic
    ):
        self.client = client or httpx.AsyncClient(timeout=10.0)
        ttl = ttl_seconds if ttl_seconds is not None else settings.geo_cache_ttl_seconds
        self.ip_cache = TTLCache(ttl, clock=clock)
        self.reverse_cache = TTLCache(ttl, clock=clock)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )
    async def _get(self, url: str, params: Optional[dict] = None) -> httpx.Response:
        return await self.client.get(
            url,
            params=params,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"}
        )

    async def _fetch_json(self, url: str, params: Optional[dict] = None) -> ProviderResponse:
        """GET a provider endpoint, never raising for transport or parse failures."""
        try:
            response = await self._get(url, params)
        except httpx.HTTPError as e:
            logger.warning(f"Geo provider request failed for {url}: {e}")
            return ProviderResponse(ok=False, status=None, text=str(e))

        try:
            body = response.json()
        except ValueError:
            body = None
        return ProviderResponse(ok=response.is_success, status=response.status_code, json=body, text=response.text)

    async def lookup_ip(self, ip: str) -> Dict[str, Any]:
        """
        Resolve an IP to a location.

        Returns:
            Location payload with ``label`` and a ``cached`` flag

        Raises:
            GeoLookupError: If both providers fail
        """
        ip = normalize_ip(ip) or UNKNOWN_IP

        cached = self.ip_cache.get(ip)
        if cached is not None:
            return {"cached": True, **cached}

        primary = await self._fetch_json(f"{IPWHO_URL}/{ip}")
        if primary.ok and isinstance(primary.json, dict) and primary.json.get("success") is not False:
            return self._remember(ip, _payload_from_ipwho(primary.json, ip))

        fallback_url = f"{IPAPI_URL}/json/" if ip == UNKNOWN_IP else f"{IPAPI_URL}/{ip}/json/"
        fallback = await self._fetch_json(fallback_url)
        if fallback.ok and isinstance(fallback.json, dict) and not fallback.json.get("error"):
            return self._remember(ip, _payload_from_ipapi(fallback.json, ip))

        logger.warning(f"Geo providers failed for {ip} (ipwho={primary.status}, ipapi={fallback.status})")
        raise GeoLookupError(
            "Geo providers failed",
            details={"providerA": primary.details(), "providerB": fallback.details()}
        )

    def _remember(self, ip: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        payload["label"] = location_label(payload["country"], payload["city"])
        self.ip_cache.set(ip, payload)
        return {"cached": False, **payload}

    async def reverse(self, lat: float, lon: float) -> Dict[str, Any]:
        """
        Resolve coordinates to a location, cached per rounded coordinate.

        Raises:
            ValueError: If the coordinates are out of range
            GeoLookupError: If the provider fails
        """
        if not -90 <= lat <= 90 or not -180 <= lon <= 180:
            raise ValueError("lat must be within [-90, 90] and lon within [-180, 180]")

        key = (round(lat, 3), round(lon, 3))
        cached = self.reverse_cache.get(key)
        if cached is not None:
            return {"cached": True, **cached}

        result = await self._fetch_json(
            NOMINATIM_URL,
            params={"format": "jsonv2", "lat": str(key[0]), "lon": str(key[1]), "zoom": "10", "addressdetails": "1"}
        )
        if not (result.ok and isinstance(result.json, dict) and "error" not in result.json):
            logger.warning(f"Reverse geocoding failed for {key} (status={result.status})")
            raise GeoLookupError("Reverse geocoding failed", details={"providerA": result.details()})

        payload = _payload_from_nominatim(result.json)
        payload["label"] = location_label(payload["country"], payload["city"])
        self.reverse_cache.set(key, payload)
        return {"cached": False, **payload}

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()
