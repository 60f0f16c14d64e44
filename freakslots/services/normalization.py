"""Normalization of raw upstream game JSON into catalog records."""
import math
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, Optional
from freakslots.utils.time import parse_timestamp_ms


# Raw values accepted as "published"; everything else is unpublished
PUBLISHED_STRINGS = {"1"}


@dataclass
class GameRecord:
    """Normalized game as stored in the catalog."""
    id: str
    name: str = ""
    provider: str = ""
    thumb: str = ""
    rtp: Optional[float] = None
    published: bool = False
    enabled: bool = False
    api_url: str = ""
    embed_url: str = ""
    updated_at: Optional[str] = None
    updated_at_ts: int = 0
    created_at: Optional[str] = None
    created_at_ts: int = 0
    published_at: Optional[str] = None
    published_at_ts: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_summary(self) -> Dict[str, Any]:
        """Client-facing GameSummary."""
        return {
            "id": self.id,
            "name": self.name,
            "provider": self.provider,
            "thumb": self.thumb,
            "demoUrl": self.embed_url,
            "rtp": self.rtp,
        }


def coerce_rtp(value: Any) -> Optional[float]:
    """Numeric or numeric-string RTP to float; anything else is None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def coerce_published(value: Any) -> bool:
    """True only for boolean ``True``, numeric ``1`` or the string ``"1"``."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    if isinstance(value, str):
        return value in PUBLISHED_STRINGS
    return False


def _provider_name(raw: Dict[str, Any]) -> str:
    provider = raw.get("provider")
    if isinstance(provider, dict):
        nested = provider.get("name") or provider.get("title")
        if nested:
            return str(nested)
    elif isinstance(provider, str) and provider.strip():
        return provider.strip()
    return str(raw.get("provider_name") or "")


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def normalize_game(
    raw: Dict[str, Any],
    embed_url_builder: Callable[[str], str]
) -> GameRecord:
    """
    Map one raw upstream record to a GameRecord.

    Args:
        raw: Upstream JSON object
        embed_url_builder: Builds the playable URL; only called when the
            upstream supplied a URL

    Returns:
        GameRecord

    Raises:
        ValueError: If the record has no id
    """
    raw_id = raw.get("id")
    if raw_id is None or raw_id == "":
        raise ValueError("Upstream record has no id")

    published = coerce_published(raw.get("published"))
    api_url = str(raw.get("url") or "")

    updated_at = _optional_str(raw.get("updated_at"))
    created_at = _optional_str(raw.get("created_at"))
    published_at = _optional_str(raw.get("published_at"))

    return GameRecord(
        id=str(raw_id),
        name=str(raw.get("name") or raw.get("title") or ""),
        provider=_provider_name(raw),
        thumb=str(raw.get("thumb") or raw.get("thumbnail") or ""),
        rtp=coerce_rtp(raw.get("rtp")),
        published=published,
        enabled=published,
        api_url=api_url,
        embed_url=embed_url_builder(api_url) if api_url else "",
        updated_at=updated_at,
        updated_at_ts=parse_timestamp_ms(updated_at),
        created_at=created_at,
        created_at_ts=parse_timestamp_ms(created_at),
        published_at=published_at,
        published_at_ts=parse_timestamp_ms(published_at),
    )
