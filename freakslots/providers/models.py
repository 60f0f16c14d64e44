"""Data models for upstream catalog pages."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class PageMeta:
    """Paging metadata declared by the upstream, when present."""
    current_page: Optional[int] = None
    last_page: Optional[int] = None
    total: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> Optional["PageMeta"]:
        """Parse a ``meta``/``pagination`` object; ``total_pages`` wins over ``last_page``."""
        if not isinstance(payload, dict):
            return None

        def _int(value: Any) -> Optional[int]:
            if isinstance(value, bool):
                return None
            if isinstance(value, int):
                return value
            if isinstance(value, float) and value.is_integer():
                return int(value)
            return None

        last_page = _int(payload.get("total_pages"))
        if last_page is None:
            last_page = _int(payload.get("last_page"))

        return cls(
            current_page=_int(payload.get("current_page")),
            last_page=last_page,
            total=_int(payload.get("total")),
            raw=payload
        )


@dataclass
class GamesPage:
    """One page of raw upstream game records."""
    records: List[Dict[str, Any]]
    meta: Optional[PageMeta] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "GamesPage":
        """
        Accept either a bare list or an envelope.

        Envelopes carry records in ``data`` or ``games`` and paging in
        ``meta`` or ``pagination``.
        """
        if isinstance(payload, list):
            return cls(records=[r for r in payload if isinstance(r, dict)])

        if not isinstance(payload, dict):
            return cls(records=[])

        records = payload.get("data") or payload.get("games") or []
        if not isinstance(records, list):
            records = []

        meta = PageMeta.from_payload(payload.get("meta") or payload.get("pagination"))
        return cls(records=[r for r in records if isinstance(r, dict)], meta=meta)

    def is_last_page(self, page: int) -> bool:
        """True when the upstream declared ``page`` as its final page."""
        return bool(self.meta and self.meta.last_page and page >= self.meta.last_page)
