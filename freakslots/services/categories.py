"""Category definitions and bucket selection rules."""
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Sequence, Tuple
from freakslots.services.normalization import GameRecord


RTP_THRESHOLD = 97.0


@dataclass(frozen=True)
class CategoryDef:
    """Display metadata for a bucket."""
    id: str
    title: str
    icon: str


CATEGORY_DEFS: Tuple[CategoryDef, ...] = (
    CategoryDef("exclusive", "Exclusive games", "🎁"),
    CategoryDef("best", "Best games", "⭐"),
    CategoryDef("new", "New games", "🆕"),
    CategoryDef("rtp97", "RTP 97%", "🎯"),
)

CATEGORIES_BY_ID: Dict[str, CategoryDef] = {c.id: c for c in CATEGORY_DEFS}


@dataclass
class SelectionContext:
    """Inputs shared by every bucket rule for one selection pass."""
    pool: List[GameRecord]
    by_updated: List[GameRecord]
    by_created: List[GameRecord]
    pinned: List[GameRecord]
    keywords: List[str]
    limit: int


def sort_by_updated(records: Iterable[GameRecord]) -> List[GameRecord]:
    """Most recently updated first; id breaks ties."""
    return sorted(records, key=lambda g: (-g.updated_at_ts, g.id))


def sort_by_created(records: Iterable[GameRecord]) -> List[GameRecord]:
    """Most recently created first; id breaks ties."""
    return sorted(records, key=lambda g: (-g.created_at_ts, g.id))


def order_pinned(pinned_ids: Sequence[str], records: Iterable[GameRecord]) -> List[GameRecord]:
    """
    Resolve pinned ids to enabled records in curated order.

    Ids with no enabled record are dropped; repeated ids keep their first
    position.
    """
    by_id = {g.id: g for g in records if g.enabled}
    ordered = []
    seen = set()
    for game_id in pinned_ids:
        game_id = str(game_id)
        if game_id in seen or game_id not in by_id:
            continue
        seen.add(game_id)
        ordered.append(by_id[game_id])
    return ordered


def merge_pinned_first(
    pinned: Sequence[GameRecord],
    ranked: Sequence[GameRecord],
    limit: int
) -> List[GameRecord]:
    """
    Pinned games first in curated order, then ranked games not already
    included, up to ``limit``.

    Example:
        pinned [A, B] and ranked [B, C, D] with limit 3 give [A, B, C].
    """
    merged: List[GameRecord] = []
    included = set()
    for game in list(pinned) + list(ranked):
        if len(merged) >= limit:
            break
        if game.id in included:
            continue
        included.add(game.id)
        merged.append(game)
    return merged


def matches_keywords(game: GameRecord, keywords: Sequence[str]) -> bool:
    """Case-insensitive substring match of any keyword in the game name."""
    name = game.name.lower()
    return any(k and k.lower() in name for k in keywords)


def _select_best(ctx: SelectionContext) -> List[GameRecord]:
    return merge_pinned_first(ctx.pinned, ctx.by_updated, ctx.limit)


def _select_rtp97(ctx: SelectionContext) -> List[GameRecord]:
    eligible = [g for g in ctx.pool if g.rtp is not None and g.rtp >= RTP_THRESHOLD]
    return sorted(eligible, key=lambda g: (-g.rtp, g.id))[:ctx.limit]


def _select_new(ctx: SelectionContext) -> List[GameRecord]:
    return ctx.by_created[:ctx.limit]


def _select_exclusive(ctx: SelectionContext) -> List[GameRecord]:
    themed = [g for g in ctx.by_updated if matches_keywords(g, ctx.keywords)]
    return (themed or ctx.by_updated)[:ctx.limit]


# Evaluated in order; each rule sees the same context
BUCKET_RULES: Tuple[Tuple[str, Callable[[SelectionContext], List[GameRecord]]], ...] = (
    ("exclusive", _select_exclusive),
    ("best", _select_best),
    ("new", _select_new),
    ("rtp97", _select_rtp97),
)


def select_buckets(
    records: Iterable[GameRecord],
    limit: int,
    keywords: Sequence[str],
    pinned: Sequence[GameRecord] = ()
) -> Dict[str, List[GameRecord]]:
    """
    Build every bucket from a working set of records.

    Only enabled records are considered. Returns bucket id to ranked list,
    in ``BUCKET_RULES`` order.
    """
    pool = [g for g in records if g.enabled]
    ctx = SelectionContext(
        pool=pool,
        by_updated=sort_by_updated(pool),
        by_created=sort_by_created(pool),
        pinned=[g for g in pinned if g.enabled],
        keywords=list(keywords),
        limit=limit
    )
    return {category_id: rule(ctx) for category_id, rule in BUCKET_RULES}
