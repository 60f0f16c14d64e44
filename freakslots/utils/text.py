"""Text helpers for fuzzy name matching."""
import re


_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_SPACES = re.compile(r"\s+")


def key_name(value: str) -> str:
    """
    Normalize a game title into a comparison key.

    Lower-cases, spells out ``&`` and collapses every run of
    non-alphanumerics into a single space.

    Example:
        >>> key_name("Gods & Monsters: 1000!")
        'gods and monsters 1000'
    """
    text = str(value or "").lower().replace("&", " and ")
    text = _NON_ALNUM.sub(" ", text).strip()
    return _SPACES.sub(" ", text)


def names_match(candidate_key: str, wanted_key: str) -> bool:
    """Equal keys, or either key contains the other."""
    if not candidate_key or not wanted_key:
        return False
    return (
        candidate_key == wanted_key
        or wanted_key in candidate_key
        or candidate_key in wanted_key
    )
