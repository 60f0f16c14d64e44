"""Error taxonomy shared by the sync engine, caches, API and bot."""
from typing import Optional


QUOTA_MARKERS = ("RESOURCE_EXHAUSTED", "Quota exceeded")


class FreakSlotsError(Exception):
    """Base class for all application errors."""
    pass


class ConfigError(FreakSlotsError):
    """A required credential or setting is missing."""
    pass


class UpstreamError(FreakSlotsError):
    """Upstream catalog API returned a non-2xx status or an unusable body."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body[:300]


class StorageError(FreakSlotsError):
    """Document store read or write failed."""
    pass


class QuotaExceededError(StorageError):
    """Storage refused work because a quota or pool was exhausted."""
    pass


class TemporarilyUnavailable(FreakSlotsError):
    """No fresh or stale value could be produced in time."""
    pass


class Unauthorized(FreakSlotsError):
    """Shared secret missing or wrong."""
    pass


class NotFoundError(FreakSlotsError):
    """Requested document does not exist."""
    pass


class GameNotFound(NotFoundError):
    """Requested game id does not exist."""

    def __init__(self, game_id: str):
        super().__init__(f"Game not found: {game_id}")
        self.game_id = game_id


class CategoryNotFound(NotFoundError):
    """Requested category id is not defined."""

    def __init__(self, category_id: str):
        super().__init__(f"Category not found: {category_id}")
        self.category_id = category_id


class GeoLookupError(FreakSlotsError):
    """Every geo provider failed; ``details`` carries per-provider diagnostics."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.details = details or {}


class DeliveryError(FreakSlotsError):
    """Sending a message to a single recipient failed."""

    def __init__(self, chat_id: int, message: str):
        super().__init__(f"Delivery to {chat_id} failed: {message}")
        self.chat_id = chat_id


def is_quota_error(exc: BaseException) -> bool:
    """Classify an exception as resource exhaustion."""
    if isinstance(exc, QuotaExceededError):
        return True
    text = str(exc)
    return any(marker in text for marker in QUOTA_MARKERS)
