"""Core package initialization."""
from freakslots.core.config import settings
from freakslots.core.database import Base, create_engine, create_session_factory, init_db
from freakslots.core.errors import (
    FreakSlotsError,
    ConfigError,
    UpstreamError,
    StorageError,
    QuotaExceededError,
    TemporarilyUnavailable,
    Unauthorized,
    NotFoundError,
    GameNotFound,
    CategoryNotFound,
    GeoLookupError,
    DeliveryError,
    is_quota_error,
)

__all__ = [
    "settings",
    "Base",
    "create_engine",
    "create_session_factory",
    "init_db",
    "FreakSlotsError",
    "ConfigError",
    "UpstreamError",
    "StorageError",
    "QuotaExceededError",
    "TemporarilyUnavailable",
    "Unauthorized",
    "NotFoundError",
    "GameNotFound",
    "CategoryNotFound",
    "GeoLookupError",
    "DeliveryError",
    "is_quota_error",
]
