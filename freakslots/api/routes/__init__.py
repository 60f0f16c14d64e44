"""API routes package initialization."""
from freakslots.api.routes import admin, catalog, geo, health, telegram

__all__ = ["admin", "catalog", "geo", "health", "telegram"]
