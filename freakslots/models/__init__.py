"""Models package initialization."""
from freakslots.models.game import Game
from freakslots.models.meta import MetaDocument
from freakslots.models.category import Category, CategoryItem
from freakslots.models.telegram_user import TelegramUser

__all__ = [
    "Game",
    "MetaDocument",
    "Category",
    "CategoryItem",
    "TelegramUser"
]
