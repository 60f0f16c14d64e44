"""Abstract interface for the catalog document store."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
from freakslots.services.normalization import GameRecord
from freakslots.services.categories import CategoryDef


@dataclass
class CategorySnapshot:
    """A category as readers see it: metadata plus its active run."""
    id: str
    title: str
    icon: str
    active_run_id: Optional[int] = None
    game_ids: List[str] = field(default_factory=list)


class StorageGateway(ABC):
    """
    Accessor for games, sync metadata, curation, categories and users.

    Implementations raise StorageError (or QuotaExceededError when the
    backend is exhausted) for any backend failure.
    """

    # Games

    @abstractmethod
    async def upsert_games(self, records: Sequence[GameRecord]) -> None:
        """Insert or merge records by id in one batch."""
        pass

    @abstractmethod
    async def get_game(self, game_id: str) -> Optional[GameRecord]:
        pass

    @abstractmethod
    async def get_games(self, game_ids: Sequence[str]) -> List[GameRecord]:
        """Fetch existing records for the given ids; order is not guaranteed."""
        pass

    @abstractmethod
    async def list_enabled_games(self, limit: int) -> List[GameRecord]:
        """
        Enabled records ranked within the newest ``limit`` by last update or
        by creation, deduplicated. Most recently updated come first.
        """
        pass

    @abstractmethod
    async def delete_all_games(self, batch_size: int = 300) -> int:
        """Wipe the games collection in batches; returns deleted count."""
        pass

    # Sync metadata and curation

    @abstractmethod
    async def get_sync_watermark(self) -> Optional[str]:
        pass

    @abstractmethod
    async def set_sync_watermark(self, date_str: str) -> None:
        pass

    @abstractmethod
    async def get_pinned_best_ids(self) -> List[str]:
        pass

    @abstractmethod
    async def set_pinned_best_ids(self, game_ids: Sequence[str]) -> None:
        pass

    # Categories

    @abstractmethod
    async def ensure_category(self, definition: CategoryDef) -> None:
        """Create the category document or merge its title and icon."""
        pass

    @abstractmethod
    async def write_category_run(self, category_id: str, run_id: int, game_ids: Sequence[str]) -> None:
        """Write ranked items (1-based) for a run that readers cannot see yet."""
        pass

    @abstractmethod
    async def activate_category_run(self, category_id: str, run_id: int) -> None:
        """Point readers at ``run_id``."""
        pass

    @abstractmethod
    async def delete_stale_category_runs(self, category_id: str, keep_run_id: int) -> int:
        pass

    @abstractmethod
    async def get_category(self, category_id: str) -> Optional[CategorySnapshot]:
        pass

    # Users

    @abstractmethod
    async def upsert_user(self, chat_id: int, username: Optional[str] = None) -> None:
        pass

    @abstractmethod
    async def list_user_ids(self) -> List[int]:
        pass

    # Lifecycle

    @abstractmethod
    async def ping(self) -> None:
        """Round-trip write used by the connectivity probe."""
        pass

    async def close(self):
        """Release backend resources."""
        pass
