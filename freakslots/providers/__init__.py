"""Abstract interface for game catalog providers."""
from abc import ABC, abstractmethod
from typing import Optional
from freakslots.providers.models import GamesPage


class CatalogProvider(ABC):
    """Abstract base class for upstream game catalog providers."""

    @abstractmethod
    async def fetch_page(
        self,
        page: int,
        per_page: int,
        since_date: Optional[str] = None
    ) -> GamesPage:
        """
        Fetch one page of published games, most recently updated first.

        Args:
            page: 1-based page number
            per_page: Requested page size
            since_date: Optional ``YYYY-MM-DD``; only records updated on or
                after that date are returned

        Returns:
            GamesPage with raw records and optional paging metadata

        Raises:
            UpstreamError: If the API call fails
            ConfigError: If credentials are missing
        """
        pass

    @abstractmethod
    def build_embed_url(self, raw_url: str) -> str:
        """Turn an upstream game URL into an embeddable, authorized URL."""
        pass

    async def close(self):
        """Release network resources."""
        pass
