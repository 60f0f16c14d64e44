"""Core configuration management using Pydantic settings."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import model_validator, field_validator
from typing import Optional, List


# Valid log levels
VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']

# Firestore-style batch writes cap at 500 operations
MAX_CHUNK_SIZE = 500


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/freakslots.db"

    # Logging
    log_level: str = "INFO"

    # SlotsLaunch upstream
    slotslaunch_token: Optional[str] = None
    slotslaunch_host: Optional[str] = None
    slotslaunch_base_url: str = "https://slotslaunch.com/api"

    # Shared secret for sync/admin endpoints (x-sync-secret header)
    sync_secret: Optional[str] = None

    # Sync loop
    sync_per_page: int = 150
    sync_max_pages: int = 200
    sync_chunk_size: int = 250
    sync_interval_minutes: int = 60
    sync_rebuild_categories: bool = True

    # Category rebuild
    category_limit: int = 40
    category_pool_size: int = 2000

    # Home aggregate
    home_limit: int = 50
    home_pool_size: int = 220

    # Response caches (seconds)
    home_cache_ttl_seconds: float = 600
    game_cache_ttl_seconds: float = 600
    cache_wait_timeout_seconds: float = 2.5
    quota_cooldown_seconds: float = 60
    geo_cache_ttl_seconds: float = 86400

    # Curation data (comma-separated, replaceable without code changes)
    exclusive_keywords: str = "christmas,xmas,santa,noel,holiday,winter,snow,new year,ny,jingle"
    best_game_names: str = (
        "Zeus vs Hades gods of war,wanted dead or a wild,Sweet bonanza 1000,Mental 2,Brute Force"
    )

    # Admin reset
    reset_target: int = 100

    # Telegram
    telegram_bot_token: Optional[str] = None
    telegram_webhook_secret: Optional[str] = None
    public_base_url: Optional[str] = None
    tg_webapp_url: Optional[str] = None
    tg_welcome_image_url: Optional[str] = None
    tg_admin_ids: str = ""  # Comma-separated numeric Telegram user ids

    # CORS Configuration
    cors_origins: str = "*"  # Comma-separated list of allowed origins

    # API Configuration
    backend_port: int = 3001

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        upper_v = v.upper()
        if upper_v not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {VALID_LOG_LEVELS}")
        return upper_v

    @field_validator(
        'sync_per_page', 'sync_max_pages', 'sync_chunk_size', 'sync_interval_minutes',
        'category_limit', 'category_pool_size', 'home_limit', 'home_pool_size', 'reset_target'
    )
    @classmethod
    def validate_positive(cls, v: int, info) -> int:
        """Validate sizes and bounds are positive."""
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive, got {v}")
        return v

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string to list."""
        return _split_csv(self.cors_origins)

    @property
    def exclusive_keywords_list(self) -> List[str]:
        """Lower-cased keyword list for the exclusive bucket."""
        return [k.lower() for k in _split_csv(self.exclusive_keywords)]

    @property
    def best_game_names_list(self) -> List[str]:
        """Default curated names for the best-games pull."""
        return _split_csv(self.best_game_names)

    @property
    def admin_ids(self) -> List[int]:
        """Parse admin Telegram ids, skipping anything non-numeric."""
        ids = []
        for raw in _split_csv(self.tg_admin_ids):
            try:
                ids.append(int(raw))
            except ValueError:
                continue
        return ids

    @model_validator(mode='after')
    def validate_config(self) -> 'Settings':
        """Validate configuration after all fields are set."""
        if self.sync_chunk_size > MAX_CHUNK_SIZE:
            raise ValueError(f"sync_chunk_size must be at most {MAX_CHUNK_SIZE}")
        if self.public_base_url:
            self.public_base_url = self.public_base_url.rstrip("/")
        return self


# Global settings instance
settings = Settings()
