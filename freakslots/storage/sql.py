"""Storage gateway backed by async SQLAlchemy."""
import logging
from contextlib import asynccontextmanager
from dataclasses import fields
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, List, Optional, Sequence
from sqlalchemy import select, delete, update
from sqlalchemy.exc import SQLAlchemyError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from freakslots.core.database import create_session_factory
from freakslots.core.errors import StorageError, QuotaExceededError
from freakslots.models import Game, MetaDocument, Category, CategoryItem, TelegramUser
from freakslots.models.meta import SYNC_DOC, CURATION_DOC, PING_DOC
from freakslots.services.categories import CategoryDef
from freakslots.services.normalization import GameRecord
from freakslots.storage import StorageGateway, CategorySnapshot
from freakslots.utils.time import epoch_millis

logger = logging.getLogger(__name__)

RECORD_FIELDS = [f.name for f in fields(GameRecord)]

# Backend messages that mean "out of capacity" rather than "broken"
QUOTA_MESSAGES = ("too many connections", "remaining connection slots", "database is locked")


def _to_record(row: Game) -> GameRecord:
    return GameRecord(**{name: getattr(row, name) for name in RECORD_FIELDS})


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SqlStorageGateway(StorageGateway):
    """SQLAlchemy implementation of the storage gateway."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._session_factory = create_session_factory(engine)

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        """Session that commits on success and maps backend errors."""
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except PoolTimeoutError as e:
                await session.rollback()
                raise QuotaExceededError(f"RESOURCE_EXHAUSTED: connection pool timeout: {e}") from e
            except OperationalError as e:
                await session.rollback()
                if any(m in str(e).lower() for m in QUOTA_MESSAGES):
                    raise QuotaExceededError(f"RESOURCE_EXHAUSTED: {e}") from e
                raise StorageError(f"Storage operation failed: {e}") from e
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Storage operation failed: {e}", exc_info=True)
                raise StorageError(f"Storage operation failed: {e}") from e

    async def _get_meta(self, db: AsyncSession, key: str) -> Optional[MetaDocument]:
        result = await db.execute(select(MetaDocument).where(MetaDocument.key == key))
        return result.scalar_one_or_none()

    async def _merge_meta(self, key: str, data: dict):
        """Merge fields into a meta document, creating it if needed."""
        stamped = {**data, "updatedAt": _now().isoformat()}
        async with self._session() as db:
            doc = await self._get_meta(db, key)
            if doc is None:
                db.add(MetaDocument(key=key, data=stamped))
            else:
                # Reassign so the JSON column is flagged dirty
                doc.data = {**(doc.data or {}), **stamped}

    # Games

    async def upsert_games(self, records: Sequence[GameRecord]) -> None:
        if not records:
            return

        # Later duplicates in one batch win
        incoming = {r.id: r for r in records}
        synced_at = _now()

        async with self._session() as db:
            result = await db.execute(select(Game).where(Game.id.in_(list(incoming))))
            existing = {row.id: row for row in result.scalars().all()}

            for game_id, record in incoming.items():
                values = record.to_dict()
                row = existing.get(game_id)
                if row is None:
                    db.add(Game(**values, synced_at=synced_at))
                    continue
                for name, value in values.items():
                    setattr(row, name, value)
                row.synced_at = synced_at

        logger.debug(f"Upserted {len(incoming)} games")

    async def get_game(self, game_id: str) -> Optional[GameRecord]:
        async with self._session() as db:
            row = await db.get(Game, str(game_id))
            return _to_record(row) if row else None

    async def get_games(self, game_ids: Sequence[str]) -> List[GameRecord]:
        if not game_ids:
            return []
        async with self._session() as db:
            result = await db.execute(select(Game).where(Game.id.in_([str(i) for i in game_ids])))
            return [_to_record(row) for row in result.scalars().all()]

    async def list_enabled_games(self, limit: int) -> List[GameRecord]:
        records: Dict[str, GameRecord] = {}
        async with self._session() as db:
            for column in (Game.updated_at_ts, Game.created_at_ts):
                result = await db.execute(
                    select(Game)
                    .where(Game.enabled == True)  # noqa: E712
                    .order_by(column.desc(), Game.id)
                    .limit(limit)
                )
                for row in result.scalars().all():
                    records.setdefault(row.id, _to_record(row))
        return list(records.values())

    async def delete_all_games(self, batch_size: int = 300) -> int:
        deleted = 0
        while True:
            async with self._session() as db:
                result = await db.execute(select(Game.id).limit(batch_size))
                ids = [row[0] for row in result.all()]
                if not ids:
                    break
                await db.execute(delete(Game).where(Game.id.in_(ids)))
            deleted += len(ids)
        logger.info(f"Deleted {deleted} games")
        return deleted

    # Sync metadata and curation

    async def get_sync_watermark(self) -> Optional[str]:
        async with self._session() as db:
            doc = await self._get_meta(db, SYNC_DOC)
            if doc is None:
                return None
            return (doc.data or {}).get("lastUpdatedAtDate")

    async def set_sync_watermark(self, date_str: str) -> None:
        await self._merge_meta(SYNC_DOC, {"lastUpdatedAtDate": date_str})

    async def get_pinned_best_ids(self) -> List[str]:
        async with self._session() as db:
            doc = await self._get_meta(db, CURATION_DOC)
            if doc is None:
                return []
            ids = (doc.data or {}).get("bestPinnedIds")
            if not isinstance(ids, list):
                return []
            return [str(i) for i in ids if i]

    async def set_pinned_best_ids(self, game_ids: Sequence[str]) -> None:
        await self._merge_meta(CURATION_DOC, {"bestPinnedIds": [str(i) for i in game_ids]})

    # Categories

    async def ensure_category(self, definition: CategoryDef) -> None:
        async with self._session() as db:
            row = await db.get(Category, definition.id)
            if row is None:
                db.add(Category(id=definition.id, title=definition.title, icon=definition.icon))
            else:
                row.title = definition.title
                row.icon = definition.icon
                row.updated_at = _now()

    async def write_category_run(self, category_id: str, run_id: int, game_ids: Sequence[str]) -> None:
        async with self._session() as db:
            db.add_all([
                CategoryItem(category_id=category_id, run_id=run_id, game_id=str(game_id), rank=index)
                for index, game_id in enumerate(game_ids, start=1)
            ])

    async def activate_category_run(self, category_id: str, run_id: int) -> None:
        async with self._session() as db:
            await db.execute(
                update(Category)
                .where(Category.id == category_id)
                .values(active_run_id=run_id, updated_at=_now())
            )

    async def delete_stale_category_runs(self, category_id: str, keep_run_id: int) -> int:
        async with self._session() as db:
            result = await db.execute(
                delete(CategoryItem).where(
                    CategoryItem.category_id == category_id,
                    CategoryItem.run_id != keep_run_id
                )
            )
            return result.rowcount or 0

    async def get_category(self, category_id: str) -> Optional[CategorySnapshot]:
        async with self._session() as db:
            row = await db.get(Category, category_id)
            if row is None:
                return None

            snapshot = CategorySnapshot(
                id=row.id,
                title=row.title,
                icon=row.icon,
                active_run_id=row.active_run_id
            )
            if row.active_run_id is None:
                return snapshot

            result = await db.execute(
                select(CategoryItem.game_id)
                .where(
                    CategoryItem.category_id == category_id,
                    CategoryItem.run_id == row.active_run_id
                )
                .order_by(CategoryItem.rank)
            )
            snapshot.game_ids = [r[0] for r in result.all()]
            return snapshot

    # Users

    async def upsert_user(self, chat_id: int, username: Optional[str] = None) -> None:
        async with self._session() as db:
            row = await db.get(TelegramUser, int(chat_id))
            if row is None:
                db.add(TelegramUser(chat_id=int(chat_id), username=username or ""))
                return
            if username:
                row.username = username
            row.updated_at = _now()

    async def list_user_ids(self) -> List[int]:
        async with self._session() as db:
            result = await db.execute(select(TelegramUser.chat_id))
            return [row[0] for row in result.all()]

    # Lifecycle

    async def ping(self) -> None:
        await self._merge_meta(PING_DOC, {"t": epoch_millis()})

    async def close(self):
        await self.engine.dispose()
