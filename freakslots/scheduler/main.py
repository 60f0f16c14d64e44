"""Periodic incremental catalog sync."""
import asyncio
import logging
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from freakslots.core.config import settings
from freakslots.core.database import create_engine, init_db
from freakslots.core.errors import FreakSlotsError
from freakslots.providers.slotslaunch import SlotsLaunchProvider
from freakslots.services.sync_service import CatalogSyncEngine, SyncStats
from freakslots.storage.sql import SqlStorageGateway

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

SYNC_JOB_ID = "catalog_sync"


class SyncScheduler:
    """Runs the sync engine on a fixed interval."""

    def __init__(self, engine: CatalogSyncEngine, interval_minutes: Optional[int] = None):
        logger.info("Initializing SyncScheduler...")
        self.engine = engine
        self.interval_minutes = interval_minutes or settings.sync_interval_minutes
        self.scheduler = AsyncIOScheduler()

    async def sync_catalog(self) -> Optional[SyncStats]:
        """One incremental pass; failures are logged and retried next interval."""
        try:
            return await self.engine.run_sync()
        except FreakSlotsError as e:
            logger.error(f"Scheduled sync failed: {e}", exc_info=True)
            return None

    def start(self):
        """Register the sync job and start the scheduler."""
        logger.info("=" * 60)
        logger.info("Starting sync scheduler...")
        logger.info(f"Log level: {settings.log_level}")
        logger.info(f"Sync cadence: every {self.interval_minutes} minutes")
        logger.info("=" * 60)

        self.scheduler.add_job(
            self.sync_catalog,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=SYNC_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )

        self.scheduler.start()
        logger.info("Scheduler started successfully")

    async def run(self):
        """Run scheduler indefinitely."""
        self.start()

        try:
            # Keep running
            while True:
                await asyncio.sleep(1)
        except (KeyboardInterrupt, SystemExit):
            logger.info("Shutting down scheduler...")
            self.scheduler.shutdown()


async def main():
    """Main entry point for scheduler."""
    db_engine = create_engine()
    await init_db(db_engine)
    storage = SqlStorageGateway(db_engine)
    provider = SlotsLaunchProvider()

    scheduler = SyncScheduler(CatalogSyncEngine(provider, storage))
    try:
        await scheduler.run()
    finally:
        await provider.close()
        await storage.close()


if __name__ == "__main__":
    asyncio.run(main())
