#!/usr/bin/env python3
"""
Catalog Sync Script

Runs one catalog sync (or a reset) outside the API process.

Usage:
    python scripts/run_sync.py              # incremental from the stored watermark
    python scripts/run_sync.py --full       # ignore the watermark
    python scripts/run_sync.py --no-categories
    python scripts/run_sync.py --reset 100  # wipe games, reseed the newest 100
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Add parent directory to path to import freakslots modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from freakslots.core.config import settings
from freakslots.core.database import create_engine, init_db
from freakslots.core.errors import FreakSlotsError
from freakslots.providers.slotslaunch import SlotsLaunchProvider
from freakslots.services.sync_service import CatalogSyncEngine
from freakslots.storage.sql import SqlStorageGateway

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


async def run(full: bool, rebuild_categories: bool, reset: int = None) -> dict:
    """Open storage, run the requested operation, close everything."""
    engine = create_engine()
    await init_db(engine)
    storage = SqlStorageGateway(engine)
    provider = SlotsLaunchProvider()

    try:
        sync_engine = CatalogSyncEngine(provider, storage)
        if reset:
            return await sync_engine.reset_catalog(reset)
        stats = await sync_engine.run_sync(full=full, rebuild_categories=rebuild_categories)
        return stats.to_dict()
    finally:
        await provider.close()
        await storage.close()


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Sync the game catalog from SlotsLaunch",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument("--full", action="store_true", help="Ignore the stored watermark")
    parser.add_argument(
        "--no-categories",
        action="store_true",
        help="Skip the category rebuild after the page loop"
    )
    parser.add_argument(
        "--reset",
        type=int,
        metavar="N",
        help="Wipe stored games and reseed the newest N published ones"
    )
    args = parser.parse_args()

    if args.reset is not None and args.reset <= 0:
        parser.error("--reset must be positive")

    print("🚀 Starting catalog sync...")
    print("=" * 60)

    try:
        info = asyncio.run(run(args.full, not args.no_categories, args.reset))
    except FreakSlotsError as e:
        print(f"❌ Sync failed: {e}")
        sys.exit(1)

    print(json.dumps(info, indent=2))
    print("=" * 60)
    print("✅ Done")


if __name__ == "__main__":
    main()
