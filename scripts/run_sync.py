"""
One-shot sync of warehouse entities and/or the PMS

Usage:
    python scripts/run_sync.py                 # every warehouse entity
    python scripts/run_sync.py leases payments # selected entities
    python scripts/run_sync.py --pms           # PMS facilities, then tenants
"""

import argparse
import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from api.container import build_container
from core.config import settings
from core.exceptions import SyncException
from core.logging import setup_logging
from ingestion.entities import WAREHOUSE_ENTITIES

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run a one-shot sync")
    parser.add_argument("entities", nargs="*", help="Warehouse entities to sync (default: all)")
    parser.add_argument("--pms", action="store_true", help="Sync PMS facilities and tenants instead")
    args = parser.parse_args(argv)
    unknown = [e for e in args.entities if e not in WAREHOUSE_ENTITIES]
    if unknown:
        parser.error(f"unknown entities: {', '.join(unknown)} (choose from {', '.join(WAREHOUSE_ENTITIES)})")
    return args


async def run_sync(entities, pms: bool) -> int:
    """Returns the number of failed syncs"""
    container = build_container(settings)
    failures = 0

    try:
        if pms:
            if container.pms_sync is None:
                logger.error("PMS is not configured (CUBBY_API_URL / CUBBY_API_KEY)")
                return 1
            await container.pms_sync.initialize()
            facilities = await container.pms_sync.sync_facilities()
            tenants = await container.pms_sync.sync_all_tenants()
            for result in (facilities, tenants):
                logger.info(
                    f"{result.entity}: saved={result.success_count}, failed={result.failure_count}"
                )
            return 0

        for name in entities or list(WAREHOUSE_ENTITIES):
            try:
                result = await container.warehouse_sync.sync(name)
                logger.info(f"{name}: saved={result.success_count}, skipped={result.failure_count}")
            except SyncException as e:
                failures += 1
                logger.error(f"{name} failed: {e.message}")

        logger.info("All syncs completed")
        return failures
    finally:
        await container.close()


if __name__ == "__main__":
    setup_logging()
    args = parse_args()
    try:
        failed = asyncio.run(run_sync(args.entities, args.pms))
    except SyncException as e:
        logger.error(f"Sync error: {e}")
        sys.exit(1)
    sys.exit(1 if failed else 0)
