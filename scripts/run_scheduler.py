"""
Standalone scheduler process (no HTTP server)

SIGINT / SIGTERM stop new job fires, wait for running jobs and then close
the connection pool.
"""

import asyncio
import signal
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from api.container import build_container
from core.config import settings
from core.logging import setup_logging

logger = logging.getLogger(__name__)


async def run_scheduler():
    container = build_container(settings)
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    if container.pms_sync is not None:
        try:
            await container.pms_sync.initialize()
        except Exception as e:
            logger.error(f"PMS health check failed, jobs will retry on schedule: {e}")

    container.scheduler.start()
    for job in container.scheduler.get_jobs():
        logger.info(f"  {job['name']}: {job['schedule']}")

    await stop_event.wait()
    logger.info("Shutdown signal received")
    await container.close()


if __name__ == "__main__":
    setup_logging()
    asyncio.run(run_scheduler())
