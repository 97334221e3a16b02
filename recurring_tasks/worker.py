"""
Main entry point for the standalone maintenance worker.

Runs the daily recurring task sweep without the HTTP API. Use ``--once`` to
run a single sweep and exit.
"""

import asyncio
import json
import logging
import sys

from recurring_tasks.config import LOG_LEVEL
from recurring_tasks.db.config import engine
from recurring_tasks.db.init import init_db
from recurring_tasks.services.maintenance import MaintenanceScheduler, run_maintenance_sweep

# Configure logging
logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)


async def main(run_once: bool = False):
    """Main entry point for the maintenance worker."""
    logger.info("Starting recurring task maintenance worker...")
    await init_db()

    if run_once:
        result = await run_maintenance_sweep()
        print(json.dumps(result, default=str, indent=2))
        await engine.dispose()
        return result

    scheduler = MaintenanceScheduler()
    scheduler.start()
    try:
        # Sleep until cancelled; the scheduler runs on this loop
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown()
        await engine.dispose()


if __name__ == "__main__":
    try:
        asyncio.run(main(run_once="--once" in sys.argv[1:]))
    except KeyboardInterrupt:
        logger.info("Maintenance worker stopped")
