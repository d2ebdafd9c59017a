"""Worker process for the scheduled year-end rollover.

Runs an asyncio loop that wakes once per interval and, on Jan 1, rolls the
previous year's balances into the new year. Re-running on the same day is
harmless because rollover is idempotent per key.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date

from leave_ledger.config import get_settings
from leave_ledger.db import dispose_engine, get_session_factory

logger = logging.getLogger(__name__)


async def run_rollover_once(today: date) -> None:
    """Run the rollover for the year that ended before ``today``, if any."""
    from leave_ledger.services.rollover import rollover_year_for, run_year_end_rollover

    year = rollover_year_for(today)
    if year is None:
        logger.debug("No rollover due on %s", today)
        return

    session_factory = get_session_factory()
    async with session_factory() as session:
        result = await run_year_end_rollover(session, year)
    logger.info(
        "Rollover run for %d: processed=%d already=%d skipped=%d",
        year,
        result.processed,
        result.already_rolled_over,
        len(result.skipped),
    )
    for key in result.skipped:
        logger.warning(
            "Rollover pending retry: employee=%s leave_type=%s reason=%s",
            key.employee_id,
            key.leave_type_id,
            key.reason,
        )


async def run_rollover_loop() -> None:
    """Main worker loop."""
    interval = get_settings().rollover_interval_seconds
    logger.info("Rollover worker started (interval=%ds)", interval)

    try:
        while True:
            today = date.today()
            try:
                await run_rollover_once(today)
            except Exception:
                logger.exception("Rollover run failed for %s", today)

            await asyncio.sleep(interval)
    finally:
        await dispose_engine()
        logger.info("Rollover worker stopped")


def main() -> None:
    """Entry point for the worker process."""
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(name)s %(levelname)s %(message)s")
    asyncio.run(run_rollover_loop())


if __name__ == "__main__":
    main()
