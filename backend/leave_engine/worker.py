"""Worker process for the periodic comp-off expiry sweep.

Runs an asyncio loop that expires stale comp-off credits on a fixed interval
(``COMP_OFF_SWEEP_INTERVAL_SECONDS``, daily by default).
"""

from __future__ import annotations

import asyncio
import logging

from leave_engine.config import LOG_FORMAT, get_settings
from leave_engine.db import get_session_factory

logger = logging.getLogger(__name__)


async def run_expiry_loop() -> None:
    """Main worker loop: one expiry sweep per interval, each user in its own transaction."""
    from leave_engine.services.comp_off import run_expiry_sweep

    settings = get_settings()
    logger.info("Comp-off expiry worker started (interval=%ds)", settings.comp_off_sweep_interval_seconds)
    session_factory = get_session_factory()

    while True:
        try:
            async with session_factory() as session:
                result = await run_expiry_sweep(session)
            logger.info(
                "Comp-off expiry run complete as of %s: users=%d expired=%d errors=%d",
                result.as_of.isoformat(),
                result.users_processed,
                result.credits_expired,
                result.errors,
            )
        except Exception:
            logger.exception("Comp-off expiry run failed")

        await asyncio.sleep(settings.comp_off_sweep_interval_seconds)


def main() -> None:
    """Entry point for the worker process."""
    logging.basicConfig(level=get_settings().log_level, format=LOG_FORMAT)
    asyncio.run(run_expiry_loop())


if __name__ == "__main__":
    main()
