"""
Expired Auction Sweeper

Closes auctions whose end time has passed. Runs as its own process,
next to the API, the way a scheduled job on the store would.

Run with: python -m worker.auction_sweeper
"""
import asyncio
import logging
import signal
from typing import Optional

from fyndak.core.config import Settings, get_settings
from fyndak.core.context import AppContext, build_context
from fyndak.core.errors import FyndakError
from fyndak.core.logging_config import setup_logging
from fyndak.infrastructure.database import init_db
from fyndak.services import AuctionCloser, SweepResult

logger = logging.getLogger(__name__)


class AuctionSweeper:
    """Periodically ends expired auctions"""

    def __init__(self, context: AppContext, interval_seconds: Optional[int] = None):
        self.context = context
        self.interval_seconds = interval_seconds or context.settings.SWEEP_INTERVAL_SECONDS
        self.running = False
        self.runs = 0

    async def sweep_once(self) -> SweepResult:
        """Close every expired auction once"""
        db = self.context.session()
        try:
            sweep = await AuctionCloser.close_expired_auctions(db, self.context.notifier)
        finally:
            db.close()

        self.runs += 1
        return sweep

    async def run(self):
        """Main loop"""
        self.running = True
        logger.info(f"Auction sweeper started (interval: {self.interval_seconds}s)")

        while self.running:
            try:
                await self.sweep_once()
            except FyndakError as e:
                logger.error(f"Sweep failed: {e.message}")

            try:
                await asyncio.sleep(self.interval_seconds)
            except asyncio.CancelledError:
                break

        logger.info("Auction sweeper stopped")

    def stop(self):
        self.running = False


async def main(settings: Optional[Settings] = None):
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)

    context = build_context(settings)
    init_db(context.engine)
    await context.notifier.connect()

    sweeper = AuctionSweeper(context)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, sweeper.stop)
        except NotImplementedError:
            pass

    try:
        await sweeper.run()
    finally:
        await context.notifier.disconnect()
        context.engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
