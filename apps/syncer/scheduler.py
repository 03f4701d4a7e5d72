"""
Sync Host - Cron Schedule or Single Run

Hosts the account sync as a long-running process. In scheduled mode an
APScheduler cron job (SYNC_SCHEDULE_CRON, evaluated in UTC) starts one run
per tick; overlapping ticks are coalesced so at most one run is in flight.
With RUN_ONCE=true the process performs one run and exits, non-zero if the
run failed.

Every run loads its own Settings, so edits to the environment or .env are
picked up on the next tick without a restart.

Usage:
    python -m apps.syncer
    RUN_ONCE=true python -m apps.syncer
"""

import asyncio
import logging
import signal
import sys

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from apps.syncer.sync_job import run_sync
from utils.config import Settings, load_settings
from utils.logging import setup_logging
from utils.schemas import RunSummary

logger = logging.getLogger(__name__)

JOB_ID = "account_sync_job"


class SyncScheduler:
    """Runs the sync on a cron schedule, or once, until told to stop."""

    def __init__(self, settings: Settings, run_once: bool = False) -> None:
        self.settings = settings
        self.run_once = run_once
        self.scheduler: AsyncIOScheduler | None = None
        self.shutdown_event = asyncio.Event()
        self.last_summary: RunSummary | None = None

    async def execute_sync(self) -> None:
        """
        Perform one run with freshly loaded settings.

        Failures are logged and re-raised. APScheduler records the job error
        and the next tick still fires.
        """
        try:
            self.last_summary = await run_sync(load_settings())
        except Exception as e:
            logger.error("Account sync failed: %s", e, extra={"error_type": type(e).__name__}, exc_info=True)
            raise
        else:
            logger.info(
                "Account sync finished: %s",
                self.last_summary.message(),
                extra={"run_id": self.last_summary.run_id, "failed": self.last_summary.failed},
            )
        finally:
            if self.run_once:
                self.shutdown_event.set()

    def install_signal_handlers(self) -> None:
        """Stop on SIGINT/SIGTERM; a run in progress is allowed to finish."""
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, self.request_shutdown, signum)

    def request_shutdown(self, signum: int) -> None:
        logger.info("Received %s, stopping", signal.Signals(signum).name)
        self.shutdown_event.set()

    async def start(self) -> None:
        self.install_signal_handlers()

        if self.run_once:
            logger.info("Single run requested")
            await self.execute_sync()
            return

        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.scheduler.add_job(
            self.execute_sync,
            trigger=CronTrigger.from_crontab(self.settings.SYNC_SCHEDULE_CRON, timezone="UTC"),
            id=JOB_ID,
            name="Account archive sync",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()

        job = self.scheduler.get_job(JOB_ID)
        logger.info(
            "Account sync scheduled: cron=%r, next run %s",
            self.settings.SYNC_SCHEDULE_CRON,
            getattr(job, "next_run_time", None),
        )

        await self.shutdown_event.wait()

        self.scheduler.shutdown(wait=True)
        logger.info("Scheduler stopped")


async def main() -> None:
    settings = load_settings()
    setup_logging(level=settings.LOG_LEVEL, format_type=settings.LOG_FORMAT)

    try:
        await SyncScheduler(settings, run_once=settings.RUN_ONCE).start()
    except Exception as e:
        logger.error("Sync host exiting after failure: %s", e)
        sys.exit(1)


def cli() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    cli()
