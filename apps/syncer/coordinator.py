"""
Run Coordinator - One Synchronization Run

Drives a run through its stages in strict sequence:

    START -> FETCHING -> FILTERING -> UPDATING -> EXPORTING -> PUBLISHING -> COMPLETED

Any fatal error, typed or unexpected, moves the run to FAILED and is raised
as RunFailed(stage, cause). Failed updates are never fatal: they are counted in the RunSummary
and the run proceeds to export.

The export always holds the records exactly as fetched. A record updated
during this run still exports its pre-run processed flag; update outcomes
live only in the summary.
"""

import logging
import uuid
from datetime import datetime
from enum import Enum
from typing import Callable

from apps.syncer.dispatcher import RetryPolicy, UpdateDispatcher
from apps.syncer.eligibility import select_eligible
from apps.syncer.encoder import encode_records, write_export
from apps.syncer.fetcher import fetch_all_records
from apps.syncer.publisher import ArchivePublisher, archive_key
from utils.config import Settings
from utils.dynamics import RecordSource
from utils.errors import RunFailed, SyncError
from utils.schemas import RunSummary, UpdateStatus, utc_now

logger = logging.getLogger(__name__)


class RunStage(str, Enum):
    START = "start"
    FETCHING = "fetching"
    FILTERING = "filtering"
    UPDATING = "updating"
    EXPORTING = "exporting"
    PUBLISHING = "publishing"
    COMPLETED = "completed"
    FAILED = "failed"


class SyncCoordinator:
    """
    Orchestrates fetch, filter, update, export and publish for one run.

    A coordinator instance is single-use; build a new one per run.
    """

    def __init__(
        self,
        settings: Settings,
        source: RecordSource,
        publisher: ArchivePublisher,
        *,
        policy: RetryPolicy | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.settings = settings
        self.source = source
        self.publisher = publisher
        self.policy = policy or RetryPolicy.from_settings(settings)
        self.clock = clock
        self.run_id = uuid.uuid4().hex
        self.stage = RunStage.START

    def _enter(self, stage: RunStage) -> None:
        self.stage = stage
        logger.info("Run stage: %s", stage.value, extra={"run_id": self.run_id, "stage": stage.value})

    async def run(self) -> RunSummary:
        """
        Execute the run.

        Returns:
            RunSummary on completion

        Raises:
            RunFailed: On authentication, fetch, export or publish failure
        """
        started_at = self.clock()
        logger.info("Processing started at %s", started_at.isoformat(), extra={"run_id": self.run_id})

        try:
            self._enter(RunStage.START)
            await self.source.authenticate()

            self._enter(RunStage.FETCHING)
            records = await fetch_all_records(self.source)

            self._enter(RunStage.FILTERING)
            eligible = select_eligible(records, started_at)
            logger.info("Eligible records: %d of %d", len(eligible), len(records))

            self._enter(RunStage.UPDATING)
            dispatcher = UpdateDispatcher(self.source, self.policy, concurrency=self.settings.UPDATE_CONCURRENCY)
            outcomes = await dispatcher.dispatch([record.id for record in eligible])

            self._enter(RunStage.EXPORTING)
            payload = encode_records(records)
            key = archive_key(self.settings.ARCHIVE_PREFIX, self.settings.ARCHIVE_LABEL, started_at)
            if self.settings.EXPORT_DIR:
                write_export(payload, self.settings.EXPORT_DIR, key.rsplit("/", 1)[-1])

            self._enter(RunStage.PUBLISHING)
            location = await self.publisher.publish(payload, key)

        except Exception as e:
            failed_stage = self.stage
            self.stage = RunStage.FAILED
            logger.error(
                "Run failed during %s: %s",
                failed_stage.value,
                e,
                extra={"run_id": self.run_id, "stage": failed_stage.value, "error_type": type(e).__name__},
                exc_info=not isinstance(e, SyncError),
            )
            raise RunFailed(failed_stage.value, e) from e

        failures = [outcome for outcome in outcomes if outcome.status is UpdateStatus.FAILED]
        summary = RunSummary(
            run_id=self.run_id,
            started_at=started_at,
            completed_at=self.clock(),
            total_fetched=len(records),
            eligible=len(eligible),
            updated=len(outcomes) - len(failures),
            failed=len(failures),
            failures=failures,
            export_location=location,
        )
        self._enter(RunStage.COMPLETED)

        log = logger.warning if failures else logger.info
        log(
            "Processing completed: fetched=%d, eligible=%d, updated=%d, failed=%d, elapsed=%s",
            summary.total_fetched,
            summary.eligible,
            summary.updated,
            summary.failed,
            summary.elapsed,
            extra={"run_id": self.run_id, "export_location": location},
        )
        if failures:
            logger.warning(
                "Accounts not updated: %s",
                ", ".join(f"{f.record_id}({f.last_status})" for f in failures[:50]),
                extra={"run_id": self.run_id, "failed_total": len(failures)},
            )
        return summary
