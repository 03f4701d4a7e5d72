"""
Update Dispatcher

Marks eligible records as processed on the remote source with bounded
retry per record. A record that exhausts its attempts, or whose update raises an
unexpected error, is reported as failed and the dispatcher moves on; one record's failure never stops the batch.

Retry timing is a RetryPolicy built on tenacity. The default policy waits a
constant delay between attempts; RetryPolicy.exponential() adds exponential
backoff with jitter. Tests inject a recording sleep to avoid real delays.

Updates are sequential by default. With concurrency > 1 a semaphore caps
the number of in-flight updates to respect source rate limits.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Sequence

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
    wait_fixed,
)
from tenacity.wait import wait_base

from utils.config import Settings
from utils.dynamics import RecordSource
from utils.errors import UpdateFailure
from utils.schemas import UpdateOutcome, UpdateStatus

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to attempt an update and how long to wait between attempts."""

    max_attempts: int = 3
    wait: wait_base = field(default_factory=lambda: wait_fixed(2))
    sleep: Sleep = asyncio.sleep

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @classmethod
    def constant(cls, delay_s: float = 2.0, max_attempts: int = 3, sleep: Sleep = asyncio.sleep) -> "RetryPolicy":
        return cls(max_attempts=max_attempts, wait=wait_fixed(delay_s), sleep=sleep)

    @classmethod
    def exponential(
        cls,
        initial_s: float = 2.0,
        max_s: float = 30.0,
        max_attempts: int = 3,
        sleep: Sleep = asyncio.sleep,
    ) -> "RetryPolicy":
        return cls(
            max_attempts=max_attempts,
            wait=wait_exponential_jitter(initial=initial_s, max=max_s, jitter=initial_s / 2),
            sleep=sleep,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        if settings.UPDATE_BACKOFF_STRATEGY == "exponential":
            return cls.exponential(
                initial_s=settings.UPDATE_BACKOFF_SECONDS,
                max_s=settings.UPDATE_MAX_BACKOFF_SECONDS,
                max_attempts=settings.UPDATE_MAX_ATTEMPTS,
            )
        return cls.constant(
            delay_s=settings.UPDATE_BACKOFF_SECONDS,
            max_attempts=settings.UPDATE_MAX_ATTEMPTS,
        )


class UpdateDispatcher:
    """
    Applies the processed-flag update to each record id.

    Handles:
    - Per-record retry with the configured policy
    - Failure isolation (exhausted records become failed outcomes)
    - Optional bounded concurrency
    """

    def __init__(self, source: RecordSource, policy: RetryPolicy | None = None, concurrency: int = 1) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.source = source
        self.policy = policy or RetryPolicy()
        self.concurrency = concurrency

    async def dispatch(self, record_ids: Sequence[str]) -> list[UpdateOutcome]:
        """
        Update every record id and collect the outcomes.

        Args:
            record_ids: Ids of eligible records, in fetch order

        Returns:
            One UpdateOutcome per id, in input order
        """
        if not record_ids:
            logger.info("No eligible records, skipping updates")
            return []

        logger.info(
            "Dispatching %d update(s) (max_attempts=%d, concurrency=%d)",
            len(record_ids),
            self.policy.max_attempts,
            self.concurrency,
        )

        if self.concurrency == 1:
            return [await self.update_one(record_id) for record_id in record_ids]

        semaphore = asyncio.Semaphore(self.concurrency)

        async def bounded(record_id: str) -> UpdateOutcome:
            async with semaphore:
                return await self.update_one(record_id)

        tasks = [asyncio.create_task(bounded(record_id)) for record_id in record_ids]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

    async def update_one(self, record_id: str) -> UpdateOutcome:
        """Attempt one record's update until it succeeds or attempts run out."""
        attempts = 0
        max_attempts = self.policy.max_attempts

        def log_retry(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            delay = retry_state.next_action.sleep if retry_state.next_action else 0
            logger.warning(
                "Failed to update account %s (status=%s), retrying attempt %d/%d in %.1fs: %s",
                record_id,
                getattr(exc, "last_status", None),
                retry_state.attempt_number + 1,
                max_attempts,
                delay,
                getattr(exc, "reason", exc),
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=self.policy.wait,
            retry=retry_if_exception_type(UpdateFailure),
            sleep=self.policy.sleep,
            before_sleep=log_retry,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    attempts += 1
                    await self.source.mark_processed(record_id)
        except UpdateFailure as e:
            logger.error(
                "Max retries reached for account %s, skipping (status=%s, attempts=%d): %s",
                record_id,
                e.last_status,
                attempts,
                e.reason,
                extra={"record_id": record_id, "last_status": e.last_status},
            )
            return UpdateOutcome(
                record_id=record_id,
                status=UpdateStatus.FAILED,
                attempts=attempts,
                last_status=e.last_status,
                error=e.reason or e.message,
            )
        except Exception as e:
            logger.error(
                "Unexpected error updating account %s, skipping (attempts=%d): %s",
                record_id,
                attempts,
                e,
                extra={"record_id": record_id, "error_type": type(e).__name__},
                exc_info=True,
            )
            return UpdateOutcome(
                record_id=record_id,
                status=UpdateStatus.FAILED,
                attempts=attempts,
                error=f"{type(e).__name__}: {e}",
            )

        logger.debug("Updated processed flag for account %s (attempts=%d)", record_id, attempts)
        return UpdateOutcome(record_id=record_id, status=UpdateStatus.UPDATED, attempts=attempts)
