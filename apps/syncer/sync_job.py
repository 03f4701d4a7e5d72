"""
Sync Job - Wiring for One Run

Builds fresh settings, a fresh authenticated source client and the archive
publisher for every run, then executes the coordinator under the overall
wall-clock timeout. Shared by the scheduler and the HTTP trigger.
"""

import asyncio
import logging

from apps.syncer.coordinator import SyncCoordinator
from apps.syncer.publisher import ArchivePublisher, build_publisher
from utils.config import Settings, load_settings
from utils.dynamics import DynamicsClient, RecordSource
from utils.schemas import RunSummary

logger = logging.getLogger(__name__)


async def run_sync(
    settings: Settings | None = None,
    *,
    source: RecordSource | None = None,
    publisher: ArchivePublisher | None = None,
) -> RunSummary:
    """
    Execute one synchronization run.

    Args:
        settings: Run settings (loaded from the environment if None)
        source: Record source override (a new DynamicsClient if None)
        publisher: Archive publisher override (built from settings if None)

    Returns:
        RunSummary of the completed run

    Raises:
        RunFailed: If the run fails
        ConfigError: If required settings are missing
        asyncio.TimeoutError: If RUN_TIMEOUT_SECONDS elapses; the run is cancelled
    """
    settings = settings or load_settings()
    publisher = publisher or build_publisher(settings)

    if source is not None:
        coordinator = SyncCoordinator(settings, source, publisher)
        return await asyncio.wait_for(coordinator.run(), timeout=settings.RUN_TIMEOUT_SECONDS)

    async with DynamicsClient(settings) as client:
        coordinator = SyncCoordinator(settings, client, publisher)
        return await asyncio.wait_for(coordinator.run(), timeout=settings.RUN_TIMEOUT_SECONDS)
