import pytest

from apps.syncer import scheduler as scheduler_module
from apps.syncer.scheduler import SyncScheduler
from tests.conftest import NOW
from utils.errors import PublishFailure, RunFailed, SourceUnavailable
from utils.schemas import RunSummary


async def test_run_once_stores_summary_and_signals_shutdown(settings, monkeypatch) -> None:
    summary = RunSummary(
        run_id="r1",
        started_at=NOW,
        completed_at=NOW,
        total_fetched=0,
        eligible=0,
        updated=0,
        failed=0,
        export_location="memory://empty.csv",
    )

    async def fake_run_sync(run_settings):
        return summary

    monkeypatch.setattr(scheduler_module, "run_sync", fake_run_sync)
    sync_scheduler = SyncScheduler(settings, run_once=True)

    await sync_scheduler.execute_sync()

    assert sync_scheduler.last_summary is summary
    assert sync_scheduler.shutdown_event.is_set()


async def test_run_once_failure_propagates_and_still_shuts_down(settings, monkeypatch) -> None:
    async def fake_run_sync(run_settings):
        raise RunFailed("publishing", PublishFailure("container missing"))

    monkeypatch.setattr(scheduler_module, "run_sync", fake_run_sync)
    sync_scheduler = SyncScheduler(settings, run_once=True)

    with pytest.raises(RunFailed):
        await sync_scheduler.execute_sync()

    assert sync_scheduler.last_summary is None
    assert sync_scheduler.shutdown_event.is_set()


async def test_scheduled_mode_does_not_signal_shutdown_after_run(settings, monkeypatch) -> None:
    calls: list[object] = []

    async def fake_run_sync(run_settings):
        calls.append(run_settings)
        raise RunFailed("fetching", SourceUnavailable("Error fetching page 1", page_index=1, status=503))

    monkeypatch.setattr(scheduler_module, "run_sync", fake_run_sync)
    sync_scheduler = SyncScheduler(settings)

    with pytest.raises(RunFailed):
        await sync_scheduler.execute_sync()

    assert len(calls) == 1
    assert not sync_scheduler.shutdown_event.is_set()


async def test_start_in_run_once_mode_runs_exactly_once(settings, monkeypatch) -> None:
    calls: list[object] = []

    async def fake_run_sync(run_settings):
        calls.append(run_settings)
        raise RunFailed("publishing", PublishFailure("container missing"))

    monkeypatch.setattr(scheduler_module, "run_sync", fake_run_sync)
    sync_scheduler = SyncScheduler(settings, run_once=True)

    with pytest.raises(RunFailed):
        await sync_scheduler.start()

    assert len(calls) == 1
    assert sync_scheduler.scheduler is None


def test_run_once_is_read_from_settings(monkeypatch) -> None:
    monkeypatch.setenv("RUN_ONCE", "true")
    assert scheduler_module.load_settings(_env_file=None).RUN_ONCE is True
