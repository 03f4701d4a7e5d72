"""FastAPI app exposing the sync trigger."""

import asyncio
import logging
from typing import Awaitable, Callable

from fastapi import Depends, FastAPI
from fastapi.responses import PlainTextResponse

from apps.syncer.sync_job import run_sync
from utils.config import Settings, load_settings
from utils.errors import SyncError
from utils.schemas import RunSummary

logger = logging.getLogger(__name__)

SyncRunner = Callable[[Settings], Awaitable[RunSummary]]


def get_settings() -> Settings:
    return load_settings()


def get_sync_runner() -> SyncRunner:
    return run_sync


def create_app() -> FastAPI:
    app = FastAPI(title="account-archive-sync")

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.api_route("/api/process-accounts", methods=["GET", "POST"], response_class=PlainTextResponse)
    async def process_accounts(
        settings: Settings = Depends(get_settings),
        runner: SyncRunner = Depends(get_sync_runner),
    ) -> PlainTextResponse:
        try:
            summary = await runner(settings)
        except SyncError as e:
            logger.error("Error during processing: %s", e.message, exc_info=True)
            return PlainTextResponse(f"Error: {e.message}", status_code=500)
        except asyncio.TimeoutError:
            logger.error("Run exceeded %ss timeout", settings.RUN_TIMEOUT_SECONDS)
            return PlainTextResponse(
                f"Error: run exceeded {settings.RUN_TIMEOUT_SECONDS}s timeout", status_code=500
            )

        return PlainTextResponse(summary.message(), status_code=200)

    return app
