"""
Trigger API Entry Point

Allows execution via: python -m services.api
"""

import uvicorn

from services.api.app import create_app
from utils.config import load_settings
from utils.logging import setup_logging


def main() -> None:
    settings = load_settings()
    setup_logging(level=settings.LOG_LEVEL, format_type=settings.LOG_FORMAT)
    uvicorn.run(create_app(), host=settings.API_HOST, port=settings.API_PORT, log_config=None)


if __name__ == "__main__":
    main()
