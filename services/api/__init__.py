"""
Trigger API Service - FastAPI Application

Responsibilities:
- Expose the HTTP entry point that runs one account sync on demand
- Return the run summary as plain text (200) or the error (500)

Endpoints:
- POST /api/process-accounts - Run a sync (GET also accepted for manual use)
- GET /health - Health check

Usage:
    python -m services.api
"""

from services.api.app import create_app

__all__ = ["create_app"]
