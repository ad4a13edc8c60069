"""Shared FastAPI dependencies.

Services are built once by the application's startup hook and kept on
``app.state``; nothing here holds module-level state.
"""

from __future__ import annotations

from fastapi import Request

from dedup_cache.core.config import Settings
from dedup_cache.ingest.coordinator import IngestCoordinator


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_coordinator(request: Request) -> IngestCoordinator:
    return request.app.state.coordinator


__all__ = ["get_app_settings", "get_coordinator"]
