from __future__ import annotations

from fastapi import FastAPI

from .importAPI import router as import_router
from .schedulingAPI import router as scheduling_router
from .scrobbleAPI import router as scrobble_router

__all__ = [
    "import_router",
    "scheduling_router",
    "scrobble_router",
    "register",
]

def register(app: FastAPI) -> None:
    app.include_router(import_router)
    app.include_router(scheduling_router)
    app.include_router(scrobble_router)
