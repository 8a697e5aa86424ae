# /api/scrobbleAPI.py
# StubWatch - mark a played library item as watched on SIMKL
# Copyright (c) 2025-2026 CrossWatch / Cenodude
from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from providers.simkl import InvalidTokenError
from sw_platform.models import LocalMediaItem

router = APIRouter(prefix="/api/scrobble", tags=["scrobble"])


class PlayedItem(BaseModel):
    name: Optional[str] = None
    path: str
    kind: Literal["movie", "series", "episode"]
    year: Optional[int] = None
    ids: Dict[str, str] = {}
    series_name: Optional[str] = None
    season: Optional[int] = None
    episode: Optional[int] = None


@router.post("/reconcile")
def api_reconcile(request: Request, payload: PlayedItem) -> Any:
    ctx = request.app.state.ctx
    cfg = ctx.load_config() or {}
    token = str((cfg.get("simkl") or {}).get("access_token") or "").strip()
    if not token:
        return JSONResponse({"ok": False, "error": "User token is not set. Please log in first."}, status_code=400)

    item = LocalMediaItem(**payload.model_dump())
    try:
        ok, item = ctx.reconciler.reconcile(item, token)
    except InvalidTokenError as e:
        return JSONResponse({"ok": False, "error": str(e)}, status_code=401)
    except Exception as e:
        ctx.log.error(f"scrobble failed: {e}")
        return JSONResponse({"ok": False, "error": str(e)}, status_code=500)
    return {"ok": ok, "item": asdict(item)}
