# /api/importAPI.py
# StubWatch - library listing and plan-to-watch import
# Copyright (c) 2025-2026 CrossWatch / Cenodude
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from sw_platform.config_base import CATEGORIES

router = APIRouter(prefix="/api", tags=["import"])

_STATUS_BY_KIND = {"config": 400, "invalid_token": 401, "busy": 409, "cancelled": 409, "failed": 500}


def _ctx(request: Request) -> Any:
    return request.app.state.ctx


def _has_library(cfg: dict[str, Any]) -> bool:
    imp = cfg.get("import") or {}
    for key in ("libraries", "paths"):
        block = imp.get(key) or {}
        if any(str(block.get(c) or "").strip() for c in CATEGORIES):
            return True
    return False


@router.get("/libraries")
def api_libraries(request: Request) -> Any:
    ctx = _ctx(request)
    if ctx.library is None:
        return JSONResponse({"ok": False, "error": "Jellyfin server is not configured"}, status_code=400)
    try:
        libs = ctx.library.list_configured_libraries()
    except Exception as e:
        ctx.log.error(f"library listing failed: {e}")
        return JSONResponse({"ok": False, "error": str(e)}, status_code=502)
    return [{"id": lib.id, "name": lib.name, "paths": list(lib.paths)} for lib in libs]


@router.post("/import/plan-to-watch")
def api_import_plan_to_watch(request: Request) -> Any:
    ctx = _ctx(request)
    cfg = ctx.load_config() or {}
    if not _has_library(cfg):
        return JSONResponse({"ok": False, "error": "No library configured for import"}, status_code=400)
    if ctx.orchestrator.is_running():
        return JSONResponse({"ok": False, "error": "An import is already running"}, status_code=409)

    result = ctx.orchestrator.import_plan_to_watch(cfg)
    body = result.to_dict()
    if result.success:
        return {"ok": True, **body}
    code = _STATUS_BY_KIND.get(result.error_kind or "failed", 500)
    return JSONResponse({"ok": False, **body}, status_code=code)
