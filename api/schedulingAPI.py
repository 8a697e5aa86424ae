# /api/schedulingAPI.py
# StubWatch - scheduled import status and manual triggers
# Copyright (c) 2025-2026 CrossWatch / Cenodude
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Request
from fastapi.responses import JSONResponse

from services.scheduling import merge_defaults

router = APIRouter(prefix="/api/scheduling", tags=["scheduling"])


def _ctx(request: Request) -> Any:
    return request.app.state.ctx


@router.get("")
def sched_status(request: Request) -> dict[str, Any]:
    return _ctx(request).scheduler.status()


@router.post("")
def sched_post(request: Request, payload: dict[str, Any] = Body(...)) -> dict[str, Any]:
    ctx = _ctx(request)
    cfg = ctx.load_config() or {}
    cfg["scheduling"] = merge_defaults({**(cfg.get("scheduling") or {}), **(payload or {})})
    ctx.save_config(cfg)
    ctx.scheduler.refresh()
    st = ctx.scheduler.status()
    return {"ok": True, "next_run_at": int(st.get("next_run_at") or 0), "config": cfg["scheduling"]}


@router.post("/run")
def sched_run(request: Request) -> Any:
    if not _ctx(request).scheduler.run_now():
        return JSONResponse({"ok": False, "error": "An import is already running"}, status_code=409)
    return {"ok": True}


@router.post("/cancel")
def sched_cancel(request: Request) -> dict[str, Any]:
    return {"ok": True, "cancelled": _ctx(request).scheduler.cancel()}
