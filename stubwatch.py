# stubwatch.py
# StubWatch - SIMKL list import and scrobbling for Jellyfin libraries
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import uvicorn
from fastapi import FastAPI

ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import api
from _logging import Logger, log as BASE_LOG
from providers.jellyfin import JellyfinLibrary
from providers.simkl import SimklClient
from services import (
    ImportJob,
    ImportOrchestrator,
    ImportScheduler,
    PlaceholderLedger,
    ScrobbleReconciler,
    StubCatalog,
    StubSynthesizer,
)
from sw_platform.config_base import CONFIG_BASE, clear_simkl_token, load_config, save_config, state_path


@dataclass
class AppContext:
    load_config: Callable[[], dict[str, Any]]
    save_config: Callable[[dict[str, Any]], None]
    log: Logger
    tracker: SimklClient
    library: JellyfinLibrary | None
    ledger: PlaceholderLedger
    catalog: StubCatalog
    orchestrator: ImportOrchestrator
    reconciler: ScrobbleReconciler
    scheduler: ImportScheduler


def _configure_logger(cfg: dict[str, Any]) -> Logger:
    rt = cfg.get("runtime") or {}
    if rt.get("debug"):
        BASE_LOG.set_level("debug")
    sink = str(rt.get("log_json") or "").strip()
    if sink:
        try:
            BASE_LOG.enable_json(sink)
        except OSError as e:
            BASE_LOG.warn(f"JSON log sink unavailable: {e}")
    return BASE_LOG


def build_context(
    load_cfg: Callable[[], dict[str, Any]] = load_config,
    save_cfg: Callable[[dict[str, Any]], None] = save_config,
) -> AppContext:
    cfg = load_cfg() or {}
    log = _configure_logger(cfg)
    imp = cfg.get("import") or {}

    tracker = SimklClient(cfg, on_invalid_token=clear_simkl_token, logger=log.child("SIMKL"))
    library = JellyfinLibrary(cfg, logger=log.child("JELLYFIN")) if (cfg.get("jellyfin") or {}).get("server") else None

    ledger = PlaceholderLedger(imp.get("ledger_file") or state_path("placeholder_stubs.txt"), logger=log.child("LEDGER"))
    catalog = StubCatalog(imp.get("stubs_dir") or (ROOT / "STUBS"), logger=log.child("STUBS"))
    synth = StubSynthesizer(catalog, logger=log.child("STUBS"))

    orchestrator = ImportOrchestrator(tracker, library, ledger, synth, logger=log.child("IMPORT"))
    sched_log = log.child("SCHED")
    job = ImportJob(orchestrator, library, log_fn=sched_log)
    scheduler = ImportScheduler(load_cfg, job, log_fn=sched_log)

    return AppContext(
        load_config=load_cfg,
        save_config=save_cfg,
        log=log,
        tracker=tracker,
        library=library,
        ledger=ledger,
        catalog=catalog,
        orchestrator=orchestrator,
        reconciler=ScrobbleReconciler(tracker, logger=log.child("SCROBBLE")),
        scheduler=scheduler,
    )


def create_app(ctx: AppContext | None = None) -> FastAPI:
    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        if getattr(app.state, "ctx", None) is None:
            app.state.ctx = build_context()
        c: AppContext = app.state.ctx
        try:
            c.scheduler.start()
        except Exception as e:
            c.log.error(f"scheduler startup error: {e}")
        try:
            yield
        finally:
            c.scheduler.stop()

    app = FastAPI(title="StubWatch", lifespan=_lifespan)
    app.state.ctx = ctx
    api.register(app)
    return app


# Entry point
def main(host: str = "0.0.0.0", port: int = 8788) -> None:
    print("\nStubWatch running:")
    print(f"  Local:   http://127.0.0.1:{port}")
    print(f"  Bind:    {host}:{port}")
    print(f"  Config:  {CONFIG_BASE() / 'config.json'} (JSON)\n")

    cfg = load_config()
    debug = bool((cfg.get("runtime") or {}).get("debug"))

    uvicorn.run(
        create_app(),
        host=host,
        port=port,
        log_level=("debug" if debug else "warning"),
    )

if __name__ == "__main__":
    main()
