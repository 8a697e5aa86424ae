# services/scheduling.py
# StubWatch - periodic list import with progress, cancellation and post-import rescan
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable

from .importer import ImportOrchestrator, ImportResult

DEFAULT_SCHEDULING: dict[str, Any] = {
    "enabled": False,
    "every_n_hours": 6,
    "max_runtime_minutes": 30,
}


def _now_ts() -> int:
    return int(time.time())


def _iso(ts: int) -> str:
    if not ts:
        return ""
    try:
        return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    except Exception:
        return ""


def merge_defaults(s: dict[str, Any]) -> dict[str, Any]:
    out = dict(DEFAULT_SCHEDULING)
    if isinstance(s, dict):
        for k, v in s.items():
            if v is not None:
                out[k] = v
    try:
        out["every_n_hours"] = max(1, int(out.get("every_n_hours") or 6))
    except (TypeError, ValueError):
        out["every_n_hours"] = 6
    try:
        out["max_runtime_minutes"] = max(1, int(out.get("max_runtime_minutes") or 30))
    except (TypeError, ValueError):
        out["max_runtime_minutes"] = 30
    return out


class ImportJob:
    """One import run: orchestrator call, max runtime guard, optional delayed library rescan."""

    def __init__(
        self,
        orchestrator: ImportOrchestrator,
        library: Any | None = None,
        log_fn: Callable[..., Any] | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.library = library
        self.log_fn = log_fn

    def _log(self, msg: str, *, level: str = "INFO") -> None:
        if not self.log_fn:
            return
        try:
            self.log_fn(msg, level=level)
        except Exception:
            pass

    def run(
        self,
        cfg: dict[str, Any],
        *,
        cancel: threading.Event,
        progress: Callable[[int], Any] | None = None,
    ) -> ImportResult:
        sch = merge_defaults(cfg.get("scheduling") or {})
        limit = float(sch["max_runtime_minutes"]) * 60.0
        timer = threading.Timer(limit, self._expire, args=(cancel,))
        timer.daemon = True
        timer.start()
        try:
            result = self.orchestrator.import_plan_to_watch(cfg, progress=progress, cancel=cancel)
            if result.success:
                self._after_import(cfg, cancel)
            if progress:
                progress(100)
            return result
        finally:
            timer.cancel()

    def _expire(self, cancel: threading.Event) -> None:
        self._log("import exceeded max runtime; cancelling", level="WARN")
        cancel.set()

    def _after_import(self, cfg: dict[str, Any], cancel: threading.Event) -> None:
        imp = cfg.get("import") or {}
        if not imp.get("trigger_scan_after_import", True) or self.library is None:
            return
        delay = float(imp.get("scan_delay_seconds", 60) or 0)
        if delay > 0:
            self._log(f"waiting {int(delay)}s before library rescan")
            if cancel.wait(delay):
                self._log("library rescan skipped (cancelled)")
                return
        try:
            self.library.request_library_rescan(cancel)
            self._log("library rescan requested")
        except Exception as e:
            self._log(f"library rescan failed: {e}", level="ERROR")


class ImportScheduler:
    def __init__(
        self,
        load_config: Callable[[], dict[str, Any]],
        job: ImportJob,
        log_fn: Callable[..., Any] | None = None,
    ) -> None:
        self.load_config_cb = load_config
        self.job = job
        self.log_fn = log_fn

        self._thread: threading.Thread | None = None
        self._runner: threading.Thread | None = None
        self._stop = threading.Event()
        self._poke = threading.Event()
        self._cancel = threading.Event()
        self._lock = threading.Lock()

        self._status: dict[str, Any] = {
            "running": False,
            "in_progress": False,
            "progress": 0,
            "last_tick": 0,
            "last_run_ok": None,
            "last_run_at": 0,
            "next_run_at": 0,
            "next_run_iso": "",
            "last_error": "",
            "last_result": None,
        }
        self._next_ts: int = 0
        self._cfg_key: str = ""

    def _log(self, msg: str, *, level: str = "INFO") -> None:
        if not self.log_fn:
            return
        try:
            self.log_fn(msg, level=level)
        except TypeError:
            try:
                self.log_fn(msg)
            except Exception:
                pass
        except Exception:
            pass

    def _get_sched_cfg(self) -> dict[str, Any]:
        cfg = self.load_config_cb() or {}
        return merge_defaults(cfg.get("scheduling") or {})

    def is_busy(self) -> bool:
        r = self._runner
        return bool(r and r.is_alive()) or self.job.orchestrator.is_running()

    def status(self) -> dict[str, Any]:
        with self._lock:
            st = dict(self._status)
        st["config"] = self._get_sched_cfg()
        return st

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._poke.clear()
        self._thread = threading.Thread(target=self._loop, name="ImportScheduler", daemon=True)
        self._thread.start()
        self._log("scheduler thread started", level="INFO")

    def stop(self) -> None:
        self._stop.set()
        self._poke.set()
        self._cancel.set()
        for t in (self._thread, self._runner):
            if t and t.is_alive():
                t.join(timeout=3.0)
        self._log("scheduler thread stopped", level="INFO")

    def refresh(self) -> None:
        self._poke.set()
        if not self._thread or not self._thread.is_alive():
            self.start()

    def run_now(self) -> bool:
        """Start an import in the background; False when one is already in flight."""
        with self._lock:
            if self.is_busy():
                self._log("trigger skipped: import already running", level="INFO")
                return False
            self._cancel = threading.Event()
            self._runner = threading.Thread(target=self._run_job, name="ImportJob", daemon=True)
            self._runner.start()
        return True

    def cancel(self) -> bool:
        if not self.is_busy():
            return False
        self._cancel.set()
        self._log("cancel requested", level="WARN")
        return True

    def wait(self, timeout: float | None = None) -> None:
        r = self._runner
        if r:
            r.join(timeout=timeout)

    def _set_progress(self, pct: int) -> None:
        with self._lock:
            self._status["progress"] = int(pct)

    def _run_job(self) -> None:
        with self._lock:
            self._status["in_progress"] = True
            self._status["progress"] = 0
        ok, err, res = False, "", None
        try:
            cfg = self.load_config_cb() or {}
            result = self.job.run(cfg, cancel=self._cancel, progress=self._set_progress)
            ok, err, res = result.success, result.error or "", result.to_dict()
        except Exception as e:
            ok, err = False, str(e)
        finally:
            with self._lock:
                self._status["in_progress"] = False
                self._status["last_run_ok"] = ok
                self._status["last_run_at"] = _now_ts()
                self._status["last_error"] = err
                self._status["last_result"] = res
        self._log("import run ok" if ok else f"import run failed: {err}", level="INFO" if ok else "ERROR")

    def _update_next(self, nxt_ts: int) -> None:
        with self._lock:
            changed = self._status["next_run_at"] != nxt_ts
            self._status["next_run_at"] = nxt_ts
            self._status["next_run_iso"] = _iso(nxt_ts)
        if changed and nxt_ts:
            self._log(f"next run scheduled at {_iso(nxt_ts)}", level="INFO")

    def _loop(self) -> None:
        with self._lock:
            self._status["running"] = True
        try:
            while not self._stop.is_set():
                with self._lock:
                    self._status["last_tick"] = _now_ts()

                sch = self._get_sched_cfg()
                if not sch.get("enabled"):
                    self._next_ts, self._cfg_key = 0, ""
                    self._update_next(0)
                    self._sleep_or_poke(1.0)
                    continue

                key = f"{sch['every_n_hours']}"
                if self._next_ts <= 0 or key != self._cfg_key:
                    self._cfg_key = key
                    self._next_ts = _now_ts() + int(sch["every_n_hours"]) * 3600
                self._update_next(self._next_ts)

                if _now_ts() >= self._next_ts:
                    if self.is_busy():
                        self._log("import is busy; skipping scheduled run", level="INFO")
                    else:
                        self._log("triggering scheduled import", level="INFO")
                        self.run_now()
                    self._next_ts = _now_ts() + int(sch["every_n_hours"]) * 3600
                    self._update_next(self._next_ts)
                    continue

                remaining = max(0.0, float(self._next_ts - _now_ts()))
                self._sleep_or_poke(min(30.0, remaining if remaining > 0 else 0.5))
        finally:
            with self._lock:
                self._status["running"] = False

    def _sleep_or_poke(self, seconds: float) -> None:
        if seconds <= 0:
            return
        self._poke.wait(timeout=seconds)
        self._poke.clear()
