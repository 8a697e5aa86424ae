# StubWatch test scripts
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from services.importer import ImportResult
from services.scheduling import ImportJob, ImportScheduler, merge_defaults


@dataclass
class FakeOrchestrator:
    result: ImportResult = field(default_factory=lambda: ImportResult(success=True))
    gate: threading.Event | None = None
    runs: int = 0
    cancels_seen: list[bool] = field(default_factory=list)
    _running: threading.Event = field(default_factory=threading.Event)

    def is_running(self) -> bool:
        return self._running.is_set()

    def import_plan_to_watch(self, cfg: Any, *, progress: Any = None, cancel: threading.Event | None = None) -> ImportResult:
        self._running.set()
        try:
            self.runs += 1
            if progress:
                progress(50)
            if self.gate is not None:
                self.gate.wait(5)
            self.cancels_seen.append(bool(cancel and cancel.is_set()))
            if cancel is not None and cancel.is_set():
                return ImportResult().fail("Import cancelled", "cancelled")
            return self.result
        finally:
            self._running.clear()


@dataclass
class FakeLibrary:
    rescans: int = 0

    def request_library_rescan(self, cancel: threading.Event | None = None) -> None:
        self.rescans += 1


def cfg(**imp: Any) -> dict[str, Any]:
    return {"import": {"trigger_scan_after_import": True, "scan_delay_seconds": 0, **imp}, "scheduling": {"enabled": False}}


def test_merge_defaults() -> None:
    s = merge_defaults({"every_n_hours": "0", "max_runtime_minutes": None})
    assert s == {"enabled": False, "every_n_hours": 6, "max_runtime_minutes": 30}
    assert merge_defaults({"every_n_hours": 3})["every_n_hours"] == 3


def test_job_runs_import_then_rescan() -> None:
    lib = FakeLibrary()
    seen: list[int] = []
    res = ImportJob(FakeOrchestrator(), lib).run(cfg(), cancel=threading.Event(), progress=seen.append)
    assert res.success
    assert lib.rescans == 1
    assert seen == [50, 100]


def test_job_skips_rescan_when_disabled_or_failed() -> None:
    lib = FakeLibrary()
    ImportJob(FakeOrchestrator(), lib).run(cfg(trigger_scan_after_import=False), cancel=threading.Event())
    failed = FakeOrchestrator(result=ImportResult().fail("boom", "failed"))
    ImportJob(failed, lib).run(cfg(), cancel=threading.Event())
    assert lib.rescans == 0


def test_job_delay_is_cancellable() -> None:
    lib = FakeLibrary()
    job = ImportJob(FakeOrchestrator(), lib)
    cancel = threading.Event()
    threading.Timer(0.05, cancel.set).start()
    job.run(cfg(scan_delay_seconds=30), cancel=cancel)
    assert lib.rescans == 0


def test_job_expiry_sets_cancel() -> None:
    cancel = threading.Event()
    ImportJob(FakeOrchestrator())._expire(cancel)
    assert cancel.is_set()


def test_scheduler_run_now_and_status() -> None:
    orch = FakeOrchestrator()
    sched = ImportScheduler(lambda: cfg(), ImportJob(orch, FakeLibrary()))
    assert sched.run_now()
    sched.wait(5)
    st = sched.status()
    assert st["last_run_ok"] is True
    assert st["progress"] == 100
    assert st["last_result"]["success"] is True
    assert st["config"]["every_n_hours"] == 6
    assert orch.runs == 1


def test_scheduler_rejects_overlap_and_cancels() -> None:
    gate = threading.Event()
    orch = FakeOrchestrator(gate=gate)
    sched = ImportScheduler(lambda: cfg(), ImportJob(orch, None))
    assert sched.run_now()
    assert sched.run_now() is False
    assert sched.cancel() is True
    gate.set()
    sched.wait(5)
    st = sched.status()
    assert st["last_run_ok"] is False
    assert st["last_result"]["error_kind"] == "cancelled"
    assert orch.cancels_seen == [True]
    assert sched.cancel() is False


def test_scheduler_thread_start_stop() -> None:
    sched = ImportScheduler(lambda: cfg(), ImportJob(FakeOrchestrator(), None))
    sched.start()
    sched.refresh()
    sched.stop()
    assert sched.status()["running"] is False
