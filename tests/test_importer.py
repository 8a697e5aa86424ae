# StubWatch test scripts
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import pytest

from providers.simkl import InvalidTokenError
from services.importer import ImportOrchestrator
from services.placeholders import PlaceholderLedger
from services.stubs import StubCatalog, StubSynthesizer
from sw_platform.models import LibraryInfo, RemoteCatalogRecord, WatchlistSnapshot

from conftest import stub_size

DUNE_DIR = "Dune (2021) [tmdbid-438631]"


@dataclass
class FakeTracker:
    snapshot: WatchlistSnapshot = field(default_factory=WatchlistSnapshot)
    error: Optional[Exception] = None
    calls: list[tuple[str, str]] = field(default_factory=list)

    def fetch_by_status(self, token: str, status: str) -> WatchlistSnapshot:
        self.calls.append((token, status))
        if self.error:
            raise self.error
        return self.snapshot

    def identify_by_file(self, file_ref: str) -> Any:
        return None

    def submit_watched(self, token: str, history: Any) -> Any:
        return None


@dataclass
class FakeLibrary:
    libs: dict[str, str] = field(default_factory=dict)
    rescans: int = 0

    def list_configured_libraries(self) -> list[LibraryInfo]:
        return [LibraryInfo(id=k, name=k, paths=(v,)) for k, v in self.libs.items()]

    def resolve_library_path(self, library_id: str) -> Optional[str]:
        return self.libs.get(library_id)

    def request_library_rescan(self, cancel: threading.Event | None = None) -> None:
        self.rescans += 1


def dune(runtime: int | None) -> RemoteCatalogRecord:
    return RemoteCatalogRecord(title="Dune", kind="movie", year=2021, runtime_minutes=runtime, simkl_id=1001, tmdb_id="438631")


def make_cfg(library_root: Path, **paths: str) -> dict[str, Any]:
    return {
        "simkl": {"access_token": "tok"},
        "import": {
            "list_status": "plantowatch",
            "libraries": {},
            "paths": paths or {"movies": str(library_root / "movies")},
            "movie_fallback_minutes": 90,
            "anime_movie_fallback_minutes": 50,
        },
    }


@pytest.fixture()
def ledger(tmp_path: Path) -> PlaceholderLedger:
    return PlaceholderLedger(tmp_path / "placeholder_stubs.txt")


@pytest.fixture()
def synth(stubs_dir: Path) -> StubSynthesizer:
    return StubSynthesizer(StubCatalog(stubs_dir))


def test_dune_with_runtime(library_root: Path, ledger: PlaceholderLedger, synth: StubSynthesizer) -> None:
    tracker = FakeTracker(WatchlistSnapshot(movies=(dune(155),)))
    orch = ImportOrchestrator(tracker, None, ledger, synth)
    seen: list[int] = []

    res = orch.import_plan_to_watch(make_cfg(library_root), progress=seen.append)

    assert res.success and res.error is None
    assert (res.movies.created, res.movies.files_copied, res.movies.errors) == (1, 1, 0)
    stub = library_root / "movies" / DUNE_DIR / f"{DUNE_DIR}.mkv"
    assert stub.stat().st_size == stub_size(155)
    assert ledger.list() == []
    assert tracker.calls == [("tok", "plantowatch")]
    assert seen[:2] == [10, 20] and seen[-1] == 90


def test_second_run_is_idempotent(library_root: Path, ledger: PlaceholderLedger, synth: StubSynthesizer) -> None:
    tracker = FakeTracker(WatchlistSnapshot(movies=(dune(155),)))
    orch = ImportOrchestrator(tracker, None, ledger, synth)
    cfg = make_cfg(library_root)

    assert orch.import_plan_to_watch(cfg).success
    res = orch.import_plan_to_watch(cfg)
    assert res.success
    t = res.totals()
    assert (t.created, t.files_copied, t.errors) == (0, 0, 0)


def test_fallback_then_upgrade(library_root: Path, ledger: PlaceholderLedger, synth: StubSynthesizer) -> None:
    tracker = FakeTracker(WatchlistSnapshot(movies=(dune(None),)))
    orch = ImportOrchestrator(tracker, None, ledger, synth)
    cfg = make_cfg(library_root)
    stub = library_root / "movies" / DUNE_DIR / f"{DUNE_DIR}.mkv"

    res = orch.import_plan_to_watch(cfg)
    assert res.success and res.movies.files_copied == 1
    assert stub.stat().st_size == stub_size(90)
    rows = ledger.list()
    assert [(r.simkl_id, r.kind, r.file_path) for r in rows] == [(1001, "movie", str(stub))]

    tracker.snapshot = WatchlistSnapshot(movies=(dune(155),))
    res2 = orch.import_plan_to_watch(cfg)
    assert res2.success
    assert ledger.list() == []
    assert stub.stat().st_size == stub_size(155)


def test_placeholder_upgrade_to_120(library_root: Path, ledger: PlaceholderLedger, synth: StubSynthesizer) -> None:
    target = library_root / "movies" / "Old (1999)" / "Old (1999).mkv"
    assert synth.materialize(target, 90)
    ledger.record(5, "movie", str(target))
    snap = WatchlistSnapshot(movies=(RemoteCatalogRecord(title="Old", kind="movie", year=1999, runtime_minutes=120, simkl_id=5),))

    orch = ImportOrchestrator(FakeTracker(snap), None, ledger, synth)
    assert orch.review_placeholders(snap) == 1
    assert target.stat().st_size == stub_size(120)
    assert ledger.list() == []


def test_vanished_placeholder_is_dropped(library_root: Path, ledger: PlaceholderLedger, synth: StubSynthesizer) -> None:
    ledger.record(9, "animemovie", str(library_root / "gone.mkv"))
    orch = ImportOrchestrator(FakeTracker(), None, ledger, synth)
    res = orch.import_plan_to_watch(make_cfg(library_root))
    assert res.success and "empty" in (res.message or "")
    assert ledger.list() == []


def test_undersized_stub_is_rewritten(library_root: Path, ledger: PlaceholderLedger, synth: StubSynthesizer) -> None:
    stub = library_root / "movies" / DUNE_DIR / f"{DUNE_DIR}.mkv"
    stub.parent.mkdir(parents=True)
    stub.write_bytes(b"\0" * 100)
    orch = ImportOrchestrator(FakeTracker(WatchlistSnapshot(movies=(dune(155),))), None, ledger, synth)

    res = orch.import_plan_to_watch(make_cfg(library_root))
    assert (res.movies.created, res.movies.files_copied) == (0, 1)
    assert stub.stat().st_size == stub_size(155)


def test_all_categories(library_root: Path, ledger: PlaceholderLedger, synth: StubSynthesizer) -> None:
    snap = WatchlistSnapshot(
        movies=(dune(155),),
        shows=(RemoteCatalogRecord(title="Severance", kind="show", year=2022, simkl_id=2, tvdb_id="371980"),),
        anime=(
            RemoteCatalogRecord(title="Frieren", kind="anime_tv", year=2023, simkl_id=3, tvdb_id="424536"),
            RemoteCatalogRecord(title="Your Name.", kind="anime_movie", year=2016, simkl_id=4, tmdb_id="372058"),
        ),
    )
    paths = {c: str(library_root / c) for c in ("movies", "shows", "anime", "anime_movies")}
    orch = ImportOrchestrator(FakeTracker(snap), None, ledger, synth)

    res = orch.import_plan_to_watch(make_cfg(library_root, **paths))
    assert res.success
    assert (res.shows.created, res.shows.files_copied) == (1, 0)
    assert (res.anime.created, res.anime.files_copied) == (1, 0)
    assert (res.anime_movies.created, res.anime_movies.files_copied) == (1, 1)
    am = library_root / "anime_movies" / "Your Name. (2016) [tmdbid-372058]" / "Your Name. (2016) [tmdbid-372058].mkv"
    assert am.stat().st_size == stub_size(45)
    assert [(r.simkl_id, r.kind) for r in ledger.list()] == [(4, "animemovie")]
    assert list((library_root / "shows" / "Severance (2022) [tvdbid-371980]").iterdir()) == []


def test_library_ids_resolve_through_host(library_root: Path, ledger: PlaceholderLedger, synth: StubSynthesizer) -> None:
    lib = FakeLibrary({"abc": str(library_root / "movies")})
    cfg = make_cfg(library_root)
    cfg["import"]["paths"] = {}
    cfg["import"]["libraries"] = {"movies": "abc", "shows": "missing"}
    orch = ImportOrchestrator(FakeTracker(WatchlistSnapshot(movies=(dune(155),))), lib, ledger, synth)

    assert orch.resolve_paths(cfg) == {"movies": str(library_root / "movies")}
    assert orch.import_plan_to_watch(cfg).movies.created == 1


def test_missing_token_is_config_error(library_root: Path, ledger: PlaceholderLedger, synth: StubSynthesizer) -> None:
    tracker = FakeTracker()
    cfg = make_cfg(library_root)
    cfg["simkl"]["access_token"] = ""
    res = ImportOrchestrator(tracker, None, ledger, synth).import_plan_to_watch(cfg)
    assert not res.success and res.error_kind == "config"
    assert tracker.calls == []


def test_no_paths_is_config_error(library_root: Path, ledger: PlaceholderLedger, synth: StubSynthesizer) -> None:
    tracker = FakeTracker()
    cfg = make_cfg(library_root)
    cfg["import"]["paths"] = {}
    res = ImportOrchestrator(tracker, None, ledger, synth).import_plan_to_watch(cfg)
    assert res.error_kind == "config" and "No library paths" in (res.error or "")
    assert tracker.calls == []


def test_invalid_token_and_failures(library_root: Path, ledger: PlaceholderLedger, synth: StubSynthesizer) -> None:
    tracker = FakeTracker(error=InvalidTokenError("Invalid SIMKL user token"))
    orch = ImportOrchestrator(tracker, None, ledger, synth)
    res = orch.import_plan_to_watch(make_cfg(library_root))
    assert not res.success and res.error_kind == "invalid_token"

    tracker.error = RuntimeError("boom")
    res2 = orch.import_plan_to_watch(make_cfg(library_root))
    assert res2.error_kind == "failed" and res2.error == "boom"
    assert not orch.is_running()


def test_cancelled_before_fetch(library_root: Path, ledger: PlaceholderLedger, synth: StubSynthesizer) -> None:
    cancel = threading.Event()
    cancel.set()
    tracker = FakeTracker(WatchlistSnapshot(movies=(dune(155),)))
    res = ImportOrchestrator(tracker, None, ledger, synth).import_plan_to_watch(make_cfg(library_root), cancel=cancel)
    assert res.error_kind == "cancelled"
    assert tracker.calls == []


def test_missing_stub_catalog_counts_errors(library_root: Path, ledger: PlaceholderLedger, tmp_path: Path) -> None:
    synth = StubSynthesizer(StubCatalog(tmp_path / "no-stubs"))
    orch = ImportOrchestrator(FakeTracker(WatchlistSnapshot(movies=(dune(155),))), None, ledger, synth)
    res = orch.import_plan_to_watch(make_cfg(library_root))
    assert res.success
    assert (res.movies.created, res.movies.files_copied, res.movies.errors) == (1, 0, 1)


def test_folder_failure_counts_and_continues(library_root: Path, ledger: PlaceholderLedger, synth: StubSynthesizer) -> None:
    arrival = RemoteCatalogRecord(title="Arrival", kind="movie", year=2016, runtime_minutes=120, simkl_id=2002, tmdb_id="329865")
    (library_root / "movies" / DUNE_DIR).write_text("in the way")
    orch = ImportOrchestrator(FakeTracker(WatchlistSnapshot(movies=(dune(155), arrival))), None, ledger, synth)

    res = orch.import_plan_to_watch(make_cfg(library_root))

    assert res.success
    # Dune fails at the folder and again at the stub; Arrival is untouched by that
    assert (res.movies.created, res.movies.files_copied, res.movies.errors) == (1, 1, 2)
    arrival_dir = library_root / "movies" / "Arrival (2016) [tmdbid-329865]"
    assert (arrival_dir / f"{arrival_dir.name}.mkv").stat().st_size == stub_size(120)


def test_fallback_recorded_over_undecodable_ledger(library_root: Path, ledger: PlaceholderLedger, synth: StubSynthesizer) -> None:
    ledger.path.write_bytes(b"2|movie|/a/caf\xe9.mkv\n")
    orch = ImportOrchestrator(FakeTracker(WatchlistSnapshot(movies=(dune(None),))), None, ledger, synth)

    res = orch.import_plan_to_watch(make_cfg(library_root))

    assert (res.movies.created, res.movies.files_copied, res.movies.errors) == (1, 1, 0)
    assert [(r.simkl_id, r.kind) for r in ledger.list()] == [(1001, "movie")]


class BrokenLedger(PlaceholderLedger):
    def record(self, simkl_id: int, kind: str, file_path: Any) -> None:
        raise RuntimeError("ledger unavailable")


def test_ledger_failure_does_not_count_copied_stub_as_error(library_root: Path, tmp_path: Path, synth: StubSynthesizer) -> None:
    orch = ImportOrchestrator(FakeTracker(WatchlistSnapshot(movies=(dune(None),))), None, BrokenLedger(tmp_path / "l.txt"), synth)

    res = orch.import_plan_to_watch(make_cfg(library_root))

    assert res.success
    assert (res.movies.created, res.movies.files_copied, res.movies.errors) == (1, 1, 0)
