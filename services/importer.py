# services/importer.py
# StubWatch - materialize a SIMKL list as library folders and stub files
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import os
import threading
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from _logging import Logger, log as BASE_LOG
from providers.simkl import InvalidTokenError
from sw_platform.models import LibraryManager, RecordKind, RemoteCatalogRecord, RemoteTracker, WatchlistSnapshot

from .naming import file_name, folder_name
from .placeholders import PlaceholderLedger
from .stubs import StubSynthesizer, is_valid_stub

ProgressFn = Callable[[int], Any]


class ImportCancelled(RuntimeError): ...


@dataclass(frozen=True)
class _Category:
    name: str
    kind: RecordKind
    ledger_kind: str | None = None
    fallback_key: str | None = None
    fallback_default: int = 90

    @property
    def has_stubs(self) -> bool:
        return self.ledger_kind is not None


CATEGORIES: tuple[_Category, ...] = (
    _Category("movies", "movie", ledger_kind="movie", fallback_key="movie_fallback_minutes", fallback_default=90),
    _Category("shows", "show"),
    _Category("anime", "anime_tv"),
    _Category("anime_movies", "anime_movie", ledger_kind="animemovie", fallback_key="anime_movie_fallback_minutes", fallback_default=50),
)


@dataclass
class CategoryCounts:
    created: int = 0
    files_copied: int = 0
    errors: int = 0


@dataclass
class ImportResult:
    success: bool = False
    error: str | None = None
    error_kind: str | None = None  # config | invalid_token | failed | cancelled | busy
    message: str | None = None
    movies: CategoryCounts = field(default_factory=CategoryCounts)
    shows: CategoryCounts = field(default_factory=CategoryCounts)
    anime: CategoryCounts = field(default_factory=CategoryCounts)
    anime_movies: CategoryCounts = field(default_factory=CategoryCounts)

    def counts(self, category: str) -> CategoryCounts:
        return getattr(self, category)

    def totals(self) -> CategoryCounts:
        t = CategoryCounts()
        for c in CATEGORIES:
            n = self.counts(c.name)
            t.created += n.created; t.files_copied += n.files_copied; t.errors += n.errors
        return t

    def fail(self, message: str, kind: str) -> "ImportResult":
        self.success, self.error, self.error_kind = False, message, kind
        return self

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _report(progress: Optional[ProgressFn], pct: int) -> None:
    if progress is None:
        return
    try:
        progress(int(pct))
    except Exception:
        pass


def _check_cancel(cancel: Optional[threading.Event]) -> None:
    if cancel is not None and cancel.is_set():
        raise ImportCancelled("Import cancelled")


class ImportOrchestrator:
    """Turn the user's SIMKL list into folders and stub files under the configured libraries.

    Per category there are two passes: folders first, then stub files for movies and
    anime movies. Stubs written with a fallback runtime are tracked in the placeholder
    ledger and upgraded on a later run once SIMKL reports the real runtime.
    """

    def __init__(
        self,
        tracker: RemoteTracker,
        library: LibraryManager | None,
        ledger: PlaceholderLedger,
        synthesizer: StubSynthesizer,
        *,
        logger: Logger | None = None,
    ) -> None:
        self.tracker = tracker
        self.library = library
        self.ledger = ledger
        self.synth = synthesizer
        self._log = logger or BASE_LOG.child("IMPORT")
        self._run_lock = threading.Lock()

    def is_running(self) -> bool:
        return self._run_lock.locked()

    # --- paths ----------------------------------------------------------------

    def resolve_paths(self, cfg: Mapping[str, Any]) -> dict[str, str]:
        imp = cfg.get("import") or {}
        ids = imp.get("libraries") or {}
        legacy = imp.get("paths") or {}
        out: dict[str, str] = {}
        for c in CATEGORIES:
            lid = str(ids.get(c.name) or "").strip()
            path: str | None = None
            if lid:
                if self.library is None:
                    self._log.warn(f"{c.name}: library {lid} set but no Jellyfin connection")
                else:
                    try:
                        path = self.library.resolve_library_path(lid)
                    except Exception as e:
                        self._log.error(f"{c.name}: cannot resolve library {lid}: {e}")
                if not path:
                    self._log.warn(f"{c.name}: library {lid} could not be resolved to a path")
            else:
                path = str(legacy.get(c.name) or "").strip() or None
            if path:
                self._log.debug(f"{c.name} -> {path}")
                out[c.name] = path
        return out

    # --- entry point ----------------------------------------------------------

    def import_plan_to_watch(
        self,
        cfg: Mapping[str, Any],
        *,
        progress: Optional[ProgressFn] = None,
        cancel: Optional[threading.Event] = None,
    ) -> ImportResult:
        if not self._run_lock.acquire(blocking=False):
            self._log.warn("import already running; skipped")
            return ImportResult().fail("An import is already running", "busy")
        try:
            return self._run(cfg, progress, cancel)
        finally:
            self._run_lock.release()

    def _run(self, cfg: Mapping[str, Any], progress: Optional[ProgressFn], cancel: Optional[threading.Event]) -> ImportResult:
        result = ImportResult()
        imp = cfg.get("import") or {}

        token = str((cfg.get("simkl") or {}).get("access_token") or "").strip()
        if not token:
            self._log.error("import aborted: no SIMKL token")
            return result.fail("User token is not set. Please log in first.", "config")

        paths = self.resolve_paths(cfg)
        if not paths:
            self._log.error("import aborted: no library paths configured")
            return result.fail(
                "No library paths configured. Please select at least one library (Movies, TV Shows, Anime, or Anime Movies).",
                "config",
            )

        status = str(imp.get("list_status") or "plantowatch")
        try:
            _check_cancel(cancel)
            snapshot = self.tracker.fetch_by_status(token, status)
            _report(progress, 10)

            self.review_placeholders(snapshot)
            _report(progress, 20)

            if snapshot.is_empty():
                result.success = True
                result.message = f"The {status} list from Simkl is empty. No items to import."
                self._log.info(result.message)
                return result

            for i, cat in enumerate(CATEGORIES, start=1):
                _check_cancel(cancel)
                base = paths.get(cat.name)
                records = snapshot.records(cat.kind)
                if base and records:
                    counts = result.counts(cat.name)
                    self._folder_pass(cat, Path(base), records, counts)
                    if cat.has_stubs:
                        fallback = self._fallback_minutes(imp, cat)
                        self._stub_pass(cat, Path(base), records, counts, fallback, cancel)
                    self._log.info(f"{cat.name}: {counts.created} created, {counts.files_copied} stubs, {counts.errors} errors")
                _report(progress, 20 + (70 * i) // len(CATEGORIES))

            t = result.totals()
            if not (t.created or t.files_copied or t.errors):
                self._log.warn("import finished but nothing new was created")
            result.success = True
            result.message = f"Imported {status}: {t.created} folders created, {t.files_copied} stub files copied, {t.errors} errors."
            (self._log.success if not t.errors else self._log.warn)(result.message)
            return result
        except InvalidTokenError as e:
            self._log.error(f"import aborted: {e}")
            return result.fail(str(e) or "Invalid SIMKL user token", "invalid_token")
        except ImportCancelled as e:
            self._log.warn("import cancelled")
            return result.fail(str(e), "cancelled")
        except Exception as e:
            self._log.error(f"import failed: {e}")
            return result.fail(str(e), "failed")

    def _fallback_minutes(self, imp: Mapping[str, Any], cat: _Category) -> int:
        try:
            v = int(imp.get(cat.fallback_key or "") or cat.fallback_default)
        except (TypeError, ValueError):
            v = cat.fallback_default
        return v if v > 0 else cat.fallback_default

    # --- passes ---------------------------------------------------------------

    def _folder_pass(self, cat: _Category, base: Path, records: list[RemoteCatalogRecord], counts: CategoryCounts) -> None:
        for rec in records:
            folder = base / folder_name(rec)
            try:
                if not folder.is_dir():
                    folder.mkdir(parents=True, exist_ok=True)
                    counts.created += 1
                    self._log.debug(f"created {folder}")
            except Exception as e:
                self._log.error(f"{cat.name}: cannot create folder for '{rec.title or 'Unknown'}': {e}")
                counts.errors += 1

    def _stub_pass(
        self,
        cat: _Category,
        base: Path,
        records: list[RemoteCatalogRecord],
        counts: CategoryCounts,
        fallback: int,
        cancel: Optional[threading.Event],
    ) -> None:
        for rec in records:
            _check_cancel(cancel)
            target = base / folder_name(rec) / file_name(rec)
            try:
                if is_valid_stub(target):
                    continue
                if target.exists():
                    self._log.warn(f"replacing undersized stub: {target}")

                guessed = not rec.has_runtime
                minutes = fallback if guessed else int(rec.runtime_minutes or 0)
                if guessed:
                    self._log.debug(f"no runtime for '{rec.title or 'Unknown'}', using {fallback} min")

                if not self.synth.materialize(target, minutes):
                    counts.errors += 1
                    continue
                counts.files_copied += 1
            except Exception as e:
                self._log.error(f"{cat.name}: stub failed for '{rec.title or 'Unknown'}': {e}")
                counts.errors += 1
                continue
            try:
                self._track(cat, rec, target, guessed)
            except Exception as e:
                self._log.error(f"{cat.name}: placeholder ledger update failed for '{rec.title or 'Unknown'}': {e}")

    def _track(self, cat: _Category, rec: RemoteCatalogRecord, target: Path, guessed: bool) -> None:
        if rec.simkl_id is None or cat.ledger_kind is None:
            return
        if not guessed:
            self.ledger.remove(rec.simkl_id, cat.ledger_kind)
            return
        prev = self.ledger.get(rec.simkl_id, cat.ledger_kind)
        if prev is not None and prev.file_path != str(target):
            self.ledger.remove(rec.simkl_id, cat.ledger_kind)
        self.ledger.record(rec.simkl_id, cat.ledger_kind, str(target))

    # --- placeholder upgrades -------------------------------------------------

    def review_placeholders(self, snapshot: WatchlistSnapshot) -> int:
        try:
            pending = self.ledger.list()
        except Exception as e:
            self._log.error(f"placeholder review skipped: {e}")
            return 0
        if not pending:
            return 0
        self._log.debug(f"checking {len(pending)} placeholder stubs for runtime updates")

        by_kind: dict[str, dict[int, RemoteCatalogRecord]] = {}
        for c in CATEGORIES:
            if c.ledger_kind:
                by_kind[c.ledger_kind] = {r.simkl_id: r for r in snapshot.records(c.kind) if r.simkl_id is not None}

        updated = 0
        for p in pending:
            index = by_kind.get(p.kind)
            if index is None:
                continue
            path = Path(p.file_path)
            if not path.exists():
                self._log.info(f"placeholder file gone, dropping {p.kind}:{p.simkl_id}")
                self.ledger.remove(p.simkl_id, p.kind)
                continue
            rec = index.get(p.simkl_id)
            if rec is None or not rec.has_runtime:
                continue
            try:
                os.remove(path)
                if self.synth.materialize(path, int(rec.runtime_minutes or 0)):
                    self.ledger.remove(p.simkl_id, p.kind)
                    updated += 1
                    self._log.info(f"upgraded placeholder {p.kind}:{p.simkl_id} to {rec.runtime_minutes} min")
                else:
                    self._log.warn(f"no stub for {p.kind}:{p.simkl_id} at {rec.runtime_minutes} min")
            except Exception as e:
                self._log.error(f"placeholder upgrade failed for {p.kind}:{p.simkl_id}: {e}")
        if updated:
            self._log.info(f"updated {updated} placeholder stubs with correct runtime")
        return updated
