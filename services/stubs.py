# services/stubs.py
# Stub templates: catalog discovery, closest-length selection and copies.
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import shutil
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from _logging import Logger, log as BASE_LOG

MIN_STUB_BYTES = 20 * 1024
MIN_MINUTES = 10
MAX_MINUTES = 240
STUB_SUFFIXES = (".mp4", ".mkv")
LOCK_STRIPES = 32


@dataclass(frozen=True)
class StubCatalogEntry:
    minutes: int
    path: Path


def _minutes_from_name(p: Path) -> Optional[int]:
    stem = p.stem
    idx = stem.lower().find("min")
    if idx <= 0:
        return None
    head = stem[:idx].strip()
    return int(head) if head.isdecimal() else None


def clamp_minutes(minutes: int) -> int:
    return max(MIN_MINUTES, min(MAX_MINUTES, int(minutes)))


def is_valid_stub(path: str | Path) -> bool:
    """A stub counts as present when the file exists and is not truncated."""
    try:
        p = Path(path)
        return p.is_file() and p.stat().st_size >= MIN_STUB_BYTES
    except OSError:
        return False


class StubCatalog:
    """Template files discovered once from the stubs directory (``<N>min*.mp4|mkv``)."""

    def __init__(self, stubs_dir: str | Path | None, *, logger: Logger | None = None) -> None:
        self._log = logger or BASE_LOG.child("STUBS")
        self.stubs_dir = Path(stubs_dir) if stubs_dir else None
        self.entries: tuple[StubCatalogEntry, ...] = self._discover()

    def _discover(self) -> tuple[StubCatalogEntry, ...]:
        d = self.stubs_dir
        if d is None or not d.is_dir():
            self._log.error(f"stubs directory not found: {d}")
            return ()
        try:
            files = sorted(f for f in d.iterdir() if f.is_file() and f.suffix.lower() in STUB_SUFFIXES)
        except OSError as e:
            self._log.error(f"cannot read stubs directory {d}: {e}")
            return ()

        out: list[StubCatalogEntry] = []
        for f in files:
            m = _minutes_from_name(f)
            if m is not None:
                out.append(StubCatalogEntry(minutes=m, path=f))
        if not out:
            self._log.error(f"no '<N>min' stub files in {d}")
        else:
            self._log.debug(f"{len(out)} stub templates in {d}")
        return tuple(out)

    def __len__(self) -> int:
        return len(self.entries)


class StubSynthesizer:
    def __init__(self, catalog: StubCatalog, *, logger: Logger | None = None) -> None:
        self.catalog = catalog
        self._log = logger or BASE_LOG.child("STUBS")
        self._locks: tuple[threading.Lock, ...] = tuple(threading.Lock() for _ in range(LOCK_STRIPES))

    def _lock_for(self, dest: Path) -> threading.Lock:
        # same destination always maps to the same stripe
        return self._locks[hash(str(dest.resolve())) % len(self._locks)]

    def select_stub(self, target_minutes: int) -> Optional[StubCatalogEntry]:
        entries = self.catalog.entries
        if not entries:
            self._log.error("stub catalog is empty")
            return None
        target = clamp_minutes(target_minutes)
        if target != target_minutes:
            self._log.debug(f"runtime {target_minutes} min clamped to {target} min")
        return min(entries, key=lambda e: (abs(e.minutes - target), e.minutes))

    def materialize(self, dest: str | Path, target_minutes: int) -> bool:
        dest = Path(dest)
        entry = self.select_stub(target_minutes)
        if entry is None:
            self._log.error(f"no suitable stub for {target_minutes} min: {dest}")
            return False
        with self._lock_for(dest):
            try:
                dest.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(entry.path, dest)
            except OSError as e:
                self._log.error(f"copy failed {entry.path.name} -> {dest}: {e}")
                return False
        self._log.info(f"copied {entry.path.name} -> {dest}")
        return True
