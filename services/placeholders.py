# services/placeholders.py
# Ledger of stubs written with a guessed runtime: one "simkl_id|kind|path" line each.
from __future__ import annotations

import os
import threading
from pathlib import Path

from _logging import Logger, log as BASE_LOG
from sw_platform.models import PlaceholderRecord


class PlaceholderLedger:
    def __init__(self, path: str | Path, *, logger: Logger | None = None) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._log = logger or BASE_LOG.child("LEDGER")

    # --- io -------------------------------------------------------------------

    def _read(self) -> list[PlaceholderRecord]:
        out: list[PlaceholderRecord] = []
        if not self.path.exists():
            return out
        try:
            raw = self.path.read_bytes().splitlines()
        except OSError as e:
            self._log.error(f"cannot read {self.path}: {e}")
            return out
        for chunk in raw:
            try:
                line = chunk.decode("utf-8")
            except UnicodeDecodeError:
                self._log.debug(f"skipping undecodable line: {chunk!r}")
                continue
            if not line.strip():
                continue
            parts = line.split("|")
            if len(parts) != 3:
                self._log.debug(f"skipping malformed line: {line!r}")
                continue
            try:
                sid = int(parts[0])
            except ValueError:
                self._log.debug(f"skipping line with bad id: {line!r}")
                continue
            out.append(PlaceholderRecord(simkl_id=sid, kind=parts[1], file_path=parts[2]))
        return out

    def _write(self, records: list[PlaceholderRecord]) -> None:
        tmp = self.path.with_name(f"{self.path.name}.{os.getpid()}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("w", encoding="utf-8", newline="\n") as f:
                for r in records:
                    f.write(f"{r.simkl_id}|{r.kind}|{r.file_path}\n")
            os.replace(tmp, self.path)
        except OSError as e:
            self._log.error(f"cannot write {self.path}: {e}")
            try: tmp.unlink()
            except OSError: pass

    # --- public ---------------------------------------------------------------

    def record(self, simkl_id: int, kind: str, file_path: str | Path) -> None:
        with self._lock:
            rows = self._read()
            if any(r.simkl_id == simkl_id and r.kind == kind for r in rows):
                return
            rows.append(PlaceholderRecord(simkl_id=int(simkl_id), kind=kind, file_path=str(file_path)))
            self._write(rows)
            self._log.debug(f"tracked placeholder {kind}:{simkl_id} -> {file_path}")

    def list(self) -> list[PlaceholderRecord]:
        with self._lock:
            return self._read()

    def get(self, simkl_id: int, kind: str) -> PlaceholderRecord | None:
        with self._lock:
            return next((r for r in self._read() if r.simkl_id == simkl_id and r.kind == kind), None)

    def remove(self, simkl_id: int, kind: str) -> None:
        with self._lock:
            rows = self._read()
            keep = [r for r in rows if not (r.simkl_id == simkl_id and r.kind == kind)]
            if len(keep) != len(rows):
                self._write(keep)
                self._log.debug(f"dropped placeholder {kind}:{simkl_id}")
