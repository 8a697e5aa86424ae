# providers/jellyfin/library.py
# JELLYFIN library listing and rescans
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import threading
from typing import Any, Mapping, Optional
from urllib.parse import urljoin

import requests

from _logging import Logger, log as BASE_LOG
from sw_platform.models import LibraryInfo

from ._utils import JellyfinError, _cfg_triplet, _headers


def _paths_of(folder: Mapping[str, Any]) -> tuple[str, ...]:
    out: list[str] = []
    for p in folder.get("Locations") or []:
        s = str(p or "").strip()
        if s and s not in out:
            out.append(s)
    opts = folder.get("LibraryOptions") or {}
    for info in (opts.get("PathInfos") or []) if isinstance(opts, Mapping) else []:
        s = str((info or {}).get("Path") or "").strip() if isinstance(info, Mapping) else ""
        if s and s not in out:
            out.append(s)
    return tuple(out)


class JellyfinLibrary:
    """Thin wrapper over the Jellyfin library endpoints used by the importer."""

    def __init__(
        self,
        cfg: Mapping[str, Any],
        *,
        session: requests.Session | None = None,
        logger: Logger | None = None,
    ) -> None:
        jf = cfg.get("jellyfin") or {}
        self.server, self.token, self.device_id = _cfg_triplet(cfg)
        self.timeout = float(jf.get("timeout") or 15.0)
        self.session = session or requests.Session()
        self.session.verify = bool(jf.get("verify_ssl", False))
        self.session.headers.update(_headers(self.token, self.device_id))
        self._log = logger or BASE_LOG.child("JELLYFIN")

    def _url(self, path: str) -> str:
        if not self.server:
            raise JellyfinError("Jellyfin server is not configured")
        return urljoin(self.server, path.lstrip("/"))

    def list_configured_libraries(self) -> list[LibraryInfo]:
        try:
            r = self.session.get(self._url("/Library/VirtualFolders"), timeout=self.timeout)
        except requests.RequestException as e:
            raise JellyfinError(f"VirtualFolders request failed: {e}") from e
        if not r.ok:
            raise JellyfinError(f"GET /Library/VirtualFolders -> {r.status_code}")
        try:
            data = r.json() or []
        except ValueError as e:
            raise JellyfinError(f"VirtualFolders: invalid JSON ({e})") from e

        libs: list[LibraryInfo] = []
        for f in data if isinstance(data, list) else []:
            if not isinstance(f, Mapping):
                continue
            lid = str(f.get("ItemId") or f.get("Id") or "").strip()
            if not lid:
                continue
            libs.append(LibraryInfo(id=lid, name=str(f.get("Name") or ""), paths=_paths_of(f)))
        self._log.debug(f"{len(libs)} virtual folders")
        return libs

    def resolve_library_path(self, library_id: str) -> Optional[str]:
        lid = str(library_id or "").strip()
        if not lid:
            return None
        for lib in self.list_configured_libraries():
            if lib.id == lid:
                return lib.paths[0] if lib.paths else None
        self._log.warn(f"library {lid} not found")
        return None

    def request_library_rescan(self, cancel: threading.Event | None = None) -> None:
        if cancel is not None and cancel.is_set():
            self._log.info("library rescan skipped (cancelled)")
            return
        self._log.info("requesting library rescan")
        try:
            r = self.session.post(self._url("/Library/Refresh"), timeout=self.timeout)
        except requests.RequestException as e:
            raise JellyfinError(f"Library refresh failed: {e}") from e
        if not r.ok:
            raise JellyfinError(f"POST /Library/Refresh -> {r.status_code}")
