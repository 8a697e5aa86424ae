# /providers/simkl/client.py
# SIMKL client: list fetch, file identification and history submission.
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from typing import Any, Callable, Mapping, Optional

import requests

from _logging import Logger, log as BASE_LOG
from sw_platform.models import FileMatch, RemoteCatalogRecord, ScrobbleHistory, WatchedAck, WatchlistSnapshot

from ._common import (
    URL_ALL_ITEMS,
    URL_HISTORY,
    URL_SEARCH_FILE,
    InvalidTokenError,
    SimklError,
    anime_kind,
    build_headers,
    normalize_status,
    record_from_node,
    rows_of,
)

TokenInvalidator = Callable[[str], Any]

_BUCKETS = (("movies", "movies", "movie"), ("shows", "shows", "show"), ("anime", "anime", "show"))


class SimklClient:
    def __init__(
        self,
        cfg: Mapping[str, Any],
        *,
        on_invalid_token: TokenInvalidator | None = None,
        session: requests.Session | None = None,
        logger: Logger | None = None,
    ) -> None:
        sk = (cfg.get("simkl") or {})
        self.timeout = float(sk.get("timeout") or 15.0)
        self.session = session or requests.Session()
        self.session.headers.update(build_headers(cfg))
        self._on_invalid_token = on_invalid_token
        self._log = logger or BASE_LOG.child("SIMKL")

    def _auth(self, token: Optional[str]) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _reject_token(self, token: str) -> InvalidTokenError:
        self._log.error("SIMKL rejected the user token; clearing it")
        if self._on_invalid_token:
            try:
                self._on_invalid_token(token)
            except Exception as e:
                self._log.error(f"token invalidation failed: {e}")
        return InvalidTokenError("Invalid SIMKL user token")

    def _get_json(self, url: str, token: str) -> Any:
        r = self.session.get(url, headers=self._auth(token), timeout=self.timeout)
        if r.status_code == 401:
            raise self._reject_token(token)
        if not r.ok:
            raise SimklError(f"GET {url} -> {r.status_code}")
        if not (r.text or "").strip():
            self._log.warn(f"empty response for {url}")
            return None
        try:
            return r.json()
        except ValueError as e:
            raise SimklError(f"GET {url}: invalid JSON ({e})") from e

    # --- list -----------------------------------------------------------------

    def fetch_by_status(self, token: str, status: str = "plantowatch") -> WatchlistSnapshot:
        st = normalize_status(status)
        if not st:
            self._log.warn(f"invalid list status {status!r}, defaulting to plantowatch")
            st = "plantowatch"

        out: dict[str, list[RemoteCatalogRecord]] = {"movies": [], "shows": [], "anime": []}
        for bucket, key, node_key in _BUCKETS:
            data = self._get_json(URL_ALL_ITEMS.format(bucket=bucket, status=st) + "?extended=full", token)
            for row in rows_of(data, key):
                node = row.get(node_key)
                if not isinstance(node, Mapping):
                    continue
                if bucket == "anime":
                    kind = anime_kind(row.get("anime_type"))
                    if kind is None:
                        self._log.debug(f"skipping anime '{node.get('title')}' with type {row.get('anime_type')!r}")
                        continue
                    out["anime"].append(record_from_node(node, kind))
                else:
                    out[bucket].append(record_from_node(node, "movie" if bucket == "movies" else "show"))

        self._log.debug(f"{st}: {len(out['movies'])} movies, {len(out['shows'])} shows, {len(out['anime'])} anime")
        return WatchlistSnapshot(movies=tuple(out["movies"]), shows=tuple(out["shows"]), anime=tuple(out["anime"]))

    # --- scrobble -------------------------------------------------------------

    def identify_by_file(self, file_ref: str) -> Optional[FileMatch]:
        self._log.info(f"identifying file: {file_ref}")
        try:
            r = self.session.post(URL_SEARCH_FILE, json={"file": file_ref}, timeout=self.timeout)
        except requests.RequestException as e:
            self._log.warn(f"search/file failed: {e}")
            return None
        if not r.ok or not (r.text or "").strip():
            return None
        try:
            data = r.json()
        except ValueError:
            return None
        if not isinstance(data, Mapping):
            return None

        def _node(k: str) -> dict[str, Any] | None:
            v = data.get(k)
            return dict(v) if isinstance(v, Mapping) else None

        return FileMatch(type=str(data.get("type") or ""), movie=_node("movie"), show=_node("show"), episode=_node("episode"))

    def submit_watched(self, token: str, history: ScrobbleHistory) -> Optional[WatchedAck]:
        self._log.info("syncing history")
        r = self.session.post(URL_HISTORY, json=history.to_payload(), headers=self._auth(token), timeout=self.timeout)
        if r.status_code == 401:
            raise self._reject_token(token)
        if not r.ok:
            self._log.warn(f"sync/history -> {r.status_code}")
            return None
        try:
            body = r.json() or {}
        except ValueError:
            return None
        added = body.get("added") if isinstance(body, Mapping) else None
        if not isinstance(added, Mapping):
            return None

        def _n(k: str) -> int:
            v = added.get(k)
            if isinstance(v, list): return len(v)
            try: return int(v or 0)
            except (TypeError, ValueError): return 0

        return WatchedAck(movies=_n("movies"), shows=_n("shows"), episodes=_n("episodes"))
