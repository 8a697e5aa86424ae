# services/scrobble.py
# Record a local playback on SIMKL, falling back to file-name identification.
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import ntpath
import posixpath
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from _logging import Logger, log as BASE_LOG
from sw_platform.models import FileMatch, LocalMediaItem, RemoteTracker, ScrobbleHistory


@dataclass(frozen=True)
class Matched:
    history: ScrobbleHistory


@dataclass(frozen=True)
class NeedsFallback:
    reason: str


@dataclass(frozen=True)
class Failed:
    reason: str


Outcome = Union[Matched, NeedsFallback, Failed]
Strategy = Callable[[LocalMediaItem, str], Outcome]


def _ids(item: LocalMediaItem) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for k, v in (item.ids or {}).items():
        s = str(v or "").strip()
        if s:
            out[str(k).strip().lower()] = s
    return out


def history_from_item(item: LocalMediaItem) -> ScrobbleHistory:
    h = ScrobbleHistory()
    base: dict[str, Any] = {"title": item.name, "ids": _ids(item)}
    if item.year:
        base["year"] = item.year
    if item.kind == "movie":
        h.movies.append(base)
    elif item.kind == "series":
        h.shows.append(base)
    elif item.kind == "episode":
        ep = dict(base)
        if item.season is not None: ep["season"] = item.season
        if item.episode is not None: ep["episode"] = item.episode
        h.episodes.append(ep)
    return h


def base_name(path: str) -> str:
    # host paths may be Windows or POSIX
    return ntpath.basename(path) if "\\" in (path or "") else posixpath.basename(path or "")


def _accepted(history: ScrobbleHistory, ack: Any) -> bool:
    return ack is not None and ack.counts() == history.counts()


class ScrobbleReconciler:
    """Ordered strategy chain: direct metadata, then full-path and file-name identification."""

    def __init__(self, tracker: RemoteTracker, *, logger: Logger | None = None) -> None:
        self.tracker = tracker
        self._log = logger or BASE_LOG.child("SCROBBLE")
        self.strategies: list[Strategy] = [self.direct, self.by_full_path, self.by_file_name]

    def reconcile(self, item: LocalMediaItem, token: str) -> tuple[bool, LocalMediaItem]:
        for strategy in self.strategies:
            outcome = strategy(item, token)
            name = getattr(strategy, "__name__", "strategy")
            if isinstance(outcome, Matched):
                self._log.success(f"{name}: marked '{item.name}' as watched")
                return True, item
            if isinstance(outcome, Failed):
                self._log.warn(f"{name}: {outcome.reason}")
                return False, item
            self._log.debug(f"{name}: {outcome.reason}")
        return False, item

    # --- strategies -----------------------------------------------------------

    def direct(self, item: LocalMediaItem, token: str) -> Outcome:
        history = history_from_item(item)
        if history.is_empty():
            return NeedsFallback("no usable metadata on item")
        ack = self.tracker.submit_watched(token, history)
        if _accepted(history, ack):
            return Matched(history)
        return NeedsFallback(f"direct submit not accepted ({ack.counts() if ack else 'no response'})")

    def by_full_path(self, item: LocalMediaItem, token: str) -> Outcome:
        return self._identify_and_submit(item, token, item.path, terminal=False)

    def by_file_name(self, item: LocalMediaItem, token: str) -> Outcome:
        return self._identify_and_submit(item, token, base_name(item.path), terminal=True)

    # --- helpers --------------------------------------------------------------

    def _identify_and_submit(self, item: LocalMediaItem, token: str, ref: str, *, terminal: bool) -> Outcome:
        def miss(reason: str) -> Outcome:
            return Failed(reason) if terminal else NeedsFallback(reason)

        if not ref:
            return miss("no file reference")
        match = self.tracker.identify_by_file(ref)
        if match is None:
            return miss(f"no match for {ref}")
        history = self._history_from_match(item, match)
        if isinstance(history, str):
            return miss(history)

        ack = self.tracker.submit_watched(token, history)
        if _accepted(history, ack):
            return Matched(history)
        return Failed(f"resubmit not accepted for {ref}")

    def _history_from_match(self, item: LocalMediaItem, m: FileMatch) -> ScrobbleHistory | str:
        h = ScrobbleHistory()
        mtype = (m.type or "").lower()
        if m.movie is not None and item.kind == "movie":
            if mtype != "movie":
                return f"type != movie ({m.type})"
            item.name = m.movie.get("title")
            item.year = _int(m.movie.get("year"))
            h.movies.append(m.movie)
        elif m.episode is not None and m.show is not None and item.kind in ("series", "episode"):
            if mtype != "episode":
                return f"type != episode ({m.type})"
            item.name = m.episode.get("title")
            item.series_name = m.show.get("title")
            item.episode = _int(m.episode.get("episode"))
            item.season = _int(m.episode.get("season"))
            item.year = _int(m.show.get("year"))
            h.episodes.append(m.episode)
        if h.is_empty():
            return f"identification unusable for {item.kind} ({m.type or 'no type'})"
        return h


def _int(v: Any) -> Optional[int]:
    try: return int(v) if v is not None else None
    except (TypeError, ValueError): return None
