# sw_platform/models.py
# records and collaborator protocols shared by services and providers.
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Protocol

RecordKind = Literal["movie", "show", "anime_tv", "anime_movie"]
ItemKind = Literal["movie", "series", "episode"]


@dataclass(frozen=True)
class RemoteCatalogRecord:
    title: str | None
    kind: RecordKind
    year: int | None = None
    runtime_minutes: int | None = None
    simkl_id: int | None = None
    tmdb_id: str | None = None
    tvdb_id: str | None = None

    @property
    def has_runtime(self) -> bool:
        return bool(self.runtime_minutes and self.runtime_minutes > 0)


@dataclass(frozen=True)
class WatchlistSnapshot:
    movies: tuple[RemoteCatalogRecord, ...] = ()
    shows: tuple[RemoteCatalogRecord, ...] = ()
    anime: tuple[RemoteCatalogRecord, ...] = ()

    def is_empty(self) -> bool:
        return not (self.movies or self.shows or self.anime)

    def records(self, kind: RecordKind) -> list[RemoteCatalogRecord]:
        if kind == "movie":
            return list(self.movies)
        if kind == "show":
            return list(self.shows)
        return [r for r in self.anime if r.kind == kind]


@dataclass(frozen=True)
class PlaceholderRecord:
    simkl_id: int
    kind: str
    file_path: str


@dataclass(frozen=True)
class LibraryInfo:
    id: str
    name: str
    paths: tuple[str, ...] = ()


@dataclass
class ScrobbleHistory:
    movies: list[dict[str, Any]] = field(default_factory=list)
    shows: list[dict[str, Any]] = field(default_factory=list)
    episodes: list[dict[str, Any]] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.movies or self.shows or self.episodes)

    def counts(self) -> tuple[int, int, int]:
        return len(self.movies), len(self.shows), len(self.episodes)

    def to_payload(self) -> dict[str, Any]:
        return {"movies": self.movies, "shows": self.shows, "episodes": self.episodes}


@dataclass(frozen=True)
class WatchedAck:
    movies: int = 0
    shows: int = 0
    episodes: int = 0

    def counts(self) -> tuple[int, int, int]:
        return self.movies, self.shows, self.episodes


@dataclass(frozen=True)
class FileMatch:
    type: str
    movie: dict[str, Any] | None = None
    show: dict[str, Any] | None = None
    episode: dict[str, Any] | None = None


@dataclass
class LocalMediaItem:
    name: str | None
    path: str
    kind: ItemKind
    year: int | None = None
    ids: dict[str, str] = field(default_factory=dict)
    series_name: str | None = None
    season: int | None = None
    episode: int | None = None


class RemoteTracker(Protocol):
    def fetch_by_status(self, token: str, status: str) -> WatchlistSnapshot: ...
    def identify_by_file(self, file_ref: str) -> Optional[FileMatch]: ...
    def submit_watched(self, token: str, history: ScrobbleHistory) -> Optional[WatchedAck]: ...


class LibraryManager(Protocol):
    def list_configured_libraries(self) -> list[LibraryInfo]: ...
    def resolve_library_path(self, library_id: str) -> Optional[str]: ...
    def request_library_rescan(self, cancel: threading.Event | None = None) -> None: ...
