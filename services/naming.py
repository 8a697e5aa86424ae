# services/naming.py
# Folder and file names for library entries: "Title (Year) [tmdbid-123]".
from __future__ import annotations

from sw_platform.models import RemoteCatalogRecord

_INVALID = set('<>:"/\\|?*')

_FALLBACK_TITLE = {
    "movie": "Unknown Movie",
    "show": "Unknown Show",
    "anime_tv": "Unknown Anime",
    "anime_movie": "Unknown Anime Movie",
}

STUB_EXT = ".mkv"


def sanitize(name: str) -> str:
    return "".join("_" if (ch in _INVALID or ord(ch) < 32 or ord(ch) == 127) else ch for ch in (name or "")).strip()


def _id_tag(rec: RemoteCatalogRecord) -> str:
    if rec.kind in ("movie", "anime_movie"):
        return f" [tmdbid-{rec.tmdb_id}]" if rec.tmdb_id else ""
    return f" [tvdbid-{rec.tvdb_id}]" if rec.tvdb_id else ""


def folder_name(rec: RemoteCatalogRecord) -> str:
    name = sanitize(rec.title or "") or _FALLBACK_TITLE.get(rec.kind, "Unknown")
    if rec.year:
        name += f" ({rec.year})"
    return name + _id_tag(rec)


def file_name(rec: RemoteCatalogRecord) -> str:
    return folder_name(rec) + STUB_EXT
