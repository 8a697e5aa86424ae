# /providers/simkl/_common.py
from __future__ import annotations
import os
from typing import Any, Dict, Mapping, Optional

from sw_platform.models import RecordKind, RemoteCatalogRecord

BASE = "https://api.simkl.com"
UA = os.getenv("SW_UA", "StubWatch/1.0 (SIMKL)")

URL_ALL_ITEMS = f"{BASE}/sync/all-items/{{bucket}}/{{status}}"
URL_SEARCH_FILE = f"{BASE}/search/file/"
URL_HISTORY = f"{BASE}/sync/history"

LIST_STATUSES = ("plantowatch", "watching", "completed", "hold", "dropped")

# ---------- errors

class SimklError(RuntimeError): ...
class InvalidTokenError(SimklError): ...

# ---------- headers

def build_headers(cfg: Mapping[str, Any], token: Optional[str] = None) -> Dict[str, str]:
    t = (cfg.get("simkl") or cfg)
    api_key = str(t.get("api_key") or t.get("client_id") or "").strip()
    h = {
        "Accept": "application/json",
        "Content-Type": "application/json",
        "User-Agent": UA,
        "simkl-api-key": api_key,
    }
    if token: h["Authorization"] = f"Bearer {token}"
    return h

def normalize_status(status: Optional[str]) -> str:
    s = str(status or "").strip().lower()
    return s if s in LIST_STATUSES else ""

# ---------- row parsing

def _int(v: Any) -> Optional[int]:
    if v is None or isinstance(v, bool): return None
    try: return int(str(v).strip())
    except (TypeError, ValueError): return None

def _str_id(v: Any) -> Optional[str]:
    if v is None: return None
    s = str(v).strip()
    return s or None

def _runtime(v: Any) -> Optional[int]:
    # SIMKL sends minutes, occasionally as "155" or "155 min"
    if isinstance(v, str):
        digits = "".join(ch for ch in v.split()[0] if ch.isdigit()) if v.split() else ""
        return _int(digits)
    return _int(v)

def anime_kind(anime_type: Any) -> Optional[RecordKind]:
    t = str(anime_type or "").strip().lower()
    if t == "tv": return "anime_tv"
    if t == "movie": return "anime_movie"
    return None

def record_from_node(node: Mapping[str, Any], kind: RecordKind) -> RemoteCatalogRecord:
    ids = node.get("ids") if isinstance(node.get("ids"), Mapping) else {}
    return RemoteCatalogRecord(
        title=(str(node["title"]) if node.get("title") else None),
        kind=kind,
        year=_int(node.get("year")),
        runtime_minutes=_runtime(node.get("runtime")),
        simkl_id=_int(ids.get("simkl") or ids.get("simkl_id")),
        tmdb_id=_str_id(ids.get("tmdb")),
        tvdb_id=_str_id(ids.get("tvdb")),
    )

def rows_of(data: Any, key: str) -> list[Mapping[str, Any]]:
    if isinstance(data, Mapping):
        arr = data.get(key)
        if isinstance(arr, list):
            return [r for r in arr if isinstance(r, Mapping)]
    if isinstance(data, list):
        return [r for r in data if isinstance(r, Mapping)]
    return []
