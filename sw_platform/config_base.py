# sw_platform/config_base.py
from __future__ import annotations

import copy
import json
import os
import secrets
import threading
import time
from pathlib import Path
from typing import Any, Dict

# ------------------------------------------------------------
# Base dir resolution
# ------------------------------------------------------------
def CONFIG_BASE() -> Path:
    """
    Determine the base directory for config and state files.

    Priority:
      1) $CONFIG_BASE if set
      2) /config (when running in container that mounts /config)
      3) Project root (one level up from this file)
    """
    env = os.getenv("CONFIG_BASE")
    if env:
        return Path(env)

    if Path("/app").exists():
        return Path("/config")

    return Path(__file__).resolve().parents[1]

LIST_STATUSES = ("plantowatch", "watching", "completed", "hold", "dropped")
CATEGORIES = ("movies", "shows", "anime", "anime_movies")

# Default config structure
DEFAULT_CFG: Dict[str, Any] = {
    # --- SIMKL (remote tracking service) -------------------------------------
    "simkl": {
        "client_id": "",                                # From your Simkl app; sent as simkl-api-key
        "api_key": "",                                  # Optional alias for client_id
        "access_token": "",                             # OAuth access token; cleared when SIMKL answers 401
        "timeout": 15.0,                                # HTTP timeout (seconds)
    },

    # --- Jellyfin (library host) ---------------------------------------------
    "jellyfin": {
        "server": "",                                   # http(s)://host:port
        "access_token": "",                             # Jellyfin API key / access token
        "device_id": "stubwatch",                       # Client device id
        "verify_ssl": False,                            # Verify TLS certificates
        "timeout": 15.0,                                # HTTP timeout (seconds)
    },

    # --- Plan-to-watch import ------------------------------------------------
    "import": {
        "list_status": "plantowatch",                   # plantowatch | watching | completed | hold | dropped
        "libraries": {                                  # Jellyfin library ItemId per category (preferred)
            "movies": "",
            "shows": "",
            "anime": "",
            "anime_movies": "",
        },
        "paths": {                                      # Legacy explicit folders, used when no library id is set
            "movies": "",
            "shows": "",
            "anime": "",
            "anime_movies": "",
        },
        "stubs_dir": "",                                # Folder with <N>min.mkv|mp4 templates (defaults to <project>/STUBS)
        "ledger_file": "",                              # Placeholder ledger (defaults to <config base>/placeholder_stubs.txt)
        "movie_fallback_minutes": 90,                   # Stub length when SIMKL has no movie runtime
        "anime_movie_fallback_minutes": 50,             # Stub length when SIMKL has no anime movie runtime
        "trigger_scan_after_import": True,              # Ask Jellyfin to rescan after a scheduled import
        "scan_delay_seconds": 60,                       # Wait before the rescan (cancellable)
    },

    # --- Scheduling ----------------------------------------------------------
    "scheduling": {
        "enabled": False,                               # Master toggle for periodic imports
        "every_n_hours": 6,                             # Interval between runs
        "max_runtime_minutes": 30,                      # Cancel a run that takes longer than this
    },

    # --- Runtime / Diagnostics ----------------------------------------------
    "runtime": {
        "debug": False,                                 # Extra verbose logging (debug level)
        "log_json": "",                                 # Optional JSON-lines log file
    },
}


# ------------------------------------------------------------
# Helpers: paths, IO, merging
# ------------------------------------------------------------
def _cfg_file() -> Path:
    return CONFIG_BASE() / "config.json"

def config_path() -> Path:
    return _cfg_file()


def _read_json(p: Path) -> Dict[str, Any]:
    with p.open("r", encoding="utf-8") as f:
        return json.load(f)


def _write_json_atomic(p: Path, data: Dict[str, Any]) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    suffix = f".{time.time_ns()}.{os.getpid()}.{threading.get_ident()}.{secrets.token_hex(4)}.tmp"
    tmp = p.with_suffix(suffix)

    with tmp.open("w", encoding="utf-8", newline="\n") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
        f.write("\n")
    tmp.replace(p)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)  # type: ignore[assignment]
        else:
            out[k] = v
    return out


def _normalize_import(block: Dict[str, Any]) -> Dict[str, Any]:
    v = dict(block or {})
    status = str(v.get("list_status") or "plantowatch").strip().lower()
    v["list_status"] = status if status in LIST_STATUSES else "plantowatch"
    for key in ("libraries", "paths"):
        m = v.get(key) if isinstance(v.get(key), dict) else {}
        v[key] = {c: str(m.get(c) or "").strip() for c in CATEGORIES}
    try:
        v["scan_delay_seconds"] = max(0, int(v.get("scan_delay_seconds", 60)))
    except (TypeError, ValueError):
        v["scan_delay_seconds"] = 60
    return v


# ------------------------------------------------------------
# Public API
# ------------------------------------------------------------
def load_config() -> Dict[str, Any]:
    """
    Read config.json and merge it over DEFAULT_CFG.
    """
    p = _cfg_file()
    user_cfg: Dict[str, Any] = {}
    if p.exists():
        try:
            user_cfg = _read_json(p)
        except Exception:
            user_cfg = {}

    cfg = _deep_merge(DEFAULT_CFG, user_cfg)
    cfg["import"] = _normalize_import(cfg.get("import") or {})
    return cfg


def save_config(cfg: Dict[str, Any]) -> None:
    """
    Write to config.json
    """
    data = dict(cfg or {})
    if isinstance(data.get("import"), dict):
        data["import"] = _normalize_import(data["import"])
    _write_json_atomic(_cfg_file(), data)


def state_path(name: str) -> Path:
    return CONFIG_BASE() / name


def clear_simkl_token(rejected: str) -> bool:
    """Drop the stored SIMKL token, but only if it is still the one that was rejected."""
    cfg = load_config()
    sk = cfg.setdefault("simkl", {})
    if not rejected or str(sk.get("access_token") or "") != rejected:
        return False
    sk["access_token"] = ""
    save_config(cfg)
    return True
