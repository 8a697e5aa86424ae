# providers/jellyfin/_utils.py
# JELLYFIN connection helpers
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from typing import Any, Mapping

UA = "StubWatch/1.0"


class JellyfinError(RuntimeError): ...


def _clean(url: str) -> str:
    u = (url or "").strip()
    if not u:
        return ""
    if not (u.startswith("http://") or u.startswith("https://")):
        u = "http://" + u
    if not u.endswith("/"):
        u += "/"
    return u


def _mb_auth(token: str | None, device_id: str) -> str:
    base = f'MediaBrowser Client="StubWatch", Device="Server", DeviceId="{device_id}", Version="1.0"'
    return f'{base}, Token="{token}"' if token else base


def _headers(token: str | None, device_id: str) -> dict[str, str]:
    auth = _mb_auth(token, device_id)
    h: dict[str, str] = {
        "Accept": "application/json",
        "User-Agent": UA,
        "Authorization": auth,
        "X-Emby-Authorization": auth,
    }
    if token:
        h["X-MediaBrowser-Token"] = token
    return h


def _cfg_triplet(cfg: Mapping[str, Any]) -> tuple[str, str | None, str]:
    jf = cfg.get("jellyfin") or {}
    server = _clean(jf.get("server", ""))
    token = (jf.get("access_token") or "").strip() or None
    devid = (jf.get("device_id") or "stubwatch").strip() or "stubwatch"
    return server, token, devid
