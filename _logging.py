# _logging.py
# Structured logger for StubWatch: colored console lines, optional JSON-lines sink.
from __future__ import annotations
import os, sys, datetime, json, threading, time
from pathlib import Path
from typing import Any, Optional, TextIO, Dict

RESET = "\033[0m"
DIM = "\033[90m"
TAG_COLORS = {
    "DEBUG": "\033[33m",
    "INFO": "\033[94m",
    "WARN": "\033[33m",
    "ERROR": "\033[91m",
    "SUCCESS": "\033[92m",
}

LEVELS = {"silent": 60, "error": 40, "warn": 30, "info": 20, "debug": 10}

# runtime.debug in config.json under CONFIG_BASE, re-read every few seconds
_CFG_CACHE: Dict[str, Any] | None = None
_CFG_TS: float = 0.0

def _config_file() -> Path:
    base = os.getenv("CONFIG_BASE")
    if base:
        return Path(base) / "config.json"
    if Path("/app").exists():
        return Path("/config/config.json")
    return Path(__file__).resolve().parent / "config.json"

def _debug_enabled() -> bool:
    global _CFG_CACHE, _CFG_TS
    now = time.time()
    if _CFG_CACHE is None or (now - _CFG_TS) > 5.0:
        try:
            with _config_file().open("r", encoding="utf-8") as f:
                _CFG_CACHE = json.load(f)
        except (OSError, ValueError):
            _CFG_CACHE = {}
        _CFG_TS = now
    return bool((_CFG_CACHE.get("runtime") or {}).get("debug"))

def _env_level(default: str) -> str:
    lvl = (os.getenv("SW_LOG_LEVEL") or "").strip().lower()
    return lvl if lvl in LEVELS else default

class Logger:
    def __init__(
        self,
        stream: TextIO = sys.stdout,
        level: str = "info",
        *,
        _module: Optional[str] = None,
        _parent: Optional["Logger"] = None,
    ):
        self.stream = stream
        self.level_no = LEVELS.get(level, 20)
        self.module = _module
        self._parent = _parent
        self._json_stream: Optional[TextIO] = None
        self._lock = threading.Lock()

    # Configuration (children follow the root)
    def _root(self) -> "Logger":
        return self._parent._root() if self._parent else self

    def set_level(self, level: str) -> None:
        root = self._root()
        root.level_no = LEVELS.get(str(level).lower(), root.level_no)

    def enable_json(self, file_path: str) -> None:
        self._root()._json_stream = open(file_path, "a", encoding="utf-8")

    def child(self, name: str) -> "Logger":
        return Logger(self.stream, _module=name, _parent=self._root())

    def _fmt_text(self, display_level: str, msg: str) -> str:
        ts = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        head = f"[{self.module}] " if self.module else ""
        return f"{DIM}[{ts}]{RESET} {head}{TAG_COLORS[display_level]}{display_level}{RESET} {msg}"

    def _emit(self, severity: str, display_level: str, *parts: Any) -> None:
        root = self._root()
        if severity == "debug":
            if root.level_no > LEVELS["debug"] and not _debug_enabled():
                return
        elif root.level_no > LEVELS[severity]:
            return
        msg = " ".join(str(p) for p in parts)
        with root._lock:
            self.stream.write(self._fmt_text(display_level, msg) + "\n")
            self.stream.flush()
            if root._json_stream:
                payload = {
                    "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
                    "level": display_level,
                    "module": self.module,
                    "msg": msg,
                }
                root._json_stream.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")
                root._json_stream.flush()

    # Public API
    def debug(self, *parts: Any) -> None:
        self._emit("debug", "DEBUG", *parts)

    def info(self, *parts: Any) -> None:
        self._emit("info", "INFO", *parts)

    def warn(self, *parts: Any) -> None:
        self._emit("warn", "WARN", *parts)

    def error(self, *parts: Any) -> None:
        self._emit("error", "ERROR", *parts)

    def success(self, *parts: Any) -> None:
        self._emit("info", "SUCCESS", *parts)

    # Callable adapter for log_fn hooks: logger("text", level="INFO")
    def __call__(self, message: str, *, level: str = "INFO") -> None:
        lvl = (level or "INFO").lower()
        if lvl == "debug":
            self.debug(message)
        elif lvl in ("warn", "warning"):
            self.warn(message)
        elif lvl == "error":
            self.error(message)
        elif lvl == "success":
            self.success(message)
        else:
            self.info(message)

# default instance
log = Logger(level=_env_level("info"))

__all__ = ["Logger", "log", "LEVELS"]
