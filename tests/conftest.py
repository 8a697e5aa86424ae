# StubWatch test scripts
from __future__ import annotations

import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

STUB_MINUTES = (10, 25, 45, 90, 120, 155, 240)


def stub_size(minutes: int) -> int:
    return 20 * 1024 + minutes


@pytest.fixture()
def config_base(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("CONFIG_BASE", str(tmp_path))
    return tmp_path


@pytest.fixture()
def stubs_dir(tmp_path: Path) -> Path:
    d = tmp_path / "STUBS"
    d.mkdir()
    for m in STUB_MINUTES:
        (d / f"{m}min.mkv").write_bytes(b"\0" * stub_size(m))
    (d / "readme.txt").write_text("not a stub")
    (d / "minutes.mp4").write_bytes(b"\0" * 10)
    return d


@pytest.fixture()
def library_root(tmp_path: Path) -> Path:
    d = tmp_path / "library"
    for sub in ("movies", "shows", "anime", "anime_movies"):
        (d / sub).mkdir(parents=True)
    return d
