from __future__ import annotations

import sys
from pathlib import Path

import pytest

TESTS_DIR = Path(__file__).resolve().parent
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))

ROOT = TESTS_DIR.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from fixtures import ManualTimerFactory, WorkspaceBuilder  # noqa: E402

_ENV_KEYS = (
    "STUDY_TRACKER_DATA_HOME",
    "STUDY_TRACKER_CONFIG",
    "STUDY_TRACKER_USER",
    "STUDY_TRACKER_TIME_LIMIT",
    "STUDY_TRACKER_CACHE_TTL",
    "STUDY_TRACKER_TOPICS",
    "STUDY_TRACKER_CONTENT_DIR",
    "STUDY_TRACKER_PROGRESS_FILE",
    "STUDY_TRACKER_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests away from the real workspace and user environment."""

    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("STUDY_TRACKER_DATA_HOME", str(tmp_path / "default-ws"))


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def timers() -> ManualTimerFactory:
    return ManualTimerFactory()


@pytest.fixture
def workspace(tmp_path: Path) -> WorkspaceBuilder:
    """Provide a workspace rooted in pytest's per-test tmp directory."""

    return WorkspaceBuilder(tmp_path / "ws")
