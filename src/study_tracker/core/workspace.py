"""Where study-tracker keeps its files.

A workspace is one directory holding ``config/`` (``tracker.toml``),
``logs/``, ``content/`` (the JSONL catalogue) and ``progress/``
(``progress.json``).
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

WORKSPACE_ENV = "STUDY_TRACKER_DATA_HOME"
DEFAULT_WORKSPACE = Path.home() / ".study-tracker-data"
SUBDIRECTORIES = ("config", "logs", "content", "progress")


class WorkspaceError(RuntimeError):
    """Raised when the workspace layout cannot be prepared."""


@dataclass(frozen=True)
class WorkspaceLayout:
    """Workspace root plus which of its directories this run created."""

    home: Path
    created: Mapping[str, bool] = field(default_factory=dict)

    @property
    def directories(self) -> Mapping[str, Path]:
        return MappingProxyType(
            {name: self.home / name for name in SUBDIRECTORIES}
        )

    def path_for(self, key: str) -> Path:
        if key not in SUBDIRECTORIES:
            raise KeyError(f"Unknown workspace directory '{key}'.")
        return self.home / key

    def items(self) -> tuple[tuple[str, Path], ...]:
        return tuple(self.directories.items())


def locate_workspace(
    env: Mapping[str, str] | None = None, path: Path | None = None
) -> tuple[Path, bool]:
    """Return the workspace root and whether it was chosen explicitly.

    ``path`` wins over ``$STUDY_TRACKER_DATA_HOME``, which wins over
    ``~/.study-tracker-data``.
    """

    env_map = os.environ if env is None else env
    if path is None:
        configured = (env_map.get(WORKSPACE_ENV) or "").strip()
        path = Path(configured) if configured else None
    explicit = path is not None
    root = path if explicit else DEFAULT_WORKSPACE
    return root.expanduser().resolve(), explicit


def ensure_workspace(
    *,
    env: Mapping[str, str] | None = None,
    path: Path | None = None,
    create: bool = True,
) -> WorkspaceLayout:
    """Resolve the workspace and, unless ``create`` is false, build it.

    An unwritable default location moves to the temp dir; an explicit one
    raises :class:`WorkspaceError`.
    """

    home, explicit = locate_workspace(env, path)
    if not create:
        for directory in (home, *(home / name for name in SUBDIRECTORIES)):
            _reject_file(directory)
        return WorkspaceLayout(
            home,
            MappingProxyType(dict.fromkeys(("home", *SUBDIRECTORIES), False)),
        )

    try:
        return _build(home)
    except PermissionError as exc:
        if explicit:
            raise WorkspaceError(
                f"Unable to prepare workspace at {home}"
            ) from exc
    fallback = Path(tempfile.gettempdir()) / "study-tracker-data"
    try:
        return _build(fallback)
    except PermissionError as exc:
        raise WorkspaceError(
            f"Unable to prepare workspace at {home} or {fallback}"
        ) from exc


def _build(home: Path) -> WorkspaceLayout:
    created = {"home": _make_dir(home)}
    for name in SUBDIRECTORIES:
        created[name] = _make_dir(home / name)
    return WorkspaceLayout(home, MappingProxyType(created))


def _make_dir(directory: Path) -> bool:
    """Create ``directory`` (owner-only) and report whether it was new."""

    if _reject_file(directory):
        return False
    directory.mkdir(mode=0o700, parents=True, exist_ok=True)
    return True


def _reject_file(directory: Path) -> bool:
    """Return whether ``directory`` exists; raise if it is not a directory."""

    if not directory.exists():
        return False
    if not directory.is_dir():
        raise WorkspaceError(
            f"Workspace path exists and is not a directory: {directory}"
        )
    return True
