"""File helpers shared by the content and progress stores."""

from __future__ import annotations

import json
import os
import tempfile
import time
from pathlib import Path
from typing import Any, List, Mapping, Sequence

__all__ = [
    "FileLock",
    "FileLockTimeout",
    "atomic_write_json",
    "read_json",
    "read_jsonl",
    "write_jsonl",
]

_LOCK_TIMEOUT_SECONDS = 5.0


class FileLockTimeout(RuntimeError):
    """Raised when a lock file cannot be acquired in time."""


def read_jsonl(path: Path) -> List[dict]:
    """Read one JSON object per non-blank line of ``path``."""

    data: List[dict] = []
    with Path(path).open("r", encoding="utf-8") as fh:
        for number, line in enumerate(fh, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as exc:
                raise ValueError(
                    f"{path}:{number}: invalid JSON ({exc.msg})"
                ) from exc
            if not isinstance(record, dict):
                raise ValueError(f"{path}:{number}: expected a JSON object")
            data.append(record)
    return data


def write_jsonl(path: Path, records: Sequence[Mapping[str, Any]]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as fh:
        for rec in records:
            fh.write(json.dumps(rec, ensure_ascii=False))
            fh.write("\n")


def read_json(path: Path) -> Any:
    return json.loads(Path(path).read_text(encoding="utf-8"))


def atomic_write_json(path: Path, payload: Any) -> None:
    """Write ``payload`` to a temp file beside ``path`` and swap it in."""

    path.parent.mkdir(parents=True, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(
        "w",
        delete=False,
        encoding="utf-8",
        dir=str(path.parent),
    )
    try:
        json.dump(payload, handle, indent=2, sort_keys=True)
        handle.flush()
        os.fsync(handle.fileno())
    finally:
        handle.close()
    os.replace(handle.name, path)
    try:
        path.chmod(0o600)
    except PermissionError:  # pragma: no cover - depends on filesystem
        pass


class FileLock:
    """Exclusive-create lock file guarding read-modify-write cycles."""

    def __init__(
        self, path: Path, *, timeout: float = _LOCK_TIMEOUT_SECONDS
    ) -> None:
        self._path = path
        self._timeout = timeout

    def __enter__(self) -> "FileLock":
        deadline = time.time() + self._timeout
        self._path.parent.mkdir(parents=True, exist_ok=True)
        while True:
            try:
                fd = os.open(
                    self._path,
                    os.O_CREAT | os.O_EXCL | os.O_WRONLY,
                )
                os.close(fd)
                break
            except FileExistsError:
                if time.time() > deadline:
                    raise FileLockTimeout(
                        f"Timed out waiting for lock: {self._path}"
                    )
                time.sleep(0.05)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        self._path.unlink(missing_ok=True)
