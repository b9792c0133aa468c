"""Shared helpers: config files, logging, workspace layout."""

from __future__ import annotations

from .config import (
    TomlConfigError,
    load_toml,
    merge_defaults,
    write_toml_template,
)
from .files import (
    FileLock,
    FileLockTimeout,
    atomic_write_json,
    read_json,
    read_jsonl,
    write_jsonl,
)
from .logging import JsonLogFormatter, close_logger, configure_logger
from .workspace import (
    WORKSPACE_ENV,
    WorkspaceError,
    WorkspaceLayout,
    ensure_workspace,
)

__all__ = [
    "TomlConfigError",
    "load_toml",
    "merge_defaults",
    "write_toml_template",
    "FileLock",
    "FileLockTimeout",
    "atomic_write_json",
    "read_json",
    "read_jsonl",
    "write_jsonl",
    "JsonLogFormatter",
    "close_logger",
    "configure_logger",
    "WORKSPACE_ENV",
    "WorkspaceError",
    "WorkspaceLayout",
    "ensure_workspace",
]
