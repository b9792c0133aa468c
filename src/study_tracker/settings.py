"""Settings loader applying CLI > env > ``tracker.toml`` > defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Mapping, MutableMapping, Optional, Sequence

from .core import config as core_config
from .core import workspace as workspace_mod

__all__ = [
    "CONFIG_ENV",
    "CONFIG_FILENAME",
    "DEFAULT_TOPICS",
    "ENV_PREFIX",
    "LoadResult",
    "SettingsError",
    "SettingsOverrides",
    "TrackerSettings",
    "load_settings",
    "read_template",
]

CONFIG_FILENAME = "tracker.toml"
CONFIG_ENV = "STUDY_TRACKER_CONFIG"
ENV_PREFIX = "STUDY_TRACKER_"

DEFAULT_TOPICS: tuple[str, ...] = (
    "arrays",
    "linked_lists",
    "stacks_queues",
    "trees",
    "graphs",
    "dynamic_programming",
    "bit_manipulation",
    "sorting",
    "searching",
    "hashmaps",
)
_DEFAULT_TIME_LIMIT = 300
_DEFAULT_CACHE_TTL = 30.0
_DEFAULT_LOG_LEVEL = "INFO"
_PROGRESS_FILENAME = "progress.json"


class SettingsError(RuntimeError):
    """Raised when configuration parsing or validation fails."""


@dataclass(frozen=True)
class TrackerSettings:
    time_limit_seconds: int
    cache_ttl_seconds: float
    topics: tuple[str, ...]
    content_dir: Path
    progress_path: Path
    log_level: str


@dataclass(frozen=True)
class SettingsOverrides:
    """CLI-sourced values applied on top of file/env options."""

    time_limit_seconds: Optional[int] = None
    topics: Optional[Sequence[str]] = None
    log_level: Optional[str] = None


@dataclass(frozen=True)
class LoadResult:
    settings: TrackerSettings
    layout: workspace_mod.WorkspaceLayout
    config_path: Optional[Path]


def read_template() -> str:
    """Return the packaged ``tracker.toml`` template."""

    resource = resources.files("study_tracker.templates").joinpath(
        CONFIG_FILENAME
    )
    return resource.read_text(encoding="utf-8")


def load_settings(
    *,
    config_path: Optional[Path] = None,
    overrides: Optional[SettingsOverrides] = None,
    env: Optional[Mapping[str, str]] = None,
    workspace_path: Optional[Path] = None,
) -> LoadResult:
    overrides = overrides or SettingsOverrides()
    env_map = os.environ if env is None else env

    layout = workspace_mod.ensure_workspace(env=env_map, path=workspace_path)
    requested = _resolve_config_path(
        config_path, env_map, layout.path_for("config") / CONFIG_FILENAME
    )

    table = _default_table()
    loaded_path: Optional[Path] = None
    if requested.exists():
        loaded_path = requested
        try:
            core_config.merge_defaults(
                table, core_config.load_toml(requested)
            )
        except core_config.TomlConfigError as exc:
            raise SettingsError(str(exc)) from exc
    elif config_path is not None or (env_map.get(CONFIG_ENV) or "").strip():
        raise SettingsError(f"Config file not found: {requested}")

    time_limit = _pick_first(
        overrides.time_limit_seconds,
        _env_int(env_map, "TIME_LIMIT"),
        table["quiz"]["time_limit_seconds"],
    )
    if not isinstance(time_limit, int) or time_limit <= 0:
        raise SettingsError("quiz.time_limit_seconds must be a positive int.")

    cache_ttl = _pick_first(
        _env_float(env_map, "CACHE_TTL"),
        table["progress"]["cache_ttl_seconds"],
    )
    if float(cache_ttl) < 0:
        raise SettingsError("progress.cache_ttl_seconds must be >= 0.")

    topics = _normalize_topics(
        _pick_first(
            overrides.topics,
            _env_list(env_map, "TOPICS"),
            table["progress"]["topics"],
        )
    )

    content_dir = _resolve_path(
        _pick_first(
            _env_string(env_map, "CONTENT_DIR"),
            table["paths"]["content_dir"],
        ),
        layout=layout,
        default=layout.path_for("content"),
    )
    progress_path = _resolve_path(
        _pick_first(
            _env_string(env_map, "PROGRESS_FILE"),
            table["paths"]["progress_file"],
        ),
        layout=layout,
        default=layout.path_for("progress") / _PROGRESS_FILENAME,
    )

    log_level = str(
        _pick_first(
            overrides.log_level,
            _env_string(env_map, "LOG_LEVEL"),
            table["logging"]["level"],
        )
    ).strip()
    if not log_level:
        raise SettingsError("logging.level must be a non-empty string.")

    settings = TrackerSettings(
        time_limit_seconds=time_limit,
        cache_ttl_seconds=float(cache_ttl),
        topics=topics,
        content_dir=content_dir,
        progress_path=progress_path,
        log_level=log_level.upper(),
    )
    return LoadResult(settings=settings, layout=layout, config_path=loaded_path)


def _default_table() -> MutableMapping[str, MutableMapping[str, object]]:
    return {
        "quiz": {"time_limit_seconds": _DEFAULT_TIME_LIMIT},
        "progress": {
            "cache_ttl_seconds": _DEFAULT_CACHE_TTL,
            "topics": list(DEFAULT_TOPICS),
        },
        "paths": {"content_dir": None, "progress_file": None},
        "logging": {"level": _DEFAULT_LOG_LEVEL},
    }


def _resolve_config_path(
    config_path: Optional[Path],
    env_map: Mapping[str, str],
    default_path: Path,
) -> Path:
    if config_path is not None:
        return config_path.expanduser()
    env_candidate = (env_map.get(CONFIG_ENV) or "").strip()
    if env_candidate:
        return Path(env_candidate).expanduser()
    return default_path


def _resolve_path(
    candidate: object,
    *,
    layout: workspace_mod.WorkspaceLayout,
    default: Path,
) -> Path:
    if candidate is None:
        return default
    if not isinstance(candidate, str) or not candidate.strip():
        raise SettingsError("Configured paths must be non-empty strings.")
    path = Path(candidate.strip()).expanduser()
    if not path.is_absolute():
        path = layout.home / path
    return path.resolve()


def _normalize_topics(value: object) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        raise SettingsError("progress.topics must be a list of strings.")
    topics: list[str] = []
    for item in value:
        name = str(item).strip()
        if name and name not in topics:
            topics.append(name)
    if not topics:
        raise SettingsError("At least one topic must be configured.")
    return tuple(topics)


def _env_string(env_map: Mapping[str, str], key: str) -> Optional[str]:
    raw = env_map.get(f"{ENV_PREFIX}{key}")
    if raw is None:
        return None
    value = raw.strip()
    return value or None


def _env_int(env_map: Mapping[str, str], key: str) -> Optional[int]:
    raw = _env_string(env_map, key)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise SettingsError(
            f"{ENV_PREFIX}{key} must be an integer, got '{raw}'."
        ) from exc


def _env_float(env_map: Mapping[str, str], key: str) -> Optional[float]:
    raw = _env_string(env_map, key)
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise SettingsError(
            f"{ENV_PREFIX}{key} must be a number, got '{raw}'."
        ) from exc


def _env_list(env_map: Mapping[str, str], key: str) -> Optional[list[str]]:
    raw = _env_string(env_map, key)
    if raw is None:
        return None
    parts = [part for part in raw.replace(",", " ").split() if part]
    return parts or None


def _pick_first(*candidates: object) -> object:
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return None
