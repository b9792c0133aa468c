"""Runtime wiring shared by the study-tracker subcommands."""

from __future__ import annotations

import argparse
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from rich.console import Console

from ..core.logging import configure_logger
from ..core.workspace import WorkspaceError, WorkspaceLayout
from ..settings import (
    SettingsError,
    SettingsOverrides,
    TrackerSettings,
    load_settings,
)
from ..stores import JsonlContentRepository, JsonProgressStore

USER_ENV = "STUDY_TRACKER_USER"


@dataclass
class Runtime:
    settings: TrackerSettings
    layout: WorkspaceLayout
    logger: logging.Logger
    log_path: Path
    content: JsonlContentRepository
    store: JsonProgressStore


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--workspace",
        type=Path,
        help="Workspace root (defaults to STUDY_TRACKER_DATA_HOME).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to tracker.toml (defaults to <workspace>/config).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Mirror log records to stderr.",
    )


def add_user_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--user",
        help=f"User id to report on (defaults to ${USER_ENV}).",
    )


def resolve_user(
    args: argparse.Namespace, env: Optional[Mapping[str, str]] = None
) -> Optional[str]:
    env_map = os.environ if env is None else env
    value = getattr(args, "user", None) or env_map.get(USER_ENV) or ""
    return value.strip() or None


def build_runtime(
    args: argparse.Namespace,
    *,
    overrides: Optional[SettingsOverrides] = None,
) -> Runtime:
    """Load ``.env``, settings and logging, then build the stores.

    Raises :class:`SettingsError` for unusable configuration.
    """

    load_dotenv()
    try:
        loaded = load_settings(
            config_path=getattr(args, "config", None),
            overrides=overrides,
            workspace_path=getattr(args, "workspace", None),
        )
    except WorkspaceError as exc:
        raise SettingsError(str(exc)) from exc
    settings = loaded.settings
    logger, log_path = configure_logger(
        "study_tracker",
        log_dir=loaded.layout.path_for("logs"),
        level=settings.log_level,
        verbose=bool(getattr(args, "verbose", False)),
        filename="study-tracker.log",
    )
    return Runtime(
        settings=settings,
        layout=loaded.layout,
        logger=logger,
        log_path=log_path,
        content=JsonlContentRepository(
            settings.content_dir, logger=logger.getChild("content")
        ),
        store=JsonProgressStore(settings.progress_path),
    )


def error_console() -> Console:
    return Console(stderr=True)
