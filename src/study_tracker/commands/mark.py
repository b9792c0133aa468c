"""``study-tracker mark``: toggle video and coding-problem completion."""

from __future__ import annotations

import argparse
import asyncio
from typing import Optional, Sequence

from rich.console import Console

from ..core.logging import close_logger
from ..errors import PersistenceFailure
from ..settings import SettingsError
from ._common import (
    add_common_arguments,
    add_user_argument,
    build_runtime,
    error_console,
    resolve_user,
)

_KINDS = ("video", "problem")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="study-tracker mark",
        description=(
            "Mark a video as completed or a coding problem as attempted."
        ),
    )
    parser.add_argument("kind", choices=_KINDS)
    parser.add_argument("item_id", help="Video or problem id.")
    parser.add_argument(
        "--undo",
        action="store_true",
        help="Clear the flag instead of setting it.",
    )
    add_user_argument(parser)
    add_common_arguments(parser)
    return parser


def main(
    argv: Sequence[str] | None = None, *, console: Optional[Console] = None
) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    console = console or Console()

    user_id = resolve_user(args)
    if user_id is None:
        error_console().print(
            "[red]Error:[/red] --user is required to record progress."
        )
        return 2

    try:
        runtime = build_runtime(args)
    except SettingsError as exc:
        error_console().print(f"[red]Error:[/red] {exc}")
        return 2

    flag = not args.undo
    try:
        if args.kind == "video":
            asyncio.run(
                runtime.store.mark_video_completed(user_id, args.item_id, flag)
            )
            label = "completed" if flag else "not completed"
        else:
            asyncio.run(
                runtime.store.mark_problem_attempted(
                    user_id, args.item_id, flag
                )
            )
            label = "attempted" if flag else "not attempted"
    except PersistenceFailure as exc:
        runtime.logger.error(
            "Failed to update completion flag",
            extra={"kind": args.kind, "item_id": args.item_id},
        )
        error_console().print(f"[red]Error:[/red] {exc}")
        return 1
    finally:
        close_logger(runtime.logger)

    console.print(f"Marked {args.kind} [bold]{args.item_id}[/] as {label}.")
    return 0


if __name__ == "__main__":  # pragma: no cover - module CLI guard
    raise SystemExit(main())
