"""``study-tracker progress``: per-topic completion table."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Mapping, Sequence
from typing import Optional

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from ..core.logging import close_logger
from ..models import TopicProgress
from ..progress import ProgressAggregator
from ..settings import SettingsError, SettingsOverrides
from ._common import (
    add_common_arguments,
    add_user_argument,
    build_runtime,
    error_console,
    resolve_user,
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="study-tracker progress",
        description=(
            "Combine completed videos, attempted MCQs and attempted coding "
            "problems into a completion percentage per topic."
        ),
    )
    parser.add_argument(
        "--topic",
        dest="topics",
        action="append",
        help="Topic id to include (repeatable; defaults to configured list).",
    )
    add_user_argument(parser)
    add_common_arguments(parser)
    return parser


def render_progress(
    console: Console,
    progress: Mapping[str, TopicProgress],
    *,
    user_id: Optional[str],
) -> None:
    title = f"Progress for {user_id}" if user_id else "Progress (signed out)"
    table = Table(title=title, box=box.SIMPLE, expand=False)
    table.add_column("Topic")
    table.add_column("Done", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Complete", justify="right")

    warnings: list[str] = []
    for topic_id, item in progress.items():
        style = "green" if item.percentage == 100 else None
        table.add_row(
            topic_id,
            str(item.completed_items),
            str(item.total_items),
            Text(f"{item.percentage}%", style=style or ""),
        )
        warnings.extend(item.warnings)
    console.print(table)

    if user_id is None:
        console.print(
            "[dim]Pass --user to see your own completion.[/dim]"
        )
    for warning in warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")


async def collect_progress(
    aggregator: ProgressAggregator,
    topics: Sequence[str],
    user_id: Optional[str],
) -> dict[str, TopicProgress]:
    computed = await aggregator.compute_all_topics_progress(topics, user_id)
    return {topic: computed[topic] for topic in topics}


def main(
    argv: Sequence[str] | None = None, *, console: Optional[Console] = None
) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    console = console or Console()

    try:
        runtime = build_runtime(
            args, overrides=SettingsOverrides(topics=args.topics)
        )
    except SettingsError as exc:
        error_console().print(f"[red]Error:[/red] {exc}")
        return 2

    user_id = resolve_user(args)
    aggregator = ProgressAggregator(
        runtime.content,
        runtime.store,
        cache_ttl=runtime.settings.cache_ttl_seconds,
        logger=runtime.logger.getChild("progress"),
    )
    try:
        topics = list(runtime.settings.topics)
        progress = asyncio.run(collect_progress(aggregator, topics, user_id))
        render_progress(console, progress, user_id=user_id)
    finally:
        close_logger(runtime.logger)
    return 0


if __name__ == "__main__":  # pragma: no cover - module CLI guard
    raise SystemExit(main())
