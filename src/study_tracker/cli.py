"""``study-tracker`` entry point.

Built-in words (``help``, ``list``, ``version``) are answered here; every
other first word names a module under :mod:`study_tracker.commands` whose
``main(argv)`` receives the remaining arguments.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from importlib import import_module, metadata
from typing import Mapping, Optional, Sequence

from rich import box
from rich.console import Console
from rich.table import Table

PACKAGE_NAME = "study-tracker"


@dataclass(frozen=True)
class Subcommand:
    name: str
    summary: str
    interactive: bool = False

    @property
    def module(self) -> str:
        return f"study_tracker.commands.{self.name}"


SUBCOMMANDS: Mapping[str, Subcommand] = {
    command.name: command
    for command in (
        Subcommand("init", "Bootstrap the workspace and write tracker.toml."),
        Subcommand("progress", "Show completion percentages per topic."),
        Subcommand(
            "quiz",
            "Take a timed multiple-choice quiz for a topic.",
            interactive=True,
        ),
        Subcommand(
            "mark", "Mark a video completed or a coding problem attempted."
        ),
    )
}


def subcommand_table() -> Table:
    table = Table(
        title="Available commands",
        title_justify="left",
        box=box.SIMPLE,
        show_header=False,
    )
    table.add_column("Command", style="bold cyan", no_wrap=True)
    table.add_column("Summary")
    for command in SUBCOMMANDS.values():
        summary = command.summary
        if command.interactive:
            summary += " [dim](interactive)[/dim]"
        table.add_row(command.name, summary)
    return table


def show_usage(console: Console) -> None:
    console.print(f"Usage: {PACKAGE_NAME} <command> [args...]", markup=False)
    console.print(
        f"Run `{PACKAGE_NAME} help <command>` for the options of one command.",
        markup=False,
    )
    console.print(subcommand_table())


def installed_version() -> str:
    try:
        return metadata.version(PACKAGE_NAME)
    except metadata.PackageNotFoundError:
        return "unknown"


def run_subcommand(command: Subcommand, argv: Sequence[str]) -> int:
    """Call ``command``'s ``main`` and turn ``SystemExit`` into a code."""

    entry = import_module(command.module).main
    try:
        code = entry(list(argv))
    except SystemExit as exc:
        if exc.code is None or isinstance(exc.code, int):
            return exc.code or 0
        Console(stderr=True).print(str(exc.code), markup=False)
        return 1
    return code if isinstance(code, int) else 0


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    console: Optional[Console] = None,
) -> int:
    words = list(sys.argv[1:] if argv is None else argv)
    console = console or Console()
    errors = Console(stderr=True)

    if not words:
        show_usage(console)
        return 2
    name, rest = words[0], words[1:]

    if name in {"-h", "--help"} or (name == "help" and not rest):
        show_usage(console)
        return 0
    if name in {"version", "-V", "--version"}:
        console.print(installed_version(), markup=False)
        return 0
    if name == "list":
        console.print(subcommand_table())
        return 0

    target = rest[0] if name == "help" else name
    command = SUBCOMMANDS.get(target)
    if command is None:
        errors.print(f"Unknown command '{target}'.", markup=False)
        errors.print(subcommand_table())
        return 2
    if name == "help":
        return run_subcommand(command, ["--help"])
    return run_subcommand(command, rest)


if __name__ == "__main__":  # pragma: no cover - module CLI guard
    raise SystemExit(main())
