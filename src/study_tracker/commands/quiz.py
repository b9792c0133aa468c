"""``study-tracker quiz``: Rich-rendered timed quiz session.

The console loop reads one command at a time while the controller's
countdown runs on the same event loop. Whichever finishes first wins: a
command is applied, or time expiry ends the session and the summary is
shown.
"""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Literal, Optional, Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..core.logging import close_logger
from ..errors import InvalidTransition
from ..models import Difficulty, QuizResult, QuizSession, SessionStatus
from ..progress import ProgressAggregator
from ..quiz import QuizSessionController, TimerFactory
from ..repository import load_questions
from ..settings import SettingsError, SettingsOverrides
from ._common import (
    Runtime,
    add_common_arguments,
    add_user_argument,
    build_runtime,
    error_console,
    resolve_user,
)

LineReader = Callable[[], Awaitable[str]]
ExitAction = Literal["completed", "abandoned"]


@dataclass(frozen=True)
class SessionCommand:
    """Normalized user command parsed from console input."""

    type: Literal["next", "quit", "select"]
    choice: str | None = None


def parse_session_command(raw: str | None) -> SessionCommand | None:
    """Parse raw user input into a structured command."""

    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return None
    lowered = text.lower()
    if lowered in {"n", "next", "submit", "s"}:
        return SessionCommand("next")
    if lowered in {"quit", "q", "exit"}:
        return SessionCommand("quit")
    if len(text) == 1 and text.isalpha():
        return SessionCommand("select", text.upper())
    return None


def format_time(seconds: int) -> str:
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes}:{secs:02d}"


async def run_quiz_session(
    controller: QuizSessionController,
    console: Console,
    read_line: LineReader,
    *,
    completed: asyncio.Event,
    show_explanations: bool = True,
) -> ExitAction:
    """Start ``controller`` and drive it from console commands.

    ``completed`` must be set by the controller's completion callback so
    time expiry can interrupt a pending read.
    """

    controller.start()
    while controller.status is SessionStatus.IN_PROGRESS:
        _render_question(console, controller.session)
        read_task = asyncio.ensure_future(read_line())
        expiry_task = asyncio.ensure_future(completed.wait())
        done, _ = await asyncio.wait(
            {read_task, expiry_task},
            return_when=asyncio.FIRST_COMPLETED,
        )
        expiry_task.cancel()
        if read_task not in done:
            read_task.cancel()
            console.print(
                "\n[bold yellow]Time is up.[/] "
                "[dim](press Enter if the prompt is still waiting)[/dim]"
            )
            break
        try:
            raw = read_task.result()
        except (EOFError, KeyboardInterrupt):
            console.print("\n[bold yellow]Session interrupted.[/]")
            controller.cancel()
            return "abandoned"
        command = parse_session_command(raw)
        if command is None:
            console.print("[red]Unrecognized command. Try again.[/]")
            continue
        if _apply_command(command, controller, console):
            return "abandoned"

    result = controller.result
    _render_summary(
        console,
        controller.session,
        result,
        show_explanations=show_explanations,
    )
    report = await controller.persisted()
    if report.notice:
        console.print(f"[bold yellow]{report.notice}[/]")
    elif not report.skipped:
        console.print("[dim]Results saved.[/dim]")
    return "completed"


def _apply_command(
    command: SessionCommand,
    controller: QuizSessionController,
    console: Console,
) -> bool:
    """Apply ``command``; return ``True`` when the session was abandoned."""

    try:
        if command.type == "select" and command.choice:
            if controller.select_answer(command.choice):
                console.print(f"Selected [bold]{command.choice}[/].")
            else:
                console.print(
                    "[red]'%s' is not a valid choice for this question.[/red]"
                    % command.choice,
                )
            return False
        if command.type == "next":
            if not controller.advance():
                console.print("[red]Select an answer first.[/red]")
            return False
        if command.type == "quit":
            controller.cancel()
            console.print("\n[bold yellow]Quiz abandoned. Nothing saved.[/]")
            return True
    except InvalidTransition:
        # The countdown finished between reading and applying the command.
        return False
    return False


def _render_question(console: Console, session: QuizSession) -> None:
    question = session.current
    header = Text.assemble(
        (f"Question {session.current_index + 1}", "bold cyan"),
        (f" / {session.total_questions}", "dim"),
        ("  ⏱ ", ""),
        (format_time(session.remaining_seconds), "bold"),
    )
    console.print()
    console.rule(header)
    console.print(Text(question.text, style="bold"))

    table = Table(show_header=False, box=box.SIMPLE, expand=True)
    table.add_column("Key", justify="center", style="cyan")
    table.add_column("Choice")
    for choice in question.options:
        selected = choice.label == session.tentative
        row_text = Text("• " if selected else "  ")
        row_text += Text(
            choice.text, style="bold green" if selected else ""
        )
        table.add_row(choice.label, row_text)
    console.print(table)

    keys = ", ".join(question.labels)
    action = "finish" if session.is_last else "next"
    console.print(
        Text(
            f"Commands: choices [{keys}], n ({action}), quit",
            style="dim",
        )
    )


def _render_summary(
    console: Console,
    session: QuizSession,
    result: QuizResult,
    *,
    show_explanations: bool,
) -> None:
    console.print()
    console.rule(Text("Quiz Results", style="bold magenta"))

    overview = Table(
        show_header=False,
        box=box.MINIMAL_DOUBLE_HEAD,
        expand=False,
    )
    overview.add_column("Metric", style="bold")
    overview.add_column("Value", justify="right")
    overview.add_row("Topic", session.topic)
    overview.add_row("Difficulty", session.difficulty.value)
    overview.add_row("Correct", f"{result.correct_count}/{result.total_count}")
    overview.add_row("Answered", str(result.answered_count))
    overview.add_row("Score", f"{result.score_percent}%")
    if result.completion_reason == "expired":
        overview.add_row("Ended", "time expired")
    console.print(overview)

    responses = Table(title="Responses", box=box.SIMPLE, expand=True)
    responses.add_column("#", justify="right")
    responses.add_column("Question", overflow="fold")
    responses.add_column("Your answer")
    responses.add_column("Correct answer")
    responses.add_column("Result", justify="center")
    for idx, (question, outcome) in enumerate(
        zip(session.questions, result.outcomes), start=1
    ):
        responses.add_row(
            str(idx),
            question.text,
            outcome.user_answer or "Not answered",
            question.correct_option_label,
            "✅" if outcome.correct else "❌",
        )
    console.print(responses)

    if not show_explanations:
        return
    for question, outcome in zip(session.questions, result.outcomes):
        if not question.explanation:
            continue
        console.print(
            Panel(
                question.explanation,
                title=f"Explanation: {question.id}",
                border_style="green" if outcome.correct else "red",
            )
        )


async def _read_stdin() -> str:
    return await asyncio.to_thread(input, "> ")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="study-tracker quiz",
        description="Take a timed multiple-choice quiz for a topic.",
    )
    parser.add_argument("topic", help="Topic id, e.g. sorting.")
    parser.add_argument(
        "difficulty",
        choices=[level.value for level in Difficulty],
    )
    parser.add_argument(
        "--time-limit",
        type=int,
        help="Countdown in seconds (defaults to quiz.time_limit_seconds).",
    )
    parser.add_argument(
        "--no-explanations",
        action="store_true",
        help="Hide explanations in the results.",
    )
    add_user_argument(parser)
    add_common_arguments(parser)
    return parser


async def _run(
    runtime: Runtime,
    *,
    topic: str,
    difficulty: Difficulty,
    user_id: Optional[str],
    console: Console,
    read_line: LineReader,
    timer_factory: Optional[TimerFactory],
    show_explanations: bool,
) -> int:
    questions = await load_questions(
        runtime.content, topic, difficulty, logger=runtime.logger
    )
    if not questions:
        console.print(
            Panel(
                f"There are no {difficulty.value} level questions available "
                f"for '{topic}' yet.",
                title="No Questions Available",
                border_style="yellow",
            )
        )
        return 1

    completed = asyncio.Event()
    controller = QuizSessionController.create(
        topic,
        difficulty,
        questions,
        runtime.settings.time_limit_seconds,
        user_id=user_id,
        store=runtime.store,
        timer_factory=timer_factory,
        on_complete=lambda _result: completed.set(),
        logger=runtime.logger.getChild("quiz"),
    )
    if user_id is None:
        console.print(
            "[dim]Not signed in: your score will not be saved.[/dim]"
        )
    action = await run_quiz_session(
        controller,
        console,
        read_line,
        completed=completed,
        show_explanations=show_explanations,
    )
    if action == "completed" and user_id is not None:
        aggregator = ProgressAggregator(
            runtime.content,
            runtime.store,
            cache_ttl=0,
            logger=runtime.logger.getChild("progress"),
        )
        progress = await aggregator.compute_topic_progress(topic, user_id)
        console.print(
            f"Topic [bold]{topic}[/] is now {progress.percentage}% complete."
        )
    return 0


def main(
    argv: Sequence[str] | None = None,
    *,
    console: Optional[Console] = None,
    read_line: Optional[LineReader] = None,
    timer_factory: Optional[TimerFactory] = None,
) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    console = console or Console()

    try:
        runtime = build_runtime(
            args,
            overrides=SettingsOverrides(time_limit_seconds=args.time_limit),
        )
    except SettingsError as exc:
        error_console().print(f"[red]Error:[/red] {exc}")
        return 2

    try:
        return asyncio.run(
            _run(
                runtime,
                topic=args.topic,
                difficulty=Difficulty.from_value(args.difficulty),
                user_id=resolve_user(args),
                console=console,
                read_line=read_line or _read_stdin,
                timer_factory=timer_factory,
                show_explanations=not args.no_explanations,
            )
        )
    finally:
        close_logger(runtime.logger)


if __name__ == "__main__":  # pragma: no cover - module CLI guard
    raise SystemExit(main())
