"""CLI entrypoint for task-conductor."""

import logging
from collections.abc import Callable
from pathlib import Path

import rich_click as click

from task_conductor import __version__
from task_conductor.controllers import (
    SUPPORTED_STYLES,
    ChannelAdmissionCommand,
    ChannelKeyCommand,
    ConductorCliController,
    DemoCommand,
)

click.rich_click.USE_MARKDOWN = True
CONDUCTOR_CONTROLLER = ConductorCliController()


@click.group()
@click.version_option(version=__version__, prog_name="task-conductor")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging verbosity.",
)
def task_conductor(log_level: str) -> None:
    """Run tasks concurrently in forked workers under a wait-time budget."""

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s [%(process)d] %(message)s",
    )


def _demo_options(command):
    options = (
        click.option(
            "--db-path",
            type=click.Path(path_type=Path),
            default=None,
            help="Channel DB path.",
        ),
        click.option(
            "--style",
            type=click.Choice(SUPPORTED_STYLES),
            default="fork",
            show_default=True,
            help="Concurrency style: forked workers or inline execution.",
        ),
        click.option(
            "--max-workers",
            type=click.IntRange(min=1, max=10),
            default=None,
            help="Maximum concurrent workers (fork style only).",
        ),
        click.option(
            "--wait-limit",
            "wait_limit_seconds",
            type=click.FloatRange(min=0),
            default=None,
            help="Total wait-time budget in seconds.",
        ),
        click.option(
            "--poll-interval",
            "poll_interval_seconds",
            type=click.FloatRange(min=0, min_open=True),
            default=None,
            help="Sleep between completion polls in seconds.",
        ),
        click.option(
            "--sleep-window",
            "sleep_windows",
            multiple=True,
            help="Window as NAME=SECONDS. Can be repeated; defaults to four sample windows.",
        ),
    )
    for option in reversed(options):
        command = option(command)
    return command


@task_conductor.command("demo")
@_demo_options
def demo(  # noqa: PLR0913
    db_path: Path | None,
    style: str,
    max_workers: int | None,
    wait_limit_seconds: float | None,
    poll_interval_seconds: float | None,
    sleep_windows: tuple[str, ...],
) -> None:
    """Sleep through several windows at once and report how long it took."""

    _run_demo(
        CONDUCTOR_CONTROLLER.run_demo,
        _demo_command(
            db_path,
            style,
            max_workers,
            wait_limit_seconds,
            poll_interval_seconds,
            sleep_windows,
        ),
    )


@task_conductor.command("demo-filter")
@_demo_options
def demo_filter(  # noqa: PLR0913
    db_path: Path | None,
    style: str,
    max_workers: int | None,
    wait_limit_seconds: float | None,
    poll_interval_seconds: float | None,
    sleep_windows: tuple[str, ...],
) -> None:
    """Keep windows larger than any judged before them.

    Judges compare against a shared value without locking, so the **fork** style
    can keep a different set of windows on every run.
    """

    _run_demo(
        CONDUCTOR_CONTROLLER.run_filter_demo,
        _demo_command(
            db_path,
            style,
            max_workers,
            wait_limit_seconds,
            poll_interval_seconds,
            sleep_windows,
        ),
    )


@task_conductor.group()
def channel() -> None:
    """Shared channel inspection commands."""


@channel.command("get")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="Channel DB path.")
@click.argument("key")
def channel_get(db_path: Path | None, key: str) -> None:
    """Show the live value stored under KEY."""

    _emit_lines(CONDUCTOR_CONTROLLER.channel_get(ChannelKeyCommand(db_path=db_path, key=key)))


@channel.command("clear")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="Channel DB path.")
@click.argument("key")
def channel_clear(db_path: Path | None, key: str) -> None:
    """Flush the value stored under KEY."""

    _emit_lines(CONDUCTOR_CONTROLLER.channel_clear(ChannelKeyCommand(db_path=db_path, key=key)))


@channel.command("reset-admission")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="Channel DB path.")
def channel_reset_admission(db_path: Path | None) -> None:
    """Zero the running-worker counter left behind by a crashed run."""

    _emit_lines(
        CONDUCTOR_CONTROLLER.reset_admission(ChannelAdmissionCommand(db_path=db_path)),
    )


def _demo_command(  # noqa: PLR0913
    db_path: Path | None,
    style: str,
    max_workers: int | None,
    wait_limit_seconds: float | None,
    poll_interval_seconds: float | None,
    sleep_windows: tuple[str, ...],
) -> DemoCommand:
    return DemoCommand(
        db_path=db_path,
        style=style,
        sleep_windows=tuple(_parse_window(value) for value in sleep_windows),
        max_workers=max_workers,
        wait_limit_seconds=wait_limit_seconds,
        poll_interval_seconds=poll_interval_seconds,
    )


def _run_demo(run: Callable[[DemoCommand], list[str]], command: DemoCommand) -> None:
    try:
        lines = run(command)
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


def _parse_window(value: str) -> tuple[str, float]:
    name, separator, seconds = value.rpartition("=")
    if not separator or not name.strip():
        raise click.BadParameter(
            f"Invalid sleep window {value!r}. Expected format NAME=SECONDS.",
            param_hint="--sleep-window",
        )
    try:
        return name.strip(), float(seconds)
    except ValueError as error:
        raise click.BadParameter(
            f"Invalid seconds in sleep window {value!r}.",
            param_hint="--sleep-window",
        ) from error


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    task_conductor()
