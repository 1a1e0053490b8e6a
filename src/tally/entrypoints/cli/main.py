"""TALLY CLI entry point.

Defines the top-level ``tally`` command (via Click-Extra): global logging
options live here, subcommands are registered at the bottom.

Currently available commands
- ``tally run``: load a suite from a Python file or module and run it.

Examples
    $ tally --version
    $ tally -v run suites/test_math.py --module arithmetic
"""

import logging
from pathlib import Path

import click
import click_extra as clickx
from platformdirs import user_log_dir

from tally import __version__
from tally.logging import configure_logging, log_startup

from .helpers.log_level_parser import parse_log_level
from .run import run as run_command

logger = logging.getLogger(__name__)


HELP = """TALLY command-line interface.

    Runs unit-test suites written against the TALLY framework core: tests are
    grouped in modules, executed one at a time (asynchronous tests included),
    and every assertion is tallied into a pass/fail summary.
    """


@clickx.extra_group(
    version=__version__,
    help=HELP,
    params=[
        clickx.ColorOption(show_envvar=True),
        clickx.TimerOption(show_envvar=True),
        clickx.ExtraVersionOption(),
    ],
)
@click.option(
    "--verbose",
    "-v",
    "verbose_count",
    count=True,
    help="Raise console verbosity above WARNING, once per repetition.",
    default=0,
)
@click.option(
    "--quiet",
    "-q",
    "quiet_count",
    count=True,
    help="Lower console verbosity below WARNING, once per repetition.",
    default=0,
)
@click.option(
    "--debug/--no-debug",
    is_flag=True,
    help="Debug console format: timestamps, logger names and source paths.",
    default=False,
)
@click.option(
    "--log-path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="File the flight recorder writes to.",
    default=Path(user_log_dir("tally", appauthor=False)) / "latest.log",
    envvar="TALLY_LOG_PATH",
    show_default=True,
    show_envvar=True,
)
@click.option(
    "--flight-recorder-capacity",
    type=int,
    default=2000,
    hidden=True,
    envvar="TALLY_FLIGHT_RECORDER_CAPACITY",
    show_envvar=True,
    help="Capacity of the flight recorder (in number of log records).",
)
@click.option(
    "--flight-recorder/--no-flight-recorder",
    "flight_recorder",
    is_flag=True,
    help=(
        "Keep the last N DEBUG records in memory and write them to --log-path "
        "when a WARNING or ERROR is logged (e.g. a test timing out), or on exit "
        "with --force-flush."
    ),
    default=True,
    show_envvar=True,
)
@click.option(
    "--force-flush/--no-force-flush",
    "force_flush",
    is_flag=True,
    help="Write the flight recorder buffer to --log-path on exit regardless.",
    default=False,
    show_default=True,
    show_envvar=True,
)
@click.option(
    "-L",
    "--logger-level",
    "logger_levels",
    multiple=True,
    callback=parse_log_level,
    help=(
        "Set the minimum level of specific loggers (NAME=LEVEL). Repeatable, "
        "or a comma/space list via TALLY_LOGGER_LEVELS."
    ),
    show_envvar=True,
)
@clickx.pass_context
def tally(  # pylint: disable=too-many-arguments, too-many-positional-arguments
    ctx: click.Context,
    verbose_count: int,
    quiet_count: int,
    debug: bool,
    log_path: Path,
    flight_recorder_capacity: int,
    flight_recorder: bool,
    force_flush: bool,
    logger_levels: dict[str, int],
) -> None:
    """TALLY command-line interface."""

    level = logging.WARNING - 10 * verbose_count + 10 * quiet_count
    level = max(logging.DEBUG, min(logging.CRITICAL, level))

    handlers = configure_logging(
        level=level,
        debug_mode=debug,
        color=ctx.color is not False,  # None or True => allow color
        log_path=log_path if flight_recorder else None,
        flight_capacity=flight_recorder_capacity,
        force_flush=force_flush,
        logger_levels=logger_levels,
    )
    log_startup(
        logger,
        app_version=__version__,
        level=level,
        handlers=handlers,
        log_path=log_path if flight_recorder else None,
        flight_capacity=flight_recorder_capacity if flight_recorder else None,
        logger_levels=logger_levels,
    )

    ctx.call_on_close(logging.shutdown)


tally.add_command(run_command)
