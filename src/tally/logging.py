"""Logging helpers used by the TALLY command line.

The framework modules only ever call ``logging.getLogger(__name__)``; this
module is where an entry point wires those loggers to output. It provides a
Rich console handler, an in-memory "flight recorder" that dumps buffered
records to a file when something goes wrong, and a filter that tags records
from code outside the framework (such as the suite under test) with a short
prefix.
"""

from __future__ import annotations

import logging
import os
import platform
import sys
from importlib.metadata import PackageNotFoundError, version
from logging.handlers import MemoryHandler
from pathlib import Path
from typing import TYPE_CHECKING, Literal, TypeAlias

from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from logging import Logger

# pylint: disable=too-few-public-methods

PROJECT_PREFIX = "tally"

ColorSystem: TypeAlias = Literal["auto", "standard", "256", "truecolor", "windows"]


class ForeignPrefixFilter(logging.Filter):
    """Tag records that do not come from the framework's own loggers.

    Sets ``record.prefix`` to the top-level logger name in brackets
    (``"suites.math"`` becomes ``"[suites]"``), or to an empty string for
    ``tally.*`` loggers. Never drops a record.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        top = record.name.split(".")[0]
        record.prefix = "" if top == PROJECT_PREFIX else f"[{top}]"
        return True


def config_console_handler(
    level: int = logging.INFO, debug_mode: bool = False, color: bool = True
) -> RichHandler:
    """Build the stderr console handler.

    Args:
        level: Minimum level shown (forced to DEBUG in ``debug_mode``).
        debug_mode: Show timestamps, logger names and source paths.
        color: Allow colored output.

    Returns:
        RichHandler: Handler ready to attach to the root logger.
    """
    color_system: ColorSystem | None = "auto" if color else None
    console = Console(color_system=color_system, stderr=True)

    if debug_mode:
        level = logging.DEBUG

    handler = RichHandler(
        level=level,
        console=console,
        rich_tracebacks=True,
        show_time=False,
        show_path=debug_mode,
        enable_link_path=debug_mode,
    )
    if debug_mode:
        handler.setFormatter(logging.Formatter("%(asctime)s %(name)s: %(message)s"))
    else:
        handler.setFormatter(logging.Formatter("%(prefix)s %(message)s"))
        handler.addFilter(ForeignPrefixFilter())
    return handler


def config_flight_recorder(
    path: Path,
    capacity: int = 2000,
    flush_level: int = logging.WARNING,
    flush_on_close: bool = False,
) -> MemoryHandler:
    """Build an in-memory buffer of DEBUG records backed by a log file.

    Up to ``capacity`` records are kept; the buffer is written to ``path``
    when a record at ``flush_level`` or above arrives, and on close when
    ``flush_on_close`` is set.

    Args:
        path: File the buffer is written to (truncated on open).
        capacity: Number of records to buffer.
        flush_level: Level that triggers a flush.
        flush_on_close: Flush on handler close as well.

    Returns:
        MemoryHandler: Handler whose target is a FileHandler on ``path``.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(
            "[%(asctime)s] [%(process)d:%(threadName)s] "
            "%(levelname)s %(name)s:%(lineno)d: %(message)s"
        )
    )
    return MemoryHandler(
        capacity=capacity,
        flushLevel=flush_level,
        target=file_handler,
        flushOnClose=flush_on_close,
    )


def configure_logging(  # pylint: disable=too-many-arguments
    *,
    level: int,
    debug_mode: bool = False,
    color: bool = True,
    log_path: Path | None = None,
    flight_capacity: int = 2000,
    force_flush: bool = False,
    logger_levels: dict[str, int] | None = None,
) -> list[logging.Handler]:
    """Attach the console handler (and optionally the flight recorder) to root.

    Args:
        level: Console verbosity.
        debug_mode: See :func:`config_console_handler`.
        color: Allow colored console output.
        log_path: Enables the flight recorder writing to this file when set.
        flight_capacity: Flight recorder buffer size.
        force_flush: Flush the flight recorder at shutdown even without errors.
        logger_levels: Per-logger minimum levels.

    Returns:
        list[logging.Handler]: The handlers now attached to the root logger.
    """
    handlers: list[logging.Handler] = [
        config_console_handler(level=level, debug_mode=debug_mode, color=color)
    ]
    if log_path is not None:
        handlers.append(
            config_flight_recorder(
                path=log_path, capacity=flight_capacity, flush_on_close=force_flush
            )
        )
    # root passes everything; each handler filters on its own level
    logging.basicConfig(level=logging.DEBUG, handlers=handlers, force=True)
    for name, lvl in (logger_levels or {}).items():
        logging.getLogger(name).setLevel(lvl)
    return handlers


def _distribution_version(name: str) -> str:
    try:
        return version(name)
    except PackageNotFoundError:  # pragma: no cover
        return "<not installed>"


def log_startup(  # pylint: disable=too-many-arguments
    logger: Logger,
    *,
    app_version: str,
    level: int,
    handlers: list[logging.Handler],
    log_path: Path | None,
    flight_capacity: int | None,
    logger_levels: dict[str, int],
) -> None:
    """Log a one-line banner at INFO and environment diagnostics at DEBUG.

    Args:
        logger: Logger used for the messages.
        app_version: TALLY version string.
        level: Effective console level.
        handlers: Handlers attached to the root logger.
        log_path: Flight recorder file, or None when it is disabled.
        flight_capacity: Flight recorder buffer size, or None when disabled.
        logger_levels: Per-logger level overrides.
    """
    logger.info(
        "TALLY %s (console=%s, flight-recorder=%s)",
        app_version,
        logging.getLevelName(level),
        "ON" if log_path else "OFF",
    )
    logger.debug("Python: %s", sys.version.split()[0])
    logger.debug("Platform: %s %s", platform.system(), platform.release())
    logger.debug("PID: %s", os.getpid())
    logger.debug("CWD: %s", Path.cwd())
    logger.debug("Click: %s", _distribution_version("click"))
    logger.debug("Rich: %s", _distribution_version("rich"))
    logger.debug("Handlers: %s", [type(h).__name__ for h in handlers])
    if log_path:
        logger.debug(
            "Flight recorder: path=%s, capacity=%s", log_path, flight_capacity
        )
    if logger_levels:
        logger.debug(
            "Per-logger overrides: %s",
            {name: logging.getLevelName(lvl) for name, lvl in logger_levels.items()},
        )
