"""Parsing of ``NAME=LEVEL`` logger-level options.

Values may be given repeatedly or as a single comma/space separated string
(as when read from an environment variable). Each item is split into a logger
name and a standard level name and validated.
"""

import logging
import re

import click

# The event bus logs every dispatch at DEBUG; keep it out of -vv output.
DEFAULT_LOGGER_LEVELS = {"tally.service_layer.eventbus": logging.INFO}


def split_items(value: str | list[str] | tuple[str, ...]) -> list[str]:
    """Flatten option values into non-empty ``NAME=LEVEL`` items.

    Args:
        value: One string or a sequence of strings, each possibly holding
            several comma/space separated items.

    Returns:
        list[str]: The individual items.
    """
    chunks = [value] if isinstance(value, str) else list(value)
    return [item for chunk in chunks for item in re.split(r"[,\s]+", chunk) if item]


def parse_log_level(
    ctx: click.Context,  # pylint: disable=unused-argument
    param: click.Parameter | None,  # pylint: disable=unused-argument
    value: str | list[str] | tuple[str, ...],
) -> dict[str, int]:
    """Click callback turning ``NAME=LEVEL`` items into a name->level dict.

    The result starts from :data:`DEFAULT_LOGGER_LEVELS`; later items win.

    Raises:
        click.BadParameter: If an item is not ``NAME=LEVEL`` or names an
            unknown level.
    """
    levels = dict(DEFAULT_LOGGER_LEVELS)
    for item in split_items(value):
        name, sep, level_name = item.partition("=")
        if not sep or not name.strip():
            raise click.BadParameter(f"Expected NAME=LEVEL, got {item!r}")
        level = logging.getLevelName(level_name.strip().upper())
        if not isinstance(level, int):
            raise click.BadParameter(f"Invalid log level: {level_name}")
        levels[name.strip()] = level
    return levels
