"""Configuration utilities for TALLY.

This module centralizes the suite configuration value and the helpers that
turn loosely-typed option mappings (keyword arguments, raw selection
parameters supplied by a host) into validated settings.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, fields, replace
from typing import Any

from tally.domain.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "tally"  # pragma: no mutate

# Option names accepted in their camelCase spelling as well.
OPTION_ALIASES = {
    "requireExpects": "require_expects",
    "hidepassed": "hide_passed",
    "hidePassed": "hide_passed",
    "testNumber": "test_number",
    "testTimeout": "test_timeout",
}

# Raw selection parameter name -> option name.
SELECTION_PARAMETERS = {
    "filter": "filter",
    "module": "module",
    "testNumber": "test_number",
    "testnumber": "test_number",
}


@dataclass(frozen=True)
class SuiteConfig:  # pylint: disable=too-many-instance-attributes
    """Suite-wide settings for one run.

    Attributes:
        title: Suite display name.
        require_expects: Fail tests that never declare ``expect()``.
        hide_passed: Leave passing tests' assertion detail out of reports.
        autorun: Start the run as soon as the suite is loaded.
        reverse: Report results in reverse order.
        filter: Case-insensitive substring of ``"<module>: <test>"``; a leading
            ``!`` excludes matches instead.
        module: Case-insensitive exact module name to run.
        test_number: 1-based registration index of the single test to run.
        test_timeout: Seconds a suspended test may wait before it is failed.
        notrycatch: Let exceptions from test callbacks propagate to the caller.
    """

    title: str = DEFAULT_TITLE
    require_expects: bool = False
    hide_passed: bool = False
    autorun: bool = True
    reverse: bool = False
    filter: str | None = None
    module: str | None = None
    test_number: int | None = None
    test_timeout: float | None = None
    notrycatch: bool = False

    def updated(self, options: Mapping[str, Any]) -> SuiteConfig:
        """Return a copy with ``options`` applied.

        Raises:
            ConfigError: If an option is unknown or has an invalid value.
        """
        return replace(self, **coerce_options(options))


_FIELD_NAMES = frozenset(f.name for f in fields(SuiteConfig))
_BOOLEAN_OPTIONS = frozenset(
    {"require_expects", "hide_passed", "autorun", "reverse", "notrycatch"}
)


def coerce_options(options: Mapping[str, Any]) -> dict[str, Any]:
    """Normalize option names and validate their values.

    Args:
        options: Option names (snake_case or their camelCase aliases) to values.

    Returns:
        dict[str, Any]: Options keyed by :class:`SuiteConfig` field name.

    Raises:
        ConfigError: If an option is unknown or has an invalid value.
    """
    coerced: dict[str, Any] = {}
    for raw_name, value in options.items():
        name = OPTION_ALIASES.get(raw_name, raw_name)
        if name not in _FIELD_NAMES:
            raise ConfigError(f"Unknown configuration option {raw_name!r}")
        if name in _BOOLEAN_OPTIONS and not isinstance(value, bool):
            raise ConfigError(f"Option {raw_name!r} must be a boolean, got {value!r}")
        if name == "test_number":
            value = _parse_test_number(value)
        elif name == "test_timeout":
            value = _parse_timeout(value)
        elif name in ("filter", "module"):
            value = value or None
        coerced[name] = value
    return coerced


def parse_selection(params: Mapping[str, str | Sequence[str]]) -> dict[str, Any]:
    """Interpret raw key/value selection parameters supplied by a host.

    Recognizes ``filter`` (substring), ``module`` (exact module name) and
    ``testNumber`` (1-based index). Unrelated keys and empty values are
    ignored; for repeated keys (e.g. from ``urllib.parse.parse_qs``) the first
    value wins.

    Args:
        params: Raw parameter mapping.

    Returns:
        dict[str, Any]: Validated selection options for :meth:`SuiteConfig.updated`.

    Raises:
        ConfigError: If ``testNumber`` is not a positive integer.
    """
    selection: dict[str, Any] = {}
    for key, raw in params.items():
        if (name := SELECTION_PARAMETERS.get(key)) is None:
            continue
        value = raw if isinstance(raw, str) else next(iter(raw), "")
        if not (value := value.strip()):
            continue
        selection[name] = value
    logger.debug("Selection parameters: %s", selection)
    return coerce_options(selection)


def _parse_test_number(value: Any) -> int | None:
    if value is None:
        return None
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"testNumber must be an integer, got {value!r}") from e
    if isinstance(value, bool) or number < 1:
        raise ConfigError(f"testNumber must be a positive integer, got {value!r}")
    return number


def _parse_timeout(value: Any) -> float | None:
    if value is None:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"testTimeout must be a number, got {value!r}") from e
    if isinstance(value, bool) or seconds <= 0:
        raise ConfigError(f"testTimeout must be positive, got {value!r}")
    return seconds
