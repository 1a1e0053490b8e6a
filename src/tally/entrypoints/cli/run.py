"""``tally run``: load a suite, run it and summarize the outcome.

Behavior
- The target file (or module) is imported; importing it registers its tests
  on a module-level :class:`~tally.Suite`. The command then configures and
  runs that suite, blocking until every asynchronous test has resumed or
  timed out.
- Selection and policy options override what the suite configured itself.
- A summary goes to **stderr**; the exit status is 1 if any assertion failed.

Failure modes
- Unloadable target → ``BadParameter``.
- Invalid configuration, over-resume or a failing lifecycle callback →
  ``ClickException`` (exit status 1).
"""

from __future__ import annotations

import logging
from typing import Any

import click

from tally.domain.errors import TallyError
from tally.service_layer.report import Report

from .helpers.messages import detail, failure, success
from .helpers.suite_loader import load_suite

logger = logging.getLogger(__name__)


def summarize(report: Report) -> None:
    """Write failing tests with their failing assertions, then a totals line."""
    for result in report.failed_results():
        label = f"{result.module}: {result.name}" if result.module else result.name
        failure(f"#{result.number} {label} ({result.failed} of {result.total} failed)")
        for record in result.assertions:
            if record.result:
                continue
            detail(record.message or "failed")
            if record.expected is not None or record.actual is not None:
                detail(f"  expected: {record.expected!r}")
                detail(f"  actual:   {record.actual!r}")

    stats = report.stats
    line = (
        f"{report.title}: {stats.passed} of {stats.total} assertions passed, "
        f"{stats.failed} failed ({stats.runtime_ms} ms)"
    )
    if report.ok:
        success(line)
    else:
        failure(line)


@click.command("run")
@click.argument("target")
@click.option(
    "--filter",
    "filter_",
    help="Run tests whose '<module>: <test>' name contains TEXT (! excludes).",
    envvar="TALLY_FILTER",
    show_envvar=True,
)
@click.option(
    "--module",
    help="Run only the tests of this module (case-insensitive exact match).",
    envvar="TALLY_MODULE",
    show_envvar=True,
)
@click.option(
    "--test-number",
    type=click.IntRange(min=1),
    help="Run only the Nth registered test (1-based).",
    envvar="TALLY_TEST_NUMBER",
    show_envvar=True,
)
@click.option(
    "--timeout",
    "test_timeout",
    type=click.FloatRange(min=0, min_open=True),
    help="Fail a suspended test after this many seconds.",
    envvar="TALLY_TEST_TIMEOUT",
    show_envvar=True,
)
@click.option(
    "--require-expects/--no-require-expects",
    default=None,
    help="Fail tests that never call expect().",
)
@click.option(
    "--notrycatch",
    is_flag=True,
    help="Let exceptions from tests propagate (for debugging).",
)
@click.pass_context
def run(  # pylint: disable=too-many-arguments, too-many-positional-arguments
    ctx: click.Context,
    target: str,
    filter_: str | None,
    module: str | None,
    test_number: int | None,
    test_timeout: float | None,
    require_expects: bool | None,
    notrycatch: bool,
) -> None:
    """Run the suite defined in TARGET (FILE.py[:ATTR] or MODULE[:ATTR])."""
    suite = load_suite(target)
    overrides: dict[str, Any] = {
        "filter": filter_,
        "module": module,
        "test_number": test_number,
        "test_timeout": test_timeout,
        "require_expects": require_expects,
        "notrycatch": notrycatch or None,
    }
    try:
        suite.configure({k: v for k, v in overrides.items() if v is not None})
        report = suite.run()
    except TallyError as e:
        logger.error("Run aborted: %s", e)
        raise click.ClickException(str(e)) from e

    summarize(report)
    if not report.ok:
        ctx.exit(1)
