"""Assertion recorder handed to every test callback.

An :class:`Assert` is bound to exactly one running test. Each assertion
method evaluates its condition, builds an
:class:`~tally.domain.model.AssertionRecord` and hands it to the scheduler,
which stores it on the test and emits the ``log`` lifecycle event.
"""

from __future__ import annotations

import re
import traceback
from collections.abc import Callable
from pathlib import Path
from types import SimpleNamespace
from typing import TYPE_CHECKING, Any

from tally.domain.equality import equiv, loose_equal
from tally.domain.errors import AssertionOutsideTestError
from tally.domain.model import AssertionRecord, TestUnit

if TYPE_CHECKING:
    from tally.service_layer.scheduler import Scheduler

PACKAGE_DIR = str(Path(__file__).resolve().parents[1])

ExceptionMatcher = (
    type[BaseException]
    | tuple[type[BaseException], ...]
    | str
    | re.Pattern[str]
    | BaseException
    | Callable[[BaseException], bool]
)


def call_site() -> str | None:
    """Return ``"file:line"`` of the innermost frame outside this package."""
    for frame in reversed(traceback.extract_stack()):
        if not frame.filename.startswith(PACKAGE_DIR):
            return f"{frame.filename}:{frame.lineno}"
    return None  # pragma: no cover


def exception_matches(exc: BaseException, expected: ExceptionMatcher | None) -> bool:
    """Check a raised exception against a ``throws`` matcher.

    Args:
        exc: The exception raised by the block under test.
        expected: None (anything matches), an exception class or tuple of
            classes, a substring, a compiled pattern searched in ``str(exc)``,
            an exception instance (same type and args), or a predicate.

    Returns:
        bool: True if the matcher accepts the exception.

    Raises:
        TypeError: If ``expected`` is none of the supported matcher kinds.
    """
    if expected is None:
        return True
    if isinstance(expected, type) and issubclass(expected, BaseException):
        return isinstance(exc, expected)
    if isinstance(expected, tuple):
        return isinstance(exc, expected)
    if isinstance(expected, re.Pattern):
        return expected.search(str(exc)) is not None
    if isinstance(expected, str):
        return expected in str(exc)
    if isinstance(expected, BaseException):
        return equiv(exc, expected, strict=True)
    if callable(expected):
        return expected(exc) is True
    raise TypeError(f"Unsupported exception matcher: {expected!r}")


class Assert:
    """The assertion vocabulary, bound to one running test.

    Args:
        unit: The test this recorder belongs to.
        scheduler: The scheduler running ``unit``; receives every record.
    """

    def __init__(self, unit: TestUnit, scheduler: Scheduler) -> None:
        self._unit = unit
        self._scheduler = scheduler

    @property
    def environment(self) -> SimpleNamespace:
        """The test's private environment, shared with module setup/teardown."""
        return self._unit.environment

    @property
    def test_name(self) -> str:
        """Name of the bound test."""
        return self._unit.name

    # --- Bookkeeping ---

    def expect(self, amount: int | None = None) -> int | None:
        """Declare how many assertions the test will make.

        Called without an argument, returns the current declaration instead.
        """
        self._ensure_running()
        if amount is None:
            return self._unit.expected
        self._unit.expected = amount
        return amount

    def stop(self, increment: int = 1) -> None:
        """Suspend the test until a matching :meth:`start`."""
        self._scheduler.stop(increment, unit=self._unit)

    def start(self, decrement: int = 1) -> None:
        """Resume a test suspended by :meth:`stop`."""
        self._scheduler.start(decrement, unit=self._unit)

    def push_result(
        self,
        result: bool,
        actual: Any = None,
        expected: Any = None,
        message: str | None = None,
    ) -> bool:
        """Record an arbitrary assertion outcome.

        Returns:
            bool: ``result``, for convenience.
        """
        self._ensure_running()
        record = AssertionRecord(
            result=bool(result),
            actual=actual,
            expected=expected,
            message=message,
            source=None if result else call_site(),
        )
        self._scheduler.push_assertion(self._unit, record)
        return record.result

    # --- Vocabulary ---

    def ok(self, state: Any, message: str | None = None) -> bool:
        """Pass if ``state`` is truthy."""
        return self.push_result(bool(state), state, True, message)

    def equal(self, actual: Any, expected: Any, message: str | None = None) -> bool:
        """Pass if ``actual == expected`` (NaN equals NaN)."""
        return self.push_result(
            loose_equal(actual, expected), actual, expected, message
        )

    def not_equal(
        self, actual: Any, expected: Any, message: str | None = None
    ) -> bool:
        """Pass if :meth:`equal` would fail."""
        return self.push_result(
            not loose_equal(actual, expected), actual, expected, message
        )

    def deep_equal(
        self, actual: Any, expected: Any, message: str | None = None
    ) -> bool:
        """Pass if both values are structurally equal."""
        return self.push_result(equiv(actual, expected), actual, expected, message)

    def not_deep_equal(
        self, actual: Any, expected: Any, message: str | None = None
    ) -> bool:
        """Pass if :meth:`deep_equal` would fail."""
        return self.push_result(
            not equiv(actual, expected), actual, expected, message
        )

    def strict_equal(
        self, actual: Any, expected: Any, message: str | None = None
    ) -> bool:
        """Pass if both values are structurally equal with identical types."""
        return self.push_result(
            equiv(actual, expected, strict=True), actual, expected, message
        )

    def not_strict_equal(
        self, actual: Any, expected: Any, message: str | None = None
    ) -> bool:
        """Pass if :meth:`strict_equal` would fail."""
        return self.push_result(
            not equiv(actual, expected, strict=True), actual, expected, message
        )

    def throws(
        self,
        block: Callable[[], Any],
        expected: ExceptionMatcher | None = None,
        message: str | None = None,
    ) -> bool:
        """Pass if calling ``block`` raises an exception accepted by ``expected``.

        See :func:`exception_matches` for the supported matchers.
        """
        self._ensure_running()
        try:
            block()
        except Exception as exc:  # pylint: disable=broad-except
            return self.push_result(
                exception_matches(exc, expected), exc, expected, message
            )
        return self.push_result(False, None, expected, message)

    raises = throws

    def _ensure_running(self) -> None:
        if self._unit.completed:
            raise AssertionOutsideTestError(self._unit.name)
