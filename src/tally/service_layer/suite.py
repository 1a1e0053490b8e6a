"""The registration API, bound to one explicit run context.

A :class:`Suite` owns everything one run needs: its configuration, the event
bus, the module registry and the scheduler. There is no module-level default
suite; test files create one and register against it::

    suite = Suite("arithmetic")
    suite.module("addition")

    @suite.test("adds", 1)
    def _(assert_):
        assert_.equal(1 + 1, 2)

    report = suite.run()
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from tally.config import SuiteConfig, parse_selection
from tally.domain.errors import NoActiveTestError
from tally.domain.events import LifecycleEvent
from tally.domain.model import Lifecycle, ModuleContext, TestCallback
from tally.service_layer.eventbus import LifecycleEventBus
from tally.service_layer.registry import ModuleRegistry
from tally.service_layer.report import Report
from tally.service_layer.scheduler import RunState, Scheduler

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class Suite:
    """One run context exposing the test-author API.

    Args:
        title: Suite display name.
        clock: Monotonic time source in seconds, injectable for tests.
        **options: Initial configuration, as accepted by :meth:`configure`.
    """

    def __init__(
        self,
        title: str | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        **options: Any,
    ) -> None:
        if title is not None:
            options["title"] = title
        self.bus = LifecycleEventBus()
        self.scheduler = Scheduler(self.bus, SuiteConfig().updated(options), clock)
        self.registry = ModuleRegistry(self.scheduler)

    # --- Configuration ---

    @property
    def config(self) -> SuiteConfig:
        """Current configuration."""
        return self.scheduler.config

    @property
    def state(self) -> RunState:
        """Current phase of the run."""
        return self.scheduler.state

    def configure(
        self, options: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> SuiteConfig:
        """Update configuration options.

        Accepts snake_case names or their camelCase aliases
        (e.g. ``requireExpects``), as a mapping and/or keyword arguments.

        Raises:
            ConfigError: If an option is unknown or has an invalid value.
        """
        self.scheduler.config = self.config.updated({**(options or {}), **kwargs})
        logger.debug("Configuration is now %s", self.config)
        return self.config

    def apply_selection(self, params: Mapping[str, Any]) -> SuiteConfig:
        """Apply raw ``filter``/``module``/``testNumber`` parameters from a host."""
        return self.configure(parse_selection(params))

    # --- Registration ---

    def module(
        self, name: str, lifecycle: Lifecycle | Mapping[str, Any] | None = None
    ) -> ModuleContext:
        """Start a module; tests registered next belong to it."""
        return self.registry.register_module(name, lifecycle)

    def test(
        self,
        name: str,
        expected: int | TestCallback | None = None,
        callback: TestCallback | None = None,
    ) -> Any:
        """Register a test, directly or as a decorator.

        ``suite.test(name, callback)``, ``suite.test(name, 2, callback)`` and
        ``@suite.test(name)`` / ``@suite.test(name, 2)`` are all accepted.
        """
        return self._register(name, expected, callback, is_async=False)

    def async_test(
        self,
        name: str,
        expected: int | TestCallback | None = None,
        callback: TestCallback | None = None,
    ) -> Any:
        """Register a test that starts suspended and must call ``start()``."""
        return self._register(name, expected, callback, is_async=True)

    def _register(
        self,
        name: str,
        expected: int | TestCallback | None,
        callback: TestCallback | None,
        is_async: bool,
    ) -> Any:
        if callable(expected):
            if callback is not None:
                raise TypeError(f"Test {name!r} was given two callbacks")
            callback, count = expected, None
        else:
            count = expected

        def decorator(fn: F) -> F:
            self.registry.register_test(name, fn, count, is_async)
            return fn

        if callback is None:
            return decorator
        return decorator(callback)

    def on(
        self, event: LifecycleEvent | str, callback: Callable[..., None] | None = None
    ) -> Any:
        """Subscribe to a lifecycle event, directly or as a decorator."""

        def decorator(fn: F) -> F:
            self.bus.on(event, fn)
            return fn

        if callback is None:
            return decorator
        return decorator(callback)

    # --- Inside a running test ---

    def expect(self, amount: int | None = None) -> int | None:
        """Declare (or, without an argument, read) the running test's expected count.

        Raises:
            NoActiveTestError: If no test is running.
        """
        if (unit := self.scheduler.current) is None:
            raise NoActiveTestError("expect")
        if amount is not None:
            unit.expected = amount
        return unit.expected

    def stop(self, increment: int = 1) -> None:
        """Suspend the running test."""
        self.scheduler.stop(increment)

    def start(self, decrement: int = 1) -> None:
        """Resume the running test, or begin the run if it has not started."""
        self.scheduler.start(decrement)

    # --- Running ---

    def load(self) -> Report | None:
        """Signal that registration is complete; runs now if ``autorun`` is set."""
        if self.config.autorun:
            return self.run()
        logger.debug("Autorun disabled; waiting for start()")
        return None

    def run(self, wait: bool = True, timeout: float | None = None) -> Report:
        """Run the queued tests.

        Args:
            wait: Block until the run finishes, applying resumes posted from
                other threads and enforcing ``test_timeout``. With False,
                returns as soon as a test suspends.
            timeout: Maximum seconds to block when ``wait`` is True.

        Returns:
            Report: Snapshot of the run (final if it finished).
        """
        self.scheduler.run()
        if wait and self.state is not RunState.FINISHED:
            self.scheduler.wait(timeout)
        return self.report()

    def wait(self, timeout: float | None = None) -> Report:
        """Block until a started run finishes (see :meth:`Scheduler.wait`)."""
        self.scheduler.wait(timeout)
        return self.report()

    def report(self) -> Report:
        """Snapshot the current statistics and per-test results."""
        return Report.from_scheduler(self.scheduler)
