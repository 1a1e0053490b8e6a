"""The run loop: drains the test queue one unit at a time.

The scheduler is a small cooperative state machine
(``IDLE -> RUNNING -> DRAINING -> FINISHED``). Exactly one test is in flight
at any moment. A test that suspends itself with ``stop()`` halts the loop and
control returns to whoever called :meth:`Scheduler.run`; the loop picks up
again from inside the ``start()`` call that brings the suspend counter back to
zero.

Resumes issued from another thread are never applied directly. They are
posted to a resume channel and applied on the scheduler's own thread by
:meth:`Scheduler.wait` or :meth:`Scheduler.drain_channel`, so the queue and the
statistics are only ever mutated by one thread.
"""

from __future__ import annotations

import copy
import logging
import queue
import threading
import time
import traceback
from collections.abc import Callable
from enum import Enum
from types import SimpleNamespace

from tally.config import SuiteConfig
from tally.domain.errors import (
    AssertionOutsideTestError,
    NoActiveTestError,
    OverResumeError,
    RunStateError,
    TallyError,
)
from tally.domain.events import (
    DoneDetails,
    LifecycleEvent,
    LogDetails,
    ModuleDoneDetails,
    ModuleStartDetails,
    TestDoneDetails,
    TestStartDetails,
)
from tally.domain.model import (
    AssertionRecord,
    GlobalStats,
    ModuleContext,
    TestResult,
    TestUnit,
)
from tally.service_layer.assertions import Assert
from tally.service_layer.eventbus import LifecycleEventBus

logger = logging.getLogger(__name__)


class RunState(Enum):
    """Phases of one run."""

    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    FINISHED = "finished"


class TestQueue:
    """FIFO of test units that may grow while it is being consumed.

    Units live in a plain list read through a separate cursor, so appending
    never disturbs the read position. Consumed slots are released.
    """

    __test__ = False  # not a pytest test class

    def __init__(self) -> None:
        self._buffer: list[TestUnit | None] = []
        self._cursor = 0

    def __len__(self) -> int:
        return len(self._buffer) - self._cursor

    def append(self, unit: TestUnit) -> None:
        """Add a unit at the tail."""
        self._buffer.append(unit)

    def pop(self) -> TestUnit | None:
        """Return the next unit, or None when the queue is exhausted."""
        if self._cursor >= len(self._buffer):
            return None
        unit = self._buffer[self._cursor]
        self._buffer[self._cursor] = None
        self._cursor += 1
        return unit


def is_selected(unit: TestUnit, config: SuiteConfig) -> bool:
    """Decide whether ``unit`` passes the configured selection criteria.

    A ``test_number`` selects exactly one test and overrides everything else.
    Otherwise ``module`` must match the unit's module name exactly and
    ``filter`` must occur in ``"<module>: <test>"`` (both case-insensitive);
    a filter starting with ``!`` selects the tests that do *not* match.
    """
    if config.test_number is not None:
        return unit.number == config.test_number
    if config.module and (
        unit.module_name is None or unit.module_name.lower() != config.module.lower()
    ):
        return False
    if not (text := config.filter):
        return True
    include = not text.startswith("!")
    if not include:
        text = text[1:]
    return (text.lower() in unit.full_name.lower()) == include


class Scheduler:  # pylint: disable=too-many-instance-attributes
    """Owns the test queue and advances it one test at a time.

    Args:
        bus: Receives every lifecycle notification.
        config: Suite settings; read again each time a decision needs them.
        clock: Monotonic time source in seconds, injectable for tests.
    """

    def __init__(
        self,
        bus: LifecycleEventBus,
        config: SuiteConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.bus = bus
        self.config = config or SuiteConfig()
        self.state = RunState.IDLE
        self.current: TestUnit | None = None
        self.stats = GlobalStats()
        self.results: list[TestResult] = []
        self._clock = clock
        self._queue = TestQueue()
        self._registered = 0
        self._active_module: ModuleContext | None = None
        self._started_at = 0.0
        self._advancing = False
        self._owner_thread = threading.get_ident()
        self._channel: queue.SimpleQueue[tuple[int, TestUnit | None]] = (
            queue.SimpleQueue()
        )

    # --- Queue ---

    @property
    def pending(self) -> int:
        """Number of queued units not yet taken by the run loop."""
        return len(self._queue)

    @property
    def is_suspended(self) -> bool:
        """True while the in-flight test waits for a resume."""
        return self.current is not None and self.current.suspend_count > 0

    def enqueue(self, unit: TestUnit) -> None:
        """Append a unit to the tail of the queue and number it.

        Safe to call while the run loop is draining the queue.

        Raises:
            RunStateError: If the run has already finished.
        """
        if self.state is RunState.FINISHED:
            raise RunStateError("register a test", self.state.value)
        self._registered += 1
        unit.number = self._registered
        self._queue.append(unit)
        logger.debug("Queued test #%d %s", unit.number, unit.full_name)

    # --- Run loop ---

    def run(self) -> None:
        """Start the run and advance until it finishes or a test suspends.

        Raises:
            RunStateError: If the run was already started.
            OverResumeError: If a test resumes more often than it suspended.
            LifecycleCallbackError: If a lifecycle callback fails.
        """
        if self.state is not RunState.IDLE:
            raise RunStateError("start a run", self.state.value)
        self._owner_thread = threading.get_ident()
        self.state = RunState.RUNNING
        self._started_at = self._clock()
        logger.info("Run started with %d queued test(s)", self.pending)
        self.bus.emit(LifecycleEvent.BEGIN)
        self._advance()

    def _advance(self) -> None:
        # Nested calls happen when a test resumes itself synchronously; the
        # outer loop will see the counter at zero and carry on.
        if self._advancing:
            return
        self._advancing = True
        try:
            while self.state is RunState.RUNNING:
                if (unit := self.current) is not None:
                    if unit.suspend_count > 0:
                        logger.debug(
                            "Test %s suspended (%d)", unit.name, unit.suspend_count
                        )
                        return
                    self._complete(unit)
                    continue
                if (unit := self._next_selected()) is None:
                    self._finish()
                    return
                self._execute(unit)
        finally:
            self._advancing = False

    def _next_selected(self) -> TestUnit | None:
        while (unit := self._queue.pop()) is not None:
            if is_selected(unit, self.config):
                return unit
            logger.debug(
                "Skipping test #%d %s (not selected)", unit.number, unit.full_name
            )
        return None

    def _execute(self, unit: TestUnit) -> None:
        self._enter_module(unit.module)
        self.current = unit
        unit.started_at = self._clock()
        defaults = unit.module.lifecycle.environment if unit.module else {}
        unit.environment = SimpleNamespace(**copy.deepcopy(dict(defaults)))
        if unit.is_async:
            self._suspend(unit, 1)

        setup_ok = self._run_hook(unit, "setup")
        self.bus.emit(
            LifecycleEvent.TEST_START, TestStartDetails(unit.name, unit.module_name)
        )
        if not setup_ok:
            unit.body_skipped = True
            unit.suspend_count = 0
            return
        self._invoke(unit)

    def _invoke(self, unit: TestUnit) -> None:
        assert_ = Assert(unit, self)
        if self.config.notrycatch:
            unit.callback(assert_)
            return
        try:
            unit.callback(assert_)
        except TallyError:
            raise
        except Exception as exc:  # pylint: disable=broad-except
            logger.debug("Test %s raised %r", unit.name, exc)
            self._push_failure(
                unit,
                f"Died on test #{unit.assertion_count + 1} {unit.name}: {exc}",
                exc,
            )
            unit.suspend_count = 0

    def _run_hook(self, unit: TestUnit, phase: str) -> bool:
        hook = getattr(unit.module.lifecycle, phase) if unit.module else None
        if hook is None:
            return True
        if self.config.notrycatch:
            hook(unit.environment)
            return True
        try:
            hook(unit.environment)
        except TallyError:
            raise
        except Exception as exc:  # pylint: disable=broad-except
            logger.debug("%s hook of %s raised %r", phase, unit.full_name, exc)
            self._push_failure(
                unit, f"{phase.capitalize()} failed on {unit.name}: {exc}", exc
            )
            return False
        return True

    def _complete(self, unit: TestUnit) -> None:
        self._run_hook(unit, "teardown")
        if not unit.body_skipped:
            self._reconcile_expectations(unit)
        unit.finished_at = self._clock()
        unit.completed = True
        self.current = None

        if unit.module is not None:
            unit.module.fold(unit)
        self.stats.fold(unit)
        result = TestResult.from_unit(unit)
        self.results.append(result)
        logger.debug(
            "Test #%d %s done: %d/%d passed",
            unit.number,
            unit.full_name,
            result.passed,
            result.total,
        )
        self.bus.emit(
            LifecycleEvent.TEST_DONE,
            TestDoneDetails(
                name=result.name,
                module=result.module,
                failed=result.failed,
                passed=result.passed,
                total=result.total,
                runtime_ms=result.runtime_ms,
            ),
        )

    def _reconcile_expectations(self, unit: TestUnit) -> None:
        count = unit.assertion_count
        if self.config.require_expects and unit.expected is None:
            self._push_failure(
                unit,
                "Expected number of assertions to be defined, "
                "but expect() was not called.",
            )
        elif unit.expected is not None and unit.expected != count:
            self._push_failure(
                unit, f"Expected {unit.expected} assertions, but {count} were run"
            )
        elif unit.expected is None and not count:
            self._push_failure(
                unit,
                "Expected at least one assertion, but none were run - "
                "call expect(0) to accept zero assertions.",
            )

    def _finish(self) -> None:
        self._leave_module()
        self.state = RunState.DRAINING
        self.stats.runtime_ms = int(round((self._clock() - self._started_at) * 1000))
        self.state = RunState.FINISHED
        logger.info(
            "Run finished: %d passed, %d failed, %d total in %d ms",
            self.stats.passed,
            self.stats.failed,
            self.stats.total,
            self.stats.runtime_ms,
        )
        self.bus.emit(
            LifecycleEvent.DONE,
            DoneDetails(
                failed=self.stats.failed,
                passed=self.stats.passed,
                total=self.stats.total,
                runtime=self.stats.runtime_ms,
            ),
        )

    # --- Module boundaries ---

    def _enter_module(self, module: ModuleContext | None) -> None:
        if module is self._active_module:
            return
        self._leave_module()
        if module is not None:
            self._active_module = module
            self.bus.emit(LifecycleEvent.MODULE_START, ModuleStartDetails(module.name))

    def _leave_module(self) -> None:
        if (module := self._active_module) is None:
            return
        self._active_module = None
        self.bus.emit(
            LifecycleEvent.MODULE_DONE,
            ModuleDoneDetails(
                name=module.name,
                failed=module.failed,
                passed=module.passed,
                total=module.total,
            ),
        )

    # --- Assertions ---

    def push_assertion(self, unit: TestUnit, record: AssertionRecord) -> None:
        """Store an assertion outcome on ``unit`` and emit ``log``.

        Raises:
            AssertionOutsideTestError: If ``unit`` is not the test in flight.
        """
        if unit is not self.current or unit.completed:
            raise AssertionOutsideTestError(unit.name)
        unit.record(record)
        if not record.result:
            logger.debug("Assertion failed in %s: %s", unit.full_name, record.message)
        self.bus.emit(
            LifecycleEvent.LOG,
            LogDetails(
                name=unit.name,
                module=unit.module_name,
                result=record.result,
                actual=record.actual,
                expected=record.expected,
                message=record.message,
                source=record.source,
            ),
        )

    def _push_failure(
        self, unit: TestUnit, message: str, exc: BaseException | None = None
    ) -> None:
        source = "".join(traceback.format_exception(exc)) if exc else None
        self.push_assertion(
            unit,
            AssertionRecord(result=False, actual=exc, message=message, source=source),
        )

    # --- Suspend / resume ---

    def stop(self, increment: int = 1, unit: TestUnit | None = None) -> None:
        """Suspend the in-flight test (or ``unit``) by ``increment``.

        Raises:
            NoActiveTestError: If no test is running.
            AssertionOutsideTestError: If ``unit`` has already completed.
            ValueError: If ``increment`` is not positive.
        """
        if increment < 1:
            raise ValueError(f"stop() increment must be positive, got {increment}")
        target = unit or self.current
        if target is None:
            raise NoActiveTestError("stop")
        if target.completed:
            raise AssertionOutsideTestError(target.name)
        self._suspend(target, increment)

    def _suspend(self, unit: TestUnit, increment: int) -> None:
        unit.suspend_count += increment
        if self.config.test_timeout is not None:
            unit.deadline = self._clock() + self.config.test_timeout

    def start(self, decrement: int = 1, unit: TestUnit | None = None) -> None:
        """Resume the in-flight test (or ``unit``) by ``decrement``.

        When called while the scheduler is idle (and not for a specific test)
        this begins the run instead. Calls from a foreign thread are queued on
        the resume channel and applied by :meth:`wait`; a queued call without
        ``unit`` is bound to the test in flight when it was posted. If that test
        times out before the call is applied, the call is dropped instead of
        resuming the next test.

        A same-thread call without ``unit`` always targets the current test.
        Resumes that may arrive after a timeout should go through the test's
        own :class:`~tally.service_layer.assertions.Assert`, which is bound to
        it.

        Raises:
            OverResumeError: If ``decrement`` exceeds the outstanding stops.
            ValueError: If ``decrement`` is not positive.
        """
        if decrement < 1:
            raise ValueError(f"start() decrement must be positive, got {decrement}")
        if threading.get_ident() != self._owner_thread:
            logger.debug("Posting start(%d) from a foreign thread", decrement)
            self._channel.put((decrement, unit or self.current))
            return
        self._resume(decrement, unit)

    def _resume(self, decrement: int, unit: TestUnit | None) -> None:
        if self.state is RunState.IDLE and unit is None:
            self.run()
            return
        if unit is not None and unit.timed_out:
            logger.warning("Ignoring start() for timed out test %r", unit.name)
            return
        target = unit or self.current
        outstanding = target.suspend_count if target and not target.completed else 0
        if target is None or decrement > outstanding:
            name = target.name if target else None
            logger.error("Over-resume on %s: %d > %d", name, decrement, outstanding)
            raise OverResumeError(name, decrement, outstanding)
        target.suspend_count -= decrement
        if target.suspend_count == 0:
            target.deadline = None
            self._advance()

    def drain_channel(self) -> None:
        """Apply every resume posted from foreign threads so far."""
        while True:
            try:
                decrement, unit = self._channel.get_nowait()
            except queue.Empty:
                return
            self._resume(decrement, unit)

    # --- Timeout policy ---

    def check_timeouts(self, now: float | None = None) -> None:
        """Fail the in-flight test if it has been suspended past its deadline."""
        unit = self.current
        if unit is None or unit.deadline is None or unit.suspend_count == 0:
            return
        if (now if now is not None else self._clock()) < unit.deadline:
            return
        logger.warning("Test %s timed out", unit.full_name)
        unit.suspend_count = 0
        unit.deadline = None
        unit.timed_out = True
        self._push_failure(
            unit, f"Test timed out after {self.config.test_timeout} seconds"
        )
        self._advance()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the run finishes, applying posted resumes as they arrive.

        Args:
            timeout: Maximum seconds to block; None waits indefinitely.

        Returns:
            bool: True if the run finished, False if ``timeout`` elapsed first.

        Raises:
            RunStateError: If the run was never started, neither directly nor by a
                start() posted from another thread.
        """
        # a start() posted from another thread may be what begins the run
        self.drain_channel()
        if self.state is RunState.IDLE:
            raise RunStateError("wait for a run", self.state.value)
        give_up_at = None if timeout is None else self._clock() + timeout
        while self.state is not RunState.FINISHED:
            self.check_timeouts()
            if self.state is RunState.FINISHED:
                break
            now = self._clock()
            if give_up_at is not None and now >= give_up_at:
                return False
            wakeups = [
                t
                for t in (give_up_at, self.current.deadline if self.current else None)
                if t is not None
            ]
            block = max(0.0, min(wakeups) - now) if wakeups else None
            try:
                decrement, unit = self._channel.get(timeout=block)
            except queue.Empty:
                continue
            self._resume(decrement, unit)
            self.drain_channel()
        return True

