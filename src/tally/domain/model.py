"""Core data model: test units, module contexts and their bookkeeping."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Any

Hook = Callable[[SimpleNamespace], None]
# Receives the bound assertion recorder.
TestCallback = Callable[[Any], None]


@dataclass(frozen=True, slots=True)
class AssertionRecord:
    """The outcome of one evaluated expectation."""

    result: bool
    actual: Any = None
    expected: Any = None
    message: str | None = None
    source: str | None = None


@dataclass(frozen=True)
class Lifecycle:
    """Hooks and environment defaults shared by every test of a module.

    Each test gets a fresh :class:`~types.SimpleNamespace` built from
    ``environment``; ``setup`` and ``teardown`` receive that namespace.
    """

    setup: Hook | None = None
    teardown: Hook | None = None
    environment: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_value(cls, value: Lifecycle | Mapping[str, Any] | None) -> Lifecycle:
        """Build a lifecycle from an instance, a mapping, or None.

        Mapping keys other than ``setup`` and ``teardown`` become environment
        defaults.
        """
        if value is None:
            return cls()
        if isinstance(value, Lifecycle):
            return value
        extras = {k: v for k, v in value.items() if k not in ("setup", "teardown")}
        return cls(
            setup=value.get("setup"),
            teardown=value.get("teardown"),
            environment=extras,
        )


@dataclass(eq=False)
class ModuleContext:
    """A named group of tests with shared lifecycle hooks and aggregates."""

    name: str
    lifecycle: Lifecycle = field(default_factory=Lifecycle)
    tests: list[TestUnit] = field(default_factory=list)
    passed: int = 0
    failed: int = 0
    total: int = 0

    def fold(self, unit: TestUnit) -> None:
        """Add a completed unit's assertion counts to this module."""
        self.passed += unit.passed
        self.failed += unit.failures
        self.total += unit.assertion_count


@dataclass(eq=False)
class TestUnit:  # pylint: disable=too-many-instance-attributes
    """One queued test body plus its assertion bookkeeping."""

    __test__ = False  # not a pytest test class

    name: str
    callback: TestCallback
    module: ModuleContext | None = None
    expected: int | None = None
    is_async: bool = False
    number: int = 0
    assertions: list[AssertionRecord] = field(default_factory=list)
    suspend_count: int = 0
    started_at: float | None = None
    finished_at: float | None = None
    deadline: float | None = None
    body_skipped: bool = False
    timed_out: bool = False
    completed: bool = False
    environment: SimpleNamespace = field(default_factory=SimpleNamespace)

    @property
    def module_name(self) -> str | None:
        """Name of the owning module, if any."""
        return self.module.name if self.module else None

    @property
    def full_name(self) -> str:
        """``"<module>: <name>"``, the string matched by text filters."""
        return f"{self.module_name}: {self.name}" if self.module else self.name

    @property
    def assertion_count(self) -> int:
        """Number of recorded assertions."""
        return len(self.assertions)

    @property
    def failures(self) -> int:
        """Number of recorded assertions that failed."""
        return sum(1 for record in self.assertions if not record.result)

    @property
    def passed(self) -> int:
        """Number of recorded assertions that passed."""
        return self.assertion_count - self.failures

    @property
    def runtime_ms(self) -> int:
        """Elapsed wall time between start and completion, in milliseconds."""
        if self.started_at is None or self.finished_at is None:
            return 0
        return int(round((self.finished_at - self.started_at) * 1000))

    def record(self, record: AssertionRecord) -> None:
        """Append an assertion outcome."""
        self.assertions.append(record)


@dataclass(frozen=True, slots=True)
class TestResult:
    """Immutable per-test outcome kept after its unit has been folded."""

    __test__ = False  # not a pytest test class

    name: str
    module: str | None
    number: int
    passed: int
    failed: int
    total: int
    runtime_ms: int
    assertions: tuple[AssertionRecord, ...]
    body_skipped: bool = False

    @property
    def ok(self) -> bool:
        """True if no assertion of this test failed."""
        return self.failed == 0

    @classmethod
    def from_unit(cls, unit: TestUnit) -> TestResult:
        """Freeze a completed unit into a result record."""
        return cls(
            name=unit.name,
            module=unit.module_name,
            number=unit.number,
            passed=unit.passed,
            failed=unit.failures,
            total=unit.assertion_count,
            runtime_ms=unit.runtime_ms,
            assertions=tuple(unit.assertions),
            body_skipped=unit.body_skipped,
        )


@dataclass
class GlobalStats:
    """Assertion counts accumulated over a run."""

    passed: int = 0
    failed: int = 0
    total: int = 0
    runtime_ms: int = 0

    def fold(self, unit: TestUnit) -> None:
        """Add a completed unit's assertion counts."""
        self.passed += unit.passed
        self.failed += unit.failures
        self.total += unit.assertion_count
