"""Lifecycle events and the payloads passed to their callbacks."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class LifecycleEvent(str, Enum):
    """The fixed set of lifecycle notification points."""

    BEGIN = "begin"
    DONE = "done"
    LOG = "log"
    MODULE_START = "moduleStart"
    MODULE_DONE = "moduleDone"
    TEST_START = "testStart"
    TEST_DONE = "testDone"


@dataclass(frozen=True, slots=True)
class ModuleStartDetails:
    """Payload of ``moduleStart``."""

    name: str


@dataclass(frozen=True, slots=True)
class ModuleDoneDetails:
    """Payload of ``moduleDone``."""

    name: str
    failed: int
    passed: int
    total: int


@dataclass(frozen=True, slots=True)
class TestStartDetails:
    """Payload of ``testStart``."""

    __test__ = False  # not a pytest test class

    name: str
    module: str | None


@dataclass(frozen=True, slots=True)
class TestDoneDetails:
    """Payload of ``testDone``."""

    __test__ = False  # not a pytest test class

    name: str
    module: str | None
    failed: int
    passed: int
    total: int
    runtime_ms: int


@dataclass(frozen=True, slots=True)
class LogDetails:  # pylint: disable=too-many-instance-attributes
    """Payload of ``log``: one assertion record plus the test it belongs to."""

    name: str
    module: str | None
    result: bool
    actual: Any
    expected: Any
    message: str | None
    source: str | None


@dataclass(frozen=True, slots=True)
class DoneDetails:
    """Payload of ``done``; ``runtime`` is in milliseconds."""

    failed: int
    passed: int
    total: int
    runtime: int
