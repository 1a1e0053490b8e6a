"""Global pytest fixtures for TALLY."""

from __future__ import annotations

import logging

import pytest

from tally import Suite
from tests.helpers.clock import FakeClock
from tests.helpers.recorder import EventRecorder

# pylint: disable=redefined-outer-name


@pytest.fixture
def clock() -> FakeClock:
    """A manually advanced monotonic clock."""
    return FakeClock()


@pytest.fixture
def suite(clock: FakeClock) -> Suite:
    """A fresh suite on the fake clock."""
    return Suite("fixture suite", clock=clock)


@pytest.fixture
def events(suite: Suite) -> EventRecorder:
    """Records every lifecycle event of ``suite`` in emission order."""
    return EventRecorder.attach(suite)


@pytest.fixture(autouse=True)
def restore_logger_levels():
    """Undo per-logger levels set during a test (e.g. by the CLI)."""
    loggers = [logging.getLogger()] + [
        lg
        for lg in logging.root.manager.loggerDict.values()
        if isinstance(lg, logging.Logger)
    ]
    levels = {lg: lg.level for lg in loggers}
    yield
    for lg in logging.root.manager.loggerDict.values():
        if isinstance(lg, logging.Logger):
            lg.setLevel(levels.get(lg, logging.NOTSET))
    logging.getLogger().setLevel(levels[logging.getLogger()])
