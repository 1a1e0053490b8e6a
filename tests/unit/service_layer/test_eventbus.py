"""Unit tests for the LifecycleEventBus"""

from functools import partial

import pytest

from tally.domain.errors import LifecycleCallbackError, UnknownLifecycleEventError
from tally.domain.events import LifecycleEvent, ModuleStartDetails
from tally.service_layer.eventbus import LifecycleEventBus

# pylint: disable=unused-argument


# --- Assert Helpers ---


def assert_log_message(records, message, level: str) -> None:
    """Assert that a log message is in the log records."""
    log_msgs = [rec.getMessage() for rec in records if rec.levelname == level]
    assert message in log_msgs


# --- Tests ---


def test_emits_to_callbacks_in_registration_order(caplog):
    """Callbacks run in the order they subscribed, with the payload."""
    calls = []
    bus = LifecycleEventBus()
    bus.on(LifecycleEvent.MODULE_START, lambda d: calls.append(("first", d.name)))
    bus.on("moduleStart", lambda d: calls.append(("second", d.name)))

    with caplog.at_level("DEBUG"):
        bus.emit(LifecycleEvent.MODULE_START, ModuleStartDetails("math"))

    assert calls == [("first", "math"), ("second", "math")]
    assert_log_message(caplog.records, "Emitting moduleStart to 2 callback(s)", "DEBUG")


def test_begin_takes_no_payload():
    """Events without a payload call the callback with no arguments."""
    calls = []
    bus = LifecycleEventBus()
    bus.on("begin", lambda: calls.append("begin"))
    bus.emit(LifecycleEvent.BEGIN)
    assert calls == ["begin"]


def test_emit_without_subscribers_is_a_noop():
    """Nothing happens for an event nobody listens to."""
    LifecycleEventBus().emit(LifecycleEvent.DONE, object())


def test_callbacks_are_isolated_per_event():
    """A callback only sees the event it subscribed to."""
    calls = []
    bus = LifecycleEventBus()
    bus.on("testStart", calls.append)
    bus.emit(LifecycleEvent.TEST_DONE, "payload")
    assert not calls
    assert bus.callbacks("testStart") == (calls.append,)
    assert bus.callbacks(LifecycleEvent.TEST_DONE) == ()


def test_unknown_event_raises_and_logs_error(caplog):
    """Subscribing to a name outside the fixed set is rejected."""
    bus = LifecycleEventBus()
    with caplog.at_level("ERROR"):
        with pytest.raises(UnknownLifecycleEventError, match="testFinished"):
            bus.on("testFinished", lambda d: None)
    assert_log_message(caplog.records, "Unknown lifecycle event testFinished", "ERROR")


def test_callback_exception_is_logged_and_escalated(caplog):
    """A failing callback aborts the emit with LifecycleCallbackError."""
    later = []

    def reporter(details):
        raise RuntimeError("boom")

    bus = LifecycleEventBus()
    bus.on("moduleStart", reporter)
    bus.on("moduleStart", later.append)

    with caplog.at_level("ERROR"):
        with pytest.raises(LifecycleCallbackError) as exc_info:
            bus.emit(LifecycleEvent.MODULE_START, ModuleStartDetails("m"))

    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert exc_info.value.callback_name == "reporter"
    assert not later
    assert_log_message(
        caplog.records, "Exception in moduleStart callback reporter", "ERROR"
    )


def test_callback_name_of_partial():
    """Partials are reported under the wrapped function's name."""

    def handler(prefix, details):
        raise ValueError(prefix)

    bus = LifecycleEventBus()
    bus.on("done", partial(handler, "x"))
    with pytest.raises(LifecycleCallbackError, match="handler"):
        bus.emit(LifecycleEvent.DONE, None)
