"""Framework-level error definitions.

Assertion failures are not exceptions: they are recorded on the running test.
The errors below signal misuse of the framework or faults in its wiring and are
always escalated to whoever drives the run.
"""

# ============================================================================
#                           General framework errors
# ============================================================================


class TallyError(Exception):
    """Base class for framework errors."""


class ConfigError(TallyError, ValueError):
    """Raised when suite configuration or selection parameters are invalid."""


class RunStateError(TallyError):
    """Raised when an operation is not valid in the scheduler's current state."""

    def __init__(self, operation: str, state: str) -> None:
        super().__init__(f"Cannot {operation} while the run is {state}.")
        self.operation = operation
        self.state = state


# ============================================================================
#                        Suspend / resume errors
# ============================================================================


class OverResumeError(TallyError):
    """Raised when a resume arrives while no suspension is outstanding."""

    def __init__(self, test_name: str | None, decrement: int, outstanding: int) -> None:
        where = f"test {test_name!r}" if test_name else "the run"
        super().__init__(
            f"Called start() with decrement {decrement} on {where}, "
            f"but only {outstanding} stop() call(s) were outstanding."
        )
        self.test_name = test_name
        self.decrement = decrement
        self.outstanding = outstanding


# ============================================================================
#                        Assertion context errors
# ============================================================================


class NoActiveTestError(TallyError):
    """Raised when a test-scoped operation is used while no test is running."""

    def __init__(self, operation: str) -> None:
        super().__init__(f"{operation}() was called while no test was running.")
        self.operation = operation


class AssertionOutsideTestError(TallyError):
    """Raised when an assertion targets a test that has already completed."""

    def __init__(self, test_name: str) -> None:
        super().__init__(
            f"Assertion made on test {test_name!r} after it had already completed."
        )
        self.test_name = test_name


# ============================================================================
#                        Lifecycle event errors
# ============================================================================


class UnknownLifecycleEventError(TallyError, LookupError):
    """Raised when subscribing to an event name outside the fixed set."""

    def __init__(self, event_name: str) -> None:
        super().__init__(f"Unknown lifecycle event {event_name!r}")
        self.event_name = event_name


class LifecycleCallbackError(TallyError):
    """Raised when a lifecycle callback fails; fatal to the run."""

    def __init__(self, event_name: str, callback_name: str) -> None:
        super().__init__(
            f"Lifecycle callback {callback_name} failed while handling {event_name!r}"
        )
        self.event_name = event_name
        self.callback_name = callback_name
