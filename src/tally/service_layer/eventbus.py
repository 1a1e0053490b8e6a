"""Lifecycle event bus dispatching scheduler notifications to subscribers."""

import logging
from collections.abc import Callable
from typing import Any

from tally.domain.errors import LifecycleCallbackError, UnknownLifecycleEventError
from tally.domain.events import LifecycleEvent

logger = logging.getLogger(__name__)

# pylint: disable=too-few-public-methods


class LifecycleEventBus:
    """Named callback registries invoked synchronously by the scheduler.

    Every event of :class:`~tally.domain.events.LifecycleEvent` has its own
    ordered list of callbacks. Callbacks run in registration order, inside the
    scheduler's own call stack, with no queuing or delay.

    Note:
        A callback that raises is framework wiring gone wrong, not test
        content. The failure is logged and re-raised as
        :class:`~tally.domain.errors.LifecycleCallbackError`, which the
        scheduler never folds into a test result.
    """

    def __init__(self) -> None:
        self._callbacks: dict[LifecycleEvent, list[Callable[..., None]]] = {
            event: [] for event in LifecycleEvent
        }

    def on(self, event: LifecycleEvent | str, callback: Callable[..., None]) -> None:
        """Subscribe a callback to a lifecycle event.

        Args:
            event: The event, or its name (e.g. ``"testDone"``).
            callback: Called with the event payload (no argument for ``begin``).

        Raises:
            UnknownLifecycleEventError: If ``event`` is not a known event name.
        """
        self._callbacks[self._resolve(event)].append(callback)

    def emit(self, event: LifecycleEvent, *payload: Any) -> None:
        """Invoke every callback subscribed to ``event``.

        Args:
            event: The event to emit.
            *payload: Positional arguments passed to each callback.

        Raises:
            LifecycleCallbackError: If a callback raises.
        """
        callbacks = self._callbacks[event]
        logger.debug("Emitting %s to %d callback(s)", event.value, len(callbacks))
        for callback in list(callbacks):
            callback_name = self._get_callback_name(callback)
            try:
                callback(*payload)
            except Exception as exc:  # pylint: disable=broad-except
                logger.exception(
                    "Exception in %s callback %s", event.value, callback_name
                )
                raise LifecycleCallbackError(event.value, callback_name) from exc

    def callbacks(self, event: LifecycleEvent | str) -> tuple[Callable[..., None], ...]:
        """Return the callbacks currently subscribed to ``event``."""
        return tuple(self._callbacks[self._resolve(event)])

    @staticmethod
    def _resolve(event: LifecycleEvent | str) -> LifecycleEvent:
        try:
            return LifecycleEvent(event)
        except ValueError:
            logger.error("Unknown lifecycle event %s", event)
            raise UnknownLifecycleEventError(str(event)) from None

    @staticmethod
    def _get_callback_name(fn: Callable[..., None]) -> str:
        if hasattr(fn, "__name__"):
            return fn.__name__
        if hasattr(fn, "func") and hasattr(fn.func, "__name__"):
            return fn.func.__name__
        return repr(fn)
