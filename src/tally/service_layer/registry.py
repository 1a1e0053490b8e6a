"""Module registry: groups registered tests under the active module."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from tally.domain.model import Lifecycle, ModuleContext, TestCallback, TestUnit

if TYPE_CHECKING:
    from tally.service_layer.scheduler import Scheduler

logger = logging.getLogger(__name__)


class ModuleRegistry:
    """Tracks the active module and feeds new tests to the scheduler queue.

    Re-registering a module name creates a fresh context with the new hooks.
    Tests already queued under the old context keep it (and its hooks); only
    tests registered afterwards attach to the new one.
    """

    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler
        self._modules: dict[str, ModuleContext] = {}
        self.current: ModuleContext | None = None

    @property
    def modules(self) -> tuple[ModuleContext, ...]:
        """The live context of every registered module name."""
        return tuple(self._modules.values())

    def register_module(
        self, name: str, lifecycle: Lifecycle | Mapping[str, Any] | None = None
    ) -> ModuleContext:
        """Create a module context and make it the target of new tests."""
        if name in self._modules:
            logger.debug("Module %r registered again; replacing its hooks", name)
        context = ModuleContext(name=name, lifecycle=Lifecycle.from_value(lifecycle))
        self._modules[name] = context
        self.current = context
        return context

    def register_test(
        self,
        name: str,
        callback: TestCallback,
        expected: int | None = None,
        is_async: bool = False,
    ) -> TestUnit:
        """Queue a test under the active module (if any).

        Raises:
            TypeError: If ``callback`` is not callable.
            ValueError: If ``expected`` is negative.
            RunStateError: If the run has already finished.
        """
        if not callable(callback):
            raise TypeError(f"Test {name!r} needs a callable, got {callback!r}")
        if expected is not None and expected < 0:
            raise ValueError(f"Test {name!r} cannot expect {expected} assertions")
        unit = TestUnit(
            name=name,
            callback=callback,
            module=self.current,
            expected=expected,
            is_async=is_async,
        )
        self._scheduler.enqueue(unit)
        if self.current is not None:
            self.current.tests.append(unit)
        return unit
