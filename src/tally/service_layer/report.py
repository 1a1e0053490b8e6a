"""Structured run report handed to external renderers.

The report carries no presentation: it is the final statistics snapshot plus
the ordered per-test records, and a plain-data view of both
(:meth:`Report.to_dict`) for renderers that serialize.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from tally.domain.model import AssertionRecord, GlobalStats, TestResult
from tally.service_layer.scheduler import RunState, Scheduler


@dataclass(frozen=True)
class Report:
    """Snapshot of a run's outcome.

    Attributes:
        title: Suite display name.
        stats: Assertion counts and runtime; final once ``finished`` is True.
        results: Per-test records in execution order.
        finished: Whether the run has emitted ``done``.
        hide_passed: Drop assertion detail of passing tests in :meth:`to_dict`.
        reverse: Present results last-to-first.
    """

    title: str
    stats: GlobalStats
    results: tuple[TestResult, ...]
    finished: bool
    hide_passed: bool = False
    reverse: bool = False

    @classmethod
    def from_scheduler(cls, scheduler: Scheduler) -> Report:
        """Snapshot the scheduler's statistics and results."""
        config = scheduler.config
        return cls(
            title=config.title,
            stats=replace(scheduler.stats),
            results=tuple(scheduler.results),
            finished=scheduler.state is RunState.FINISHED,
            hide_passed=config.hide_passed,
            reverse=config.reverse,
        )

    @property
    def ok(self) -> bool:
        """True if the run finished without a single failed assertion."""
        return self.finished and self.stats.failed == 0

    def ordered_results(self) -> tuple[TestResult, ...]:
        """Results in presentation order (honours ``reverse``)."""
        return self.results[::-1] if self.reverse else self.results

    def failed_results(self) -> tuple[TestResult, ...]:
        """Results with at least one failed assertion, in presentation order."""
        return tuple(r for r in self.ordered_results() if not r.ok)

    def to_dict(self) -> dict[str, Any]:
        """Plain-data view; ``actual``/``expected`` values are rendered with repr."""
        return {
            "title": self.title,
            "finished": self.finished,
            "stats": {
                "passed": self.stats.passed,
                "failed": self.stats.failed,
                "total": self.stats.total,
                "runtime": self.stats.runtime_ms,
            },
            "tests": [self._result_to_dict(r) for r in self.ordered_results()],
        }

    def _result_to_dict(self, result: TestResult) -> dict[str, Any]:
        data: dict[str, Any] = {
            "number": result.number,
            "module": result.module,
            "name": result.name,
            "passed": result.passed,
            "failed": result.failed,
            "total": result.total,
            "runtime": result.runtime_ms,
        }
        if not (self.hide_passed and result.ok):
            data["assertions"] = [_record_to_dict(a) for a in result.assertions]
        return data


def _record_to_dict(record: AssertionRecord) -> dict[str, Any]:
    return {
        "result": record.result,
        "message": record.message,
        "actual": repr(record.actual),
        "expected": repr(record.expected),
        "source": record.source,
    }
