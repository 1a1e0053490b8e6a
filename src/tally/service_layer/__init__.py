"""Service layer for TALLY.

Runs tests: the lifecycle event bus, the module registry, the assertion
recorder, the scheduler that drains the queue, and the :class:`Suite` facade
that binds them into one explicit run context.

Dependency rule: may import `tally.domain` and `tally.config`, but not
`tally.entrypoints`.
"""
