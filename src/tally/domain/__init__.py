"""Domain layer for TALLY.

Contains the framework's value model: test units, module contexts, assertion
records, lifecycle event payloads, the equality engine and the error taxonomy.
Nothing here schedules or dispatches anything.

Dependency rule: do not import from `tally.service_layer` or `tally.entrypoints`.
"""
