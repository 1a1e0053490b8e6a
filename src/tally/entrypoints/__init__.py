"""Entrypoints (inbound adapters) for TALLY.

Expose the framework to the outside world: currently the ``tally`` command
line. Parse and validate inputs, drive a :class:`~tally.Suite`, and present
the outcome.

Dependency rule: may import `tally.service_layer` and `tally.config`.
"""
