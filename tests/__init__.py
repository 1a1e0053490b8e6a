"""TALLY test suite.

Folder taxonomy
- unit/         : Isolated, fast checks of a single module/class/function.
- functional/   : User-visible flows (whole suites, the CLI) at the boundary.
- e2e/          : The installed command line end to end (logging, flight recorder).
- helpers/      : Shared utilities (no tests here).

General guidance
- Keep unit tests deterministic: time comes from ``FakeClock``, never sleep
  unless a test is explicitly about cross-thread resumes.
- Functional tests assert user-observable results, not internals.
- Property-based tests live with the layer they exercise and use @pytest.mark.property.
- Suggested markers: unit, functional, property
"""
