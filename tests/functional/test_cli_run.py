"""Functional tests for `tally run`.

Each test writes a small suite file, runs it through the top-level `tally`
group with a CliRunner and checks the exit status and the summary written to
stderr.
"""

import re

from tally.entrypoints.cli.main import tally

# pylint: disable=unused-argument, redefined-outer-name

ARITHMETIC = """
    from tally import Suite

    suite = Suite("arithmetic")
    suite.module("addition")

    @suite.test("adds", 1)
    def _(assert_):
        assert_.equal(1 + 1, 2)

    @suite.test("carries")
    def _(assert_):
        assert_.equal(9 + 1, 10)

    suite.module("subtraction")

    @suite.test("subtracts")
    def _(assert_):
        assert_.equal(3 - 1, 2)
"""

BROKEN = """
    from tally import Suite

    suite = Suite("broken")
    suite.module("lists")

    @suite.test("compares", 2)
    def _(assert_):
        assert_.deep_equal([1, 2], [1, 2])
        assert_.deep_equal([1, 2, 3], [3, 2, 1], "order matters")
"""

ASYNC = """
    import threading

    from tally import Suite

    suite = Suite("async")

    @suite.async_test("callback")
    def _(assert_):
        def later():
            assert_.start()

        assert_.ok(True)
        threading.Timer(0.01, later).start()

    @suite.async_test("never resumes")
    def _(assert_):
        assert_.ok(True)
"""


def run(runner, *args, env=None):
    """Invoke `tally --no-flight-recorder run ...`."""
    return runner.invoke(tally, ["--no-flight-recorder", "run", *args], env=env)


def test_passing_suite_exits_zero(runner, write_suite):
    """A green suite exits 0 with a totals line."""
    path = write_suite("arith_suite.py", ARITHMETIC)
    result = run(runner, path)
    assert result.exit_code == 0, result.output
    assert "arithmetic: 3 of 3 assertions passed, 0 failed" in result.output


def test_failing_suite_exits_one(runner, write_suite):
    """Failing assertions are listed and the exit status is 1."""
    path = write_suite("broken_suite.py", BROKEN)
    result = run(runner, path)
    assert result.exit_code == 1
    assert "#1 lists: compares (1 of 2 failed)" in result.output
    assert "order matters" in result.output
    assert "expected: [3, 2, 1]" in result.output
    assert "broken: 1 of 2 assertions passed, 1 failed" in result.output


def test_module_option_selects_tests(runner, write_suite):
    """--module runs only one module."""
    path = write_suite("arith_suite.py", ARITHMETIC)
    result = run(runner, path, "--module", "SUBTRACTION")
    assert result.exit_code == 0
    assert "1 of 1 assertions passed" in result.output


def test_filter_and_test_number(runner, write_suite):
    """--filter matches names; --test-number picks one test."""
    path = write_suite("arith_suite.py", ARITHMETIC)

    filtered = run(runner, path, "--filter", "!carries")
    assert "2 of 2 assertions passed" in filtered.output

    numbered = run(runner, path, "--test-number", "2")
    assert "1 of 1 assertions passed" in numbered.output


def test_filter_from_environment(runner, write_suite):
    """TALLY_FILTER sets the filter when the option is absent."""
    path = write_suite("arith_suite.py", ARITHMETIC)
    result = run(runner, path, env={"TALLY_FILTER": "addition"})
    assert "2 of 2 assertions passed" in result.output


def test_timeout_fails_hanging_tests(runner, write_suite):
    """--timeout turns a test that never resumes into a failure."""
    path = write_suite("async_suite.py", ASYNC)
    result = run(runner, path, "--timeout", "0.2")
    assert result.exit_code == 1
    assert "#2 never resumes" in result.output
    assert "Test timed out after 0.2 seconds" in result.output
    assert re.search(r"async: 2 of 3 assertions passed, 1 failed", result.output)


def test_require_expects_option(runner, write_suite):
    """--require-expects fails tests without a declared count."""
    path = write_suite("arith_suite.py", ARITHMETIC)
    result = run(runner, path, "--require-expects")
    assert result.exit_code == 1
    assert "expect() was not called" in result.output


def test_named_suite_attribute(runner, write_suite):
    """FILE:ATTR loads a suite stored under another name."""
    path = write_suite(
        "named_suite.py",
        """
        from tally import Suite

        checks = Suite("named")
        checks.test("one", lambda assert_: assert_.ok(True))
        """,
    )
    result = run(runner, f"{path}:checks")
    assert result.exit_code == 0
    assert "named: 1 of 1 assertions passed" in result.output


def test_missing_target_is_a_usage_error(runner, fs):
    """An unknown file is reported as a bad parameter."""
    result = run(runner, "nowhere.py")
    assert result.exit_code == 2
    assert "No such file" in result.output


def test_framework_error_aborts_the_run(runner, write_suite):
    """Misusing the framework ends the command with an error message."""
    path = write_suite(
        "misuse_suite.py",
        """
        from tally import Suite

        suite = Suite("misuse")

        @suite.test("resumes twice")
        def _(assert_):
            assert_.ok(True)
            assert_.start()
        """,
    )
    result = run(runner, path)
    assert result.exit_code == 1
    assert "Called start() with decrement 1" in result.output
