"""End-to-end CLI tests for the top-level `tally` command.

These tests exercise logging, verbosity flags, logger-level overrides, debug
formatting, and the in-memory flight-recorder by invoking the `log-demo`
command under various CLI flags.
"""

import re
from pathlib import Path

from tally.entrypoints.cli.main import tally

# pylint: disable=unused-argument


def assert_in_output(pattern: str, output: str) -> None:
    """Assert that a regex pattern is found in the output string."""
    if not re.search(pattern, output, re.MULTILINE):
        raise AssertionError(f"Pattern '{pattern}' not found in output:\n{output}")


def assert_not_in_output(pattern: str, output: str) -> None:
    """Assert that a regex pattern is NOT found in the output string."""
    if re.search(pattern, output, re.MULTILINE):
        raise AssertionError(f"Pattern '{pattern}' found in output:\n{output}")


def test_default_shows_warning(registered_log_demo, runner, fs):
    """Default invocation shows WARNING and above but not INFO."""
    result = runner.invoke(tally, ["log-demo"])
    assert result.exit_code == 0
    assert_in_output("WARNING", result.output)
    assert_not_in_output("INFO", result.output)


def test_verbose_shows_info(registered_log_demo, runner, fs):
    """Single -v should enable INFO-level console output (but not DEBUG)."""
    result = runner.invoke(tally, ["-v", "log-demo"])
    assert result.exit_code == 0
    assert_in_output("INFO", result.output)
    assert_not_in_output("DEBUG", result.output)


def test_vv_shows_debug(registered_log_demo, runner, fs):
    """-vv should enable DEBUG-level console output."""
    result = runner.invoke(tally, ["-vv", "log-demo"])
    assert result.exit_code == 0
    assert_in_output("DEBUG", result.output)


def test_quiet_suppresses_warning(registered_log_demo, runner, fs):
    """-q should lower verbosity so WARNING is suppressed and ERROR remains."""
    result = runner.invoke(tally, ["-q", "log-demo"])
    assert result.exit_code == 0
    assert_in_output("ERROR", result.output)
    assert_not_in_output("WARNING", result.output)


def test_foreign_loggers_are_prefixed(registered_log_demo, runner, fs):
    """Records from outside the framework carry their top-level logger name."""
    result = runner.invoke(tally, ["log-demo"])
    assert result.exit_code == 0
    assert_in_output(r"\[some\] This is a warning-level third-party", result.output)
    assert_not_in_output(r"\[tally\]", result.output)


def test_logger_level_silences_debug(registered_log_demo, runner, fs):
    """Logger-level overrides should silence third-party DEBUG while keeping INFO+."""
    result = runner.invoke(tally, ["-vv", "-L", "some.thirdparty=INFO", "log-demo"])
    assert result.exit_code == 0
    assert_not_in_output(
        "This is a debug-level third-party test message.", result.output
    )
    assert_in_output("This is an info-level third-party test message.", result.output)


def test_bad_logger_level_is_a_usage_error(registered_log_demo, runner, fs):
    """Malformed -L values are rejected before any command runs."""
    result = runner.invoke(tally, ["-L", "some.thirdparty=LOUD", "log-demo"])
    assert result.exit_code == 2
    assert_in_output("Invalid log level: LOUD", result.output)


def test_debug_mode_shows_paths(registered_log_demo, runner, fs):
    """When --debug is set, log output includes file paths and line numbers."""
    result = runner.invoke(tally, ["--debug", "log-demo"])
    assert result.exit_code == 0
    assert_in_output(r"conftest\.py:\d+\b", result.output)


def test_debug_mode_is_off_by_default(registered_log_demo, runner, fs):
    """By default, file paths should not be included in log output."""
    result = runner.invoke(tally, ["log-demo"])
    assert result.exit_code == 0
    assert_not_in_output(r"conftest\.py:\d+\b", result.output)


def test_flight_recorder_flush_on_warning(registered_log_demo, runner, fs):
    """Flight recorder writes buffered DEBUG logs to disk when a WARNING occurs."""
    log_path = "flight_recorder.log"
    result = runner.invoke(
        tally, ["--log-path", log_path, "-L", "some.thirdparty=INFO", "log-demo"]
    )
    assert result.exit_code == 0
    with open(log_path, "r", encoding="utf-8") as f:
        content = f.read()
    assert_in_output("This is a debug-level test message.", content)
    assert_not_in_output("This is a debug-level third-party test message.", content)
    assert_in_output("This is an info-level third-party test message.", content)
    assert_in_output("This is a critical-level test message.", content)
    # buffered after the last WARNING, never flushed
    assert_not_in_output("This is a final debug-level test message.", content)


def test_flight_recorder_force_flush(registered_log_demo, runner, fs):
    """With --force-flush the final DEBUG buffer is written on exit."""
    log_path = "flight_recorder.log"
    result = runner.invoke(
        tally, ["--log-path", log_path, "--force-flush", "log-demo"]
    )
    assert result.exit_code == 0
    with open(log_path, "r", encoding="utf-8") as f:
        content = f.read()
    assert_in_output("This is a final debug-level test message.", content)


def test_flight_recorder_can_be_disabled(registered_log_demo, runner, fs):
    """Disabling the flight recorder should prevent writing the log file."""
    log_path = "flight_recorder.log"
    result = runner.invoke(
        tally, ["--log-path", log_path, "--no-flight-recorder", "log-demo"]
    )
    assert result.exit_code == 0
    assert not Path(log_path).exists()


def test_log_path_from_environment(registered_log_demo, runner, fs):
    """TALLY_LOG_PATH chooses the flight recorder file."""
    result = runner.invoke(
        tally, ["log-demo"], env={"TALLY_LOG_PATH": "logs/from_env.log"}
    )
    assert result.exit_code == 0
    assert Path("logs/from_env.log").exists()


def test_startup_logging(registered_log_demo, runner, fs):
    """Startup logging records the banner and environment diagnostics."""
    log_path = "startup.log"
    result = runner.invoke(
        tally,
        [
            "--log-path",
            log_path,
            "--force-flush",
            "-L",
            "some.thirdparty=INFO",
            "log-demo",
        ],
    )
    assert result.exit_code == 0
    with open(log_path, "r", encoding="utf-8") as f:
        content = f.read()
    assert_in_output(r"TALLY \d+\.\d+\.\d+", content)
    assert_in_output(r"console=WARNING", content)
    assert_in_output(r"flight-recorder=ON", content)
    assert_in_output(r"Python: \d+\.\d+\.\d+", content)
    assert_in_output(r"Platform: .+", content)
    assert_in_output(r"PID: \d+", content)
    assert_in_output(r"CWD: .+", content)
    assert_in_output(r"Click: \d+\.\d+", content)
    assert_in_output(r"Rich: \d+\.\d+\.\d+", content)
    assert_in_output(r"Handlers: .+", content)
    assert_in_output(r"Flight recorder: path=startup\.log, capacity=2000", content)
    assert_in_output(
        r"Per-logger overrides: {'tally.service_layer.eventbus': 'INFO', "
        r"'some.thirdparty': 'INFO'}",
        content,
    )
