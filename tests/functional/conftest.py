"""Default marks and fixtures for tests under `tests/functional/`."""

import textwrap
from pathlib import Path

import pytest
from click.testing import CliRunner

# pylint: disable=unused-argument, redefined-outer-name

FUNCTIONAL_ROOT = Path(__file__).parent.resolve()
MARKER_NAME = "functional"


@pytest.hookimpl(tryfirst=True)
def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Add default `functional` marks to items in `tests/functional/`."""
    for item in items:
        path = item.path.resolve()  # pytest>=8: pathlib.Path
        if FUNCTIONAL_ROOT in path.parents:
            if not any(marker.name == MARKER_NAME for marker in item.iter_markers()):
                item.add_marker(pytest.mark.functional)


@pytest.fixture
def runner():
    """Return a Click CliRunner for invoking CLI commands in tests."""
    return CliRunner()


@pytest.fixture
def fs(runner):
    """Provide an isolated filesystem context for tests using CliRunner."""
    with runner.isolated_filesystem():
        yield


@pytest.fixture
def write_suite(fs):
    """Write a suite file into the isolated filesystem and return its name."""

    def write(name: str, source: str) -> str:
        Path(name).write_text(textwrap.dedent(source), encoding="utf-8")
        return name

    return write
