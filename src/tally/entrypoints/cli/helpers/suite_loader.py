"""Locate the :class:`~tally.Suite` a ``tally run`` target refers to.

A target is ``PATH[:ATTRIBUTE]`` or ``MODULE[:ATTRIBUTE]``: a Python file or
an importable dotted module name, optionally followed by the name of the
module-level suite object (``suite`` by default).
"""

import importlib
import importlib.util
import logging
import sys
from pathlib import Path
from types import ModuleType

import click

from tally.service_layer.suite import Suite

logger = logging.getLogger(__name__)

DEFAULT_ATTRIBUTE = "suite"


def split_target(target: str) -> tuple[str, str]:
    """Split ``"location:attribute"``; the attribute defaults to ``suite``.

    Only a trailing identifier counts as an attribute, so Windows drive
    letters (``C:\\suites\\x.py``) are left alone.
    """
    location, sep, attribute = target.rpartition(":")
    if sep and attribute.isidentifier() and location:
        return location, attribute
    return target, DEFAULT_ATTRIBUTE


def _import_file(path: Path) -> ModuleType:
    name = f"tally_suite_{path.stem}"
    spec = importlib.util.spec_from_file_location(name, path)
    if spec is None or spec.loader is None:
        raise click.BadParameter(f"Cannot import {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    spec.loader.exec_module(module)
    return module


def load_suite(target: str) -> Suite:
    """Import the target and return its suite object.

    Raises:
        click.BadParameter: If the target cannot be imported or does not name
            a :class:`~tally.Suite`.
    """
    location, attribute = split_target(target)
    path = Path(location)
    logger.debug("Loading suite %r from %s", attribute, location)
    if path.suffix == ".py" or path.is_file():
        if not path.is_file():
            raise click.BadParameter(f"No such file: {location}")
        module = _import_file(path)
    else:
        try:
            module = importlib.import_module(location)
        except ImportError as e:
            raise click.BadParameter(f"Cannot import {location!r}: {e}") from e

    suite = getattr(module, attribute, None)
    if not isinstance(suite, Suite):
        raise click.BadParameter(
            f"{location!r} has no Suite named {attribute!r} "
            f"(found {type(suite).__name__})"
        )
    return suite
