"""TALLY

A unit-testing framework core: register tests in modules, run them one at a
time with isolated state, record assertion outcomes, suspend and resume
asynchronous tests, and hand a structured report to whatever renders it.
"""

from tally.domain.model import Lifecycle
from tally.service_layer.suite import Suite

__all__ = ["Lifecycle", "Suite", "__version__"]
__version__ = "0.1.0"
