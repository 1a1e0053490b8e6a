"""Structural equality used by the equality-family assertions.

Values are first sorted into a closed set of categories (:class:`Kind`) and
then compared with exactly one rule per category. Two values from different
categories are never equal.

Two modes are supported:

- **loose** (default): boxed primitives (e.g. ``IntEnum`` members or ``str``
  subclasses) compare by their underlying primitive value, numbers compare by
  value across numeric types, and ``-0.0 == 0.0``.
- **strict**: additionally requires ``type(a) is type(b)`` at every level and
  distinguishes ``-0.0`` from ``0.0``.

In both modes ``NaN`` equals ``NaN`` and cyclic structures are handled by
remembering the ``(id(a), id(b))`` pairs of containers still being compared:
meeting such a pair again closes a cycle and is assumed equal, since any
mismatch along the cycle is found on the first pass. Mapping keys are paired
by hash and then compared with the same rules as values.
"""

from __future__ import annotations

import cmath
import dataclasses
import datetime
import math
import numbers
import re
import types
from collections.abc import Callable, Mapping, Sequence, Set
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from typing import Any


class Kind(Enum):
    """Closed classification of values for comparison purposes."""

    NONE = "none"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    BYTES = "bytes"
    BOXED = "boxed"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    SET = "set"
    DATE = "date"
    PATTERN = "pattern"
    ERROR = "error"
    CALLABLE = "callable"
    OBJECT = "object"


_NUMBER_TYPES = (int, float, complex, Decimal, Fraction)
_CALLABLE_TYPES = (
    types.FunctionType,
    types.BuiltinFunctionType,
    types.MethodType,
    type,
)
_DATE_TYPES = (datetime.date, datetime.time, datetime.timedelta)

# Order matters: bool before int, bytes before the Sequence check.
_UNBOXERS: tuple[tuple[type, Callable[[Any], Any]], ...] = (
    (int, int.__int__),
    (float, float.__float__),
    (complex, lambda value: complex(value.real, value.imag)),
    (str, str.__str__),
    (bytes, bytes),
)

_CONTAINER_KINDS = frozenset(
    {Kind.SEQUENCE, Kind.MAPPING, Kind.SET, Kind.ERROR, Kind.OBJECT}
)

_MISSING = object()


def classify(value: Any) -> Kind:  # pylint: disable=too-many-return-statements
    """Return the comparison category of ``value``.

    Args:
        value: Any Python value.

    Returns:
        Kind: The category whose rule will be used to compare ``value``.
    """
    if value is None:
        return Kind.NONE
    cls = type(value)
    if cls is bool:
        return Kind.BOOLEAN
    if cls in _NUMBER_TYPES:
        return Kind.NUMBER
    if cls is str:
        return Kind.STRING
    if cls in (bytes, bytearray):
        return Kind.BYTES
    if isinstance(value, tuple(base for base, _ in _UNBOXERS)):
        return Kind.BOXED
    if isinstance(value, numbers.Number):
        return Kind.NUMBER
    if isinstance(value, _DATE_TYPES):
        return Kind.DATE
    if isinstance(value, re.Pattern):
        return Kind.PATTERN
    if isinstance(value, BaseException):
        return Kind.ERROR
    if isinstance(value, Mapping):
        return Kind.MAPPING
    if isinstance(value, Set):
        return Kind.SET
    if isinstance(value, Sequence):
        return Kind.SEQUENCE
    if isinstance(value, _CALLABLE_TYPES):
        return Kind.CALLABLE
    return Kind.OBJECT


def unbox(value: Any) -> Any:
    """Return the plain primitive wrapped by a boxed value.

    Values that are not boxed primitives are returned unchanged.
    """
    for base, convert in _UNBOXERS:
        if isinstance(value, base) and type(value) is not base:
            return convert(value)
    return value


def is_nan(value: Any) -> bool:
    """Return True if ``value`` is a NaN of any supported numeric type."""
    if isinstance(value, float):
        return math.isnan(value)
    if isinstance(value, complex):
        return cmath.isnan(value)
    if isinstance(value, Decimal):
        return value.is_nan()
    return False


def loose_equal(actual: Any, expected: Any) -> bool:
    """Shallow ``==`` comparison that also treats NaN as equal to NaN."""
    if is_nan(actual) and is_nan(expected):
        return True
    return bool(actual == expected)


def equiv(a: Any, b: Any, *, strict: bool = False) -> bool:
    """Deep, structural comparison of two values.

    Args:
        a: First value.
        b: Second value.
        strict: Require identical types at every level and distinguish
            ``-0.0`` from ``0.0``.

    Returns:
        bool: True if both values are structurally equal.
    """
    return _Comparison(strict=strict).compare(a, b)


def _attributes(obj: Any) -> dict[str, Any] | None:
    """Collect the comparable state of a plain object.

    Dataclasses contribute their ``compare=True`` fields. Other objects
    contribute ``vars()`` plus any slot values. Objects with neither a
    ``__dict__`` nor slots have no inspectable state and yield None.
    """
    if dataclasses.is_dataclass(obj):
        return {
            field.name: getattr(obj, field.name)
            for field in dataclasses.fields(obj)
            if field.compare
        }
    state: dict[str, Any] = {}
    has_state = hasattr(obj, "__dict__")
    if has_state:
        state.update(vars(obj))
    for cls in type(obj).__mro__:
        slots = cls.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for slot in slots:
            if slot in ("__dict__", "__weakref__"):
                continue
            has_state = True
            if hasattr(obj, slot):
                state[slot] = getattr(obj, slot)
    return state if has_state else None


class _Comparison:
    """One deep comparison, carrying the container pairs being compared.

    A pair is only remembered while its comparison is in progress, so meeting
    it again means a cycle. Pairs that have finished (equal or not) are
    forgotten and compared afresh when they turn up elsewhere.
    """

    def __init__(self, strict: bool) -> None:
        self.strict = strict
        self._in_progress: set[tuple[int, int]] = set()

    def compare(self, a: Any, b: Any) -> bool:
        """Compare two values, dispatching on their category."""
        if a is b:
            return True
        if self.strict and type(a) is not type(b):
            return False

        kind_a, kind_b = classify(a), classify(b)
        if not self.strict:
            if kind_a is Kind.BOXED:
                a = unbox(a)
                kind_a = classify(a)
            if kind_b is Kind.BOXED:
                b = unbox(b)
                kind_b = classify(b)
        if kind_a is not kind_b:
            return False

        rule = getattr(self, _RULES[kind_a])
        if kind_a not in _CONTAINER_KINDS:
            return rule(a, b)

        pair = (id(a), id(b))
        if pair in self._in_progress:
            return True
        self._in_progress.add(pair)
        try:
            return rule(a, b)
        finally:
            self._in_progress.discard(pair)

    # --- Rules ---

    def _equal_values(self, a: Any, b: Any) -> bool:
        return bool(a == b)

    def _equal_numbers(self, a: Any, b: Any) -> bool:
        if is_nan(a) or is_nan(b):
            return is_nan(a) and is_nan(b)
        if a != b:
            return False
        if self.strict and isinstance(a, float) and a == 0.0:
            return math.copysign(1.0, a) == math.copysign(1.0, b)
        return True

    def _equal_boxed(self, a: Any, b: Any) -> bool:
        return self.compare(unbox(a), unbox(b))

    def _equal_sequences(self, a: Sequence[Any], b: Sequence[Any]) -> bool:
        if len(a) != len(b):
            return False
        return all(self.compare(x, y) for x, y in zip(a, b))

    def _equal_mappings(self, a: Mapping[Any, Any], b: Mapping[Any, Any]) -> bool:
        if len(a) != len(b):
            return False
        # hash lookup pairs keys up; the pair must still pass our own rules
        keys_b = {key: key for key in b}
        claimed: set[int] = set()
        for key_a in a:
            key_b = keys_b.get(key_a, _MISSING)
            if key_b is _MISSING or id(key_b) in claimed:
                key_b = next(
                    (
                        k
                        for k in b
                        if id(k) not in claimed and self.compare(key_a, k)
                    ),
                    _MISSING,
                )
            if key_b is _MISSING or not self.compare(key_a, key_b):
                return False
            claimed.add(id(key_b))
            if not self.compare(a[key_a], b[key_b]):
                return False
        return True

    def _equal_sets(self, a: Set[Any], b: Set[Any]) -> bool:
        if len(a) != len(b):
            return False
        return self._covers(a, b) and self._covers(b, a)

    def _covers(self, source: Set[Any], target: Set[Any]) -> bool:
        for item in source:
            if not any(self.compare(item, other) for other in target):
                return False
        return True

    def _equal_patterns(self, a: re.Pattern, b: re.Pattern) -> bool:
        return a.pattern == b.pattern and a.flags == b.flags

    def _equal_errors(self, a: BaseException, b: BaseException) -> bool:
        return type(a) is type(b) and self.compare(a.args, b.args)

    def _equal_objects(self, a: Any, b: Any) -> bool:
        if type(a) is not type(b):
            return False
        if not dataclasses.is_dataclass(a) and type(a).__eq__ is not object.__eq__:
            return bool(a == b)
        state_a, state_b = _attributes(a), _attributes(b)
        if state_a is None or state_b is None:
            return bool(a == b)
        if state_a.keys() != state_b.keys():
            return False
        return all(self.compare(state_a[name], state_b[name]) for name in state_a)


_RULES: dict[Kind, str] = {
    Kind.NONE: "_equal_values",
    Kind.BOOLEAN: "_equal_values",
    Kind.NUMBER: "_equal_numbers",
    Kind.STRING: "_equal_values",
    Kind.BYTES: "_equal_values",
    Kind.BOXED: "_equal_boxed",
    Kind.SEQUENCE: "_equal_sequences",
    Kind.MAPPING: "_equal_mappings",
    Kind.SET: "_equal_sets",
    Kind.DATE: "_equal_values",
    Kind.PATTERN: "_equal_patterns",
    Kind.ERROR: "_equal_errors",
    Kind.CALLABLE: "_equal_values",
    Kind.OBJECT: "_equal_objects",
}
