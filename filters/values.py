"""
Tagged filter values.

Every value held in a filter state is one of four frozen variants, one per
``FilterType``.  URL strings are turned into variants by ``parse_param()``
and back into strings by ``to_param()``; application code never has to
re-inspect the Python type of a raw value downstream of the codec.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import ClassVar, Optional, Union

from filters.schema import Filter, FilterType


def format_number(value: float) -> str:
    """Render a number the way it should appear in a URL (``1`` not ``1.0``)."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


@dataclass(frozen=True)
class CategoricalValue:
    value: str
    kind: ClassVar[FilterType] = FilterType.CATEGORICAL

    def to_param(self) -> str:
        return self.value


@dataclass(frozen=True)
class NumericValue:
    value: float
    kind: ClassVar[FilterType] = FilterType.NUMERIC

    def to_param(self) -> str:
        return format_number(self.value)


@dataclass(frozen=True)
class BooleanValue:
    value: bool
    kind: ClassVar[FilterType] = FilterType.BOOLEAN

    def to_param(self) -> str:
        return "true" if self.value else "false"


@dataclass(frozen=True)
class RangeValue:
    value: str
    kind: ClassVar[FilterType] = FilterType.RANGE

    def to_param(self) -> str:
        return self.value


FilterValue = Union[CategoricalValue, NumericValue, BooleanValue, RangeValue]
TAGGED_TYPES = (CategoricalValue, NumericValue, BooleanValue, RangeValue)
RawValue = Union[str, int, float, bool, None]


def unwrap(value) -> RawValue:
    """Return the plain Python value behind a tagged value (or the value itself)."""
    if isinstance(value, TAGGED_TYPES):
        return value.value
    return value


def _to_float(value) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(num):
        return None
    return num


def parse_param(f: Filter, text: str) -> Optional[FilterValue]:
    """Coerce a URL parameter string to the tagged value for ``f``.

    Returns ``None`` when the string cannot represent a value of the
    filter's type (e.g. ``"abc"`` for a numeric filter).  Bounds and option
    membership are not checked here; that is the validator's job.
    """
    if f.type is FilterType.NUMERIC:
        num = _to_float(text.strip()) if text.strip() else None
        return None if num is None else NumericValue(num)
    if f.type is FilterType.BOOLEAN:
        return BooleanValue(text == "true")
    if f.type is FilterType.RANGE:
        return RangeValue(text)
    return CategoricalValue(text)


def coerce_value(f: Filter, value) -> Optional[FilterValue]:
    """Build the tagged value for ``f`` from a control's raw value.

    Tagged values of the right kind pass through; strings go through
    ``parse_param``; ``None`` and values of an incompatible type give ``None``.
    """
    if value is None:
        return None
    if isinstance(value, TAGGED_TYPES):
        return value if value.kind is f.type else None
    if isinstance(value, str):
        return parse_param(f, value)
    if f.type is FilterType.NUMERIC:
        num = _to_float(value)
        return None if num is None else NumericValue(num)
    if f.type is FilterType.BOOLEAN:
        return BooleanValue(value) if isinstance(value, bool) else None
    return None
