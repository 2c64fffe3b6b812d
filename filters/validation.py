"""Filter value validation.

``validate()`` is pure: it checks one candidate value against one filter
definition and never raises for bad input.  Rejections are logged at DEBUG
for development diagnostics only.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from filters.schema import Filter, FilterType
from filters.values import unwrap

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one filter value."""

    valid: bool
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.valid


_OK = ValidationResult(True)


def _fail(f: Filter, value, message: str) -> ValidationResult:
    logger.debug("invalid value for filter=%s value=%r: %s", f.id, value, message)
    return ValidationResult(False, message)


def validate(f: Filter, value) -> ValidationResult:
    """Validate ``value`` against the type-specific rules of ``f``.

    Args:
        f:     Filter definition.
        value: Raw value or tagged ``FilterValue``; ``None`` means
               "filter not applied" and is always valid.

    Returns:
        ``ValidationResult``; ``error`` is set when ``valid`` is False.
    """
    value = unwrap(value)
    if value is None:
        return _OK

    if f.type is FilterType.CATEGORICAL:
        if not isinstance(value, str) or not f.has_option(value):
            return _fail(f, value, f"Invalid option: {value}")
        return _OK

    if f.type is FilterType.NUMERIC:
        if isinstance(value, bool):
            return _fail(f, value, "Must be a number")
        try:
            num = float(value)
        except (TypeError, ValueError):
            return _fail(f, value, "Must be a number")
        if not math.isfinite(num):
            return _fail(f, value, "Must be a number")
        if f.min is not None and num < f.min:
            return _fail(f, value, f"Must be >= {f.min}")
        if f.max is not None and num > f.max:
            return _fail(f, value, f"Must be <= {f.max}")
        return _OK

    if f.type is FilterType.BOOLEAN:
        if not isinstance(value, bool):
            return _fail(f, value, "Must be true or false")
        return _OK

    # range: reserved type, no rules defined yet
    return _OK


def is_filter_default(f: Filter, value) -> bool:
    """True when ``value`` is unset or equal to the filter's default."""
    value = unwrap(value)
    if value is None:
        return True
    if f.default_value is None:
        return False
    if isinstance(value, bool) != isinstance(f.default_value, bool):
        return False
    return value == f.default_value
