"""
Filters package -- Data Inclusion filter schema, URL codec and state controller.

Re-exports key entry points so callers can do::

    from filters import build_registry, decode, encode, FilterController
"""

from filters.catalog import (
    ALL_FILTERS,
    COMMUNE_FILTER_ID,
    FILTER_CATEGORIES,
    FILTER_MAP,
    PARAM_NAME_MAP,
    build_registry,
    get_filter_by_id,
    get_filter_by_param_name,
)
from filters.codec import FilterState, build_url, decode, encode, encode_pairs, sanitize
from filters.controller import ControllerClosedError, FilterController
from filters.schema import (
    Filter,
    FilterCategory,
    FilterCategoryId,
    FilterOption,
    FilterRegistry,
    FilterSchemaError,
    FilterType,
)
from filters.validation import ValidationResult, is_filter_default, validate
from filters.values import (
    BooleanValue,
    CategoricalValue,
    FilterValue,
    NumericValue,
    RangeValue,
)

__all__ = [
    "ALL_FILTERS",
    "COMMUNE_FILTER_ID",
    "FILTER_CATEGORIES",
    "FILTER_MAP",
    "PARAM_NAME_MAP",
    "build_registry",
    "get_filter_by_id",
    "get_filter_by_param_name",
    "FilterState",
    "build_url",
    "decode",
    "encode",
    "encode_pairs",
    "sanitize",
    "ControllerClosedError",
    "FilterController",
    "Filter",
    "FilterCategory",
    "FilterCategoryId",
    "FilterOption",
    "FilterRegistry",
    "FilterSchemaError",
    "FilterType",
    "ValidationResult",
    "is_filter_default",
    "validate",
    "BooleanValue",
    "CategoricalValue",
    "FilterValue",
    "NumericValue",
    "RangeValue",
]
