"""
Filter schema types and the filter registry.

A ``FilterRegistry`` is built from an ordered list of ``FilterCategory``
objects and exposes:

  - ``categories``   categories sorted by ``order``
  - ``filters``      flattened filters in category order
  - ``get()``        lookup by filter id (``None`` when unknown)
  - ``by_param()``   lookup by URL parameter name (``None`` when unknown)

All schema objects are frozen.  The only mutation a registry supports is
``update_options()``, which swaps a categorical filter's whole option tuple
for dynamically populated filters such as the commune selector.  Each
controller/session owns its own registry (see ``copy()``).
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Union


class FilterSchemaError(ValueError):
    """Raised when a filter catalog breaks a registry invariant."""


class FilterType(str, Enum):
    CATEGORICAL = "categorical"
    NUMERIC = "numeric"
    BOOLEAN = "boolean"
    RANGE = "range"


class FilterCategoryId(str, Enum):
    LOCATION = "location"
    SERVICE_TYPE = "service-type"
    QUALITY = "quality"
    COST = "cost"
    AUDIENCE = "audience"
    THEMES = "themes"
    ACCESS = "access"
    SOURCE = "source"
    OTHER = "other"


DefaultValue = Union[str, float, bool, None]


@dataclass(frozen=True)
class FilterOption:
    """One selectable choice of a categorical filter."""

    value: str
    label: str
    available: bool = True
    count: Optional[int] = None
    group: Optional[str] = None

    def to_dict(self) -> dict:
        d = {"value": self.value, "label": self.label, "available": self.available}
        if self.count is not None:
            d["count"] = self.count
        if self.group is not None:
            d["group"] = self.group
        return d


@dataclass(frozen=True)
class Filter:
    """A named, typed search constraint forwarded as one query parameter."""

    id: str
    label: str
    type: FilterType
    category: FilterCategoryId
    param_name: str
    required: bool = False
    default_value: DefaultValue = None
    description: Optional[str] = None
    options: Optional[tuple[FilterOption, ...]] = None
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None
    unit: Optional[str] = None

    def with_options(self, options: Iterable[FilterOption]) -> "Filter":
        return dataclasses.replace(self, options=tuple(options))

    def has_option(self, value: str) -> bool:
        return any(opt.value == value for opt in self.options or ())

    def option_label(self, value: str) -> Optional[str]:
        for opt in self.options or ():
            if opt.value == value:
                return opt.label
        return None

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "label": self.label,
            "type": self.type.value,
            "category": self.category.value,
            "paramName": self.param_name,
            "required": self.required,
            "defaultValue": self.default_value,
        }
        if self.description:
            d["description"] = self.description
        if self.options is not None:
            d["options"] = [opt.to_dict() for opt in self.options]
        for key in ("min", "max", "step", "unit"):
            value = getattr(self, key)
            if value is not None:
                d[key] = value
        return d


@dataclass(frozen=True)
class FilterCategory:
    """Display grouping of filters; ``order`` sets rendering sequence."""

    id: FilterCategoryId
    label: str
    order: int
    filters: tuple[Filter, ...]
    expanded: bool = True

    def to_dict(self) -> dict:
        return {
            "id": self.id.value,
            "label": self.label,
            "order": self.order,
            "expanded": self.expanded,
            "filters": [f.to_dict() for f in self.filters],
        }


def _check_filter(f: Filter) -> None:
    if f.type is FilterType.CATEGORICAL and f.options is None:
        raise FilterSchemaError(f"Categorical filter {f.id!r} has no options list")
    if f.type is FilterType.NUMERIC:
        if f.min is not None and f.max is not None and f.min > f.max:
            raise FilterSchemaError(
                f"Numeric filter {f.id!r}: min {f.min} exceeds max {f.max}"
            )
        if f.step is not None and f.step <= 0:
            raise FilterSchemaError(f"Numeric filter {f.id!r}: step must be > 0")


class FilterRegistry:
    """Ordered filter catalog with O(1) lookups by id and by param name."""

    def __init__(self, categories: Iterable[FilterCategory]) -> None:
        ordered = sorted(categories, key=lambda c: c.order)
        by_id: dict[str, Filter] = {}
        by_param: dict[str, Filter] = {}
        for category in ordered:
            for f in category.filters:
                _check_filter(f)
                if f.id in by_id:
                    raise FilterSchemaError(f"Duplicate filter id {f.id!r}")
                if f.param_name in by_param:
                    raise FilterSchemaError(
                        f"Duplicate parameter name {f.param_name!r}"
                    )
                by_id[f.id] = f
                by_param[f.param_name] = f
        self._categories: tuple[FilterCategory, ...] = tuple(ordered)
        self._by_id = by_id
        self._by_param = by_param

    @property
    def categories(self) -> tuple[FilterCategory, ...]:
        return self._categories

    @property
    def filters(self) -> tuple[Filter, ...]:
        return tuple(f for c in self._categories for f in c.filters)

    @property
    def param_names(self) -> frozenset[str]:
        return frozenset(self._by_param)

    def get(self, filter_id: str) -> Optional[Filter]:
        return self._by_id.get(filter_id)

    def by_param(self, param_name: str) -> Optional[Filter]:
        return self._by_param.get(param_name)

    def __contains__(self, filter_id: object) -> bool:
        return filter_id in self._by_id

    def __iter__(self):
        return iter(self.filters)

    def __len__(self) -> int:
        return len(self._by_id)

    def update_options(self, filter_id: str, options: Iterable[FilterOption]) -> Filter:
        """Replace a categorical filter's options wholesale.

        The new filter definition is built first and then swapped into the
        categories and both indices, so readers never observe a partially
        updated option list.

        Args:
            filter_id: Id of a registered categorical filter.
            options:   The complete new option set.

        Returns:
            The updated filter definition.

        Raises:
            KeyError: ``filter_id`` is not registered.
            FilterSchemaError: the filter is not categorical.
        """
        current = self._by_id.get(filter_id)
        if current is None:
            raise KeyError(filter_id)
        if current.type is not FilterType.CATEGORICAL:
            raise FilterSchemaError(
                f"Filter {filter_id!r} is {current.type.value}, not categorical"
            )
        updated = current.with_options(options)
        categories = tuple(
            dataclasses.replace(
                c,
                filters=tuple(updated if f.id == filter_id else f for f in c.filters),
            )
            if any(f.id == filter_id for f in c.filters) else c
            for c in self._categories
        )
        by_id = dict(self._by_id)
        by_id[filter_id] = updated
        by_param = dict(self._by_param)
        by_param[updated.param_name] = updated
        self._categories, self._by_id, self._by_param = categories, by_id, by_param
        return updated

    def copy(self) -> "FilterRegistry":
        return FilterRegistry(self._categories)

    def to_list(self) -> list[dict]:
        return [c.to_dict() for c in self._categories]
