"""
URL query string ⇄ filter state codec.

    decode(query, registry)  -> FilterState   (typed, validated, defaults kept)
    encode(state, registry)  -> str           (defaults elided, registry order)
    sanitize(query, registry)-> str           (untrusted input cleaned, strings kept)

Unknown parameters and invalid values are dropped, never raised.  They are
logged at DEBUG on this module's logger so they show up when the app runs
with ``APP_DEBUG=1``.

Round trip: for any state ``s`` holding valid, non-default values,
``decode(encode(s)) == s``; ``encode(decode(q))`` only keeps the recognised,
valid, non-default parameters of ``q``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Optional, Union
from urllib.parse import parse_qsl, urlencode

from filters.schema import FilterRegistry
from filters.validation import is_filter_default, validate
from filters.values import FilterValue, coerce_value, parse_param

logger = logging.getLogger(__name__)

FilterState = dict[str, FilterValue]
Query = Union[str, Mapping, Iterable[tuple[str, str]]]


def query_pairs(query: Optional[Query]) -> list[tuple[str, str]]:
    """Normalise any supported query representation to ``(name, value)`` pairs."""
    if query is None:
        return []
    if isinstance(query, str):
        return parse_qsl(query.lstrip("?"), keep_blank_values=True)
    multi_items = getattr(query, "multi_items", None)
    if callable(multi_items):
        return [(str(k), str(v)) for k, v in multi_items()]
    if isinstance(query, Mapping):
        return [(str(k), str(v)) for k, v in query.items()]
    return [(str(k), str(v)) for k, v in query]


def first_values(query: Optional[Query]) -> dict[str, str]:
    """Map each parameter name to its first value (later repeats ignored)."""
    values: dict[str, str] = {}
    for name, value in query_pairs(query):
        values.setdefault(name, value)
    return values


def decode(query: Optional[Query], registry: FilterRegistry) -> FilterState:
    """Build a typed filter state from a URL query."""
    params = first_values(query)
    for name in params:
        if registry.by_param(name) is None:
            logger.debug("unknown filter parameter: %s", name)

    state: FilterState = {}
    for f in registry.filters:
        raw = params.get(f.param_name)
        if raw is None:
            continue
        value = parse_param(f, raw)
        if value is None:
            logger.debug("unparseable value for %s: %r", f.param_name, raw)
            continue
        if validate(f, value).valid:
            state[f.id] = value
    return state


def encode_pairs(
    state: Mapping,
    registry: FilterRegistry,
    trusted: Iterable[str] = (),
) -> list[tuple[str, str]]:
    """Return the ``(param_name, value)`` pairs representing ``state``.

    Args:
        state:    Filter id → tagged or raw value.
        registry: Filters to encode, in emission order.
        trusted:  Filter ids whose categorical values are emitted without the
                  option-membership check (values restored from a URL before
                  their option list has loaded).
    """
    trusted = frozenset(trusted)
    pairs: list[tuple[str, str]] = []
    for f in registry.filters:
        value = coerce_value(f, state.get(f.id))
        if value is None or is_filter_default(f, value):
            continue
        if f.id not in trusted and not validate(f, value).valid:
            continue
        pairs.append((f.param_name, value.to_param()))
    return pairs


def encode(
    state: Mapping,
    registry: FilterRegistry,
    trusted: Iterable[str] = (),
) -> str:
    """Encode ``state`` as a query string (no leading ``?``)."""
    return urlencode(encode_pairs(state, registry, trusted))


def sanitize(query: Optional[Query], registry: FilterRegistry) -> str:
    """Strip unknown parameters and invalid values, keeping string values.

    Parameters keep their incoming order; a repeated parameter keeps its
    first value.
    """
    kept: list[tuple[str, str]] = []
    seen: set[str] = set()
    for name, raw in query_pairs(query):
        if name in seen:
            continue
        seen.add(name)
        f = registry.by_param(name)
        if f is None:
            logger.debug("unknown filter parameter: %s", name)
            continue
        value = parse_param(f, raw)
        if value is None or not validate(f, value).valid:
            continue
        kept.append((name, raw))
    return urlencode(kept)


def build_url(path: str, pairs: Union[str, Iterable[tuple[str, str]]]) -> str:
    """Join a path and a query; the bare path when the query is empty."""
    query = pairs if isinstance(pairs, str) else urlencode(list(pairs))
    return f"{path}?{query}" if query else path
