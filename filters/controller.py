"""
Filter state controller.

Owns the filter state of one view and brokers every change to it:

  - ``change_value()``  merges immediately, commits to the URL after a
                        debounce (default 300 ms, restarted by each change)
  - ``clear_filter()``  removes one filter and commits at once
  - ``reset_all()``     empties the state and navigates to the bare path

Commits encode the whole latest state with the controller's own registry,
which already carries the freshest dynamically loaded options, and never
include the pagination parameter, so any filter change lands on page 1.

Dynamically populated filters (the commune selector) start with no options.
``mount()`` loads an initial option set; ``search_options()`` reloads it
(debounced) as the user types.  Replies from superseded searches are dropped.
A value read from the URL before its options exist is kept provisionally and
verified once options arrive; when it is missing from them a single-item
lookup supplies the option, which is prepended to the list.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Callable, Iterable, Mapping, Optional
from urllib.parse import urlencode

from filters.catalog import COMMUNE_FILTER_ID
from filters.codec import FilterState, Query, build_url, decode, encode_pairs, first_values
from filters.debounce import Debouncer, LatestRequestTracker
from filters.lookup import OptionLookup
from filters.schema import FilterOption, FilterRegistry, FilterType
from filters.values import CategoricalValue, FilterValue, coerce_value
from utils.http import UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.3

Navigate = Callable[[str], None]


class ControllerClosedError(RuntimeError):
    """Raised when a closed controller is asked to change state."""


class FilterController:
    """Authoritative filter state for one view (page/session)."""

    def __init__(
        self,
        registry: FilterRegistry,
        navigate: Navigate,
        lookup: Optional[OptionLookup] = None,
        *,
        base_path: str = "/",
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        search_debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        dynamic_filter_ids: Iterable[str] = (COMMUNE_FILTER_ID,),
        page_param: str = "page",
    ) -> None:
        """Initialise the controller.

        Args:
            registry:   Registry owned by this controller; dynamic options
                        are written into it.
            navigate:   History-push callback receiving the new URL.
            lookup:     Option source for the dynamic filters.
            base_path:  Path the filter query is attached to.
            debounce_seconds:        Quiet period before a change is committed.
            search_debounce_seconds: Quiet period before an option search runs.
            dynamic_filter_ids:      Categorical filters whose options load at runtime.
            page_param: Pagination parameter stripped from every commit.
        """
        self.registry = registry
        self.lookup = lookup
        self.base_path = base_path
        self.page_param = page_param
        dynamic: list[str] = []
        for fid in dynamic_filter_ids:
            f = registry.get(fid)
            if f is not None and f.type is FilterType.CATEGORICAL:
                dynamic.append(fid)
        self.dynamic_filter_ids: tuple[str, ...] = tuple(dynamic)
        self.error: Optional[str] = None

        self._navigate = navigate
        self._state: FilterState = {}
        self._provisional: set[str] = set()
        self._options_loaded: set[str] = set()
        self._resolved: dict[tuple[str, str], FilterOption] = {}
        self._unresolvable: set[tuple[str, str]] = set()
        self._commit = Debouncer(debounce_seconds, "url-commit")
        self._searches = {
            fid: Debouncer(search_debounce_seconds, f"option-search:{fid}")
            for fid in self.dynamic_filter_ids
        }
        self._requests = LatestRequestTracker()
        self._closed = False

    # ── State access ─────────────────────────────────────────────────────────

    @property
    def state(self) -> Mapping[str, FilterValue]:
        return MappingProxyType(self._state)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def commit_pending(self) -> bool:
        return self._commit.pending

    def is_provisional(self, filter_id: str) -> bool:
        return filter_id in self._provisional

    def options(self, filter_id: str) -> tuple[FilterOption, ...]:
        f = self.registry.get(filter_id)
        return tuple(f.options or ()) if f is not None else ()

    def current_pairs(self) -> list[tuple[str, str]]:
        return [
            (name, value)
            for name, value in encode_pairs(self._state, self.registry, self._provisional)
            if name != self.page_param
        ]

    def current_query(self) -> str:
        return urlencode(self.current_pairs())

    def current_url(self) -> str:
        return build_url(self.base_path, self.current_pairs())

    # ── URL → state ──────────────────────────────────────────────────────────

    def load_query(self, query: Optional[Query]) -> FilterState:
        """Replace the state with the one described by a URL query.

        Values of dynamic filters that fail validation (their options are
        not loaded yet, or the value was never offered by a search) are
        accepted provisionally instead of being dropped.  A commit still
        pending from earlier changes is cancelled: the URL being loaded
        supersedes it.
        """
        self._ensure_open()
        self._commit.cancel()
        params = first_values(query)
        state = decode(params, self.registry)
        provisional: set[str] = set()
        for fid in self.dynamic_filter_ids:
            raw = params.get(self.registry.get(fid).param_name)
            if raw and fid not in state:
                state[fid] = CategoricalValue(raw)
                provisional.add(fid)
                logger.debug("provisional value accepted filter=%s value=%r", fid, raw)
        self._state = state
        self._provisional = provisional
        return dict(state)

    # ── User-driven changes ──────────────────────────────────────────────────

    def change_value(self, filter_id: str, value) -> None:
        """Apply a control's new value now; commit it to the URL after the debounce."""
        self._ensure_open()
        f = self.registry.get(filter_id)
        if f is None:
            logger.debug("ignoring change for unknown filter %s", filter_id)
            return
        if value is None:
            self.clear_filter(filter_id)
            return
        tagged = coerce_value(f, value)
        if tagged is None:
            logger.debug("ignoring %s value %r for filter %s", f.type.value, value, filter_id)
            return
        self._state = {**self._state, filter_id: tagged}
        self._provisional.discard(filter_id)
        self._commit.schedule(self._commit_now)

    def clear_filter(self, filter_id: str) -> None:
        """Remove one filter and commit immediately."""
        self._ensure_open()
        state = dict(self._state)
        state.pop(filter_id, None)
        self._state = state
        self._provisional.discard(filter_id)
        self._commit.cancel()
        self._commit_now()

    def reset_all(self) -> None:
        """Drop every filter and navigate to the bare path."""
        self._ensure_open()
        self._state = {}
        self._provisional = set()
        self._commit.cancel()
        logger.debug("navigate %s (reset)", self.base_path)
        self._navigate(self.base_path)

    async def flush(self) -> None:
        """Wait for a pending debounced commit to run."""
        await self._commit.wait()

    def _commit_now(self) -> None:
        if self._closed:
            return
        url = self.current_url()
        logger.debug("navigate %s", url)
        self._navigate(url)

    # ── Dynamic options ──────────────────────────────────────────────────────

    async def mount(self) -> None:
        """Load the initial options of every dynamic filter."""
        self._ensure_open()
        for fid in self.dynamic_filter_ids:
            await self.refresh_options(fid, "")

    def search_options(self, filter_id: str, term: str) -> None:
        """Schedule a debounced option search for a dynamic filter."""
        self._ensure_open()
        debouncer = self._searches.get(filter_id)
        if debouncer is None:
            logger.debug("ignoring option search for non-dynamic filter %s", filter_id)
            return
        debouncer.schedule(lambda: self.refresh_options(filter_id, term))

    async def wait_for_search(self, filter_id: str) -> None:
        debouncer = self._searches.get(filter_id)
        if debouncer is not None:
            await debouncer.wait()

    async def refresh_options(self, filter_id: str, term: str) -> bool:
        """Fetch and install a fresh option set for a dynamic filter.

        Returns:
            True when the reply was applied; False when there is no lookup,
            the request failed, or a newer request superseded it.
        """
        if self.lookup is None or filter_id not in self._searches:
            return False
        token = self._requests.issue(filter_id)
        try:
            options = await self.lookup.search(term)
        except (UpstreamError, OSError) as exc:
            if not self._closed and self._requests.is_current(filter_id, token):
                self._record_failure(filter_id, exc)
            return False
        if self._closed or not self._requests.is_current(filter_id, token):
            logger.debug("dropping stale options filter=%s term=%r", filter_id, term)
            return False
        self.registry.update_options(filter_id, options)
        self._options_loaded.add(filter_id)
        self.error = None
        await self._reconcile(filter_id)
        return True

    async def _reconcile(self, filter_id: str) -> None:
        value = self._state.get(filter_id)
        if value is None or filter_id not in self._options_loaded or self.lookup is None:
            return
        code = value.value
        if self.registry.get(filter_id).has_option(code):
            self._provisional.discard(filter_id)
            return

        key = (filter_id, code)
        option = self._resolved.get(key)
        if option is None:
            if key in self._unresolvable:
                self._provisional.discard(filter_id)
                return
            try:
                found = await self.lookup.get_by_code(code)
            except (UpstreamError, OSError) as exc:
                self._record_failure(filter_id, exc)
                return
            if self._closed:
                return
            if not found:
                logger.debug("no option found for filter=%s value=%r", filter_id, code)
                self._unresolvable.add(key)
                self._provisional.discard(filter_id)
                return
            option = found[0]
            self._resolved[key] = option

        current = self._state.get(filter_id)
        if current is None or current.value != code:
            return
        f = self.registry.get(filter_id)
        if not f.has_option(option.value):
            self.registry.update_options(filter_id, (option, *(f.options or ())))
        self._provisional.discard(filter_id)

    def _record_failure(self, filter_id: str, exc: Exception) -> None:
        f = self.registry.get(filter_id)
        label = f.label.lower() if f is not None else filter_id
        logger.warning("option lookup failed filter=%s: %s", filter_id, exc)
        self.error = f"Impossible de charger la liste : {label}"

    # ── Lifecycle ────────────────────────────────────────────────────────────

    def close(self) -> None:
        """Stop all timers; replies still in flight are dropped."""
        self._closed = True
        self._commit.close()
        for debouncer in self._searches.values():
            debouncer.close()
        self._requests.invalidate()

    def _ensure_open(self) -> None:
        if self._closed:
            raise ControllerClosedError("filter controller is closed")
