"""
Tests for filters/controller.py — FilterController.

Covers:
    - debounced commits: a burst of changes produces one navigation
    - commits never carry the page parameter
    - clear_filter / reset_all navigate immediately and cancel pending commits
    - stale option replies are dropped (latest search wins)
    - provisional commune values from the URL are verified and prepended
    - lookup failures keep the previous options and set an error message
    - a closed controller refuses changes and never navigates
"""
import asyncio
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from filters.catalog import COMMUNE_FILTER_ID, build_registry
from filters.controller import ControllerClosedError, FilterController
from filters.lookup import MALFORMED_COMMUNE, CommuneOptionLookup
from filters.schema import FilterOption
from filters.values import CategoricalValue, NumericValue
from utils.http import UpstreamError

PARIS = FilterOption("75056", "Paris (75)")
LYON = FilterOption("69123", "Lyon (69)")
ABERGEMENT = FilterOption("01001", "L'Abergement-Clémenciat (84)")

DELAY = 0.01


class FakeLookup:
    """Async option lookup with per-term latency and optional failure."""

    def __init__(self, results=None, by_code=None, delays=None, fail=False):
        self.results = results if results is not None else {"": [PARIS, LYON]}
        self.by_code = by_code if by_code is not None else {}
        self.delays = delays or {}
        self.fail = fail
        self.searches: list[str] = []
        self.code_lookups: list[str] = []

    async def search(self, term):
        self.searches.append(term)
        await asyncio.sleep(self.delays.get(term, 0))
        if self.fail:
            raise UpstreamError(500, "Erreur serveur lors de la récupération des communes")
        return list(self.results.get(term, []))

    async def get_by_code(self, code):
        self.code_lookups.append(code)
        option = self.by_code.get(code)
        return [option] if option else []


def _controller(nav, lookup=None, **kw):
    kw.setdefault("debounce_seconds", DELAY)
    kw.setdefault("search_debounce_seconds", DELAY)
    return FilterController(build_registry(), nav.append, lookup, **kw)


def _values(controller):
    return [o.value for o in controller.options(COMMUNE_FILTER_ID)]


class TestCommit:
    def test_burst_of_changes_commits_once(self):
        nav = []

        async def scenario():
            c = _controller(nav)
            c.change_value("frais", "gratuit")
            c.change_value("types", "atelier")
            c.change_value("frais", "payant")
            assert nav == []
            assert c.commit_pending
            await c.flush()
            c.close()

        asyncio.run(scenario())
        assert nav == ["/?types=atelier&frais=payant"]

    def test_state_updates_before_commit(self):
        nav = []

        async def scenario():
            c = _controller(nav, debounce_seconds=1.0)
            c.change_value("score_qualite_minimum", 0.5)
            assert c.state["score_qualite_minimum"] == NumericValue(0.5)
            assert nav == []
            c.close()

        asyncio.run(scenario())
        assert nav == []

    def test_page_never_committed(self):
        nav = []

        async def scenario():
            c = _controller(nav)
            c.load_query("page=3&frais=gratuit")
            assert c.current_query() == "frais=gratuit"
            c.change_value("types", "atelier")
            await c.flush()
            c.close()

        asyncio.run(scenario())
        assert nav == ["/?types=atelier&frais=gratuit"]

    def test_default_value_commits_bare_path(self):
        nav = []

        async def scenario():
            c = _controller(nav)
            c.change_value("score_qualite_minimum", 0)
            await c.flush()
            c.close()

        asyncio.run(scenario())
        assert nav == ["/"]

    def test_invalid_or_unknown_changes_ignored(self):
        nav = []

        async def scenario():
            c = _controller(nav)
            c.change_value("ghost", "x")
            c.change_value("score_qualite_minimum", "abc")
            assert not c.commit_pending
            assert dict(c.state) == {}
            c.close()

        asyncio.run(scenario())
        assert nav == []

    def test_load_query_cancels_pending_commit(self):
        nav = []

        async def scenario():
            c = _controller(nav)
            c.load_query("frais=gratuit")
            c.change_value("types", "atelier")
            c.load_query("frais=gratuit&page=3")
            assert not c.commit_pending
            await asyncio.sleep(DELAY * 3)
            assert dict(c.state) == {"frais": CategoricalValue("gratuit")}
            c.close()

        asyncio.run(scenario())
        assert nav == []

    def test_none_clears_filter(self):
        nav = []

        async def scenario():
            c = _controller(nav)
            c.load_query("frais=gratuit&types=atelier")
            c.change_value("frais", None)
            c.close()

        asyncio.run(scenario())
        assert nav == ["/?types=atelier"]


class TestClearAndReset:
    def test_clear_is_immediate_and_cancels_pending(self):
        nav = []

        async def scenario():
            c = _controller(nav)
            c.load_query("frais=gratuit&types=atelier")
            c.change_value("publics", "jeunes")
            c.clear_filter("frais")
            assert nav == ["/?types=atelier&publics=jeunes"]
            assert not c.commit_pending
            await asyncio.sleep(DELAY * 3)
            c.close()

        asyncio.run(scenario())
        assert nav == ["/?types=atelier&publics=jeunes"]

    def test_reset_all_navigates_to_base_path(self):
        nav = []

        async def scenario():
            c = _controller(nav, base_path="/explorer")
            c.load_query("frais=gratuit&page=2")
            c.change_value("types", "atelier")
            c.reset_all()
            await asyncio.sleep(DELAY * 3)
            assert dict(c.state) == {}
            c.close()

        asyncio.run(scenario())
        assert nav == ["/explorer"]


class TestOptions:
    def test_mount_loads_initial_options(self):
        lookup = FakeLookup()

        async def scenario():
            c = _controller([], lookup)
            await c.mount()
            return c

        c = asyncio.run(scenario())
        assert lookup.searches == [""]
        assert _values(c) == ["75056", "69123"]
        assert c.error is None

    def test_search_is_debounced(self):
        lookup = FakeLookup(results={"lyo": [LYON]})

        async def scenario():
            c = _controller([], lookup)
            for term in ("l", "ly", "lyo"):
                c.search_options(COMMUNE_FILTER_ID, term)
            await c.wait_for_search(COMMUNE_FILTER_ID)
            return c

        c = asyncio.run(scenario())
        assert lookup.searches == ["lyo"]
        assert _values(c) == ["69123"]

    def test_stale_reply_dropped(self):
        lookup = FakeLookup(
            results={"lyon": [LYON], "paris": [PARIS]},
            delays={"lyon": 0.05, "paris": 0.0},
        )

        async def scenario():
            c = _controller([], lookup)
            applied = await asyncio.gather(
                c.refresh_options(COMMUNE_FILTER_ID, "lyon"),
                c.refresh_options(COMMUNE_FILTER_ID, "paris"),
            )
            return c, applied

        c, applied = asyncio.run(scenario())
        assert applied == [False, True]
        assert _values(c) == ["75056"]

    def test_failure_keeps_previous_options(self):
        lookup = FakeLookup()

        async def scenario():
            c = _controller([], lookup)
            await c.mount()
            lookup.fail = True
            ok = await c.refresh_options(COMMUNE_FILTER_ID, "nantes")
            return c, ok

        c, ok = asyncio.run(scenario())
        assert not ok
        assert _values(c) == ["75056", "69123"]
        assert c.error == "Impossible de charger la liste : commune"

    def test_success_clears_error(self):
        lookup = FakeLookup(fail=True)

        async def scenario():
            c = _controller([], lookup)
            await c.mount()
            assert c.error is not None
            lookup.fail = False
            await c.refresh_options(COMMUNE_FILTER_ID, "")
            return c

        c = asyncio.run(scenario())
        assert c.error is None

    def test_non_dynamic_filter_search_ignored(self):
        lookup = FakeLookup()

        async def scenario():
            c = _controller([], lookup)
            c.search_options("frais", "gr")
            assert await c.refresh_options("frais", "gr") is False

        asyncio.run(scenario())
        assert lookup.searches == []


class TestProvisionalValues:
    def test_url_value_kept_before_options_load(self):
        c = FilterController(build_registry(), lambda url: None)
        c.load_query("code_commune=75056&frais=gratuit")
        assert c.state[COMMUNE_FILTER_ID] == CategoricalValue("75056")
        assert c.is_provisional(COMMUNE_FILTER_ID)
        assert c.current_query() == "frais=gratuit&code_commune=75056"
        c.close()

    def test_value_in_initial_options_confirmed(self):
        lookup = FakeLookup()

        async def scenario():
            c = _controller([], lookup)
            c.load_query("code_commune=75056")
            await c.mount()
            return c

        c = asyncio.run(scenario())
        assert not c.is_provisional(COMMUNE_FILTER_ID)
        assert lookup.code_lookups == []
        assert c.current_query() == "code_commune=75056"

    def test_missing_value_fetched_and_prepended(self):
        lookup = FakeLookup(by_code={"01001": ABERGEMENT})

        async def scenario():
            c = _controller([], lookup)
            c.load_query("code_commune=01001")
            await c.mount()
            return c

        c = asyncio.run(scenario())
        assert _values(c) == ["01001", "75056", "69123"]
        assert lookup.code_lookups == ["01001"]
        assert not c.is_provisional(COMMUNE_FILTER_ID)
        assert c.current_query() == "code_commune=01001"

    def test_unresolvable_value_dropped_from_url(self):
        lookup = FakeLookup()

        async def scenario():
            c = _controller([], lookup)
            c.load_query("code_commune=99999&frais=gratuit")
            await c.mount()
            return c

        c = asyncio.run(scenario())
        assert not c.is_provisional(COMMUNE_FILTER_ID)
        assert c.current_query() == "frais=gratuit"

    def test_selection_survives_new_search(self):
        lookup = FakeLookup(
            results={"": [PARIS, LYON], "paris": [PARIS]},
            by_code={"01001": ABERGEMENT},
        )
        nav = []

        async def scenario():
            c = _controller(nav, lookup)
            c.load_query("code_commune=01001")
            await c.mount()
            await c.refresh_options(COMMUNE_FILTER_ID, "paris")
            c.change_value("frais", "gratuit")
            await c.flush()
            c.close()
            return c

        c = asyncio.run(scenario())
        assert _values(c) == ["01001", "75056"]
        assert lookup.code_lookups == ["01001"]
        assert nav == ["/?frais=gratuit&code_commune=01001"]

    def test_lookup_failure_keeps_provisional_value(self):
        lookup = FakeLookup(fail=True)

        async def scenario():
            c = _controller([], lookup)
            c.load_query("code_commune=01001")
            await c.mount()
            return c

        c = asyncio.run(scenario())
        assert c.is_provisional(COMMUNE_FILTER_ID)
        assert c.current_query() == "code_commune=01001"
        assert c.error == "Impossible de charger la liste : commune"


class TestLifecycle:
    def test_closed_controller_refuses_changes(self):
        c = FilterController(build_registry(), lambda url: None)
        c.close()
        assert c.closed
        with pytest.raises(ControllerClosedError):
            c.change_value("frais", "gratuit")
        with pytest.raises(ControllerClosedError):
            c.reset_all()
        with pytest.raises(ControllerClosedError):
            c.load_query("frais=gratuit")

    def test_pending_commit_dropped_on_close(self):
        nav = []

        async def scenario():
            c = _controller(nav)
            c.change_value("frais", "gratuit")
            c.close()
            await asyncio.sleep(DELAY * 3)

        asyncio.run(scenario())
        assert nav == []

    def test_reply_after_close_ignored(self):
        lookup = FakeLookup(delays={"": 0.03})

        async def scenario():
            c = _controller([], lookup)
            task = asyncio.ensure_future(c.refresh_options(COMMUNE_FILTER_ID, ""))
            await asyncio.sleep(0)
            c.close()
            return c, await task

        c, applied = asyncio.run(scenario())
        assert applied is False
        assert _values(c) == []


class TestCommuneOptionLookup:
    """The adapter between the blocking commune client and the controller."""

    class _Directory:
        def __init__(self, communes):
            self.communes = communes

        def search(self, term):
            return self.communes

        def get_by_code(self, code):
            return self.communes

    def test_records_become_options(self):
        lookup = CommuneOptionLookup(self._Directory(
            [{"code": "75056", "nom": "Paris", "codeRegion": "11"}]
        ))
        assert asyncio.run(lookup.search("par")) == [FilterOption("75056", "Paris (11)")]

    def test_malformed_record_raises_upstream_error(self):
        lookup = CommuneOptionLookup(self._Directory([{"code": "75056"}]))
        with pytest.raises(UpstreamError) as exc_info:
            asyncio.run(lookup.get_by_code("75056"))
        assert exc_info.value.status_code == 502
        assert exc_info.value.message == MALFORMED_COMMUNE

    def test_malformed_record_recorded_by_controller(self):
        lookup = CommuneOptionLookup(self._Directory([{"code": "01001"}]))

        async def scenario():
            c = _controller([], lookup)
            c.load_query("code_commune=01001")
            await c.mount()
            return c

        c = asyncio.run(scenario())
        assert c.error == "Impossible de charger la liste : commune"
        assert c.is_provisional(COMMUNE_FILTER_ID)
        assert _values(c) == []
