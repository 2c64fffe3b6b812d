"""Option lookup collaborators for dynamically populated filters."""

from __future__ import annotations

import asyncio
from typing import Any, Protocol, Sequence

from filters.schema import FilterOption
from utils.http import UpstreamError

MALFORMED_COMMUNE = "Réponse invalide du service des communes"


class OptionLookup(Protocol):
    """Async source of options for one categorical filter.

    Implementations report every failure, including malformed upstream
    records, as ``UpstreamError``.
    """

    async def search(self, term: str) -> Sequence[FilterOption]:
        ...

    async def get_by_code(self, code: str) -> Sequence[FilterOption]:
        ...


class CommuneDirectory(Protocol):
    """Blocking commune client (see ``api.upstream.GeoClient``)."""

    def search(self, term: str) -> list[dict[str, Any]]:
        ...

    def get_by_code(self, code: str) -> list[dict[str, Any]]:
        ...


def commune_option(commune: dict[str, Any]) -> FilterOption:
    """Build the select option for a geo.api.gouv.fr commune record."""
    return FilterOption(
        value=commune["code"],
        label=f"{commune['nom']} ({commune.get('codeRegion', '')})",
        available=True,
    )


class CommuneOptionLookup:
    """Adapts a blocking commune client to ``OptionLookup``.

    Client calls run in a worker thread so the event loop stays responsive
    while a lookup is outstanding.
    """

    def __init__(self, directory: CommuneDirectory) -> None:
        self.directory = directory

    async def search(self, term: str) -> list[FilterOption]:
        communes = await asyncio.to_thread(self.directory.search, term)
        return _to_options(communes)

    async def get_by_code(self, code: str) -> list[FilterOption]:
        communes = await asyncio.to_thread(self.directory.get_by_code, code)
        return _to_options(communes[:1])


def _to_options(communes: list[dict[str, Any]]) -> list[FilterOption]:
    try:
        return [commune_option(c) for c in communes]
    except (KeyError, TypeError) as exc:
        raise UpstreamError(502, MALFORMED_COMMUNE, repr(exc)) from exc
