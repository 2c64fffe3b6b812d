"""
Filter catalog for the Data Inclusion search API.

Maps each sidebar filter onto a parameter of
``GET /api/v1/search/services`` (https://api.data.inclusion.beta.gouv.fr/api/docs).

Display order: 1. Source, 2. Type, 3. Fees, 4. Quality, 5. Public,
6. Commune, 7. Reception.

The module-level ``ALL_FILTERS``, ``FILTER_MAP`` and ``PARAM_NAME_MAP`` are
read-only views of the static catalog.  Anything that loads options at
runtime (the commune filter) must work on its own ``build_registry()`` copy.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Optional

from filters.schema import (
    Filter,
    FilterCategory,
    FilterCategoryId,
    FilterOption,
    FilterRegistry,
    FilterType,
)

COMMUNE_FILTER_ID = "code_commune"


def _options(*pairs: tuple[str, str]) -> tuple[FilterOption, ...]:
    return tuple(FilterOption(value=v, label=label) for v, label in pairs)


FILTER_CATEGORIES: tuple[FilterCategory, ...] = (
    FilterCategory(
        id=FilterCategoryId.SOURCE,
        label="Source de données",
        order=1,
        filters=(
            Filter(
                id="sources",
                label="Source",
                type=FilterType.CATEGORICAL,
                category=FilterCategoryId.SOURCE,
                param_name="sources",
                description="Filtrer les services par source de données",
                options=_options(
                    ("action-logement", "Action Logement"),
                    ("agefiph", "AGEFIPH"),
                    ("cd35", "Annuaire social d'Ille-et-Vilaine"),
                    ("dora", "DORA"),
                    ("emplois-de-linclusion", "Emplois de l'inclusion"),
                    ("france-travail", "France Travail"),
                    ("mission-locale", "Mission Locale"),
                    ("mediation-numerique", "Médiation Numérique"),
                    ("mes-aides", "Mes Aides France Travail"),
                    ("monenfant", "Monenfant.fr"),
                    ("odspep", "Base de ressources France Travail"),
                    ("reseau-alpha", "Réseau Alpha"),
                    ("soliguide", "Soliguide"),
                    ("fredo", "Fredo"),
                    ("carif-oref", "Réseau des CARIF OREF"),
                    ("ma-boussole-aidants", "Ma Boussole Aidants"),
                ),
            ),
        ),
    ),
    FilterCategory(
        id=FilterCategoryId.SERVICE_TYPE,
        label="Type de service",
        order=2,
        filters=(
            Filter(
                id="types",
                label="Type",
                type=FilterType.CATEGORICAL,
                category=FilterCategoryId.SERVICE_TYPE,
                param_name="types",
                description="Filtrer les services par type",
                options=_options(
                    ("accompagnement", "Accompagnement"),
                    ("aide-financiere", "Aide financière"),
                    ("aide-materielle", "Aide matérielle"),
                    ("atelier", "Atelier"),
                    ("formation", "Formation"),
                    ("information", "Information"),
                ),
            ),
        ),
    ),
    FilterCategory(
        id=FilterCategoryId.COST,
        label="Coût",
        order=3,
        filters=(
            Filter(
                id="frais",
                label="Frais",
                type=FilterType.CATEGORICAL,
                category=FilterCategoryId.COST,
                param_name="frais",
                description="Filtrer les services par type de frais",
                options=_options(("gratuit", "Gratuit"), ("payant", "Payant")),
            ),
        ),
    ),
    FilterCategory(
        id=FilterCategoryId.QUALITY,
        label="Qualité",
        order=4,
        filters=(
            Filter(
                id="score_qualite_minimum",
                label="Score de qualité minimum",
                type=FilterType.NUMERIC,
                category=FilterCategoryId.QUALITY,
                param_name="score_qualite_minimum",
                default_value=0,
                description="Filtrer les services par score de qualité minimum",
                min=0,
                max=1,
                step=0.01,
                unit="score",
            ),
        ),
    ),
    FilterCategory(
        id=FilterCategoryId.AUDIENCE,
        label="Public cible",
        order=5,
        filters=(
            Filter(
                id="publics",
                label="Public",
                type=FilterType.CATEGORICAL,
                category=FilterCategoryId.AUDIENCE,
                param_name="publics",
                description="Filtrer les services par public cible",
                options=_options(
                    ("actifs", "Actifs"),
                    ("beneficiaires-des-minimas-sociaux", "Bénéficiaires des minimas sociaux"),
                    ("demandeurs-emploi", "Demandeurs d'emploi"),
                    ("etudiants", "Étudiants"),
                    ("familles", "Familles"),
                    ("femmes", "Femmes"),
                    ("jeunes", "Jeunes"),
                    ("personnes-en-situation-de-handicap", "Personnes en situation de handicap"),
                    ("personnes-en-situation-durgence", "Personnes en situation d'urgence"),
                    ("personnes-en-situation-juridique-specifique",
                     "Personnes en situation juridique spécifique"),
                    ("personnes-exilees", "Personnes exilées"),
                    ("residents-qpv-frr", "Résidents en QPV ou FRR"),
                    ("seniors", "Séniors"),
                    ("tous-publics", "Tous publics"),
                ),
            ),
        ),
    ),
    FilterCategory(
        id=FilterCategoryId.LOCATION,
        label="Localisation",
        order=6,
        filters=(
            Filter(
                id=COMMUNE_FILTER_ID,
                label="Commune",
                type=FilterType.CATEGORICAL,
                category=FilterCategoryId.LOCATION,
                param_name="code_commune",
                description="Filtrer les services par commune (code INSEE)",
                options=(),  # filled at runtime from the geo API
            ),
        ),
    ),
    FilterCategory(
        id=FilterCategoryId.ACCESS,
        label="Mode d'accueil",
        order=7,
        filters=(
            Filter(
                id="modes_accueil",
                label="Mode d'accueil",
                type=FilterType.CATEGORICAL,
                category=FilterCategoryId.ACCESS,
                param_name="modes_accueil",
                description=(
                    "Filtrer les services par mode d'accueil "
                    "(présentiel, à distance, etc.)"
                ),
                options=_options(
                    ("a-distance", "À distance"),
                    ("en-presentiel", "En présentiel"),
                ),
            ),
        ),
    ),
)

DEFAULT_REGISTRY = FilterRegistry(FILTER_CATEGORIES)

ALL_FILTERS: tuple[Filter, ...] = DEFAULT_REGISTRY.filters
FILTER_MAP = MappingProxyType({f.id: f for f in ALL_FILTERS})
PARAM_NAME_MAP = MappingProxyType({f.param_name: f for f in ALL_FILTERS})


def build_registry() -> FilterRegistry:
    """Return a fresh registry the caller may update options on."""
    return DEFAULT_REGISTRY.copy()


def get_filter_by_id(filter_id: str) -> Optional[Filter]:
    return FILTER_MAP.get(filter_id)


def get_filter_by_param_name(param_name: str) -> Optional[Filter]:
    return PARAM_NAME_MAP.get(param_name)
