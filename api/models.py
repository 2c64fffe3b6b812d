"""
Pydantic response models for the explorer API.

Upstream payloads are passed through mostly untouched, so the service models
allow extra fields; every field the explorer reads is declared with a
description for the OpenAPI docs.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ── Commune models ────────────────────────────────────────────────────────────

class CommuneOut(BaseModel):
    """A French commune as returned by geo.api.gouv.fr."""
    model_config = ConfigDict(extra="allow")

    code: str = Field(..., description="INSEE code", examples=["75056"])
    nom: str = Field(..., description="Commune name", examples=["Paris"])
    codeRegion: str | None = Field(None, description="Region code", examples=["11"])
    codeDepartement: str | None = Field(None, description="Department code", examples=["75"])
    codesPostaux: list[str] | None = Field(None, description="Postal codes")
    population: int | None = Field(None, description="Population")


# ── Service models ────────────────────────────────────────────────────────────

class ServiceOut(BaseModel):
    """One social service record of the Data Inclusion dataset."""
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="Service identifier", examples=["dora--abc123"])
    nom: str = Field(..., description="Service name")
    description: str | None = Field(None, description="Free-text description (markdown)")
    presentation_resume: str | None = Field(None, description="Short presentation")
    source: str | None = Field(None, description="Producer of the record", examples=["dora"])
    structure_id: str | None = Field(None, description="Owning structure")
    date_maj: str | None = Field(None, description="Last update date")
    type: str | None = Field(None, description="Service type", examples=["accompagnement"])
    thematiques: list[str] | None = Field(None, description="Themes")
    frais: str | None = Field(None, description="Fee kind", examples=["gratuit"])
    publics: list[str] | None = Field(None, description="Target audiences")
    commune: str | None = Field(None, description="Commune name")
    code_postal: str | None = Field(None, description="Postal code")
    code_insee: str | None = Field(None, description="INSEE commune code")
    adresse: str | None = Field(None, description="Street address")
    telephone: str | None = Field(None, description="Phone number")
    courriel: str | None = Field(None, description="Contact e-mail")
    modes_accueil: list[str] | None = Field(None, description="Reception modes")
    score_qualite: float | None = Field(None, description="Quality score between 0 and 1")


class ServiceSearchResult(BaseModel):
    """One search hit: the service and its distance to the searched commune."""
    service: ServiceOut
    distance: float | None = Field(None, description="Distance in km, when a commune is searched")


class ServiceSearchResponse(BaseModel):
    """Paginated response of GET /api/services."""
    items: list[ServiceSearchResult] = Field(default_factory=list)
    total: int = Field(0, description="Total matching services", examples=[1234])
    page: int = Field(1, description="Current page (1-based)")
    size: int = Field(50, description="Page size")
    pages: int = Field(0, description="Number of pages")


# ── Filter catalog models ─────────────────────────────────────────────────────

class FilterOptionOut(BaseModel):
    value: str
    label: str
    available: bool = True
    count: int | None = None
    group: str | None = None


class FilterOut(BaseModel):
    """A filter of the sidebar and the query parameter it maps to."""
    id: str
    label: str
    type: str = Field(..., description="categorical | numeric | boolean | range")
    category: str
    paramName: str = Field(..., description="URL/query parameter name")
    required: bool
    defaultValue: Any = None
    description: str | None = None
    options: list[FilterOptionOut] | None = None
    min: float | None = None
    max: float | None = None
    step: float | None = None
    unit: str | None = None


class FilterCategoryOut(BaseModel):
    id: str
    label: str
    order: int
    expanded: bool
    filters: list[FilterOut]


# ── Error model ───────────────────────────────────────────────────────────────

class ErrorResponse(BaseModel):
    """Standard error response body."""
    error: str = Field(..., description="User-facing error message",
                       examples=["Erreur lors de la récupération des données"])
    detail: str | None = Field(None, description="Extended error detail")
    status_code: int = Field(..., ge=400, le=599, description="HTTP status code", examples=[502])
