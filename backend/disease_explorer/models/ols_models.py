"""Pydantic models for raw Ontology Lookup Service (OLS4) records."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator


def _first_text(value: object) -> str | None:
    """OLS returns descriptions as lists; keep the first non-empty string."""
    if value is None:
        return None
    if isinstance(value, str):
        return value or None
    if isinstance(value, (list, tuple)):
        for item in value:
            if isinstance(item, str) and item:
                return item
    return None


class SearchHit(BaseModel):
    """One document from /search (response.docs[])."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    label: str | None = None
    description: str | None = None
    iri: str | None = None
    obo_id: str | None = None
    short_form: str | None = None

    @field_validator("description", mode="before")
    @classmethod
    def _take_first_description(cls, value: object) -> str | None:
        return _first_text(value)


class AncestorRecord(BaseModel):
    """One term from /hierarchicalAncestors (_embedded.terms[])."""

    model_config = ConfigDict(extra="ignore")

    iri: str
    label: str | None = None
    description: str | None = None
    obo_id: str | None = None

    @field_validator("description", mode="before")
    @classmethod
    def _take_first_description(cls, value: object) -> str | None:
        return _first_text(value)


class OLSConfig(BaseModel):
    base_url: str = "https://www.ebi.ac.uk/ols4/api"
    ontology: str = "efo"
    term_iri_base: str = "http://www.ebi.ac.uk/efo/"
    term_page_url: str = "https://www.ebi.ac.uk/ols4/ontologies/efo/terms"
    timeout: float = 30.0
    search_rows: int | None = None
