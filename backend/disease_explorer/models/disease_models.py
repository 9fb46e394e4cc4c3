"""Pydantic models for disease search and hierarchy resolution state."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Disease(BaseModel):
    """A selectable search candidate."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str = Field(min_length=1)
    description: str | None = None


class HierarchyTerm(BaseModel):
    """One ancestor of a resolved term."""

    model_config = ConfigDict(frozen=True)

    iri: str
    label: str
    description: str | None = None
    obo_id: str | None = None


class SearchStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SETTLED = "settled"
    ERRORED = "errored"


class ResolutionStatus(str, Enum):
    IDLE = "idle"
    RESOLVING_CANONICAL = "resolving-canonical"
    RESOLVING_HIERARCHY = "resolving-hierarchy"
    DONE = "done"
    ERRORED = "errored"


class SearchSession(BaseModel):
    query: str = ""
    status: SearchStatus = SearchStatus.IDLE
    candidates: list[Disease] = []
    error_message: str | None = None
    generation: int = 0


class ResolutionSession(BaseModel):
    subject_label: str = ""
    canonical_id: str | None = None
    canonical_iri: str | None = None
    lookup_key: str | None = None
    term_url: str | None = None
    ancestors: list[HierarchyTerm] = []
    status: ResolutionStatus = ResolutionStatus.IDLE
    error_message: str | None = None


# --- Explorer session API ---


class InputRequest(BaseModel):
    text: str


class SelectRequest(BaseModel):
    disease: Disease | None = None


class ExplorerState(BaseModel):
    session_id: str
    search: SearchSession
    selected: Disease | None = None
    resolution: ResolutionSession
