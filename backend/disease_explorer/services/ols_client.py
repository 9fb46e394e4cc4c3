"""Ontology lookup client: abstract contract plus the OLS4 HTTP implementation."""

from __future__ import annotations

import logging
import os
import re
from typing import TypeVar
from abc import ABC, abstractmethod
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from disease_explorer.models.ols_models import AncestorRecord, OLSConfig, SearchHit

logger = logging.getLogger(__name__)

# OBO short form, e.g. EFO_0000270, MONDO_0004979, Orphanet_586
_LOOKUP_KEY_RE = re.compile(r"^[A-Za-z][A-Za-z0-9]*_[A-Za-z0-9]+$")

_SEARCH_FIELDS = "id,label,description,iri,obo_id,short_form"

_Record = TypeVar("_Record", SearchHit, AncestorRecord)


class LookupFailure(Exception):
    """Transport error, timeout, non-2xx status or unreadable body from the lookup service."""


class MalformedIdentifier(ValueError):
    """A canonical hit carried no usable resource path."""


def derive_lookup_key(iri: str | None) -> str:
    """Return the final path segment of a term IRI, validated as an OBO short form."""
    if not iri:
        raise MalformedIdentifier("Term has no IRI")
    key = iri.rstrip().rsplit("/", 1)[-1]
    if not _LOOKUP_KEY_RE.match(key):
        raise MalformedIdentifier(f"Cannot derive lookup key from IRI: {iri!r}")
    return key


def _read_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


def _read_int(name: str, default: int | None) -> int | None:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


def _config_from_env() -> OLSConfig:
    """Build OLSConfig from environment variables."""
    defaults = OLSConfig()
    return OLSConfig(
        base_url=os.environ.get("OLS_BASE_URL", defaults.base_url),
        ontology=os.environ.get("OLS_ONTOLOGY", defaults.ontology),
        term_iri_base=os.environ.get("OLS_TERM_IRI_BASE", defaults.term_iri_base),
        term_page_url=os.environ.get("OLS_TERM_PAGE_URL", defaults.term_page_url),
        timeout=_read_float("OLS_TIMEOUT", defaults.timeout),
        search_rows=_read_int("OLS_SEARCH_ROWS", defaults.search_rows),
    )


def debounce_seconds_from_env() -> float:
    return _read_float("SEARCH_DEBOUNCE_MS", 300.0) / 1000.0


def _validate_each(model: type[_Record], items: list, kind: str) -> list[_Record]:
    """Validate records one by one, skipping malformed ones and keeping server order."""
    records: list[_Record] = []
    for item in items:
        try:
            records.append(model.model_validate(item))
        except ValidationError as e:
            logger.debug("Skipping malformed OLS %s: %s", kind, e)
    return records


class OntologyLookupClient(ABC):
    """The three lookups the search controller and hierarchy resolver depend on.

    Every method raises LookupFailure on transport or status errors. An empty
    result (no hits, no ancestors) is a valid answer and is returned, not raised.
    """

    @abstractmethod
    async def search_candidates(self, term: str) -> list[SearchHit]:
        """Generic text search; hits in server order."""
        ...

    @abstractmethod
    async def find_exact(self, label: str) -> SearchHit | None:
        """Exact label match; only the first result is consumed."""
        ...

    @abstractmethod
    async def fetch_ancestors(self, canonical_key: str) -> list[AncestorRecord]:
        """Hierarchical ancestors of the term identified by its short-form key."""
        ...

    def term_page_url(self, canonical_id: str) -> str | None:
        return None


class OLSClient(OntologyLookupClient):
    """OntologyLookupClient backed by the EBI OLS4 REST API."""

    def __init__(self, config: OLSConfig | None = None, http_client: httpx.AsyncClient | None = None):
        self.config = config or _config_from_env()
        self.base_url = self.config.base_url.rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=self.config.timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get_json(self, url: str, params: dict[str, str] | None = None) -> dict:
        try:
            resp = await self._client.get(url, params=params)
        except httpx.HTTPError as e:
            logger.warning("OLS request failed (%s): %s", url, e)
            raise LookupFailure(str(e)) from e

        if resp.status_code != 200:
            logger.warning("OLS error (status=%d) for %s", resp.status_code, url)
            raise LookupFailure(f"OLS returned status {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as e:
            raise LookupFailure("OLS returned an unreadable body") from e
        if not isinstance(data, dict):
            raise LookupFailure("OLS returned an unexpected body")
        return data

    @staticmethod
    def _parse_docs(data: dict) -> list[SearchHit]:
        docs = (data.get("response") or {}).get("docs") or []
        return _validate_each(SearchHit, docs, "search doc")

    async def search_candidates(self, term: str) -> list[SearchHit]:
        params = {
            "q": term,
            "ontology": self.config.ontology,
            "fieldList": _SEARCH_FIELDS,
        }
        if self.config.search_rows:
            params["rows"] = str(self.config.search_rows)
        logger.info("OLS search: %r", term)
        data = await self._get_json(f"{self.base_url}/search", params)
        return self._parse_docs(data)

    async def find_exact(self, label: str) -> SearchHit | None:
        params = {
            "q": label,
            "ontology": self.config.ontology,
            "exact": "true",
            "queryFields": "label",
        }
        logger.info("OLS exact lookup: %r", label)
        data = await self._get_json(f"{self.base_url}/search", params)
        hits = self._parse_docs(data)
        return hits[0] if hits else None

    def _ancestors_url(self, canonical_key: str) -> str:
        # OLS expects the term IRI url-encoded twice inside the path
        iri = f"{self.config.term_iri_base}{canonical_key}"
        encoded = quote(quote(iri, safe=""), safe="")
        return f"{self.base_url}/ontologies/{self.config.ontology}/terms/{encoded}/hierarchicalAncestors"

    async def fetch_ancestors(self, canonical_key: str) -> list[AncestorRecord]:
        logger.info("OLS ancestors: %s", canonical_key)
        data = await self._get_json(self._ancestors_url(canonical_key))
        terms = (data.get("_embedded") or {}).get("terms") or []
        return _validate_each(AncestorRecord, terms, "ancestor term")

    def term_page_url(self, canonical_id: str) -> str:
        return f"{self.config.term_page_url}?iri={quote(canonical_id, safe='')}"


# Module-level singleton
_client: OLSClient | None = None


def get_ols_client() -> OLSClient:
    """Shared OLSClient built from the environment on first use."""
    global _client
    if _client is None:
        _client = OLSClient()
        logger.info("OLS client ready: %s (ontology=%s)", _client.base_url, _client.config.ontology)
    return _client


async def close_ols_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
