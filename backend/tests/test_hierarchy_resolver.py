"""Tests for the two-step hierarchy resolver state machine."""

from __future__ import annotations

import asyncio

import pytest

from fake_ols import FakeLookupClient, efo_hit
from disease_explorer.models.disease_models import ResolutionStatus
from disease_explorer.models.ols_models import AncestorRecord, SearchHit
from disease_explorer.services.hierarchy_resolver import (
    CANONICAL_LOOKUP_FAILED_MESSAGE,
    HIERARCHY_FETCH_FAILED_MESSAGE,
    MALFORMED_IDENTIFIER_MESSAGE,
    TERM_NOT_FOUND_MESSAGE,
    HierarchyResolver,
    records_to_terms,
)
from disease_explorer.services.ols_client import LookupFailure

RESPIRATORY = AncestorRecord(
    iri="http://www.ebi.ac.uk/efo/EFO_0000684",
    label="respiratory disease",
    description=["A disease of the respiratory system", "Alternate wording"],
    obo_id="EFO:0000684",
)
DISEASE = AncestorRecord(iri="http://www.ebi.ac.uk/efo/EFO_0000408", label="disease")


@pytest.fixture
def asthma_client(fake_client: FakeLookupClient) -> FakeLookupClient:
    fake_client.exact_results["Asthma"] = efo_hit("EFO_0000270", "asthma")
    fake_client.ancestor_results["EFO_0000270"] = [RESPIRATORY, DISEASE]
    return fake_client


def test_new_resolver_is_idle(fake_client: FakeLookupClient):
    resolver = HierarchyResolver(fake_client)
    assert resolver.session.status == ResolutionStatus.IDLE
    assert resolver.session.ancestors == []


def test_records_to_terms_keeps_first_description_only():
    terms = records_to_terms([RESPIRATORY, DISEASE])
    assert terms[0].description == "A disease of the respiratory system"
    assert terms[0].obo_id == "EFO:0000684"
    assert terms[1].description is None


@pytest.mark.anyio
async def test_resolve_asthma_preserves_server_order(asthma_client: FakeLookupClient):
    resolver = HierarchyResolver(asthma_client)
    session = await resolver.resolve("Asthma")

    assert session is resolver.session
    assert session.status == ResolutionStatus.DONE
    assert session.error_message is None
    assert session.lookup_key == "EFO_0000270"
    assert session.canonical_id == "EFO:0000270"
    assert session.canonical_iri == "http://www.ebi.ac.uk/efo/EFO_0000270"
    assert session.term_url == "https://ols.test/terms?iri=EFO:0000270"
    assert [t.label for t in session.ancestors] == ["respiratory disease", "disease"]
    assert [t.iri for t in session.ancestors] == [RESPIRATORY.iri, DISEASE.iri]
    assert asthma_client.exact_calls == ["Asthma"]
    assert asthma_client.ancestor_calls == ["EFO_0000270"]


@pytest.mark.anyio
async def test_canonical_id_falls_back_to_iri(fake_client: FakeLookupClient):
    iri = "http://www.ebi.ac.uk/efo/EFO_0000270"
    fake_client.exact_results["asthma"] = SearchHit(id="efo:x", label="asthma", iri=iri)
    session = await HierarchyResolver(fake_client).resolve("asthma")
    assert session.canonical_id == iri
    assert session.status == ResolutionStatus.DONE


@pytest.mark.anyio
async def test_empty_ancestor_chain_is_done(fake_client: FakeLookupClient):
    fake_client.exact_results["disease"] = efo_hit("EFO_0000408", "disease")
    session = await HierarchyResolver(fake_client).resolve("disease")
    assert session.status == ResolutionStatus.DONE
    assert session.ancestors == []


@pytest.mark.anyio
async def test_no_exact_match_is_term_not_found(fake_client: FakeLookupClient):
    session = await HierarchyResolver(fake_client).resolve("Asthmaa")
    assert session.status == ResolutionStatus.ERRORED
    assert session.error_message == TERM_NOT_FOUND_MESSAGE
    assert session.canonical_id is None
    assert fake_client.ancestor_calls == []


@pytest.mark.anyio
async def test_exact_lookup_failure(fake_client: FakeLookupClient):
    fake_client.exact_results["Asthma"] = LookupFailure("connection reset")
    session = await HierarchyResolver(fake_client).resolve("Asthma")
    assert session.status == ResolutionStatus.ERRORED
    assert session.error_message == CANONICAL_LOOKUP_FAILED_MESSAGE


@pytest.mark.anyio
@pytest.mark.parametrize("iri", [None, "http://www.ebi.ac.uk/efo/", "urn:efo:asthma"])
async def test_malformed_identifier(fake_client: FakeLookupClient, iri):
    fake_client.exact_results["Asthma"] = SearchHit(id="efo:x", label="asthma", iri=iri)
    session = await HierarchyResolver(fake_client).resolve("Asthma")
    assert session.status == ResolutionStatus.ERRORED
    assert session.error_message == MALFORMED_IDENTIFIER_MESSAGE
    assert fake_client.ancestor_calls == []


@pytest.mark.anyio
async def test_ancestor_failure_keeps_canonical_id(asthma_client: FakeLookupClient):
    asthma_client.ancestor_results["EFO_0000270"] = LookupFailure("OLS returned status 500")
    session = await HierarchyResolver(asthma_client).resolve("Asthma")

    assert session.status == ResolutionStatus.ERRORED
    assert session.error_message == HIERARCHY_FETCH_FAILED_MESSAGE
    assert session.canonical_id == "EFO:0000270"
    assert session.ancestors == []


@pytest.mark.anyio
async def test_passes_through_resolving_hierarchy(asthma_client: FakeLookupClient):
    release = asthma_client.gate("EFO_0000270")
    resolver = HierarchyResolver(asthma_client)

    task = asyncio.create_task(resolver.resolve("Asthma"))
    await asyncio.sleep(0)
    assert resolver.session.status == ResolutionStatus.RESOLVING_HIERARCHY
    assert resolver.session.canonical_id == "EFO:0000270"

    release.set()
    await task
    assert resolver.session.status == ResolutionStatus.DONE


@pytest.mark.anyio
async def test_new_selection_supersedes_pending_resolution(asthma_client: FakeLookupClient):
    asthma_client.exact_results["Eczema"] = efo_hit("EFO_0000274", "atopic eczema")
    asthma_client.ancestor_results["EFO_0000274"] = [DISEASE]
    release_asthma = asthma_client.gate("Asthma")
    resolver = HierarchyResolver(asthma_client)

    stale = asyncio.create_task(resolver.resolve("Asthma"))
    await asyncio.sleep(0)
    assert resolver.session.status == ResolutionStatus.RESOLVING_CANONICAL

    current = await resolver.resolve("Eczema")
    release_asthma.set()
    await stale

    assert resolver.session is current
    assert resolver.session.subject_label == "Eczema"
    assert resolver.session.canonical_id == "EFO:0000274"
    assert [t.label for t in resolver.session.ancestors] == ["disease"]
    # The superseded resolution never goes on to fetch its ancestors
    assert asthma_client.ancestor_calls == ["EFO_0000274"]


@pytest.mark.anyio
async def test_superseded_ancestor_response_is_ignored(asthma_client: FakeLookupClient):
    asthma_client.exact_results["Eczema"] = efo_hit("EFO_0000274", "atopic eczema")
    release_asthma = asthma_client.gate("EFO_0000270")
    resolver = HierarchyResolver(asthma_client)

    stale = asyncio.create_task(resolver.resolve("Asthma"))
    await asyncio.sleep(0)
    await resolver.resolve("Eczema")
    release_asthma.set()
    stale_session = await stale

    assert stale_session.status == ResolutionStatus.RESOLVING_HIERARCHY
    assert resolver.session.subject_label == "Eczema"
    assert resolver.session.ancestors == []
    assert resolver.session.status == ResolutionStatus.DONE


@pytest.mark.anyio
async def test_reset_returns_to_idle_and_drops_pending(asthma_client: FakeLookupClient):
    release = asthma_client.gate("Asthma")
    resolver = HierarchyResolver(asthma_client)

    task = asyncio.create_task(resolver.resolve("Asthma"))
    await asyncio.sleep(0)
    resolver.reset()
    release.set()
    await task

    assert resolver.session.status == ResolutionStatus.IDLE
    assert resolver.session.subject_label == ""
    assert asthma_client.ancestor_calls == []


@pytest.mark.anyio
async def test_repeat_resolution_refetches(asthma_client: FakeLookupClient):
    resolver = HierarchyResolver(asthma_client)
    await resolver.resolve("Asthma")
    await resolver.resolve("Asthma")
    assert asthma_client.exact_calls == ["Asthma", "Asthma"]
    assert asthma_client.ancestor_calls == ["EFO_0000270", "EFO_0000270"]


@pytest.mark.anyio
async def test_begin_supersedes_before_run_is_awaited(asthma_client: FakeLookupClient):
    asthma_client.exact_results["Eczema"] = efo_hit("EFO_0000274", "atopic eczema")
    resolver = HierarchyResolver(asthma_client)

    stale_token, stale = resolver.begin("Asthma")
    token, current = resolver.begin("Eczema")
    assert resolver.session is current
    assert current.status == ResolutionStatus.RESOLVING_CANONICAL

    await resolver.run(stale_token, stale)
    await resolver.run(token, current)

    assert asthma_client.exact_calls == ["Eczema"]
    assert resolver.session.subject_label == "Eczema"
    assert resolver.session.status == ResolutionStatus.DONE
