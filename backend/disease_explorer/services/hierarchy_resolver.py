"""Two-step hierarchy resolution: exact label match, then ancestor fetch.

idle -> resolving-canonical -> resolving-hierarchy -> done, with errored
reachable from either resolving state. Each resolve() call starts a brand new
ResolutionSession; a call that has been superseded stops at its next await
and never writes into the newer session.
"""

from __future__ import annotations

import logging

from disease_explorer.models.disease_models import HierarchyTerm, ResolutionSession, ResolutionStatus
from disease_explorer.models.ols_models import AncestorRecord
from disease_explorer.services.debounce import Generation
from disease_explorer.services.ols_client import (
    LookupFailure,
    MalformedIdentifier,
    OntologyLookupClient,
    derive_lookup_key,
)

logger = logging.getLogger(__name__)

TERM_NOT_FOUND_MESSAGE = "Disease not found in EFO"
MALFORMED_IDENTIFIER_MESSAGE = "Invalid IRI format"
CANONICAL_LOOKUP_FAILED_MESSAGE = "Failed to fetch disease details"
HIERARCHY_FETCH_FAILED_MESSAGE = "Failed to fetch hierarchy"


def records_to_terms(records: list[AncestorRecord]) -> list[HierarchyTerm]:
    return [
        HierarchyTerm(
            iri=r.iri,
            label=r.label or r.obo_id or r.iri,
            description=r.description,
            obo_id=r.obo_id,
        )
        for r in records
    ]


class HierarchyResolver:
    def __init__(self, client: OntologyLookupClient):
        self.client = client
        self.session = ResolutionSession()
        self._generation = Generation()

    def reset(self) -> None:
        """Abandon the current session and go back to idle."""
        self._generation.advance()
        self.session = ResolutionSession()

    def begin(self, label: str) -> tuple[int, ResolutionSession]:
        """Start a fresh session for ``label`` without awaiting anything.

        Anything started earlier is superseded as soon as this returns.
        """
        token = self._generation.advance()
        session = ResolutionSession(subject_label=label, status=ResolutionStatus.RESOLVING_CANONICAL)
        self.session = session
        return token, session

    async def resolve(self, label: str) -> ResolutionSession:
        """Resolve ``label`` to its canonical term and ancestor chain. Never raises.

        Returns the session this call worked on, which is only the resolver's
        current session if no newer resolve() or reset() happened meanwhile.
        """
        token, session = self.begin(label)
        return await self.run(token, session)

    async def run(self, token: int, session: ResolutionSession) -> ResolutionSession:
        """Drive a session returned by begin() to done or errored."""
        label = session.subject_label
        if self._superseded(token, label):
            return session

        try:
            hit = await self.client.find_exact(label)
        except LookupFailure as e:
            if self._superseded(token, label):
                return session
            logger.warning("Exact lookup failed for %r: %s", label, e)
            return self._fail(session, CANONICAL_LOOKUP_FAILED_MESSAGE)

        if self._superseded(token, label):
            return session
        if hit is None:
            logger.info("No exact match for %r", label)
            return self._fail(session, TERM_NOT_FOUND_MESSAGE)

        session.canonical_id = hit.obo_id or hit.iri
        session.canonical_iri = hit.iri
        if session.canonical_id:
            session.term_url = self.client.term_page_url(session.canonical_id)
        try:
            session.lookup_key = derive_lookup_key(hit.iri)
        except MalformedIdentifier as e:
            logger.warning("Malformed identifier for %r: %s", label, e)
            return self._fail(session, MALFORMED_IDENTIFIER_MESSAGE)

        session.status = ResolutionStatus.RESOLVING_HIERARCHY
        try:
            records = await self.client.fetch_ancestors(session.lookup_key)
        except LookupFailure as e:
            if self._superseded(token, label):
                return session
            logger.warning("Ancestor fetch failed for %s: %s", session.lookup_key, e)
            return self._fail(session, HIERARCHY_FETCH_FAILED_MESSAGE)

        if self._superseded(token, label):
            return session
        session.ancestors = records_to_terms(records)
        session.status = ResolutionStatus.DONE
        logger.info("Resolved %r -> %s with %d ancestors", label, session.canonical_id, len(session.ancestors))
        return session

    def _superseded(self, token: int, label: str) -> bool:
        if self._generation.is_current(token):
            return False
        logger.debug("Discarding superseded resolution of %r", label)
        return True

    @staticmethod
    def _fail(session: ResolutionSession, message: str) -> ResolutionSession:
        session.status = ResolutionStatus.ERRORED
        session.error_message = message
        return session
