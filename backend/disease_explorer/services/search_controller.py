"""Incremental disease search: debounced lookups reduced to a candidate list.

The controller owns a single SearchSession. Raw input is recorded as soon as
it arrives, but a lookup is only issued once the input has been quiet for the
debounce period. Every lookup is tagged with a generation token; a response
is applied only if its token is still the current one, so a slow reply to an
older query can never overwrite the candidates of a newer one.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from disease_explorer.models.disease_models import Disease, SearchSession, SearchStatus
from disease_explorer.models.ols_models import SearchHit
from disease_explorer.services.debounce import Debouncer, Generation
from disease_explorer.services.ols_client import LookupFailure, OntologyLookupClient

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.3

NO_MATCHES_MESSAGE = "Please provide an actual disease name."
LOOKUP_FAILED_MESSAGE = "Failed to fetch diseases. Please try again."

SelectListener = Callable[[Disease | None], None]


def hits_to_diseases(hits: list[SearchHit]) -> list[Disease]:
    """Map raw hits to candidates, dropping hits without an id or label. Keeps server order."""
    diseases: list[Disease] = []
    for hit in hits:
        if not hit.id or not hit.label or not hit.label.strip():
            continue
        diseases.append(Disease(id=hit.id, label=hit.label, description=hit.description))
    return diseases


class SearchController:
    def __init__(
        self,
        client: OntologyLookupClient,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        on_select: SelectListener | None = None,
    ):
        self.client = client
        self.session = SearchSession()
        self._generation = Generation()
        self._debouncer = Debouncer(debounce_seconds, self.search)
        self._listeners: list[SelectListener] = []
        if on_select is not None:
            self._listeners.append(on_select)

    @property
    def timer_pending(self) -> bool:
        return self._debouncer.pending

    def add_select_listener(self, listener: SelectListener) -> None:
        self._listeners.append(listener)

    def on_input_change(self, text: str) -> None:
        """Record raw text and restart the quiet-period timer."""
        self.session.query = text
        self._debouncer.schedule(text)

    async def search(self, text: str) -> SearchSession:
        """Evaluate settled input immediately. Never raises."""
        settled = text.strip()
        if not settled:
            # Drop interest in anything still in flight
            self._generation.advance()
            self._reset_results(SearchStatus.IDLE)
            return self.session

        token = self._generation.advance()
        self.session.generation = token
        self.session.status = SearchStatus.PENDING
        self.session.error_message = None

        try:
            hits = await self.client.search_candidates(settled)
        except LookupFailure as e:
            if not self._generation.is_current(token):
                logger.debug("Discarding failure for superseded search %d (%r)", token, settled)
                return self.session
            logger.warning("Disease search failed for %r: %s", settled, e)
            self.session.candidates = []
            self.session.status = SearchStatus.ERRORED
            self.session.error_message = LOOKUP_FAILED_MESSAGE
            return self.session

        if not self._generation.is_current(token):
            logger.debug("Discarding response for superseded search %d (%r)", token, settled)
            return self.session

        candidates = hits_to_diseases(hits)
        if not candidates:
            self.session.candidates = []
            self.session.status = SearchStatus.ERRORED
            self.session.error_message = NO_MATCHES_MESSAGE
        else:
            self.session.candidates = candidates
            self.session.status = SearchStatus.SETTLED
            self.session.error_message = None
        logger.info("Search %d for %r settled with %d candidates", token, settled, len(candidates))
        return self.session

    def on_select(self, disease: Disease | None) -> None:
        """Clear the candidate list and forward the selection to listeners."""
        # A lookup still in flight must not repopulate the list
        self.session.generation = self._generation.advance()
        self.session.candidates = []
        if self.session.status == SearchStatus.PENDING:
            self.session.status = SearchStatus.IDLE
        for listener in self._listeners:
            listener(disease)

    def on_clear(self) -> None:
        self._debouncer.cancel()
        self._generation.advance()
        self.session.query = ""
        self._reset_results(SearchStatus.IDLE)

    def _reset_results(self, status: SearchStatus) -> None:
        self.session.candidates = []
        self.session.error_message = None
        self.session.status = status
        self.session.generation = self._generation.value

    async def drain(self) -> None:
        await self._debouncer.drain()

    async def aclose(self) -> None:
        self._debouncer.cancel()
        self._generation.advance()
        await self._debouncer.aclose()
