"""Per-browser explorer sessions: a search controller wired to a hierarchy resolver."""

from __future__ import annotations

import asyncio
import logging
import os
import secrets
from collections import OrderedDict

from disease_explorer.models.disease_models import Disease, ExplorerState
from disease_explorer.services.hierarchy_resolver import HierarchyResolver
from disease_explorer.services.ols_client import OntologyLookupClient, debounce_seconds_from_env, get_ols_client
from disease_explorer.services.search_controller import SearchController

logger = logging.getLogger(__name__)

_DEFAULT_MAX_SESSIONS = 500


class ExplorerSession:
    """Owns one SearchController and one HierarchyResolver.

    Selection is the only handoff between them: the select listener starts a
    resolution for the chosen disease, or resets the resolver when the
    selection is cleared.
    """

    def __init__(self, client: OntologyLookupClient, debounce_seconds: float, session_id: str | None = None):
        self.session_id = session_id or secrets.token_urlsafe(16)
        self.selected: Disease | None = None
        self.resolver = HierarchyResolver(client)
        self.search = SearchController(client, debounce_seconds, on_select=self._on_select)
        self._resolutions: set[asyncio.Task] = set()

    def _on_select(self, disease: Disease | None) -> None:
        self.selected = disease
        if disease is None:
            self.resolver.reset()
            return
        # begin() supersedes the previous selection before this returns
        token, session = self.resolver.begin(disease.label)
        task = asyncio.get_running_loop().create_task(self.resolver.run(token, session))
        self._resolutions.add(task)
        task.add_done_callback(self._resolutions.discard)

    def state(self) -> ExplorerState:
        return ExplorerState(
            session_id=self.session_id,
            search=self.search.session.model_copy(deep=True),
            selected=self.selected,
            resolution=self.resolver.session.model_copy(deep=True),
        )

    async def settle(self) -> None:
        """Wait for fired searches and running resolutions to finish."""
        await self.search.drain()
        if self._resolutions:
            await asyncio.gather(*self._resolutions, return_exceptions=True)

    async def aclose(self) -> None:
        await self.search.aclose()
        self.resolver.reset()
        for task in list(self._resolutions):
            task.cancel()
        if self._resolutions:
            await asyncio.gather(*self._resolutions, return_exceptions=True)


class SessionRegistry:
    """In-memory explorer sessions, oldest evicted first past ``max_sessions``."""

    def __init__(self, client: OntologyLookupClient, debounce_seconds: float, max_sessions: int = _DEFAULT_MAX_SESSIONS):
        self.client = client
        self.debounce_seconds = debounce_seconds
        self.max_sessions = max_sessions
        self._sessions: OrderedDict[str, ExplorerSession] = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    async def create(self) -> ExplorerSession:
        session = ExplorerSession(self.client, self.debounce_seconds)
        self._sessions[session.session_id] = session
        logger.info("Explorer session created: %s", session.session_id)
        while len(self._sessions) > self.max_sessions:
            old_id, old = self._sessions.popitem(last=False)
            logger.info("Evicting explorer session %s", old_id)
            await old.aclose()
        return session

    def get(self, session_id: str) -> ExplorerSession | None:
        session = self._sessions.get(session_id)
        if session is not None:
            self._sessions.move_to_end(session_id)
        return session

    async def close(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        await session.aclose()
        logger.info("Explorer session closed: %s", session_id)
        return True

    async def close_all(self) -> None:
        while self._sessions:
            _, session = self._sessions.popitem(last=False)
            await session.aclose()


# Module-level singleton
_registry: SessionRegistry | None = None


def get_session_registry() -> SessionRegistry:
    global _registry
    if _registry is None:
        try:
            max_sessions = int(os.environ.get("MAX_EXPLORER_SESSIONS", _DEFAULT_MAX_SESSIONS))
        except ValueError:
            logger.warning("Ignoring invalid MAX_EXPLORER_SESSIONS, using %d", _DEFAULT_MAX_SESSIONS)
            max_sessions = _DEFAULT_MAX_SESSIONS
        _registry = SessionRegistry(get_ols_client(), debounce_seconds_from_env(), max_sessions)
    return _registry


async def close_session_registry() -> None:
    global _registry
    if _registry is not None:
        await _registry.close_all()
        _registry = None
