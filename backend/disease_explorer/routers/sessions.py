from fastapi import APIRouter, Depends, HTTPException, Request

from disease_explorer.models.disease_models import ExplorerState, InputRequest, SelectRequest
from disease_explorer.rate_limit import SESSION_CREATE_LIMIT, SESSION_INPUT_LIMIT, limiter
from disease_explorer.services.explorer_session import ExplorerSession, SessionRegistry, get_session_registry

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


def _get_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> ExplorerSession:
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


@router.post("", response_model=ExplorerState)
@limiter.limit(SESSION_CREATE_LIMIT)
async def create_session(
    request: Request,
    registry: SessionRegistry = Depends(get_session_registry),
) -> ExplorerState:
    """Start an explorer session (one per browser tab)."""
    session = await registry.create()
    return session.state()


@router.get("/{session_id}", response_model=ExplorerState)
async def get_session_state(session: ExplorerSession = Depends(_get_session)) -> ExplorerState:
    return session.state()


@router.post("/{session_id}/input", response_model=ExplorerState)
@limiter.limit(SESSION_INPUT_LIMIT)
async def session_input(
    request: Request,
    body: InputRequest,
    session: ExplorerSession = Depends(_get_session),
) -> ExplorerState:
    """Record typed text; the lookup runs once input has been quiet for the debounce period."""
    session.search.on_input_change(body.text)
    return session.state()


@router.post("/{session_id}/select", response_model=ExplorerState)
async def session_select(body: SelectRequest, session: ExplorerSession = Depends(_get_session)) -> ExplorerState:
    """Select a candidate (or clear the selection with null) and start hierarchy resolution."""
    session.search.on_select(body.disease)
    return session.state()


@router.post("/{session_id}/clear", response_model=ExplorerState)
async def session_clear(session: ExplorerSession = Depends(_get_session)) -> ExplorerState:
    session.search.on_clear()
    return session.state()


@router.delete("/{session_id}")
async def close_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> dict[str, bool]:
    if not await registry.close(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return {"closed": True}
