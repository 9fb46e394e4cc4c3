from fastapi import APIRouter, Depends, Query, Request

from disease_explorer.models.disease_models import ResolutionSession, SearchSession
from disease_explorer.rate_limit import HIERARCHY_LIMIT, SEARCH_LIMIT, limiter
from disease_explorer.services.hierarchy_resolver import HierarchyResolver
from disease_explorer.services.ols_client import OntologyLookupClient, get_ols_client
from disease_explorer.services.search_controller import SearchController

router = APIRouter(prefix="/api/diseases", tags=["diseases"])


@router.get("/search", response_model=SearchSession)
@limiter.limit(SEARCH_LIMIT)
async def search_diseases(
    request: Request,
    q: str = Query("", max_length=500),
    client: OntologyLookupClient = Depends(get_ols_client),
) -> SearchSession:
    """Search EFO for candidate diseases (single lookup, no debounce)."""
    controller = SearchController(client)
    controller.session.query = q
    return await controller.search(q)


@router.get("/hierarchy", response_model=ResolutionSession)
@limiter.limit(HIERARCHY_LIMIT)
async def disease_hierarchy(
    request: Request,
    label: str = Query(..., min_length=1, max_length=500),
    client: OntologyLookupClient = Depends(get_ols_client),
) -> ResolutionSession:
    """Resolve a disease label to its canonical EFO term and ancestor chain."""
    resolver = HierarchyResolver(client)
    return await resolver.resolve(label)
