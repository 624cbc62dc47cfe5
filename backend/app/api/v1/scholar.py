import logging
from typing import Annotated, Any
from fastapi import APIRouter, Depends, HTTPException, status, Query
from app.models import User
from app.api.v1.auth import get_current_user
from app.services.scholar_search import ScholarConfigError, ScholarUpstreamError, search_papers

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/search")
async def search(
    current_user: Annotated[User, Depends(get_current_user)],
    query: str = Query(min_length=1, max_length=500),
    limit: int = Query(default=10, ge=1, le=100),
    offset: int | None = Query(default=None, ge=0),
    year: str | None = None,
    fields_of_study: str | None = None,
    open_access_only: bool | None = None,
) -> dict[str, Any]:
    """Search Semantic Scholar papers through the ai4scholar proxy."""
    try:
        return await search_papers(
            query,
            limit=limit,
            offset=offset,
            year=year,
            fields_of_study=fields_of_study,
            open_access_only=open_access_only,
        )
    except ScholarConfigError as e:
        raise HTTPException(status_code=status.HTTP_412_PRECONDITION_FAILED, detail=str(e))
    except ScholarUpstreamError as e:
        logger.warning("Scholar upstream error %s", e.status_code)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
