import uuid
import logging
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.core import get_db
from app.models import Reference, User
from app.schemas import (
    ReferenceFields, ReferenceCreate, ReferenceFormatUpdate, ReferenceResponse,
    CitationPreview, ReferenceSearchRequest, ReferenceCandidate,
)
from app.api.v1.auth import get_current_user
from app.api.v1.papers import verify_paper_access
from app.services.llm import LLMError
from app.services.reference_search import search_references
from app.utils.reference_formatter import ReferenceData, format_reference

router = APIRouter()
logger = logging.getLogger(__name__)


def _reference_data(source: ReferenceFields | Reference) -> ReferenceData:
    return ReferenceData(
        title=source.title,
        authors=list(source.authors or []),
        document_type=source.document_type,
        year=source.year,
        journal=source.journal,
        volume=source.volume,
        issue=source.issue,
        pages=source.pages,
        doi=source.doi,
        url=source.url,
    )


async def _get_owned_reference(reference_id: uuid.UUID, current_user: User, db: AsyncSession) -> Reference:
    reference = await db.get(Reference, reference_id)
    if not reference:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reference not found")
    await verify_paper_access(reference.paper_id, current_user, db)
    return reference


@router.post("/search", response_model=list[ReferenceCandidate])
async def search(
    request: ReferenceSearchRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    await verify_paper_access(request.paper_id, current_user, db)
    try:
        results = await search_references(request.query)
    except LLMError as e:
        logger.exception("Reference search failed for %r", request.query)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"文献搜索失败: {e}")
    return [r.model_dump() for r in results]


@router.post("/preview", response_model=CitationPreview)
async def preview_citation(
    reference: ReferenceFields,
    current_user: Annotated[User, Depends(get_current_user)]
):
    """Format a reference without storing it."""
    return {
        "citation_format": reference.citation_format,
        "formatted_citation": format_reference(_reference_data(reference), reference.citation_format.value),
    }


@router.post("", response_model=ReferenceResponse, status_code=status.HTTP_201_CREATED)
async def add_reference(
    reference_data: ReferenceCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    await verify_paper_access(reference_data.paper_id, current_user, db)

    reference = Reference(
        **reference_data.model_dump(),
        formatted_citation=format_reference(
            _reference_data(reference_data), reference_data.citation_format.value
        ),
    )
    db.add(reference)
    await db.commit()
    await db.refresh(reference)
    return reference


@router.get("", response_model=list[ReferenceResponse])
async def list_references(
    paper_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    await verify_paper_access(paper_id, current_user, db)
    result = await db.execute(
        select(Reference).where(Reference.paper_id == paper_id).order_by(Reference.created_at)
    )
    return result.scalars().all()


@router.patch("/{reference_id}/format", response_model=ReferenceResponse)
async def change_citation_format(
    reference_id: uuid.UUID,
    update: ReferenceFormatUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Switch a stored reference to another style and reformat it."""
    reference = await _get_owned_reference(reference_id, current_user, db)
    reference.citation_format = update.citation_format
    reference.formatted_citation = format_reference(_reference_data(reference), update.citation_format.value)
    await db.commit()
    await db.refresh(reference)
    return reference


@router.delete("/{reference_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_reference(
    reference_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    reference = await _get_owned_reference(reference_id, current_user, db)
    await db.delete(reference)
    await db.commit()
