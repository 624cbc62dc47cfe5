import uuid
import logging
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.core import get_db
from app.models import PolishHistory, User
from app.schemas import (
    PolishTextRequest, PolishTextResponse, PolishParagraphsRequest,
    PolishParagraphsResponse, PolishHistoryResponse,
)
from app.api.v1.auth import get_current_user
from app.api.v1.papers import verify_paper_access, record_version
from app.services.llm import LLMError
from app.services.text_polisher import polish_text, polish_paragraphs

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/text", response_model=PolishTextResponse)
async def polish(
    request: PolishTextRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    if request.paper_id:
        await verify_paper_access(request.paper_id, current_user, db)

    try:
        result = await polish_text(request.text, request.polish_type.value)
    except LLMError as e:
        logger.exception("Polish failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"润色失败: {e}")

    suggestions = [s.model_dump() for s in result.suggestions]
    history_id = None
    if request.paper_id:
        history = PolishHistory(
            paper_id=request.paper_id,
            original_text=request.text,
            polished_text=result.polishedText,
            polish_type=request.polish_type,
            suggestions=suggestions,
        )
        db.add(history)
        await db.commit()
        history_id = history.id

    return {"polished_text": result.polishedText, "suggestions": suggestions, "history_id": history_id}


@router.post("/paragraphs", response_model=PolishParagraphsResponse)
async def polish_many(
    request: PolishParagraphsRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Polish paragraphs one by one; a paragraph that fails keeps its text."""
    if request.paper_id:
        await verify_paper_access(request.paper_id, current_user, db)

    polished = await polish_paragraphs(request.paragraphs, request.polish_type.value)

    if request.paper_id:
        for original, result in zip(request.paragraphs, polished):
            if original.strip() and result != original:
                db.add(PolishHistory(
                    paper_id=request.paper_id,
                    original_text=original,
                    polished_text=result,
                    polish_type=request.polish_type,
                    suggestions=[],
                ))
        await db.commit()

    return {"paragraphs": polished}


@router.get("/history", response_model=list[PolishHistoryResponse])
async def list_history(
    paper_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: int = Query(default=50, le=100),
    offset: int = Query(default=0, ge=0)
):
    await verify_paper_access(paper_id, current_user, db)
    result = await db.execute(
        select(PolishHistory)
        .where(PolishHistory.paper_id == paper_id)
        .order_by(PolishHistory.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    return result.scalars().all()


@router.post("/history/{history_id}/apply", response_model=PolishHistoryResponse)
async def apply_polish(
    history_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Mark a polish as applied and swap it into the paper body when the original is found."""
    history = await db.get(PolishHistory, history_id)
    if not history:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Polish record not found")
    paper = await verify_paper_access(history.paper_id, current_user, db)

    if not history.applied and paper.content and history.original_text in paper.content:
        paper.content = paper.content.replace(history.original_text, history.polished_text, 1)
        await record_version(db, paper, "应用润色")
    history.applied = True
    await db.commit()
    await db.refresh(history)
    return history
