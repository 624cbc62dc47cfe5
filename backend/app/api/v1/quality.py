import uuid
import logging
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.core import get_db
from app.models import QualityCheck, User
from app.schemas import QualityCheckResponse, GrammarCheckRequest, GrammarCheckResponse
from app.api.v1.auth import get_current_user
from app.api.v1.papers import verify_paper_access
from app.services.llm import LLMError
from app.services.quality_checker import check_paper_quality, check_grammar

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/papers/{paper_id}/check", response_model=QualityCheckResponse, status_code=status.HTTP_201_CREATED)
async def run_quality_check(
    paper_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    paper = await verify_paper_access(paper_id, current_user, db)
    if not paper.content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="论文内容为空，无法检测")

    try:
        result = await check_paper_quality(paper.content, paper.outline or "")
    except LLMError as e:
        logger.exception("Quality check failed for paper %s", paper.id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"质量检测失败: {e}")

    check = QualityCheck(
        paper_id=paper.id,
        overall_score=result.overallScore,
        plagiarism_score=result.plagiarismScore,
        grammar_score=result.grammarScore,
        academic_style_score=result.academicStyleScore,
        structure_score=result.structureScore,
        issues=[issue.model_dump() for issue in result.issues],
        suggestions=result.suggestions,
    )
    db.add(check)
    await db.commit()
    await db.refresh(check)
    return check


@router.get("/papers/{paper_id}/history", response_model=list[QualityCheckResponse])
async def list_quality_history(
    paper_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: int = Query(default=50, le=100)
):
    await verify_paper_access(paper_id, current_user, db)
    result = await db.execute(
        select(QualityCheck)
        .where(QualityCheck.paper_id == paper_id)
        .order_by(QualityCheck.created_at.desc())
        .limit(limit)
    )
    return result.scalars().all()


@router.get("/papers/{paper_id}/latest", response_model=QualityCheckResponse | None)
async def get_latest_check(
    paper_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    await verify_paper_access(paper_id, current_user, db)
    result = await db.execute(
        select(QualityCheck)
        .where(QualityCheck.paper_id == paper_id)
        .order_by(QualityCheck.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


@router.post("/grammar", response_model=GrammarCheckResponse)
async def grammar_check(
    request: GrammarCheckRequest,
    current_user: Annotated[User, Depends(get_current_user)]
):
    try:
        result = await check_grammar(request.text)
    except LLMError as e:
        logger.exception("Grammar check failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"语法检查失败: {e}")
    return {"errors": [error.model_dump() for error in result.errors]}
