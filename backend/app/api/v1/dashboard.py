from collections import defaultdict
from typing import Annotated
from fastapi import APIRouter, Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from app.core import get_db
from app.models import KnowledgeDocument, Paper, PaperStatus, QualityCheck, Reference, User
from app.schemas import DashboardStatistics, QualityComparisonRequest, QualityComparisonItem
from app.api.v1.auth import get_current_user
from app.api.v1.papers import verify_paper_access

router = APIRouter()

RECENT_PAPERS = 5
TREND_POINTS = 30


@router.get("/statistics", response_model=DashboardStatistics)
async def get_statistics(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    active = (Paper.user_id == current_user.id, Paper.is_deleted.is_(False))

    type_rows = await db.execute(select(Paper.type, func.count(Paper.id)).where(*active).group_by(Paper.type))
    paper_type_distribution = {str(t): n for t, n in type_rows.all()}

    completed = await db.execute(
        select(func.count(Paper.id)).where(*active, Paper.status == PaperStatus.COMPLETED)
    )

    checks = await db.execute(
        select(QualityCheck.created_at, QualityCheck.overall_score)
        .join(Paper, Paper.id == QualityCheck.paper_id)
        .where(*active)
        .order_by(QualityCheck.created_at)
    )
    by_day: dict[str, list[int]] = defaultdict(list)
    scores: list[int] = []
    for created_at, score in checks.all():
        by_day[created_at.date().isoformat()].append(score)
        scores.append(score)
    quality_trend = [
        {"date": day, "score": round(sum(values) / len(values), 1)}
        for day, values in sorted(by_day.items())
    ][-TREND_POINTS:]

    format_rows = await db.execute(
        select(Reference.citation_format, func.count(Reference.id))
        .join(Paper, Paper.id == Reference.paper_id)
        .where(*active)
        .group_by(Reference.citation_format)
    )

    documents = await db.execute(
        select(func.count(KnowledgeDocument.id)).where(KnowledgeDocument.user_id == current_user.id)
    )

    recent = await db.execute(
        select(Paper).where(*active).order_by(Paper.updated_at.desc()).limit(RECENT_PAPERS)
    )

    return {
        "total_papers": sum(paper_type_distribution.values()),
        "completed_papers": completed.scalar() or 0,
        "average_quality_score": round(sum(scores) / len(scores), 1) if scores else 0.0,
        "quality_trend": quality_trend,
        "citation_format_distribution": {str(f): n for f, n in format_rows.all()},
        "paper_type_distribution": paper_type_distribution,
        "total_documents": documents.scalar() or 0,
        "recent_papers": recent.scalars().all(),
    }


@router.post("/quality-comparison", response_model=list[QualityComparisonItem])
async def compare_quality(
    request: QualityComparisonRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Latest quality scores side by side; papers never checked are left out."""
    items = []
    for paper_id in dict.fromkeys(request.paper_ids):
        paper = await verify_paper_access(paper_id, current_user, db)
        result = await db.execute(
            select(QualityCheck)
            .where(QualityCheck.paper_id == paper.id)
            .order_by(QualityCheck.created_at.desc())
            .limit(1)
        )
        check = result.scalar_one_or_none()
        if not check:
            continue
        items.append({
            "paper_id": paper.id,
            "title": paper.title,
            "overall_score": check.overall_score,
            "plagiarism_score": check.plagiarism_score,
            "grammar_score": check.grammar_score,
            "academic_style_score": check.academic_style_score,
            "structure_score": check.structure_score,
            "checked_at": check.created_at,
        })
    return items
