import uuid
import logging
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from app.core import get_db
from app.models import Chart, Paper, User
from app.schemas import ChartFromCSVRequest, ChartFromDescriptionRequest, ChartUpdate, ChartResponse
from app.api.v1.auth import get_current_user
from app.api.v1.papers import verify_paper_access
from app.services.llm import LLMError
from app.services.chart_generator import (
    CSVParseError, GeneratedChart, parse_csv, generate_chart_config, generate_chart_from_description,
)

router = APIRouter()
logger = logging.getLogger(__name__)


async def _save_chart(db: AsyncSession, paper: Paper, current_user: User, generated: GeneratedChart) -> Chart:
    result = await db.execute(select(func.max(Chart.figure_number)).where(Chart.paper_id == paper.id))
    chart = Chart(
        paper_id=paper.id,
        user_id=current_user.id,
        title=generated.title,
        chart_type=generated.chartType,
        data_source=generated.data,
        chart_config=generated.chart_config(),
        description=generated.description,
        figure_number=(result.scalar() or 0) + 1,
    )
    db.add(chart)
    await db.commit()
    await db.refresh(chart)
    return chart


async def _get_owned_chart(chart_id: uuid.UUID, current_user: User, db: AsyncSession) -> Chart:
    chart = await db.get(Chart, chart_id)
    if not chart:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chart not found")
    if chart.user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No access to this chart")
    return chart


@router.post("/csv", response_model=ChartResponse, status_code=status.HTTP_201_CREATED)
async def create_from_csv(
    request: ChartFromCSVRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    paper = await verify_paper_access(request.paper_id, current_user, db)
    try:
        headers, rows = parse_csv(request.csv_data)
    except CSVParseError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        generated = await generate_chart_config(rows, headers, request.description or "请选择最合适的图表展示这些数据")
    except LLMError as e:
        logger.exception("Chart config generation failed for paper %s", paper.id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"图表生成失败: {e}")
    return await _save_chart(db, paper, current_user, generated)


@router.post("/describe", response_model=ChartResponse, status_code=status.HTTP_201_CREATED)
async def create_from_description(
    request: ChartFromDescriptionRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    paper = await verify_paper_access(request.paper_id, current_user, db)
    try:
        generated = await generate_chart_from_description(request.description)
    except LLMError as e:
        logger.exception("Chart generation failed for paper %s", paper.id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"图表生成失败: {e}")
    return await _save_chart(db, paper, current_user, generated)


@router.get("", response_model=list[ChartResponse])
async def list_charts(
    paper_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    await verify_paper_access(paper_id, current_user, db)
    result = await db.execute(
        select(Chart).where(Chart.paper_id == paper_id).order_by(Chart.figure_number, Chart.created_at)
    )
    return result.scalars().all()


@router.get("/{chart_id}", response_model=ChartResponse)
async def get_chart(
    chart_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    return await _get_owned_chart(chart_id, current_user, db)


@router.patch("/{chart_id}", response_model=ChartResponse)
async def update_chart(
    chart_id: uuid.UUID,
    chart_data: ChartUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    chart = await _get_owned_chart(chart_id, current_user, db)
    for field, value in chart_data.model_dump(exclude_unset=True).items():
        setattr(chart, field, value)
    await db.commit()
    await db.refresh(chart)
    return chart


@router.delete("/{chart_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_chart(
    chart_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    chart = await _get_owned_chart(chart_id, current_user, db)
    await db.delete(chart)
    await db.commit()
