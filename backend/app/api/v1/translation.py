import logging
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.core import get_db
from app.models import Translation, User
from app.schemas import (
    TranslateRequest, TranslationResponse, TranslationPolishRequest,
    TranslationPolishResponse, DomainOption,
)
from app.api.v1.auth import get_current_user
from app.api.v1.papers import verify_paper_access
from app.services.llm import LLMError
from app.services.translator import DOMAIN_LABELS, translate_text, polish_translation

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/translate", response_model=TranslationResponse, status_code=status.HTTP_201_CREATED)
async def translate(
    request: TranslateRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    if request.source_lang == request.target_lang:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="源语言与目标语言不能相同")
    if request.paper_id:
        await verify_paper_access(request.paper_id, current_user, db)

    try:
        result = await translate_text(request.text, request.source_lang, request.target_lang, request.domain)
    except LLMError as e:
        logger.exception("Translation failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"翻译失败: {e}")

    translation = Translation(
        user_id=current_user.id,
        paper_id=request.paper_id,
        source_text=request.text,
        translated_text=result.translatedText,
        source_lang=request.source_lang,
        target_lang=request.target_lang,
        domain=request.domain,
        terminology=[term.model_dump() for term in result.terminology],
    )
    db.add(translation)
    await db.commit()
    await db.refresh(translation)
    return translation


@router.post("/polish", response_model=TranslationPolishResponse)
async def polish(
    request: TranslationPolishRequest,
    current_user: Annotated[User, Depends(get_current_user)]
):
    try:
        polished = await polish_translation(request.text, request.language, request.domain)
    except LLMError as e:
        logger.exception("Translation polish failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"润色失败: {e}")
    return {"polished_text": polished}


@router.get("/history", response_model=list[TranslationResponse])
async def list_history(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: int = Query(default=50, le=100),
    offset: int = Query(default=0, ge=0)
):
    result = await db.execute(
        select(Translation)
        .where(Translation.user_id == current_user.id)
        .order_by(Translation.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    return result.scalars().all()


@router.get("/domains", response_model=list[DomainOption])
async def list_domains():
    return [{"value": value, "label": label} for value, label in DOMAIN_LABELS.items()]
