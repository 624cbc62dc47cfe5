import uuid
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.core import get_db
from app.models import PaperTag, PaperTagAssociation, User
from app.schemas import TagCreate, TagResponse
from app.api.v1.auth import get_current_user
from app.api.v1.papers import verify_paper_access

router = APIRouter()


async def _get_owned_tag(tag_id: uuid.UUID, current_user: User, db: AsyncSession) -> PaperTag:
    tag = await db.get(PaperTag, tag_id)
    if not tag or tag.user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tag not found")
    return tag


@router.post("", response_model=TagResponse, status_code=status.HTTP_201_CREATED)
async def create_tag(
    tag_data: TagCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    existing = await db.execute(
        select(PaperTag).where(PaperTag.user_id == current_user.id, PaperTag.name == tag_data.name)
    )
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Tag already exists")

    tag = PaperTag(user_id=current_user.id, name=tag_data.name, color=tag_data.color)
    db.add(tag)
    await db.commit()
    await db.refresh(tag)
    return tag


@router.get("", response_model=list[TagResponse])
async def list_tags(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    result = await db.execute(
        select(PaperTag).where(PaperTag.user_id == current_user.id).order_by(PaperTag.name)
    )
    return result.scalars().all()


@router.delete("/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tag(
    tag_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    tag = await _get_owned_tag(tag_id, current_user, db)
    links = await db.execute(select(PaperTagAssociation).where(PaperTagAssociation.tag_id == tag.id))
    for link in links.scalars().all():
        await db.delete(link)
    await db.delete(tag)
    await db.commit()


@router.post("/{tag_id}/papers/{paper_id}", status_code=status.HTTP_204_NO_CONTENT)
async def tag_paper(
    tag_id: uuid.UUID,
    paper_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    tag = await _get_owned_tag(tag_id, current_user, db)
    paper = await verify_paper_access(paper_id, current_user, db)
    if not await db.get(PaperTagAssociation, (paper.id, tag.id)):
        db.add(PaperTagAssociation(paper_id=paper.id, tag_id=tag.id))
        await db.commit()


@router.delete("/{tag_id}/papers/{paper_id}", status_code=status.HTTP_204_NO_CONTENT)
async def untag_paper(
    tag_id: uuid.UUID,
    paper_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    tag = await _get_owned_tag(tag_id, current_user, db)
    paper = await verify_paper_access(paper_id, current_user, db)
    link = await db.get(PaperTagAssociation, (paper.id, tag.id))
    if link:
        await db.delete(link)
        await db.commit()


@router.get("/papers/{paper_id}", response_model=list[TagResponse])
async def list_paper_tags(
    paper_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    await verify_paper_access(paper_id, current_user, db)
    result = await db.execute(
        select(PaperTag)
        .join(PaperTagAssociation, PaperTagAssociation.tag_id == PaperTag.id)
        .where(PaperTagAssociation.paper_id == paper_id)
        .order_by(PaperTag.name)
    )
    return result.scalars().all()
