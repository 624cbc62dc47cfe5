import uuid
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from app.core import get_db
from app.models import Folder, Paper, User
from app.schemas import FolderCreate, FolderUpdate, FolderResponse
from app.api.v1.auth import get_current_user
from app.api.v1.papers import verify_folder_access

router = APIRouter()


async def _creates_cycle(db: AsyncSession, folder: Folder, parent_id: uuid.UUID) -> bool:
    """True when ``parent_id`` is the folder itself or one of its descendants."""
    seen: set[uuid.UUID] = set()
    current = parent_id
    while current and current not in seen:
        if current == folder.id:
            return True
        seen.add(current)
        parent = await db.get(Folder, current)
        current = parent.parent_id if parent else None
    return False


@router.post("", response_model=FolderResponse, status_code=status.HTTP_201_CREATED)
async def create_folder(
    folder_data: FolderCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    if folder_data.parent_id:
        await verify_folder_access(folder_data.parent_id, current_user, db)

    folder = Folder(user_id=current_user.id, **folder_data.model_dump())
    db.add(folder)
    await db.commit()
    await db.refresh(folder)
    return folder


@router.get("", response_model=list[FolderResponse])
async def list_folders(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    result = await db.execute(
        select(Folder).where(Folder.user_id == current_user.id).order_by(Folder.created_at)
    )
    return result.scalars().all()


@router.patch("/{folder_id}", response_model=FolderResponse)
async def update_folder(
    folder_id: uuid.UUID,
    folder_data: FolderUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    folder = await verify_folder_access(folder_id, current_user, db)
    updates = folder_data.model_dump(exclude_unset=True)

    parent_id = updates.get("parent_id")
    if parent_id:
        await verify_folder_access(parent_id, current_user, db)
        if await _creates_cycle(db, folder, parent_id):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A folder cannot be moved into itself")

    for field, value in updates.items():
        setattr(folder, field, value)
    await db.commit()
    await db.refresh(folder)
    return folder


@router.delete("/{folder_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_folder(
    folder_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Delete a folder; its papers and subfolders move to the top level."""
    folder = await verify_folder_access(folder_id, current_user, db)
    await db.execute(update(Paper).where(Paper.folder_id == folder.id).values(folder_id=None))
    await db.execute(update(Folder).where(Folder.parent_id == folder.id).values(parent_id=None))
    await db.delete(folder)
    await db.commit()
