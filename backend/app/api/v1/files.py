import mimetypes
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse
from app.models import User
from app.api.v1.auth import get_current_user
from app.services.storage import StorageService

router = APIRouter()


@router.get("/{storage_key:path}")
async def get_stored_file(
    storage_key: str,
    current_user: Annotated[User, Depends(get_current_user)]
):
    """Serve stored exports and uploads to the user that owns them."""
    if StorageService.key_owner(storage_key) != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No access to this file")

    storage = StorageService()
    try:
        file_path = await storage.get_file_path(storage_key)
    except (FileNotFoundError, ValueError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    media_type, _ = mimetypes.guess_type(str(file_path))
    return FileResponse(path=file_path, media_type=media_type or "application/octet-stream", filename=file_path.name)
