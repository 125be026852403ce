from typing import Any, List
import logging

from fastapi import APIRouter, Depends, File, UploadFile, status

from instaplus.core.storage import MediaStorage
from instaplus.deps import get_current_user, get_media_storage
from instaplus.modules.media.schemas import DeleteMediaRequest, DeleteMediaResponse, UploadResponse
from instaplus.modules.media.service import MediaService
from instaplus.modules.users.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter()
media_router = APIRouter()

def get_media_service(storage: MediaStorage = Depends(get_media_storage)) -> MediaService:
    return MediaService(storage)

@router.post("/media", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_media(
    files: List[UploadFile] = File(...),
    media_service: MediaService = Depends(get_media_service),
    current_user: User = Depends(get_current_user),
) -> Any:
    """
    Upload up to five images or videos and return their media items.
    """
    logger.info(f"User {current_user.id} uploading {len(files)} file(s)")
    return UploadResponse(media=await media_service.upload_media(files))

@router.delete("/media", response_model=DeleteMediaResponse)
def delete_media(
    request_in: DeleteMediaRequest,
    media_service: MediaService = Depends(get_media_service),
    current_user: User = Depends(get_current_user),
) -> Any:
    """
    Delete uploaded assets by publicId. Deleting an unknown id is not an error.
    """
    results = media_service.delete_media(request_in.public_ids)
    return DeleteMediaResponse(ok=True, results=results)

@media_router.get("/{path:path}")
def serve_media(path: str, media_service: MediaService = Depends(get_media_service)):
    return media_service.get_media(path)
