from typing import List
import logging

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import HTTPException, UploadFile, status
from starlette.responses import FileResponse, StreamingResponse

from instaplus.core.config import settings
from instaplus.core.storage import MediaStorage
from instaplus.modules.media.schemas import DeleteResult, MediaItem

logger = logging.getLogger(__name__)

class MediaService:
    def __init__(self, storage: MediaStorage):
        self.storage = storage

    async def upload_media(self, files: List[UploadFile]) -> List[MediaItem]:
        """Store a batch of files in order; one failure fails the whole request"""
        if not files:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="no files")
        if len(files) > settings.MAX_UPLOAD_FILES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"You can upload up to {settings.MAX_UPLOAD_FILES} files at once",
            )

        media = []
        for file in files:
            stored = await self.storage.upload(file)
            media.append(MediaItem(**stored))
        logger.info(f"Uploaded batch of {len(media)} file(s)")
        return media

    def delete_media(self, public_ids: List[str]) -> List[DeleteResult]:
        """Delete assets by publicId; unknown ids report "not found" """
        results = []
        for public_id in public_ids:
            results.append(DeleteResult(public_id=public_id, result=self.storage.delete(public_id)))
        return results

    def get_media(self, path: str):
        """Get media from object storage with local storage fallback"""
        if self.storage.client:
            try:
                obj = self.storage.client.get_object(Bucket=self.storage.bucket, Key=path)
                return StreamingResponse(
                    obj["Body"].iter_chunks(),
                    media_type=obj.get("ContentType", "application/octet-stream"),
                    headers={"Cache-Control": "public, max-age=86400"},
                )
            except (BotoCoreError, ClientError) as e:
                logger.warning(f"Failed to retrieve file {path} from object storage: {str(e)}. Falling back to local storage.")

        file_path = self.storage.local_path(path)
        if not file_path.exists():
            logger.error(f"File {path} not found in local storage")
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
        return FileResponse(file_path, headers={"Cache-Control": "public, max-age=86400"})
