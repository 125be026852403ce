import io
import logging
import traceback
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import HTTPException, UploadFile, status
from PIL import Image, UnidentifiedImageError

from .config import settings

logger = logging.getLogger(__name__)


def media_kind(content_type: Optional[str]) -> str:
    """Classify an upload as video or image from its MIME type"""
    if content_type and content_type.startswith("video/"):
        return "video"
    return "image"


def _probe_dimensions(content: bytes) -> Dict[str, Optional[int]]:
    try:
        with Image.open(io.BytesIO(content)) as image:
            width, height = image.size
            return {"width": width, "height": height}
    except (UnidentifiedImageError, OSError):
        return {"width": None, "height": None}


class MediaStorage:
    """Media gateway over Cloudflare R2 (S3 API) with a local disk fallback.

    Every stored asset is addressed by its publicId, the object key inside the
    bucket (or the path below the upload directory when running locally).
    """

    def __init__(self, upload_dir: Optional[str] = None, client: Any = None):
        self.client = client
        self.bucket = settings.R2_BUCKET_NAME
        self.public_url = settings.R2_PUBLIC_URL
        self.base_url = settings.BASE_URL
        self.upload_dir = Path(upload_dir or settings.UPLOAD_DIRECTORY)

        logger.info("Initializing MediaStorage with configuration:")
        logger.info(f"  Bucket: {self.bucket}")
        logger.info(f"  Public URL: {self.public_url}")
        logger.info(f"  Endpoint: {settings.R2_ENDPOINT}")
        logger.info(f"  Access Key ID: {settings.R2_ACCESS_KEY_ID[:5]}..." if settings.R2_ACCESS_KEY_ID else "  Access Key ID: Not set")

        if self.client is not None:
            return

        if all([settings.R2_ENDPOINT, settings.R2_ACCESS_KEY_ID, settings.R2_SECRET_ACCESS_KEY]):
            try:
                self.client = boto3.client(
                    "s3",
                    endpoint_url=settings.R2_ENDPOINT,
                    aws_access_key_id=settings.R2_ACCESS_KEY_ID,
                    aws_secret_access_key=settings.R2_SECRET_ACCESS_KEY,
                )
                logger.info("MediaStorage S3 client initialized successfully")
            except (BotoCoreError, ValueError) as e:
                logger.error(f"Failed to create S3 client: {str(e)}")
                logger.warning("Object storage will not be available, using local storage")
        else:
            missing = []
            if not settings.R2_ENDPOINT:
                missing.append("R2_ENDPOINT")
            if not settings.R2_ACCESS_KEY_ID:
                missing.append("R2_ACCESS_KEY_ID")
            if not settings.R2_SECRET_ACCESS_KEY:
                missing.append("R2_SECRET_ACCESS_KEY")
            logger.warning(f"Object storage not configured - missing: {', '.join(missing)}; using local storage")

    def check_bucket(self) -> bool:
        """Log whether the configured bucket is reachable"""
        if not self.client:
            return False
        try:
            self.client.head_bucket(Bucket=self.bucket)
            logger.info(f"Target bucket '{self.bucket}' found and accessible")
            return True
        except (BotoCoreError, ClientError) as e:
            logger.warning(f"Target bucket '{self.bucket}' not accessible: {str(e)}")
            return False

    def url_for(self, public_id: str) -> str:
        if self.client and self.public_url:
            return f"{self.public_url}/{public_id}"
        return f"{self.base_url}/media/{public_id}"

    def local_path(self, public_id: str) -> Path:
        """Resolve a publicId below the upload directory, refusing path escapes"""
        root = self.upload_dir.resolve()
        path = (root / public_id).resolve()
        if root not in path.parents:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
        return path

    async def upload(self, file: UploadFile, folder: Optional[str] = None) -> Dict[str, Any]:
        """Store one uploaded file and return its media item"""
        folder = folder or settings.MEDIA_FOLDER
        content = await file.read()
        if len(content) > settings.MAX_UPLOAD_SIZE:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"{file.filename} exceeds the {settings.MAX_UPLOAD_SIZE} byte limit",
            )

        extension = Path(file.filename or "").suffix.lower()
        public_id = f"{folder}/{uuid.uuid4().hex}{extension}"
        kind = media_kind(file.content_type)
        logger.info(f"[UPLOAD] Received file: {file.filename} ({kind}, {len(content)} bytes) -> {public_id}")

        try:
            if self.client:
                self.client.put_object(
                    Bucket=self.bucket,
                    Key=public_id,
                    Body=content,
                    ContentType=file.content_type or "application/octet-stream",
                )
            else:
                path = self.upload_dir / public_id
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_bytes(content)
        except (BotoCoreError, ClientError, OSError) as e:
            logger.error(f"[UPLOAD] Failed to store {public_id}: {str(e)}")
            logger.error(traceback.format_exc())
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to upload media",
            )

        dimensions = _probe_dimensions(content) if kind == "image" else {"width": None, "height": None}
        return {
            "kind": kind,
            "src": self.url_for(public_id),
            "public_id": public_id,
            "width": dimensions["width"],
            "height": dimensions["height"],
            "duration": None,
        }

    def delete(self, public_id: str) -> str:
        """Delete an asset by publicId; returns "ok" or "not found" """
        if self.client:
            try:
                self.client.head_object(Bucket=self.bucket, Key=public_id)
            except ClientError as e:
                if e.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound"):
                    return "not found"
                raise
            self.client.delete_object(Bucket=self.bucket, Key=public_id)
            logger.info(f"Deleted {public_id} from bucket '{self.bucket}'")
            return "ok"

        path = self.local_path(public_id)
        if not path.exists():
            return "not found"
        path.unlink()
        logger.info(f"Deleted local file {path}")
        return "ok"

# Global instance for app-wide usage
media_storage = MediaStorage()
