from typing import List, Literal, Optional

from instaplus.modules.users.schemas.user import CamelModel

class MediaItem(CamelModel):
    """A stored image or video as returned by the upload gateway"""
    kind: Literal["image", "video"]
    src: str
    public_id: str
    width: Optional[int] = None
    height: Optional[int] = None
    duration: Optional[float] = None

class UploadResponse(CamelModel):
    media: List[MediaItem]

class DeleteMediaRequest(CamelModel):
    public_ids: List[str] = []

class DeleteResult(CamelModel):
    public_id: str
    result: str

class DeleteMediaResponse(CamelModel):
    ok: bool
    results: List[DeleteResult]
