import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, Set, TypeVar

from instaplus.client.api import LocalFile
from instaplus.client.errors import ClientError, PartialFailure, ValidationError
from instaplus.core.config import settings
from instaplus.modules.media.schemas import MediaItem

logger = logging.getLogger(__name__)

T = TypeVar("T")

@dataclass
class MediaSlot:
    """One attachment in the editor, either uploaded or still in flight"""
    item: Optional[MediaItem] = None
    uploading: bool = False
    name: str = ""

    @property
    def public_id(self) -> Optional[str]:
        return self.item.public_id if self.item is not None else None

class UploadSession:
    """
    Attachments of one post or story being composed.

    Uploaded assets stay "unsaved" until the post or story is submitted. Ending
    the session any other way deletes them upstream, and no publicId is ever
    sent for deletion twice. With ``replace=True`` (stories) a new selection
    discards the previous one.
    """

    def __init__(self, api, max_items: int = settings.MAX_UPLOAD_FILES, replace: bool = False):
        self.api = api
        self.max_items = max_items
        self.replace = replace
        self.slots: List[MediaSlot] = []
        self.selected = 0
        self.uploading = False
        self.status: Optional[str] = None
        self.unsaved: Set[str] = set()
        self._delete_requested: Set[str] = set()

    @property
    def items(self) -> List[MediaItem]:
        return [slot.item for slot in self.slots if slot.item is not None]

    def room(self) -> int:
        if self.replace:
            return self.max_items
        return self.max_items - len(self.slots)

    async def add_files(self, files: Sequence[LocalFile], position: Optional[int] = None) -> List[MediaItem]:
        if self.uploading:
            raise ValidationError("Wait for the current upload to finish")
        room = self.room()
        if room <= 0:
            raise ValidationError(f"You can add up to {self.max_items} images or videos")
        if not files:
            return []

        batch = list(files[:room])
        if len(files) > room:
            skipped = len(files) - room
            self.status = f"Only {room} more file(s) allowed, {skipped} skipped"
            logger.info(f"Dropped {skipped} file(s) over the attachment limit")
        else:
            self.status = None

        if self.replace and self.slots:
            await self.clear()

        start = len(self.slots) if position is None else max(0, min(position, len(self.slots)))
        placeholders = [MediaSlot(uploading=True, name=f.name) for f in batch]
        self.slots[start:start] = placeholders
        self.uploading = True
        try:
            uploaded = await self.api.upload_media(batch)
            if len(uploaded) != len(batch):
                raise ClientError(f"expected {len(batch)} media item(s), got {len(uploaded)}")
        except ClientError as e:
            pending = {id(p) for p in placeholders}
            self.slots = [s for s in self.slots if id(s) not in pending]
            self._clamp_selection()
            self.status = "Failed to upload media"
            logger.error(f"Upload of {len(batch)} file(s) failed: {e}")
            raise PartialFailure(len(batch), e) from e
        finally:
            self.uploading = False

        # earlier slots may have been removed while the batch was in flight
        done = {id(p): MediaSlot(item=item, name=p.name) for p, item in zip(placeholders, uploaded)}
        self.slots = [done.get(id(s), s) for s in self.slots]
        self.unsaved.update(item.public_id for item in uploaded)
        first = done[id(placeholders[0])]
        self.selected = next(i for i, s in enumerate(self.slots) if s is first)
        return uploaded

    async def remove_at(self, index: int) -> None:
        slot = self.slots[index]
        if slot.uploading:
            raise ValidationError("Cannot remove a file while it is uploading")
        if slot.public_id in self.unsaved:
            await self._delete([slot.public_id])
        # the list may have changed while the delete was awaited
        self.slots = [s for s in self.slots if s is not slot]
        self._clamp_selection()

    async def clear(self) -> None:
        """Explicit clear: drops every attachment and deletes the unsaved ones"""
        await self._delete(self.unsaved)
        self.slots = [slot for slot in self.slots if slot.uploading]
        self._clamp_selection()

    async def submit(self, create: Callable[[List[MediaItem]], Awaitable[T]]) -> Optional[T]:
        if self.uploading:
            raise ValidationError("Wait for the upload to finish")
        items = self.items
        if not items:
            raise ValidationError("Add at least one image or video")
        try:
            result = await create(items)
        except ClientError as e:
            logger.error(f"Error submitting media: {e}")
            self.status = "Failed to share"
            return None
        self.unsaved.clear()
        self.slots = []
        self.selected = 0
        self.status = None
        return result

    async def abandon(self) -> None:
        """Navigation away: delete everything uploaded but never submitted"""
        await self._delete(self.unsaved)
        self.slots = []
        self.selected = 0

    def close(self) -> None:
        """The window is going away; delete what is left without waiting on the loop"""
        ids = self._claim(self.unsaved)
        self.unsaved.clear()
        if ids:
            self.api.send_beacon_delete(ids)

    async def _delete(self, public_ids: Iterable[str]) -> None:
        public_ids = list(public_ids)
        ids = self._claim(public_ids)
        self.unsaved.difference_update(public_ids)
        if not ids:
            return
        try:
            await self.api.delete_media(ids)
            logger.info(f"Deleted {len(ids)} unsaved asset(s)")
        except ClientError as e:
            logger.warning(f"Cleanup of {len(ids)} asset(s) failed: {e}")

    def _claim(self, public_ids: Iterable[str]) -> List[str]:
        ids = [i for i in public_ids if i not in self._delete_requested]
        self._delete_requested.update(ids)
        return ids

    def _clamp_selection(self) -> None:
        self.selected = max(0, min(self.selected, len(self.slots) - 1))
