import asyncio
import logging
from typing import Callable, Dict, List, Optional, Set

from instaplus.client.errors import ClientError
from instaplus.modules.users.schemas.user import UserSummary

logger = logging.getLogger(__name__)

class StoryViewer:
    """
    Position inside an open story tray: which author, which of their stories,
    and how far the current story has played.

    Authors are visited in order, each author's stories oldest first. Going
    past the last story of the last author closes the viewer.
    """

    def __init__(
        self,
        authors: List[str],
        stories: Dict[str, List[str]],
        start_author: int = 0,
        on_author_viewed: Optional[Callable[[str], None]] = None,
    ):
        self.authors = [a for a in authors if stories.get(a)]
        self.stories = stories
        self.on_author_viewed = on_author_viewed
        self.viewed: Set[str] = set()
        self.author_index = max(0, min(start_author, len(self.authors) - 1))
        self.story_index = 0
        self.progress = 0
        self.playing = True
        self.closed = not self.authors
        if not self.closed:
            self._enter_author()

    @property
    def current_author(self) -> Optional[str]:
        return None if self.closed else self.authors[self.author_index]

    @property
    def current_story(self) -> Optional[str]:
        if self.closed:
            return None
        return self.stories[self.current_author][self.story_index]

    def next(self) -> None:
        if self.closed:
            return
        self.progress = 0
        if self.story_index + 1 < len(self.stories[self.current_author]):
            self.story_index += 1
        elif self.author_index + 1 < len(self.authors):
            self.author_index += 1
            self.story_index = 0
            self._enter_author()
        else:
            self.close()

    def previous(self) -> None:
        if self.closed:
            return
        if self.story_index > 0:
            self.story_index -= 1
        elif self.author_index > 0:
            self.author_index -= 1
            self.story_index = 0
            self._enter_author()
        else:
            return
        self.progress = 0

    def pause(self) -> None:
        self.playing = False

    def resume(self) -> None:
        self.playing = True

    def toggle(self) -> None:
        self.playing = not self.playing

    def close(self) -> None:
        self.closed = True
        self.playing = False

    def tick(self, step: int = 2) -> None:
        if self.closed or not self.playing:
            return
        self.progress = min(100, self.progress + step)
        if self.progress >= 100:
            self.next()

    def _enter_author(self) -> None:
        author = self.current_author
        if author in self.viewed:
            return
        self.viewed.add(author)
        if self.on_author_viewed is not None:
            self.on_author_viewed(author)

class StoryAutoplay:
    """Advances a viewer on a timer: ``step`` percent every ``interval`` seconds"""

    def __init__(self, viewer: StoryViewer, interval: float = 0.1, step: int = 2):
        self.viewer = viewer
        self.interval = interval
        self.step = step
        self._task: Optional[asyncio.Task] = None

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.ensure_future(self.run())
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def run(self) -> None:
        while not self.viewer.closed:
            await asyncio.sleep(self.interval)
            self.viewer.tick(self.step)

class StoryTray:
    """The row of story rings above the feed"""

    def __init__(self, api):
        self.api = api
        self.stories: Dict[str, List[str]] = {}
        self.users: List[UserSummary] = []
        self.viewed: Set[str] = set()
        self.status: Optional[str] = None
        self._pending: Set[asyncio.Task] = set()

    async def load(self) -> None:
        try:
            self.stories, self.users, viewed = await asyncio.gather(
                self.api.get_stories(), self.api.get_story_users(), self.api.get_viewed()
            )
        except ClientError as e:
            logger.error(f"Error loading stories: {e}")
            self.status = "Failed to load stories"
            return
        self.viewed = set(viewed)
        self.status = None

    def authors(self) -> List[str]:
        ordered = [u.id for u in self.users if self.stories.get(u.id)]
        ordered += [a for a in self.stories if a not in ordered and self.stories[a]]
        return ordered

    def ring(self, author_id: str) -> str:
        return "viewed" if author_id in self.viewed else "unseen"

    def open(self, author_id: str) -> StoryViewer:
        authors = self.authors()
        start = authors.index(author_id) if author_id in authors else 0
        return StoryViewer(authors, self.stories, start_author=start, on_author_viewed=self._author_viewed)

    async def wait_pending(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending)

    def _author_viewed(self, author_id: str) -> None:
        if author_id in self.viewed:
            return
        self.viewed.add(author_id)
        task = asyncio.ensure_future(self._notify_viewed(author_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _notify_viewed(self, author_id: str) -> None:
        try:
            await self.api.mark_viewed(author_id)
        except ClientError as e:
            logger.warning(f"Failed to mark stories of {author_id} as viewed: {e}")
