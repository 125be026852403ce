"""
Incremental feed loading.

The feed state is a plain dataclass moved between states by pure functions;
FeedPaginator drives those transitions from network results and owns the
single in-flight fetch task.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Any, List, Optional, Sequence

from instaplus.client.errors import Cancelled, ClientError
from instaplus.modules.posts.schemas.post import Post, PostPage

logger = logging.getLogger(__name__)

IDLE = "idle"
LOADING = "loading"

FEED_ERROR = "Failed to load posts"

@dataclass(frozen=True)
class FeedState:
    status: str = IDLE
    cursor: Optional[str] = None
    has_more: bool = True
    items: List[Post] = field(default_factory=list)
    error: Optional[str] = None

def begin_load(state: FeedState) -> FeedState:
    return replace(state, status=LOADING, error=None)

def merge_page(state: FeedState, items: Sequence[Any], next_cursor: Optional[str]) -> FeedState:
    """Append the items whose id has not been seen; earlier items keep their place"""
    seen = {item.id for item in state.items}
    merged = list(state.items)
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        merged.append(item)
    return replace(
        state,
        status=IDLE,
        items=merged,
        cursor=next_cursor,
        has_more=next_cursor is not None,
        error=None,
    )

def fail_load(state: FeedState, error: str = FEED_ERROR) -> FeedState:
    return replace(state, status=IDLE, error=error)

def can_load_more(state: FeedState) -> bool:
    return state.status != LOADING and state.has_more

class FeedPaginator:
    """Cursor pagination over GET /posts with at most one fetch in flight.

    `api` is anything with an async ``fetch_posts(cursor, limit, scope)``
    returning a PostPage, normally an ApiClient.
    """

    def __init__(self, api, scope: str = "following", limit: Optional[int] = None):
        self.api = api
        self.scope = scope
        self.limit = limit
        self.state = FeedState()
        self._initialized = False
        self._generation = 0
        self._task: Optional[asyncio.Future] = None
        self._following_count: Optional[int] = None

    @property
    def items(self) -> List[Post]:
        return self.state.items

    @property
    def loading(self) -> bool:
        return self.state.status == LOADING

    async def initialize(self) -> None:
        if self._initialized:
            logger.debug("Feed already initialized")
            return
        self._initialized = True
        await self._load()

    async def load_more(self) -> None:
        """Called when the reader nears the end of the list"""
        if not can_load_more(self.state):
            return
        await self._load()

    async def reset(self) -> None:
        self.cancel()
        self.state = FeedState()
        self._initialized = True
        await self._load()

    def cancel(self) -> None:
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        if self.state.status == LOADING:
            self.state = replace(self.state, status=IDLE)

    async def set_scope(self, scope: str) -> None:
        if scope == self.scope:
            return
        self.scope = scope
        await self.reset()

    async def notify_following_count(self, count: int) -> None:
        if self._following_count is None:
            self._following_count = count
            return
        if count == self._following_count:
            return
        self._following_count = count
        await self.reset()

    async def _load(self) -> None:
        generation = self._generation
        self.state = begin_load(self.state)
        try:
            page = await self._fetch(generation)
        except Cancelled as e:
            logger.debug(f"Feed fetch dropped: {e}")
            return
        except ClientError as e:
            logger.error(f"Error loading posts: {e}")
            self.state = fail_load(self.state)
            return
        self.state = merge_page(self.state, page.items, page.next_cursor)

    async def _fetch(self, generation: int) -> PostPage:
        task = asyncio.ensure_future(self.api.fetch_posts(self.state.cursor, self.limit, self.scope))
        self._task = task
        try:
            page = await task
        except asyncio.CancelledError:
            if generation == self._generation:
                raise
            raise Cancelled("page fetch superseded") from None
        except ClientError:
            if generation != self._generation:
                raise Cancelled("stale failure discarded") from None
            raise
        finally:
            if self._task is task:
                self._task = None
        if generation != self._generation:
            raise Cancelled("stale page discarded")
        return page
