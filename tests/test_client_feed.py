"""Tests for client-side feed pagination."""

import asyncio
from datetime import datetime

import pytest

from instaplus.client.errors import NetworkError, UpstreamFailure
from instaplus.client.feed import (
    FEED_ERROR, FeedPaginator, FeedState, begin_load, can_load_more, fail_load, merge_page
)
from instaplus.modules.posts.schemas.post import Post, PostPage


def make_post(post_id: str) -> Post:
    return Post(
        id=post_id,
        author_id="u1",
        caption="",
        media=[{"kind": "image", "src": f"http://x/{post_id}.jpg", "publicId": post_id}],
        created_at=datetime(2024, 1, 1),
    )


def page(ids, next_cursor=None) -> PostPage:
    return PostPage(items=[make_post(i) for i in ids], next_cursor=next_cursor)


class FakeFeedApi:
    """Serves canned pages by cursor; a gate can hold a response back"""

    def __init__(self, pages):
        self.pages = pages
        self.calls = []
        self.gate = None

    async def fetch_posts(self, cursor=None, limit=None, scope=None):
        self.calls.append((cursor, scope))
        if self.gate is not None:
            await self.gate.wait()
        result = self.pages[cursor]
        if isinstance(result, Exception):
            raise result
        return result


def ids(paginator):
    return [p.id for p in paginator.items]


def test_merge_skips_seen_ids_and_keeps_order():
    state = merge_page(FeedState(), [make_post("a"), make_post("b")], "c1")
    state = merge_page(state, [make_post("b"), make_post("c"), make_post("a")], None)
    assert [p.id for p in state.items] == ["a", "b", "c"]
    assert state.has_more is False
    assert state.cursor is None


def test_transitions_are_pure():
    start = FeedState()
    loading = begin_load(start)
    assert start.status == "idle"
    assert loading.status == "loading"
    assert not can_load_more(loading)
    failed = fail_load(loading)
    assert failed.error == FEED_ERROR
    assert failed.status == "idle"


async def test_two_pages_with_overlap_yield_nine_unique_posts():
    api = FakeFeedApi({
        None: page(["p1", "p2", "p3", "p4", "p5"], "c1"),
        "c1": page(["p5", "p6", "p7", "p8", "p9"], "c2"),
    })
    feed = FeedPaginator(api)

    await feed.initialize()
    await feed.load_more()

    assert ids(feed) == ["p1", "p2", "p3", "p4", "p5", "p6", "p7", "p8", "p9"]
    assert [c for c, _ in api.calls] == [None, "c1"]
    assert feed.state.cursor == "c2"


async def test_initialize_is_idempotent():
    api = FakeFeedApi({None: page(["p1"], None)})
    feed = FeedPaginator(api)
    await feed.initialize()
    await feed.initialize()
    assert len(api.calls) == 1


async def test_load_more_while_loading_is_ignored():
    api = FakeFeedApi({None: page(["p1", "p2"], "c1"), "c1": page(["p3"], None)})
    feed = FeedPaginator(api)
    api.gate = asyncio.Event()

    first = asyncio.ensure_future(feed.initialize())
    await asyncio.sleep(0)
    second = asyncio.ensure_future(feed.load_more())
    await asyncio.sleep(0)
    api.gate.set()
    await asyncio.gather(first, second)

    assert ids(feed) == ["p1", "p2"]
    assert len(api.calls) == 1


async def test_load_more_stops_when_exhausted():
    api = FakeFeedApi({None: page(["p1"], None)})
    feed = FeedPaginator(api)
    await feed.initialize()
    await feed.load_more()
    assert len(api.calls) == 1


async def test_reset_discards_in_flight_page():
    api = FakeFeedApi({None: page(["old"], "c1")})
    feed = FeedPaginator(api, scope="following")
    api.gate = asyncio.Event()
    stale = asyncio.ensure_future(feed.initialize())
    await asyncio.sleep(0)

    api.pages = {None: page(["new"], None)}
    api.gate = None
    await feed.set_scope("all")
    await stale

    assert ids(feed) == ["new"]
    assert feed.state.error is None
    assert api.calls[-1] == (None, "all")


async def test_follow_count_change_restarts_feed():
    api = FakeFeedApi({None: page(["p1"], "c1"), "c1": page(["p2"], None)})
    feed = FeedPaginator(api)
    await feed.initialize()
    await feed.load_more()

    await feed.notify_following_count(3)
    assert len(api.calls) == 2

    await feed.notify_following_count(4)
    assert ids(feed) == ["p1"]
    assert feed.state.cursor == "c1"
    assert len(api.calls) == 3


@pytest.mark.parametrize("error", [NetworkError("offline"), UpstreamFailure(500, "boom")])
async def test_failure_sets_error_and_keeps_items(error):
    api = FakeFeedApi({None: page(["p1"], "c1"), "c1": error})
    feed = FeedPaginator(api)
    await feed.initialize()
    await feed.load_more()

    assert ids(feed) == ["p1"]
    assert feed.state.error == "Failed to load posts"
    assert feed.state.status == "idle"


async def test_cancel_is_silent():
    api = FakeFeedApi({None: page(["p1"], None)})
    api.gate = asyncio.Event()
    feed = FeedPaginator(api)
    pending = asyncio.ensure_future(feed.initialize())
    await asyncio.sleep(0)

    feed.cancel()
    await pending

    assert feed.items == []
    assert feed.state.error is None
    assert not feed.loading
