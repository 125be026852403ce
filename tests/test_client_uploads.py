"""Tests for the upload session and orphan cleanup."""

import asyncio

import pytest

from instaplus.client.api import LocalFile
from instaplus.client.errors import NetworkError, PartialFailure, ValidationError
from instaplus.client.uploads import UploadSession
from instaplus.modules.media.schemas import MediaItem


class FakeUploadApi:
    def __init__(self):
        self.uploaded_batches = []
        self.deleted = []
        self.beacons = []
        self.fail_with = None
        self.gate = None
        self.counter = 0

    async def upload_media(self, files):
        self.uploaded_batches.append([f.name for f in files])
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with:
            raise self.fail_with
        items = []
        for f in files:
            self.counter += 1
            items.append(MediaItem(kind="image", src=f"http://x/{f.name}", public_id=f"pid{self.counter}"))
        return items

    async def delete_media(self, public_ids):
        self.deleted.extend(public_ids)

    def send_beacon_delete(self, public_ids):
        self.beacons.extend(public_ids)


def files(*names):
    return [LocalFile(name, b"data", "image/jpeg") for name in names]


@pytest.fixture
def api():
    return FakeUploadApi()


async def test_excess_files_are_dropped_with_a_status(api):
    session = UploadSession(api)
    await session.add_files(files("a", "b", "c"))

    await session.add_files(files("d", "e", "f", "g", "h"))

    assert api.uploaded_batches[-1] == ["d", "e"]
    assert len(session.items) == 5
    assert session.status is not None and "3 skipped" in session.status


async def test_full_session_rejects_batch(api):
    session = UploadSession(api)
    await session.add_files(files("a", "b", "c", "d", "e"))
    with pytest.raises(ValidationError):
        await session.add_files(files("f"))
    assert len(api.uploaded_batches) == 1


async def test_placeholders_then_in_place_replacement(api):
    session = UploadSession(api)
    await session.add_files(files("a", "b"))
    api.gate = asyncio.Event()

    pending = asyncio.ensure_future(session.add_files(files("c"), position=1))
    await asyncio.sleep(0)
    assert [s.uploading for s in session.slots] == [False, True, False]
    assert session.uploading

    with pytest.raises(ValidationError):
        await session.add_files(files("d"))
    with pytest.raises(ValidationError):
        await session.remove_at(1)

    api.gate.set()
    await pending
    assert [s.name for s in session.slots] == ["a", "c", "b"]
    assert session.selected == 1
    assert not session.uploading


async def test_removing_earlier_slot_during_upload_keeps_batch_intact(api):
    session = UploadSession(api)
    await session.add_files(files("a", "b"))
    api.gate = asyncio.Event()

    pending = asyncio.ensure_future(session.add_files(files("c")))
    await asyncio.sleep(0)
    await session.remove_at(0)
    assert [s.name for s in session.slots] == ["b", "c"]

    api.gate.set()
    await pending
    assert [(s.public_id, s.uploading) for s in session.slots] == [("pid2", False), ("pid3", False)]
    assert session.selected == 1

    await session.remove_at(1)
    assert [s.name for s in session.slots] == ["b"]


async def test_failure_after_earlier_removal_drops_only_the_batch(api):
    session = UploadSession(api)
    await session.add_files(files("a", "b"))
    api.gate = asyncio.Event()
    api.fail_with = NetworkError("offline")

    pending = asyncio.ensure_future(session.add_files(files("c", "d"), position=1))
    await asyncio.sleep(0)
    await session.remove_at(0)
    api.gate.set()

    with pytest.raises(PartialFailure):
        await pending
    assert [s.name for s in session.slots] == ["b"]
    assert not any(s.uploading for s in session.slots)


async def test_failed_batch_removes_only_its_placeholders(api):
    session = UploadSession(api)
    await session.add_files(files("a", "b"))
    session.selected = 1
    api.fail_with = NetworkError("offline")

    with pytest.raises(PartialFailure) as exc:
        await session.add_files(files("c", "d"), position=1)

    assert exc.value.batch_size == 2
    assert [s.name for s in session.slots] == ["a", "b"]
    assert 0 <= session.selected < len(session.slots)
    assert session.status == "Failed to upload media"
    assert not session.uploading


async def test_abandon_deletes_each_upload_once(api):
    session = UploadSession(api)
    await session.add_files(files("a", "b"))
    await session.add_files(files("c"))

    await session.abandon()
    await session.abandon()
    session.close()

    assert sorted(api.deleted) == ["pid1", "pid2", "pid3"]
    assert api.beacons == []
    assert session.items == []


async def test_remove_unsaved_item_deletes_it(api):
    session = UploadSession(api)
    await session.add_files(files("a", "b"))
    await session.remove_at(0)
    assert api.deleted == ["pid1"]
    assert [s.name for s in session.slots] == ["b"]

    await session.abandon()
    assert api.deleted == ["pid1", "pid2"]


async def test_submit_transfers_ownership(api):
    session = UploadSession(api)
    await session.add_files(files("a"))
    created = []

    async def create(items):
        created.append([i.public_id for i in items])
        return "post-1"

    assert await session.submit(create) == "post-1"
    assert created == [["pid1"]]

    await session.abandon()
    session.close()
    assert api.deleted == []
    assert api.beacons == []


async def test_submit_refused_when_empty(api):
    session = UploadSession(api)

    async def create(items):
        raise AssertionError("should not be called")

    with pytest.raises(ValidationError):
        await session.submit(create)


async def test_close_uses_beacon_for_leftovers(api):
    session = UploadSession(api)
    await session.add_files(files("a", "b"))
    session.close()
    session.close()
    assert sorted(api.beacons) == ["pid1", "pid2"]
    assert api.deleted == []


async def test_story_selection_replaces_previous(api):
    session = UploadSession(api, max_items=1, replace=True)
    await session.add_files(files("first"))
    await session.add_files(files("second", "third"))

    assert [s.name for s in session.slots] == ["second"]
    assert api.deleted == ["pid1"]
    assert api.uploaded_batches[-1] == ["second"]
