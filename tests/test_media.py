"""Tests for the upload gateway and media serving."""

import asyncio
from io import BytesIO

import pytest
from botocore.exceptions import ClientError
from fastapi import HTTPException
from PIL import Image
from starlette.datastructures import Headers, UploadFile

from instaplus.core.storage import MediaStorage, media_kind
from instaplus.deps import get_media_storage
from instaplus.main import app


def make_image_bytes(size=(120, 80)) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, color=(0, 200, 100)).save(buffer, format="PNG")
    return buffer.getvalue()


def upload(client, user, auth, files):
    return client.post("/upload/media", files=files, headers=auth(user))


def test_upload_image_and_video(client, alice, auth):
    files = [
        ("files", ("photo.png", make_image_bytes(), "image/png")),
        ("files", ("clip.mp4", b"\x00\x00\x00\x18ftypmp42", "video/mp4")),
    ]
    response = upload(client, alice, auth, files)
    assert response.status_code == 201

    photo, clip = response.json()["media"]
    assert photo["kind"] == "image"
    assert (photo["width"], photo["height"]) == (120, 80)
    assert photo["publicId"].startswith("instaplus/") and photo["publicId"].endswith(".png")
    assert photo["src"].endswith(f"/media/{photo['publicId']}")
    assert clip["kind"] == "video"
    assert clip["width"] is None

    served = client.get(f"/media/{photo['publicId']}")
    assert served.status_code == 200
    assert served.content == make_image_bytes()


def test_upload_requires_token(client):
    files = [("files", ("photo.png", make_image_bytes(), "image/png"))]
    assert client.post("/upload/media", files=files).status_code == 401


def test_upload_rejects_more_than_five(client, alice, auth):
    files = [("files", (f"{i}.png", make_image_bytes(), "image/png")) for i in range(6)]
    assert upload(client, alice, auth, files).status_code == 400


def test_delete_is_idempotent(client, alice, auth):
    files = [("files", ("photo.png", make_image_bytes(), "image/png"))]
    public_id = upload(client, alice, auth, files).json()["media"][0]["publicId"]

    first = client.request("DELETE", "/upload/media", json={"publicIds": [public_id]}, headers=auth(alice))
    assert first.status_code == 200
    assert first.json() == {"ok": True, "results": [{"publicId": public_id, "result": "ok"}]}

    second = client.request("DELETE", "/upload/media", json={"publicIds": [public_id]}, headers=auth(alice))
    assert second.json()["results"] == [{"publicId": public_id, "result": "not found"}]
    assert client.get(f"/media/{public_id}").status_code == 404


def test_path_escape_is_refused(storage):
    with pytest.raises(HTTPException) as exc:
        storage.local_path("../../etc/passwd")
    assert exc.value.status_code == 404


def test_media_kind():
    assert media_kind("video/quicktime") == "video"
    assert media_kind("image/jpeg") == "image"
    assert media_kind(None) == "image"


class FakeBucket:
    """Just enough of the S3 client API for MediaStorage"""

    def __init__(self):
        self.objects = {}

    def put_object(self, Bucket, Key, Body, ContentType):
        self.objects[Key] = (Body, ContentType)

    def head_object(self, Bucket, Key):
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject")
        return {}

    def delete_object(self, Bucket, Key):
        self.objects.pop(Key, None)

    def head_bucket(self, Bucket):
        return {}


def test_object_storage_round_trip(monkeypatch):
    bucket = FakeBucket()
    storage = MediaStorage(client=bucket)
    monkeypatch.setattr(storage, "public_url", "https://cdn.example.com")

    file = UploadFile(
        BytesIO(make_image_bytes((4, 4))),
        filename="tiny.png",
        headers=Headers({"content-type": "image/png"}),
    )
    stored = asyncio.run(storage.upload(file, folder="stories"))

    assert stored["public_id"] in bucket.objects
    assert stored["src"] == f"https://cdn.example.com/{stored['public_id']}"
    assert storage.check_bucket() is True
    assert storage.delete(stored["public_id"]) == "ok"
    assert storage.delete(stored["public_id"]) == "not found"


def test_storage_failure_is_a_500(client, alice, auth):
    class BrokenBucket(FakeBucket):
        def put_object(self, **kwargs):
            raise ClientError({"Error": {"Code": "500", "Message": "boom"}}, "PutObject")

    app.dependency_overrides[get_media_storage] = lambda: MediaStorage(client=BrokenBucket())
    files = [("files", ("photo.png", make_image_bytes(), "image/png"))]
    response = upload(client, alice, auth, files)
    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to upload media"
