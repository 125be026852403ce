import logging
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

import httpx
import pydantic

from instaplus.client.errors import NetworkError, UpstreamFailure
from instaplus.modules.media.schemas import DeleteMediaResponse, MediaItem, UploadResponse
from instaplus.modules.messages.schemas.message import Conversation, Message
from instaplus.modules.posts.schemas.post import Post, PostPage
from instaplus.modules.stories.schemas.story import StoriesViewed, Story
from instaplus.modules.users.schemas.user import UserProfile, UserSummary

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=pydantic.BaseModel)

# status reported when a successful response carries a body we cannot read
BAD_PAYLOAD_STATUS = 502

class LocalFile:
    """A file picked on the device, not yet uploaded"""

    def __init__(self, name: str, content: bytes, content_type: str = "application/octet-stream"):
        self.name = name
        self.content = content
        self.content_type = content_type

    def __repr__(self) -> str:
        return f"LocalFile({self.name!r}, {len(self.content)} bytes)"

class ApiClient:
    """Async REST client for the instaplus server.

    Every call carries the bearer token. Without a token the user-specific
    calls are skipped and return an empty result instead of hitting the
    server. Transport failures raise NetworkError. Error statuses raise
    UpstreamFailure, and so does a success response whose body cannot be read.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = 20,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport
        self._client = httpx.AsyncClient(base_url=self.base_url, transport=transport, timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    async def _request(self, method: str, path: str, **kwargs) -> Optional[Any]:
        if not self.token:
            logger.debug(f"No token, skipping {method} {path}")
            return None
        try:
            response = await self._client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.TransportError as e:
            raise NetworkError(f"{method} {path} failed: {e}") from e
        if response.is_error:
            raise UpstreamFailure(response.status_code, _detail(response))
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamFailure(BAD_PAYLOAD_STATUS, f"{method} {path} returned a non-JSON body") from e

    # Posts

    async def fetch_posts(
        self, cursor: Optional[str] = None, limit: Optional[int] = None, scope: Optional[str] = None
    ) -> PostPage:
        params = {k: v for k, v in (("cursor", cursor), ("limit", limit), ("scope", scope)) if v is not None}
        data = await self._request("GET", "/posts", params=params)
        return _parse(PostPage, data) if data is not None else PostPage(items=[])

    async def create_post(self, caption: str, media: Sequence[MediaItem]) -> Optional[Post]:
        payload = {"caption": caption, "media": [m.model_dump(by_alias=True) for m in media]}
        data = await self._request("POST", "/posts", json=payload)
        return _parse(Post, data) if data is not None else None

    # Users

    async def get_profile(self) -> Optional[UserProfile]:
        data = await self._request("GET", "/users/me")
        return _parse(UserProfile, data) if data is not None else None

    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        data = await self._request("GET", f"/users/{user_id}")
        return _parse(UserProfile, data) if data is not None else None

    async def follow(self, user_id: str) -> None:
        await self._request("POST", f"/users/{user_id}/follow")

    async def unfollow(self, user_id: str) -> None:
        await self._request("DELETE", f"/users/{user_id}/follow")

    # Messages

    async def list_conversations(self) -> List[Conversation]:
        data = await self._request("GET", "/messages/conversations")
        return _parse_list(Conversation, data)

    async def start_conversation(self, user_id: str) -> Optional[Conversation]:
        data = await self._request("POST", f"/messages/start/{user_id}")
        return _parse(Conversation, data) if data is not None else None

    async def list_messages(self, conversation_id: str, limit: Optional[int] = None) -> List[Message]:
        params = {"limit": limit} if limit else {}
        data = await self._request("GET", f"/messages/{conversation_id}", params=params)
        return _parse_list(Message, data)

    async def send_message(self, conversation_id: str, text: str) -> Optional[Message]:
        data = await self._request("POST", f"/messages/{conversation_id}", json={"text": text})
        return _parse(Message, data) if data is not None else None

    async def edit_message(self, message_id: str, text: str) -> Optional[Message]:
        data = await self._request("PATCH", f"/messages/{message_id}", json={"text": text})
        return _parse(Message, data) if data is not None else None

    async def delete_message(self, message_id: str) -> bool:
        data = await self._request("DELETE", f"/messages/{message_id}")
        return isinstance(data, dict) and bool(data.get("ok"))

    # Media

    async def upload_media(self, files: Sequence[LocalFile]) -> List[MediaItem]:
        multipart = [("files", (f.name, f.content, f.content_type)) for f in files]
        data = await self._request("POST", "/upload/media", files=multipart)
        return _parse(UploadResponse, data).media if data is not None else []

    async def delete_media(self, public_ids: Sequence[str]) -> Optional[DeleteMediaResponse]:
        data = await self._request("DELETE", "/upload/media", json={"publicIds": list(public_ids)})
        return _parse(DeleteMediaResponse, data) if data is not None else None

    def send_beacon_delete(self, public_ids: Sequence[str]) -> None:
        """
        Blocking best-effort delete used while the process is going away,
        when no event loop can be relied on. Errors are logged, never raised.
        """
        if not self.token or not public_ids:
            return
        try:
            with httpx.Client(base_url=self.base_url, transport=self._transport, timeout=self.timeout) as client:
                client.request(
                    "DELETE", "/upload/media",
                    headers=self._headers(), json={"publicIds": list(public_ids)},
                )
        except httpx.HTTPError as e:
            logger.warning(f"Beacon delete of {len(public_ids)} asset(s) failed: {e}")

    # Stories

    async def get_stories(self) -> Dict[str, List[str]]:
        data = await self._request("GET", "/stories")
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise UpstreamFailure(BAD_PAYLOAD_STATUS, "GET /stories returned an unexpected payload")
        return data

    async def get_story_users(self) -> List[UserSummary]:
        data = await self._request("GET", "/stories/users")
        return _parse_list(UserSummary, data)

    async def get_viewed(self) -> List[str]:
        data = await self._request("GET", "/stories/viewed")
        return _parse(StoriesViewed, data).stories_viewed if data is not None else []

    async def mark_viewed(self, author_id: str) -> List[str]:
        data = await self._request("PATCH", "/stories/viewed", json={"authorId": author_id})
        return _parse(StoriesViewed, data).stories_viewed if data is not None else []

    async def create_story(self, media: MediaItem) -> Optional[Story]:
        data = await self._request("POST", "/stories", json={"media": media.model_dump(by_alias=True)})
        return _parse(Story, data) if data is not None else None

def _detail(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return response.text or None
    if isinstance(body, dict) and "detail" in body:
        detail = body["detail"]
        return detail if isinstance(detail, str) else str(detail)
    return None

def _parse(model: Type[M], data: Any) -> M:
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as e:
        raise UpstreamFailure(BAD_PAYLOAD_STATUS, f"unexpected {model.__name__} payload: {e.error_count()} error(s)") from e

def _parse_list(model: Type[M], data: Any) -> List[M]:
    if data is None:
        return []
    if not isinstance(data, list):
        raise UpstreamFailure(BAD_PAYLOAD_STATUS, f"expected a list of {model.__name__}")
    return [_parse(model, item) for item in data]
