import asyncio
import inspect
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Set
from urllib.parse import urlencode

import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake

from instaplus.client.errors import NetworkError
from instaplus.modules.realtime import events

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], Any]

class RealtimeConnection:
    """One socket per session, shared by every view that needs realtime events.

    Rooms are remembered, so a reconnect joins them again. Handlers get the
    event's ``data`` dict and may be plain functions or coroutine functions.
    """

    def __init__(self, url: str, token: str, connector: Optional[Callable] = None):
        self.url = url
        self.token = token
        self.connector = connector or websockets.connect
        self.rooms: Set[str] = set()
        self.handlers: Dict[str, List[Handler]] = {}
        self.unauthorized = False
        self._ws = None
        self._reader: Optional[asyncio.Task] = None

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def connect(self) -> None:
        if self.connected:
            return
        try:
            self._ws = await self.connector(f"{self.url}?{urlencode({'token': self.token})}")
        except (InvalidHandshake, OSError) as e:
            raise NetworkError(f"Realtime connect to {self.url} failed: {e}") from e
        self.unauthorized = False
        self._reader = asyncio.ensure_future(self._read())
        logger.info(f"Realtime connected to {self.url}")
        for room in sorted(self.rooms):
            await self._send(events.JOIN_CONVERSATION, {"conversationId": room})

    async def close(self) -> None:
        ws, self._ws = self._ws, None
        if self._reader is not None:
            self._reader.cancel()
            self._reader = None
        if ws is not None:
            await ws.close()
            logger.info("Realtime connection closed")

    async def join_room(self, conversation_id: str) -> None:
        self.rooms.add(conversation_id)
        if self.connected:
            await self._send(events.JOIN_CONVERSATION, {"conversationId": conversation_id})

    async def leave_room(self, conversation_id: str) -> None:
        self.rooms.discard(conversation_id)
        if self.connected:
            await self._send(events.LEAVE_CONVERSATION, {"conversationId": conversation_id})

    def on(self, event: str, handler: Handler) -> None:
        self.handlers.setdefault(event, []).append(handler)

    def off(self, event: str, handler: Optional[Handler] = None) -> None:
        if handler is None:
            self.handlers.pop(event, None)
            return
        registered = self.handlers.get(event, [])
        if handler in registered:
            registered.remove(handler)

    async def publish(self, event: str, data: Dict[str, Any]) -> bool:
        if not self.connected:
            logger.warning(f"Not connected, dropping {event}")
            return False
        await self._send(event, data)
        return True

    async def _send(self, event: str, data: Dict[str, Any]) -> None:
        try:
            await self._ws.send(json.dumps({"event": event, "data": data}))
        except ConnectionClosed as e:
            logger.warning(f"Realtime send of {event} failed: {e}")
            self._ws = None

    async def dispatch(self, event: str, data: Dict[str, Any]) -> None:
        for handler in list(self.handlers.get(event, [])):
            try:
                result = handler(data)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Handler for {event} failed")

    async def _read(self) -> None:
        ws = self._ws
        try:
            async for raw in ws:
                try:
                    frame = json.loads(raw)
                    event, data = frame["event"], frame.get("data") or {}
                except (ValueError, KeyError, TypeError):
                    logger.warning(f"Ignoring malformed realtime frame: {raw!r}")
                    continue
                if event == events.ERROR:
                    logger.warning(f"Realtime error: {data.get('detail')}")
                await self.dispatch(event, data)
        except ConnectionClosed as e:
            if e.rcvd is not None and e.rcvd.code == events.UNAUTHORIZED_CLOSE_CODE:
                self.unauthorized = True
                logger.error("Realtime connection rejected: invalid token")
            else:
                logger.info(f"Realtime connection closed: {e}")
        finally:
            if self._ws is ws:
                self._ws = None
