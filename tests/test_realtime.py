"""Tests for the realtime WebSocket channel."""

import pytest
from starlette.websockets import WebSocketDisconnect

from instaplus.core.security import create_access_token
from instaplus.modules.realtime import events


@pytest.fixture
def conversation_id(client, alice, bob, auth):
    return client.post(f"/messages/start/{bob.id}", headers=auth(alice)).json()["id"]


def ws_url(user) -> str:
    return f"/ws?token={create_access_token(user.id)}"


def join(ws, conversation_id):
    ws.send_json({"event": events.JOIN_CONVERSATION, "data": {"conversationId": conversation_id}})
    return ws.receive_json()


@pytest.mark.parametrize("url", ["/ws", "/ws?token=garbage"])
def test_rejects_missing_or_bad_token(client, url):
    # the handshake completes, then the close frame carries 4401
    with client.websocket_connect(url) as ws:
        with pytest.raises(WebSocketDisconnect) as exc:
            ws.receive_json()
    assert exc.value.code == events.UNAUTHORIZED_CLOSE_CODE


def test_join_requires_participation(client, alice, carol, conversation_id):
    with client.websocket_connect(ws_url(alice)) as ws:
        assert join(ws, conversation_id) == {"event": "joined", "data": {"conversationId": conversation_id}}

    with client.websocket_connect(ws_url(carol)) as ws:
        reply = join(ws, conversation_id)
        assert reply["event"] == "error"


def test_broadcast_reaches_others_but_not_publisher(client, alice, bob, auth, conversation_id):
    message = client.post(
        f"/messages/{conversation_id}", json={"text": "hello"}, headers=auth(alice)
    ).json()

    with client.websocket_connect(ws_url(alice)) as alice_ws, \
            client.websocket_connect(ws_url(bob)) as bob_ws:
        join(alice_ws, conversation_id)
        join(bob_ws, conversation_id)

        alice_ws.send_json({
            "event": events.SEND_MESSAGE,
            "data": {"conversationId": conversation_id, "message": message},
        })
        received = bob_ws.receive_json()
        assert received["event"] == events.RECEIVE_MESSAGE
        assert received["data"]["id"] == message["id"]
        assert received["data"]["conversationId"] == conversation_id

        alice_ws.send_json({
            "event": events.DELETE_MESSAGE,
            "data": {"conversationId": conversation_id, "messageId": message["id"]},
        })
        deleted = bob_ws.receive_json()
        assert deleted == {
            "event": events.MESSAGE_DELETED,
            "data": {"conversationId": conversation_id, "messageId": message["id"]},
        }

        # the publisher's next frame is the reply to its own request, not an echo
        alice_ws.send_json({"event": events.LEAVE_CONVERSATION, "data": {"conversationId": conversation_id}})
        assert alice_ws.receive_json()["event"] == events.LEFT


def test_publish_requires_joining(client, alice, auth, conversation_id):
    message = client.post(
        f"/messages/{conversation_id}", json={"text": "hello"}, headers=auth(alice)
    ).json()
    with client.websocket_connect(ws_url(alice)) as ws:
        ws.send_json({
            "event": events.EDIT_MESSAGE,
            "data": {"conversationId": conversation_id, "message": message},
        })
        assert ws.receive_json()["event"] == events.ERROR


def test_cannot_publish_someone_elses_message(client, alice, bob, auth, conversation_id):
    message = client.post(
        f"/messages/{conversation_id}", json={"text": "from alice"}, headers=auth(alice)
    ).json()
    with client.websocket_connect(ws_url(bob)) as ws:
        join(ws, conversation_id)
        ws.send_json({
            "event": events.EDIT_MESSAGE,
            "data": {"conversationId": conversation_id, "message": message},
        })
        assert ws.receive_json()["event"] == events.ERROR


def test_malformed_frames_keep_the_socket_open(client, alice, conversation_id):
    with client.websocket_connect(ws_url(alice)) as ws:
        ws.send_text("not json")
        assert ws.receive_json()["event"] == events.ERROR

        ws.send_json({"event": events.SEND_MESSAGE, "data": {"conversationId": conversation_id}})
        assert ws.receive_json()["event"] == events.ERROR

        ws.send_json({"event": "shout", "data": {}})
        assert ws.receive_json()["event"] == events.ERROR

        assert join(ws, conversation_id)["event"] == events.JOINED
