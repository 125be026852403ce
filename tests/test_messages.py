"""Tests for conversation and message endpoints."""

import pytest


@pytest.fixture
def conversation(client, alice, bob, auth):
    response = client.post(f"/messages/start/{bob.id}", headers=auth(alice))
    assert response.status_code == 200
    return response.json()


def send(client, user, conversation_id, text, auth):
    return client.post(f"/messages/{conversation_id}", json={"text": text}, headers=auth(user))


def test_start_conversation_is_reused(client, alice, bob, auth, conversation):
    again = client.post(f"/messages/start/{alice.id}", headers=auth(bob)).json()
    assert again["id"] == conversation["id"]
    assert [p["username"] for p in conversation["participants"]] == ["alice", "bob"]
    assert conversation["lastMessage"] is None


def test_start_conversation_errors(client, alice, auth):
    assert client.post(f"/messages/start/{alice.id}", headers=auth(alice)).status_code == 400
    assert client.post("/messages/start/nobody", headers=auth(alice)).status_code == 404


def test_send_and_list_oldest_first(client, alice, bob, auth, conversation):
    conversation_id = conversation["id"]
    first = send(client, alice, conversation_id, "hi bob", auth)
    second = send(client, bob, conversation_id, "hi alice", auth)
    assert first.status_code == 201
    assert first.json()["senderId"] == alice.id
    assert first.json()["edited"] is False

    messages = client.get(f"/messages/{conversation_id}", headers=auth(bob)).json()
    assert [m["id"] for m in messages] == [first.json()["id"], second.json()["id"]]

    latest = client.get(f"/messages/{conversation_id}", params={"limit": 1}, headers=auth(bob)).json()
    assert [m["text"] for m in latest] == ["hi alice"]


def test_conversation_list_carries_last_message(client, alice, bob, auth, conversation):
    send(client, alice, conversation["id"], "one", auth)
    send(client, bob, conversation["id"], "two", auth)

    conversations = client.get("/messages/conversations", headers=auth(alice)).json()
    assert len(conversations) == 1
    assert conversations[0]["lastMessage"]["text"] == "two"


def test_conversations_ordered_by_activity(client, alice, bob, carol, auth):
    with_bob = client.post(f"/messages/start/{bob.id}", headers=auth(alice)).json()
    with_carol = client.post(f"/messages/start/{carol.id}", headers=auth(alice)).json()
    send(client, alice, with_carol["id"], "carol first", auth)
    send(client, alice, with_bob["id"], "bob later", auth)

    conversations = client.get("/messages/conversations", headers=auth(alice)).json()
    assert [c["id"] for c in conversations] == [with_bob["id"], with_carol["id"]]


@pytest.mark.parametrize("text", ["", "   \n  ", "x" * 1001, "\n".join(["line"] * 12)])
def test_message_text_limits(client, alice, auth, conversation, text):
    assert send(client, alice, conversation["id"], text, auth).status_code == 422


def test_text_at_the_limits_is_accepted(client, alice, auth, conversation):
    assert send(client, alice, conversation["id"], "x" * 1000, auth).status_code == 201
    assert send(client, alice, conversation["id"], "\n".join(["l"] * 11), auth).status_code == 201


def test_outsiders_cannot_read_or_write(client, carol, auth, conversation):
    assert client.get(f"/messages/{conversation['id']}", headers=auth(carol)).status_code == 403
    assert send(client, carol, conversation["id"], "let me in", auth).status_code == 403
    assert client.get("/messages/missing", headers=auth(carol)).status_code == 404


def test_edit_own_message(client, alice, bob, auth, conversation):
    message = send(client, alice, conversation["id"], "typo", auth).json()

    response = client.patch(f"/messages/{message['id']}", json={"text": "fixed"}, headers=auth(alice))
    assert response.status_code == 200
    assert response.json()["text"] == "fixed"
    assert response.json()["edited"] is True

    forbidden = client.patch(f"/messages/{message['id']}", json={"text": "mine now"}, headers=auth(bob))
    assert forbidden.status_code == 403
    assert client.patch("/messages/missing", json={"text": "x"}, headers=auth(alice)).status_code == 404


def test_delete_repoints_last_message(client, alice, bob, auth, conversation):
    first = send(client, alice, conversation["id"], "first", auth).json()
    last = send(client, alice, conversation["id"], "last", auth).json()

    assert client.delete(f"/messages/{last['id']}", headers=auth(bob)).status_code == 403

    response = client.delete(f"/messages/{last['id']}", headers=auth(alice))
    assert response.status_code == 200
    assert response.json() == {"ok": True, "id": last["id"]}

    conversations = client.get("/messages/conversations", headers=auth(alice)).json()
    assert conversations[0]["lastMessage"]["id"] == first["id"]

    client.delete(f"/messages/{first['id']}", headers=auth(alice))
    conversations = client.get("/messages/conversations", headers=auth(alice)).json()
    assert conversations[0]["lastMessage"] is None
    assert client.delete(f"/messages/{first['id']}", headers=auth(alice)).status_code == 404
