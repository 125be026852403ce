"""
Realtime channel event names.
Client -> server events are published by a room member; the server fans each
one out to the other members of the room under its broadcast name.
"""

# Client -> server
JOIN_CONVERSATION = "joinConversation"
LEAVE_CONVERSATION = "leaveConversation"
SEND_MESSAGE = "sendMessage"
EDIT_MESSAGE = "editMessage"
DELETE_MESSAGE = "deleteMessage"

# Server -> client
JOINED = "joined"
LEFT = "left"
RECEIVE_MESSAGE = "receiveMessage"
MESSAGE_EDITED = "messageEdited"
MESSAGE_DELETED = "messageDeleted"
ERROR = "error"

BROADCASTS = {
    SEND_MESSAGE: RECEIVE_MESSAGE,
    EDIT_MESSAGE: MESSAGE_EDITED,
    DELETE_MESSAGE: MESSAGE_DELETED,
}

# Closed with this code when the token is missing or invalid
UNAUTHORIZED_CLOSE_CODE = 4401
