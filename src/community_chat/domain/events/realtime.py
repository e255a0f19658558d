"""Names of events pushed to connected clients."""
from __future__ import annotations

from enum import StrEnum


class RealtimeEvent(StrEnum):
    USER_ONLINE = "UserOnline"
    USER_OFFLINE = "UserOffline"
    RECEIVE_MESSAGE = "ReceiveMessage"
    RECEIVE_MEDIA_MESSAGE = "ReceiveMediaMessage"
    RECEIVE_BROADCAST_MESSAGE = "ReceiveBroadcastMessage"
    RECEIVE_BROADCAST_MEDIA_MESSAGE = "ReceiveBroadcastMediaMessage"
    MESSAGE_DELIVERED = "MessageDelivered"
    MESSAGE_READ = "MessageRead"
    MESSAGE_EDITED = "MessageEdited"
    MESSAGE_DELETED = "MessageDeleted"
    REACTION_ADDED = "ReactionAdded"
    REACTION_REMOVED = "ReactionRemoved"
    TYPING_INDICATOR = "TypingIndicator"
    ONLINE_USERS = "OnlineUsers"
    UNREAD_COUNT_UPDATE = "UnreadCountUpdate"
    COMMUNITY_UNREAD_COUNT_UPDATE = "CommunityUnreadCountUpdate"
    ERROR_MESSAGE = "ErrorMessage"
    PONG = "Pong"
