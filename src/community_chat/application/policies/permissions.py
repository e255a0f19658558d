"""Who may message whom inside a community.

Every function here is pure: identity facts in, decision out.
"""
from __future__ import annotations

from community_chat.application.exceptions import AuthorizationError
from community_chat.domain.entities.conversation import Conversation
from community_chat.domain.entities.identity import IdentityFact
from community_chat.domain.value_objects.enums import UserStatus


def is_community_member(identity: IdentityFact | None, community_id: str) -> bool:
    if identity is None or not community_id:
        return False

    # An Abune owns exactly one community: the one keyed by their own id
    if identity.is_abune:
        return identity.id == community_id

    if identity.is_regular:
        return (
            identity.owner_abune_id == community_id
            and identity.is_approved
            and identity.status == UserStatus.ACTIVE
        )

    return False


def can_send(
    sender: IdentityFact | None,
    recipient: IdentityFact | None,
    community_id: str,
) -> bool:
    if sender is None or recipient is None:
        return False
    if not is_community_member(sender, community_id):
        return False
    if not is_community_member(recipient, community_id):
        return False
    if sender.id == recipient.id:
        return False

    if sender.is_abune:
        return recipient.is_regular

    if sender.is_regular:
        return recipient.is_abune and recipient.id == sender.owner_abune_id

    return False


def can_broadcast(sender: IdentityFact | None, community_id: str) -> bool:
    return sender is not None and sender.is_abune and sender.id == community_id


def assert_can_send(
    sender: IdentityFact | None,
    recipient: IdentityFact | None,
    community_id: str,
) -> None:
    if not can_send(sender, recipient, community_id):
        raise AuthorizationError(
            "Members can only message their Abune, and an Abune can only "
            "message members of their own community"
        )


def assert_can_broadcast(sender: IdentityFact | None, community_id: str) -> None:
    if not can_broadcast(sender, community_id):
        raise AuthorizationError("Only the community's Abune can broadcast")


def assert_community_member(identity: IdentityFact | None, community_id: str) -> None:
    if not is_community_member(identity, community_id):
        raise AuthorizationError("User is not in this community")


def assert_conversation_party(conversation: Conversation, user_id: str) -> None:
    if not conversation.has_party(user_id):
        raise AuthorizationError("Not a party of this conversation")
