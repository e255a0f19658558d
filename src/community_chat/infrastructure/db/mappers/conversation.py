from __future__ import annotations

from community_chat.domain.entities.conversation import Conversation
from community_chat.domain.value_objects.enums import MessageKind
from community_chat.infrastructure.db.models.conversation import ConversationModel


def model_to_entity(model: ConversationModel) -> Conversation:
    return Conversation(
        id=model.id,
        abune_id=model.abune_id,
        user_id=model.user_id,
        last_message_at=model.last_message_at,
        last_message_summary=model.last_message_summary,
        last_message_kind=MessageKind(model.last_message_kind) if model.last_message_kind else None,
        abune_unread_count=model.abune_unread_count,
        user_unread_count=model.user_unread_count,
        is_active=model.is_active,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def entity_to_model(entity: Conversation) -> ConversationModel:
    return ConversationModel(
        id=entity.id,
        abune_id=entity.abune_id,
        user_id=entity.user_id,
        last_message_at=entity.last_message_at,
        last_message_summary=entity.last_message_summary,
        last_message_kind=entity.last_message_kind.value if entity.last_message_kind else None,
        abune_unread_count=entity.abune_unread_count,
        user_unread_count=entity.user_unread_count,
        is_active=entity.is_active,
        created_at=entity.created_at,
        updated_at=entity.updated_at,
    )
