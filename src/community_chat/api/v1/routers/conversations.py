from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query

from community_chat.api.deps import CurrentPrincipal, DispatcherDep, UoWDep
from community_chat.api.v1.schemas.common import UnreadCountsResponse
from community_chat.api.v1.schemas.conversation import (
    ConversationReadResponse,
    ConversationResponse,
)
from community_chat.api.v1.schemas.message import MessageResponse
from community_chat.services import conversation_service, message_service, query_service

router = APIRouter(prefix="/api/v1/chat", tags=["conversations"])


@router.get("/conversations", response_model=list[ConversationResponse])
async def list_conversations(
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> list[ConversationResponse]:
    views = await query_service.list_conversations(principal.user_id, principal.community_id, uow)
    return [ConversationResponse.from_view(v) for v in views]


@router.get("/conversations/{other_user_id}/messages", response_model=list[MessageResponse])
async def list_conversation_messages(
    other_user_id: str,
    principal: CurrentPrincipal,
    uow: UoWDep,
    before: datetime | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
) -> list[MessageResponse]:
    messages = await query_service.get_conversation_messages(
        principal.user_id, other_user_id, principal.community_id, uow,
        limit=limit, before=before,
    )
    return [MessageResponse.model_validate(m, from_attributes=True) for m in messages]


@router.post("/conversations/{conversation_id}/read", response_model=ConversationReadResponse)
async def mark_conversation_read(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
    events: DispatcherDep,
) -> ConversationReadResponse:
    conv = await conversation_service.mark_conversation_read(conversation_id, principal.user_id, uow)
    await message_service.push_unread_counts(principal.user_id, principal.community_id, uow, events)
    return ConversationReadResponse(
        conversation_id=conv.id,
        unread_count=conv.unread_count_for(principal.user_id),
    )


@router.get("/unread-counts", response_model=UnreadCountsResponse)
async def unread_counts(
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> UnreadCountsResponse:
    summary = await query_service.get_unread_summary(principal.user_id, principal.community_id, uow)
    return UnreadCountsResponse(
        total_unread_count=summary.total,
        conversation_unread_counts=summary.per_conversation,
    )
