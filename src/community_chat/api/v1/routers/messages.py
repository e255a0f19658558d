from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query

from community_chat.api.deps import CurrentPrincipal, DispatcherDep, UoWDep
from community_chat.api.v1.schemas.message import (
    BroadcastRequest,
    EditMessageRequest,
    ForwardRequest,
    MessageResponse,
    ReactionRequest,
    ReadStatusResponse,
    ReplyRequest,
    SendMessageRequest,
)
from community_chat.domain.entities.message import Message
from community_chat.services import message_service, query_service

router = APIRouter(prefix="/api/v1/chat/messages", tags=["messages"])


def _out(message: Message) -> MessageResponse:
    return MessageResponse.model_validate(message, from_attributes=True)


@router.post("", response_model=MessageResponse, status_code=201)
async def send_message(
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    events: DispatcherDep,
) -> MessageResponse:
    msg = await message_service.send_direct(
        principal.user_id, body.recipient_id, principal.community_id,
        body.to_body(), uow, events,
    )
    return _out(msg)


@router.post("/broadcast", response_model=MessageResponse, status_code=201)
async def send_broadcast(
    body: BroadcastRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    events: DispatcherDep,
) -> MessageResponse:
    msg = await message_service.send_broadcast(
        principal.user_id, principal.community_id, body.to_body(), uow, events,
    )
    return _out(msg)


@router.post("/reply", response_model=MessageResponse, status_code=201)
async def reply(
    body: ReplyRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    events: DispatcherDep,
) -> MessageResponse:
    msg = await message_service.reply(
        principal.user_id, body.recipient_id, principal.community_id,
        body.to_body(), body.reply_to_id, uow, events,
    )
    return _out(msg)


@router.post("/forward", response_model=MessageResponse, status_code=201)
async def forward(
    body: ForwardRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    events: DispatcherDep,
) -> MessageResponse:
    msg = await message_service.forward(
        principal.user_id, body.recipient_id, principal.community_id,
        body.forward_from_id, uow, events,
    )
    return _out(msg)


@router.get("/community", response_model=list[MessageResponse])
async def list_community_messages(
    principal: CurrentPrincipal,
    uow: UoWDep,
    before: datetime | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
) -> list[MessageResponse]:
    messages = await query_service.get_community_messages(
        principal.user_id, principal.community_id, uow, limit=limit, before=before,
    )
    return [_out(m) for m in messages]


@router.get("/broadcast", response_model=list[MessageResponse])
async def list_broadcast_messages(
    principal: CurrentPrincipal,
    uow: UoWDep,
    before: datetime | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
) -> list[MessageResponse]:
    messages = await query_service.get_broadcast_messages(
        principal.user_id, principal.community_id, uow, limit=limit, before=before,
    )
    return [_out(m) for m in messages]


@router.get("/search", response_model=list[MessageResponse])
async def search_messages(
    principal: CurrentPrincipal,
    uow: UoWDep,
    q: str = Query(..., min_length=1, max_length=200),
    limit: int = Query(20, ge=1, le=100),
) -> list[MessageResponse]:
    messages = await query_service.search_messages(
        principal.user_id, principal.community_id, q, uow, limit=limit,
    )
    return [_out(m) for m in messages]


@router.put("/{message_id}", response_model=MessageResponse)
async def edit_message(
    message_id: UUID,
    body: EditMessageRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    events: DispatcherDep,
) -> MessageResponse:
    msg = await message_service.edit_message(message_id, principal.user_id, body.content, uow, events)
    return _out(msg)


@router.delete("/{message_id}", status_code=204)
async def delete_message(
    message_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
    events: DispatcherDep,
) -> None:
    await message_service.delete_message(message_id, principal.user_id, uow, events)


@router.post("/{message_id}/read", response_model=MessageResponse)
async def mark_read(
    message_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
    events: DispatcherDep,
) -> MessageResponse:
    msg = await message_service.mark_read(message_id, principal.user_id, uow, events)
    return _out(msg)


@router.get("/{message_id}/read-status", response_model=ReadStatusResponse)
async def read_status(
    message_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ReadStatusResponse:
    read_by = await query_service.get_message_read_status(message_id, principal.user_id, uow)
    return ReadStatusResponse(message_id=message_id, read_by=read_by)


@router.post("/{message_id}/reactions", response_model=MessageResponse)
async def add_reaction(
    message_id: UUID,
    body: ReactionRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    events: DispatcherDep,
) -> MessageResponse:
    msg = await message_service.add_reaction(message_id, principal.user_id, body.emoji, uow, events)
    return _out(msg)


@router.delete("/{message_id}/reactions", response_model=MessageResponse)
async def remove_reaction(
    message_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
    events: DispatcherDep,
) -> MessageResponse:
    msg = await message_service.remove_reaction(message_id, principal.user_id, uow, events)
    return _out(msg)
