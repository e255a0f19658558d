from __future__ import annotations

from fastapi import APIRouter

from community_chat.api.deps import CurrentPrincipal, RegistryDep
from community_chat.api.v1.schemas.common import OnlineUsersResponse

router = APIRouter(prefix="/api/v1/chat/presence", tags=["presence"])


@router.get("/online", response_model=OnlineUsersResponse)
async def online_users(
    principal: CurrentPrincipal,
    registry: RegistryDep,
) -> OnlineUsersResponse:
    return OnlineUsersResponse(
        community_id=principal.community_id,
        user_ids=registry.online_users(principal.community_id),
    )
