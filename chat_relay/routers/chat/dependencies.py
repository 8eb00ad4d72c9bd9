from typing import Optional
from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.cache import CacheManager
from ...core.database import get_db
from ...services.auth.authorization import AuthorizationPolicy
from ...services.chat.chat_service import ChatService
from ...services.chat.room_broadcaster import RoomBroadcaster


def get_broadcaster(request: Request) -> RoomBroadcaster:
    return request.app.state.broadcaster

def get_cache(request: Request) -> Optional[CacheManager]:
    return request.app.state.cache

def get_policy(request: Request) -> AuthorizationPolicy:
    return request.app.state.policy

def get_bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1]
    return None

def get_chat_service(
    db: AsyncSession = Depends(get_db),
    broadcaster: RoomBroadcaster = Depends(get_broadcaster),
    cache: Optional[CacheManager] = Depends(get_cache),
) -> ChatService:
    return ChatService(db, broadcaster=broadcaster, cache=cache)
