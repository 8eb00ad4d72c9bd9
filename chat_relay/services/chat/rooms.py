# chat_relay/services/chat/rooms.py
"""Room naming: every chat group broadcasts on ``chat-<group id>``."""
from typing import Optional, Union
from uuid import UUID

ROOM_PREFIX = "chat-"


def room_identity(group_id: Union[UUID, str]) -> str:
    return f"{ROOM_PREFIX}{group_id}"


def parse_room_token(token: object) -> Optional[UUID]:
    """Return the group id a room token names, or None if the token is malformed"""
    if not isinstance(token, str) or not token.startswith(ROOM_PREFIX):
        return None
    try:
        group_id = UUID(token[len(ROOM_PREFIX):])
    except ValueError:
        return None
    # Only the canonical spelling names a room; anything else would open a new channel
    if room_identity(group_id) != token:
        return None
    return group_id


def is_room_prefixed(token: object) -> bool:
    return isinstance(token, str) and token.startswith(ROOM_PREFIX)
