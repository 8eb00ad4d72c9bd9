# chat_relay/services/chat/context.py
"""The (application, entity type, entity id) key a chat thread belongs to."""
from dataclasses import dataclass
from typing import Optional

from ...core.exceptions import ValidationError


@dataclass(frozen=True)
class ChatContext:
    context_app: str
    context_entity_type: str
    context_entity_id: str

    @classmethod
    def build(
        cls,
        context_app: Optional[str],
        context_entity_type: Optional[str],
        context_entity_id: Optional[str],
    ) -> "ChatContext":
        """Trim and validate the three context fields"""
        values = {
            "contextApp": (context_app or "").strip(),
            "contextEntityType": (context_entity_type or "").strip(),
            "contextEntityId": (context_entity_id or "").strip(),
        }
        missing = [field for field, value in values.items() if not value]
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                errors=[f"{field} is required" for field in missing],
            )
        return cls(
            context_app=values["contextApp"],
            context_entity_type=values["contextEntityType"],
            context_entity_id=values["contextEntityId"],
        )

    @property
    def cache_key(self) -> str:
        return f"chat-group:{self.context_app}:{self.context_entity_type}:{self.context_entity_id}"

    def __str__(self) -> str:
        return f"{self.context_app}/{self.context_entity_type}/{self.context_entity_id}"
