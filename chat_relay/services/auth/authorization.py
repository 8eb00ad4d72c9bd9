# chat_relay/services/auth/authorization.py
"""Pluggable permission checks run before any chat operation."""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

import httpx

from ...core.config import Settings
from ...core.exceptions import AuthorizationUnavailable, PermissionDenied
from ..chat.context import ChatContext

logger = logging.getLogger(__name__)


class Permission(str, Enum):
    CREATE_MESSAGE = "create_message"
    LIST_MESSAGES = "list_messages"
    CHANGE_STATUS = "change_status"


@dataclass(frozen=True)
class AccessContext:
    chat_context: ChatContext
    token: Optional[str] = None


class AuthorizationPolicy(ABC):
    @abstractmethod
    async def authorize(self, context: AccessContext, permission: Permission) -> bool:
        """Whether the caller holds ``permission`` in ``context``"""

    async def close(self):
        pass


class AllowAllPolicy(AuthorizationPolicy):
    """Grants every permission; used until an auth service is wired in."""

    async def authorize(self, context: AccessContext, permission: Permission) -> bool:
        logger.info(
            f"[AUTH BYPASS] Granting '{permission.value}' for {context.chat_context} "
            f"(token present: {context.token is not None})"
        )
        return True


class HttpAuthorizationPolicy(AuthorizationPolicy):
    """Asks the auth service configured for the context's application."""

    def __init__(self, service_urls: Dict[str, str], timeout: float = 5.0, client: Optional[httpx.AsyncClient] = None):
        self.service_urls = service_urls
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def authorize(self, context: AccessContext, permission: Permission) -> bool:
        chat_context = context.chat_context
        auth_url = self.service_urls.get(chat_context.context_app)
        if not auth_url:
            logger.error(f"No configured auth service URL for contextApp '{chat_context.context_app}'")
            raise AuthorizationUnavailable(
                f"Authorization service not configured for contextApp '{chat_context.context_app}'.",
                status_code=501,
            )

        headers = {"Content-Type": "application/json"}
        if context.token:
            headers["Authorization"] = f"Bearer {context.token}"

        try:
            response = await self.client.post(
                auth_url,
                headers=headers,
                json={
                    "contextApp": chat_context.context_app,
                    "contextEntityType": chat_context.context_entity_type,
                    "contextEntityId": chat_context.context_entity_id,
                },
            )
            response.raise_for_status()
            permissions = response.json().get("permissions")
        except httpx.TimeoutException:
            logger.error(f"Authorization service timeout at {auth_url}")
            raise AuthorizationUnavailable("Authorization service unavailable or encountered an error.")
        except httpx.HTTPStatusError as e:
            if e.response.status_code in (401, 403):
                return False
            logger.error(f"Authorization service HTTP error: {e.response.status_code} - {e.response.text}")
            raise AuthorizationUnavailable("Authorization service unavailable or encountered an error.")
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.error(f"Error calling authorization service at {auth_url}: {e}")
            raise AuthorizationUnavailable("Authorization service unavailable or encountered an error.")

        if not isinstance(permissions, list):
            logger.error(f"Auth service at {auth_url} returned invalid response format")
            raise AuthorizationUnavailable("Authorization service unavailable or encountered an error.")
        return permission.value in permissions

    async def close(self):
        await self.client.aclose()


def build_policy(settings: Settings) -> AuthorizationPolicy:
    if settings.auth_mode == "http":
        return HttpAuthorizationPolicy(settings.auth_service_urls, timeout=settings.auth_timeout_seconds)
    if settings.auth_mode != "allow_all":
        raise ValueError(f"Unknown auth_mode '{settings.auth_mode}'")
    logger.warning("[AUTH BYPASS] Authorization checks are disabled; all requests are granted")
    return AllowAllPolicy()


async def ensure_authorized(policy: AuthorizationPolicy, context: AccessContext, permission: Permission):
    if not await policy.authorize(context, permission):
        raise PermissionDenied(permission.value)
