from .authorization import (
    AccessContext,
    AllowAllPolicy,
    AuthorizationPolicy,
    HttpAuthorizationPolicy,
    Permission,
    build_policy,
    ensure_authorized,
)

__all__ = [
    "AccessContext",
    "AllowAllPolicy",
    "AuthorizationPolicy",
    "HttpAuthorizationPolicy",
    "Permission",
    "build_policy",
    "ensure_authorized",
]
