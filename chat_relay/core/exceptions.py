# chat_relay/core/exceptions.py
"""Custom exceptions for the chat relay."""
from typing import List, Optional


class ChatRelayException(Exception):
    """Base exception for the chat relay."""
    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class ValidationError(ChatRelayException):
    """Malformed or missing input."""
    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = errors or []
        super().__init__(message, 400)


class NotFoundError(ChatRelayException):
    """Referenced entity does not exist."""
    def __init__(self, resource: str, id: str = None):
        message = f"{resource} not found"
        if id:
            message += f" with id: {id}"
        super().__init__(message, 404)


class ConflictError(ChatRelayException):
    """Uniqueness constraint rejected a write."""
    def __init__(self, message: str = "Uniqueness constraint violated"):
        super().__init__(message, 409)


class PermissionDenied(ChatRelayException):
    def __init__(self, permission: str):
        super().__init__(
            f"Forbidden: You do not have permission ('{permission}') for this context.",
            403
        )


class AuthorizationUnavailable(ChatRelayException):
    """Authorization service missing or failing."""
    def __init__(self, message: str, status_code: int = 503):
        super().__init__(message, status_code)


class StoreUnavailable(ChatRelayException):
    """Persistence layer unreachable."""
    def __init__(self, message: str = "Chat store is unavailable"):
        super().__init__(message, 503)


class TransportUnavailable(ChatRelayException):
    """Real-time transport could not accept a broadcast."""
    def __init__(self, message: str = "Real-time transport is unavailable"):
        super().__init__(message, 503)
