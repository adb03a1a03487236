"""
Security module: token verification and role guards.
"""

from factory_shared.security.auth import (
    Requester,
    current_requester,
    get_bearer_token,
    introspect,
    require_roles,
    sign_jwt,
    verify_jwt,
)

__all__ = [
    "Requester",
    "current_requester",
    "get_bearer_token",
    "introspect",
    "require_roles",
    "sign_jwt",
    "verify_jwt",
]
