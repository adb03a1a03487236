"""
Authentication utilities.

Tokens are issued by the identity service; this module only verifies them
and turns the claims into a Requester. sign_jwt mints tokens with the same
claims for local tooling and tests.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Collection
from dataclasses import dataclass, field
from typing import Any

import jwt
from fastapi import Header

from factory_shared.config.constants import GLOBAL_ADMIN_ROLES, Roles
from factory_shared.config.logging import get_logger
from factory_shared.config.settings import JWT_AUDIENCE, JWT_ISSUER, JWT_SECRET, settings
from factory_shared.infrastructure.correlation import bind_actor
from factory_shared.utils.exceptions import AuthenticationError, InsufficientRoleError

logger = get_logger(__name__)


@dataclass(frozen=True)
class Requester:
    """
    Authenticated caller attached to every authorization-sensitive call.

    scopes carries the token's "<level>:<id>" claims as issued. They pass
    through unread; management is resolved from the database.
    """

    subject_id: str
    role_code: str
    scopes: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_global_admin(self) -> bool:
        return self.role_code in GLOBAL_ADMIN_ROLES


# =============================================================================
# JWT Functions
# =============================================================================


def sign_jwt(payload: dict[str, Any], ttl_seconds: int | None = None) -> str:
    """
    Sign an access token with the given claims.

    Args:
        payload: Claims to include (sub, role, scopes).
        ttl_seconds: Token lifetime in seconds. Defaults to the access token expiry.
    """
    if ttl_seconds is None:
        ttl_seconds = settings.jwt_access_token_expire_minutes * 60

    now = int(time.time())
    data = {
        **payload,
        "iss": JWT_ISSUER,
        "aud": JWT_AUDIENCE,
        "iat": now,
        "exp": now + ttl_seconds,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(data, JWT_SECRET, algorithm="HS256")


def verify_jwt(token: str) -> dict[str, Any]:
    """
    Verify and decode a JWT token.

    Raises:
        AuthenticationError: If the token is invalid, expired or lacks a subject.
    """
    try:
        payload = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=["HS256"],
            audience=JWT_AUDIENCE,
            issuer=JWT_ISSUER,
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except jwt.InvalidTokenError as e:
        # The client only sees a generic message
        logger.warning("JWT validation failed", error=str(e))
        raise AuthenticationError("Invalid token")

    if not payload.get("sub"):
        raise AuthenticationError("Invalid token: missing subject claim")
    return payload


def introspect(token: str) -> Requester:
    """Verify a token and build the Requester it identifies."""
    payload = verify_jwt(token)
    role = payload.get("role") or Roles.WORKER
    if role not in Roles.ALL:
        raise AuthenticationError("Invalid token: unknown role claim")

    scopes = payload.get("scopes") or []
    if not isinstance(scopes, list):
        raise AuthenticationError("Invalid token: malformed scopes claim")

    return Requester(
        subject_id=str(payload["sub"]),
        role_code=role,
        scopes=tuple(str(s) for s in scopes),
    )


def get_bearer_token(authorization: str | None) -> str:
    """
    Extract bearer token from Authorization header.

    Raises:
        AuthenticationError: If header is missing or malformed.
    """
    if not authorization:
        raise AuthenticationError("Missing Authorization header")
    if not authorization.startswith("Bearer "):
        raise AuthenticationError(
            "Invalid Authorization header format. Expected: Bearer <token>"
        )
    return authorization.split(" ", 1)[1].strip()


async def current_requester(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> Requester:
    """
    FastAPI dependency resolving the caller from the bearer token.

    Async so that bind_actor() applies to the request context.

    Usage:
        @router.get("/lines")
        def list_lines(requester: Requester = Depends(current_requester)):
            ...
    """
    requester = introspect(get_bearer_token(authorization))
    bind_actor(requester.subject_id)
    return requester


def require_roles(requester: Requester, allowed: Collection[str]) -> None:
    """
    Verify that the requester holds one of the allowed roles.

    Global admins always pass. An empty allowed list admits everyone.
    """
    if not allowed or requester.is_global_admin:
        return
    if requester.role_code not in allowed:
        raise InsufficientRoleError(sorted(allowed), user_id=requester.subject_id)
