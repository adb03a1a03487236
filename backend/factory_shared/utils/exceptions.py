"""
Centralized HTTP exceptions for consistent error handling.

Every failure leaving the service layer is an AppException carrying an
HTTP-style status code. Untyped exceptions are converted with
normalize_error() so no raw exception reaches the response serializer.

Usage:
    from factory_shared.utils.exceptions import NotFoundError, ForbiddenError

    raise NotFoundError("Line", line_id)
    raise ForbiddenError("update this team")
    raise DuplicateEntityError("Group", code)
"""

from typing import Any

from fastapi import HTTPException, status

from factory_shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom exceptions inherit from this class to ensure consistent
    logging and response format.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        errors: list[dict[str, str]] | None = None,
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.errors = errors or []

    @property
    def message(self) -> str:
        return str(self.detail)

    def to_envelope(self) -> dict[str, Any]:
        """Uniform failure envelope."""
        body: dict[str, Any] = {
            "success": False,
            "status_code": self.status_code,
            "message": self.message,
        }
        if self.errors:
            body["errors"] = self.errors
        return body


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("Line", line_id)
    """

    def __init__(self, entity: str, entity_id: str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} with ID {entity_id} not found"
        else:
            detail = f"{entity} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


class EndpointDisabledError(AppException):
    """Endpoint switched off in the module options (404)."""

    def __init__(self, operation: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Endpoint not available",
            log_level="info",
            operation=operation,
            **log_context,
        )


# =============================================================================
# 401 / 403 Errors
# =============================================================================


class AuthenticationError(AppException):
    """Missing or invalid credentials (401)."""

    def __init__(self, detail: str = "Invalid token", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            log_level="warning",
            headers={"WWW-Authenticate": "Bearer"},
            **log_context,
        )


class ForbiddenError(AppException):
    """
    Authorization/permission error (403).

    Usage:
        raise ForbiddenError("manage this line")
        raise ForbiddenError("delete teams", user_id=user_id)
    """

    def __init__(self, action: str | None = None, **log_context: Any):
        if action:
            detail = f"Not allowed to {action}"
        else:
            detail = "Access denied"

        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            log_level="warning",
            action=action,
            **log_context,
        )


class InsufficientRoleError(ForbiddenError):
    """User doesn't have the required role."""

    def __init__(self, required_roles: list[str], **log_context: Any):
        roles_str = ", ".join(required_roles)
        super().__init__(
            f"perform this action (requires role: {roles_str})",
            required_roles=required_roles,
            **log_context,
        )


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class ValidationError(AppException):
    """
    Input validation error (400).

    Usage:
        raise ValidationError("Start date must precede end date", field="end_date")
        raise ValidationError("Invalid payload", errors=[{"field": "code", "message": "too short"}])
    """

    def __init__(
        self,
        detail: str,
        field: str | None = None,
        errors: list[dict[str, str]] | None = None,
        **log_context: Any,
    ):
        if errors is None and field is not None:
            errors = [{"field": field, "message": detail}]
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            errors=errors,
            **log_context,
        )


class ConflictError(AppException):
    """
    Conflict with existing data (400).

    Duplicate codes/names and delete attempts on entities that still have
    dependents are reported as bad requests.
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class DuplicateEntityError(ConflictError):
    """Entity with the same identifier already exists."""

    def __init__(self, entity: str, field: str, value: str, **log_context: Any):
        detail = f"{entity} with {field} '{value}' already exists"
        super().__init__(detail, entity=entity, field=field, value=value, **log_context)
        self.errors = [{"field": field, "message": detail}]


class DependentEntitiesError(ConflictError):
    """Entity cannot be deleted while it still has dependents."""

    def __init__(self, entity: str, entity_id: str, dependents: str, **log_context: Any):
        detail = f"{entity} {entity_id} still has {dependents} and cannot be deleted"
        super().__init__(detail, entity=entity, entity_id=entity_id, dependents=dependents, **log_context)


# =============================================================================
# 500 Internal Server Errors
# =============================================================================


class InternalError(AppException):
    """
    Internal server error (500).

    Usage:
        raise InternalError("Failed to resolve hierarchy", line_id=line_id)
    """

    def __init__(self, detail: str = "Internal server error", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            log_level="error",
            **log_context,
        )


class DatabaseError(InternalError):
    """Database operation failed."""

    def __init__(self, operation: str, **log_context: Any):
        detail = f"Database operation failed: {operation}"
        super().__init__(detail, operation=operation, **log_context)


# =============================================================================
# Normalization
# =============================================================================


def normalize_error(
    error: BaseException,
    message: str,
    default_status: int = status.HTTP_400_BAD_REQUEST,
) -> AppException:
    """
    Convert any exception into an AppException.

    AppExceptions are returned unchanged. Anything else is logged with its
    traceback and wrapped with default_status, keeping only a message string
    for the caller.
    """
    if isinstance(error, AppException):
        return error

    logger.error(
        f"{message}: {error}",
        error_type=type(error).__name__,
        exc_info=(type(error), error, error.__traceback__),
    )
    return AppException(
        status_code=default_status,
        detail=f"{message}: {error}",
        log_level="debug",
    )
