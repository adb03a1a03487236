"""
Centralized constants for the backend application.

Usage:
    from factory_shared.config.constants import Roles, GLOBAL_ADMIN_ROLES

    if requester.role_code in GLOBAL_ADMIN_ROLES:
        ...
"""

from typing import Final


# =============================================================================
# User Roles
# =============================================================================


class Roles:
    """Coarse role codes attached to users and role assignments."""

    WORKER: Final[str] = "WORKER"
    GROUP_LEADER: Final[str] = "GROUP_LEADER"
    TEAM_LEADER: Final[str] = "TEAM_LEADER"
    LINE_MANAGER: Final[str] = "LINE_MANAGER"
    FACTORY_MANAGER: Final[str] = "FACTORY_MANAGER"
    ADMIN: Final[str] = "ADMIN"
    SUPER_ADMIN: Final[str] = "SUPER_ADMIN"

    ALL: Final[list[str]] = [
        WORKER,
        GROUP_LEADER,
        TEAM_LEADER,
        LINE_MANAGER,
        FACTORY_MANAGER,
        ADMIN,
        SUPER_ADMIN,
    ]


# Scope-free roles granting universal management rights
GLOBAL_ADMIN_ROLES: Final[frozenset[str]] = frozenset({Roles.ADMIN, Roles.SUPER_ADMIN})

# Roles allowed to call hierarchy write endpoints at all; per-entity rights
# are still decided by the hierarchy resolver
MANAGEMENT_ROLES: Final[frozenset[str]] = frozenset({
    Roles.ADMIN,
    Roles.SUPER_ADMIN,
    Roles.FACTORY_MANAGER,
    Roles.LINE_MANAGER,
    Roles.TEAM_LEADER,
    Roles.GROUP_LEADER,
})


# =============================================================================
# Limits
# =============================================================================


class Limits:
    """Pagination and field length limits."""

    DEFAULT_PAGE: Final[int] = 1
    DEFAULT_PAGE_SIZE: Final[int] = 10
    MAX_PAGE_SIZE: Final[int] = 100

    CODE_MIN_LENGTH: Final[int] = 2
    CODE_MAX_LENGTH: Final[int] = 50
    NAME_MIN_LENGTH: Final[int] = 3
    NAME_MAX_LENGTH: Final[int] = 100
    DESCRIPTION_MAX_LENGTH: Final[int] = 500


# Default sort for list endpoints
DEFAULT_SORT_FIELD: Final[str] = "created_at"
SORT_ORDERS: Final[frozenset[str]] = frozenset({"asc", "desc"})
DEFAULT_SORT_ORDER: Final[str] = "desc"
