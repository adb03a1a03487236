"""
Organizational hierarchy: levels, per-level facets and the resolver.
"""

from .levels import LEVEL_SPECS, MAX_DEPTH, Level, LevelSpec
from .locks import ScopeLockManager, scope_locks
from .roles import RoleGrant, RoleLookup
from .facet import HierarchyFacet
from .resolver import HierarchyResolver

__all__ = [
    "LEVEL_SPECS",
    "MAX_DEPTH",
    "Level",
    "LevelSpec",
    "ScopeLockManager",
    "scope_locks",
    "RoleGrant",
    "RoleLookup",
    "HierarchyFacet",
    "HierarchyResolver",
]
