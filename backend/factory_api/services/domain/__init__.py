"""
Domain services for the organizational hierarchy.
"""

from .org_units import OrgUnitPolicy
from .managers import ManagerService

__all__ = ["OrgUnitPolicy", "ManagerService"]
