"""
Hierarchy levels and the tables behind each of them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from factory_api.models import (
    Base,
    Factory,
    FactoryManager,
    Group,
    GroupLeader,
    Line,
    LineManager,
    ManagerAssignmentMixin,
    Team,
    TeamLeader,
)
from factory_shared.config.constants import Roles


class Level(str, Enum):
    """Containment levels, root first."""

    FACTORY = "factory"
    LINE = "line"
    TEAM = "team"
    GROUP = "group"

    @property
    def depth(self) -> int:
        return _ORDER.index(self)

    @property
    def parent(self) -> "Level | None":
        return _ORDER[self.depth - 1] if self.depth > 0 else None

    @property
    def child(self) -> "Level | None":
        return _ORDER[self.depth + 1] if self.depth + 1 < len(_ORDER) else None

    @property
    def spec(self) -> "LevelSpec":
        return LEVEL_SPECS[self]

    def scope_key(self, entity_id: str) -> str:
        """Role-assignment scope string for one entity at this level."""
        return f"{self.value}:{entity_id}"


_ORDER: tuple[Level, ...] = (Level.FACTORY, Level.LINE, Level.TEAM, Level.GROUP)

MAX_DEPTH = len(_ORDER)


@dataclass(frozen=True)
class LevelSpec:
    entity: type[Base]
    assignment: type[ManagerAssignmentMixin]
    parent_field: str | None  # FK column pointing one level up
    manager_role: str  # Role code that manages a scope at this level
    label: str


LEVEL_SPECS: dict[Level, LevelSpec] = {
    Level.FACTORY: LevelSpec(Factory, FactoryManager, None, Roles.FACTORY_MANAGER, "Factory"),
    Level.LINE: LevelSpec(Line, LineManager, "factory_id", Roles.LINE_MANAGER, "Line"),
    Level.TEAM: LevelSpec(Team, TeamLeader, "line_id", Roles.TEAM_LEADER, "Team"),
    Level.GROUP: LevelSpec(Group, GroupLeader, "team_id", Roles.GROUP_LEADER, "Group"),
}
