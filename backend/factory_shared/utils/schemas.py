"""
Pydantic schemas for the organizational hierarchy endpoints.

Create schemas never accept an id: identifiers and timestamps are always
generated server side.
"""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from factory_shared.config.constants import Limits


# =============================================================================
# Common Types
# =============================================================================

RoleCode = Literal[
    "WORKER",
    "GROUP_LEADER",
    "TEAM_LEADER",
    "LINE_MANAGER",
    "FACTORY_MANAGER",
    "ADMIN",
    "SUPER_ADMIN",
]


def _as_utc(value: datetime | None) -> datetime | None:
    """Naive datetimes from clients are taken as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class _CreateBase(BaseModel):
    """Rejects unknown fields so a client cannot smuggle in an id."""

    model_config = ConfigDict(extra="forbid")


class _OutputBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    code: str
    name: str
    description: str | None = None
    created_at: datetime
    updated_at: datetime | None = None


# =============================================================================
# Factory
# =============================================================================


class FactoryCreate(_CreateBase):
    code: str = Field(min_length=Limits.CODE_MIN_LENGTH, max_length=Limits.CODE_MAX_LENGTH)
    name: str = Field(min_length=Limits.NAME_MIN_LENGTH, max_length=Limits.NAME_MAX_LENGTH)
    description: str | None = Field(default=None, max_length=Limits.DESCRIPTION_MAX_LENGTH)
    address: str | None = Field(default=None, max_length=255)


class FactoryUpdate(_CreateBase):
    code: str | None = Field(default=None, min_length=Limits.CODE_MIN_LENGTH, max_length=Limits.CODE_MAX_LENGTH)
    name: str | None = Field(default=None, min_length=Limits.NAME_MIN_LENGTH, max_length=Limits.NAME_MAX_LENGTH)
    description: str | None = Field(default=None, max_length=Limits.DESCRIPTION_MAX_LENGTH)
    address: str | None = Field(default=None, max_length=255)


class FactoryFilter(BaseModel):
    code: str | None = None
    name: str | None = None
    search: str | None = None


class FactoryOutput(_OutputBase):
    address: str | None = None


# =============================================================================
# Line
# =============================================================================


class LineCreate(_CreateBase):
    code: str = Field(min_length=Limits.CODE_MIN_LENGTH, max_length=Limits.CODE_MAX_LENGTH)
    name: str = Field(min_length=Limits.NAME_MIN_LENGTH, max_length=Limits.NAME_MAX_LENGTH)
    description: str | None = Field(default=None, max_length=Limits.DESCRIPTION_MAX_LENGTH)
    capacity: int = Field(default=0, ge=0)
    factory_id: str


class LineUpdate(_CreateBase):
    code: str | None = Field(default=None, min_length=Limits.CODE_MIN_LENGTH, max_length=Limits.CODE_MAX_LENGTH)
    name: str | None = Field(default=None, min_length=Limits.NAME_MIN_LENGTH, max_length=Limits.NAME_MAX_LENGTH)
    description: str | None = Field(default=None, max_length=Limits.DESCRIPTION_MAX_LENGTH)
    capacity: int | None = Field(default=None, ge=0)
    factory_id: str | None = None


class LineFilter(BaseModel):
    code: str | None = None
    name: str | None = None
    search: str | None = None
    factory_id: str | None = None


class LineOutput(_OutputBase):
    capacity: int = 0
    factory_id: str


# =============================================================================
# Team
# =============================================================================


class TeamCreate(_CreateBase):
    code: str = Field(min_length=Limits.CODE_MIN_LENGTH, max_length=Limits.CODE_MAX_LENGTH)
    name: str = Field(min_length=Limits.NAME_MIN_LENGTH, max_length=Limits.NAME_MAX_LENGTH)
    description: str | None = Field(default=None, max_length=Limits.DESCRIPTION_MAX_LENGTH)
    line_id: str


class TeamUpdate(_CreateBase):
    code: str | None = Field(default=None, min_length=Limits.CODE_MIN_LENGTH, max_length=Limits.CODE_MAX_LENGTH)
    name: str | None = Field(default=None, min_length=Limits.NAME_MIN_LENGTH, max_length=Limits.NAME_MAX_LENGTH)
    description: str | None = Field(default=None, max_length=Limits.DESCRIPTION_MAX_LENGTH)
    line_id: str | None = None


class TeamFilter(BaseModel):
    code: str | None = None
    name: str | None = None
    search: str | None = None
    line_id: str | None = None


class TeamOutput(_OutputBase):
    line_id: str


# =============================================================================
# Group
# =============================================================================


class GroupCreate(_CreateBase):
    code: str = Field(min_length=Limits.CODE_MIN_LENGTH, max_length=Limits.CODE_MAX_LENGTH)
    name: str = Field(min_length=Limits.NAME_MIN_LENGTH, max_length=Limits.NAME_MAX_LENGTH)
    description: str | None = Field(default=None, max_length=Limits.DESCRIPTION_MAX_LENGTH)
    team_id: str


class GroupUpdate(_CreateBase):
    code: str | None = Field(default=None, min_length=Limits.CODE_MIN_LENGTH, max_length=Limits.CODE_MAX_LENGTH)
    name: str | None = Field(default=None, min_length=Limits.NAME_MIN_LENGTH, max_length=Limits.NAME_MAX_LENGTH)
    description: str | None = Field(default=None, max_length=Limits.DESCRIPTION_MAX_LENGTH)
    team_id: str | None = None


class GroupFilter(BaseModel):
    code: str | None = None
    name: str | None = None
    search: str | None = None
    team_id: str | None = None


class GroupOutput(_OutputBase):
    team_id: str


# =============================================================================
# Manager assignments
# =============================================================================


class ManagerAssignmentCreate(_CreateBase):
    """Body for POST /<resource>/{id}/managers."""

    user_id: str
    is_primary: bool = False
    start_date: datetime | None = None  # Defaults to now
    end_date: datetime | None = None  # None = open-ended

    @field_validator("start_date", "end_date")
    @classmethod
    def _as_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @model_validator(mode="after")
    def _check_window(self) -> "ManagerAssignmentCreate":
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class ManagerAssignmentUpdate(_CreateBase):
    """Body for PATCH /<resource>/{id}/managers/{user_id}."""

    is_primary: bool
    end_date: datetime | None = None

    @field_validator("end_date")
    @classmethod
    def _as_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)


class ManagerAssignmentOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    is_primary: bool
    start_date: datetime
    end_date: datetime | None = None


class CanManageOutput(BaseModel):
    entity_id: str
    level: str
    can_manage: bool


class ManagerialAccessOutput(BaseModel):
    factories: list[str]
    lines: list[str]
    teams: list[str]
    groups: list[str]
