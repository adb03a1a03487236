"""
Domain event schema shared by every publisher and subscriber.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

# Event names published by this service. Any non-empty name is accepted.
ENTITY_CREATED = "ENTITY_CREATED"
ENTITY_UPDATED = "ENTITY_UPDATED"
ENTITY_DELETED = "ENTITY_DELETED"
MANAGER_ASSIGNED = "MANAGER_ASSIGNED"
MANAGER_UPDATED = "MANAGER_UPDATED"
MANAGER_REMOVED = "MANAGER_REMOVED"

CHANNEL_PREFIX = "events:"


def channel_for(event_name: str) -> str:
    """Redis channel carrying one event name."""
    return f"{CHANNEL_PREFIX}{event_name}"


@dataclass
class DomainEvent:
    """
    A named event with its payload and the id of whoever caused it.

    Validation runs in __post_init__ so a malformed event never reaches
    subscribers or Redis.
    """

    name: str
    payload: dict[str, Any] = field(default_factory=dict)
    sender_id: str | None = None
    ts: str | None = None
    v: int = 1

    def __post_init__(self) -> None:
        if not self.name or not isinstance(self.name, str):
            raise ValueError("Event name must be a non-empty string")
        if not isinstance(self.payload, dict):
            raise ValueError("Event payload must be a dict")
        if self.ts is None:
            self.ts = datetime.now(timezone.utc).isoformat()

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False, default=str)

    @classmethod
    def from_json(cls, json_str: str) -> "DomainEvent":
        return cls(**json.loads(json_str))
