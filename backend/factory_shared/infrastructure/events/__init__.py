"""
Domain event fan-out.

Usage:
    from factory_shared.infrastructure.events import EventBus, ENTITY_CREATED

    bus = EventBus.from_settings()
    bus.start()
    bus.publish(ENTITY_CREATED, {"entity": "Line", "id": line_id}, requester.subject_id)
"""

from .bus import ALL_EVENTS, EventBus, EventHandler
from .circuit_breaker import CircuitState, EventCircuitBreaker, calculate_retry_delay_with_jitter
from .event_schema import (
    CHANNEL_PREFIX,
    ENTITY_CREATED,
    ENTITY_DELETED,
    ENTITY_UPDATED,
    MANAGER_ASSIGNED,
    MANAGER_REMOVED,
    MANAGER_UPDATED,
    DomainEvent,
    channel_for,
)

__all__ = [
    "ALL_EVENTS",
    "EventBus",
    "EventHandler",
    "CircuitState",
    "EventCircuitBreaker",
    "calculate_retry_delay_with_jitter",
    "CHANNEL_PREFIX",
    "ENTITY_CREATED",
    "ENTITY_DELETED",
    "ENTITY_UPDATED",
    "MANAGER_ASSIGNED",
    "MANAGER_REMOVED",
    "MANAGER_UPDATED",
    "DomainEvent",
    "channel_for",
]
