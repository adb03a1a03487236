"""
Event bus handle.

One EventBus is built at process start (see factory_api.main lifespan),
stored on app.state and closed on shutdown. Publishing is best effort:
in-process subscribers run first, then the event is published to Redis
channel events:<name>. Every failure is logged and swallowed so a broken
listener or an unreachable Redis never fails the mutating request.
"""

from __future__ import annotations

import threading
import time
from collections import defaultdict
from collections.abc import Callable
from typing import Any

import redis

from factory_shared.config.logging import get_logger
from factory_shared.config.settings import settings
from .circuit_breaker import EventCircuitBreaker, calculate_retry_delay_with_jitter
from .event_schema import DomainEvent, channel_for

logger = get_logger(__name__)

EventHandler = Callable[[DomainEvent], None]

# Subscribing to this topic receives every event
ALL_EVENTS = "*"


class EventBus:
    """Publish/subscribe handle with an explicit start/close lifecycle."""

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
        max_event_size: int | None = None,
    ):
        self._redis = redis_client
        self._max_retries = max_retries if max_retries is not None else settings.event_publish_max_retries
        self._retry_delay = retry_delay if retry_delay is not None else settings.event_publish_retry_delay
        self._max_event_size = max_event_size if max_event_size is not None else settings.event_max_size
        self._breaker = EventCircuitBreaker(failure_threshold=self._max_retries + 2)
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self._lock = threading.Lock()
        self._started = False

    @classmethod
    def from_settings(cls) -> "EventBus":
        """Bus wired to Redis when events are enabled, local-only otherwise."""
        if not settings.events_enabled:
            return cls(None)
        pool = redis.ConnectionPool.from_url(
            settings.redis_url,
            max_connections=settings.redis_pool_max_connections,
            decode_responses=True,
            socket_connect_timeout=settings.redis_socket_timeout,
            socket_timeout=settings.redis_socket_timeout,
            health_check_interval=30,
        )
        return cls(redis.Redis(connection_pool=pool))

    @property
    def started(self) -> bool:
        return self._started

    @property
    def circuit_breaker(self) -> EventCircuitBreaker:
        return self._breaker

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        if self._redis is not None:
            try:
                self._redis.ping()
                logger.info("Event bus connected to Redis")
            except (redis.RedisError, OSError) as e:
                # Publishing still works locally; Redis is retried per event
                logger.warning("Event bus could not reach Redis", error=str(e))
        self._started = True

    def close(self) -> None:
        with self._lock:
            self._handlers.clear()
        if self._redis is not None:
            try:
                self._redis.close()
            except (redis.RedisError, OSError) as e:
                logger.warning("Error closing Redis client", error=str(e))
        self._started = False
        logger.info("Event bus closed")

    # -------------------------------------------------------------------------
    # Subscribe / publish
    # -------------------------------------------------------------------------

    def subscribe(self, topic: str, handler: EventHandler) -> Callable[[], None]:
        """
        Register a handler for an event name (or ALL_EVENTS).

        Returns a callable that removes the subscription.
        """
        with self._lock:
            self._handlers[topic].append(handler)

        def unsubscribe() -> None:
            with self._lock:
                if handler in self._handlers.get(topic, []):
                    self._handlers[topic].remove(handler)

        return unsubscribe

    def publish(self, event_name: str, payload: dict[str, Any], sender_id: str | None) -> int:
        """
        Publish an event. Never raises.

        Returns the number of receivers reached (local handlers plus Redis
        subscribers).
        """
        try:
            event = DomainEvent(name=event_name, payload=payload, sender_id=sender_id)
            event_json = event.to_json()
        except (TypeError, ValueError) as e:
            logger.error("Dropping malformed event", event_name=event_name, error=str(e))
            return 0

        size = len(event_json.encode("utf-8"))
        if size > self._max_event_size:
            logger.error(
                "Dropping oversized event",
                event_name=event_name,
                size=size,
                max_size=self._max_event_size,
            )
            return 0

        delivered = self._dispatch_local(event)
        if self._redis is not None:
            delivered += self._publish_redis(event, event_json)
        return delivered

    def _dispatch_local(self, event: DomainEvent) -> int:
        with self._lock:
            handlers = list(self._handlers.get(event.name, [])) + list(self._handlers.get(ALL_EVENTS, []))

        delivered = 0
        for handler in handlers:
            try:
                handler(event)
                delivered += 1
            except Exception:
                logger.error(
                    "Event handler failed",
                    event_name=event.name,
                    handler=getattr(handler, "__qualname__", repr(handler)),
                    exc_info=True,
                )
        return delivered

    def _publish_redis(self, event: DomainEvent, event_json: str) -> int:
        channel = channel_for(event.name)
        if not self._breaker.can_execute():
            logger.warning(
                "Event publish skipped - circuit breaker open",
                channel=channel,
            )
            return 0

        for attempt in range(self._max_retries):
            try:
                receivers = self._redis.publish(channel, event_json)
                self._breaker.record_success()
                return int(receivers)
            except (redis.RedisError, OSError) as e:
                if attempt < self._max_retries - 1:
                    delay = calculate_retry_delay_with_jitter(attempt, self._retry_delay)
                    logger.warning(
                        "Redis publish failed, retrying",
                        channel=channel,
                        attempt=attempt + 1,
                        max_retries=self._max_retries,
                        delay_seconds=round(delay, 2),
                        error=str(e),
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        "Redis publish failed after all retries",
                        channel=channel,
                        error=str(e),
                    )

        self._breaker.record_failure()
        return 0
