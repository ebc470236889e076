"""
core.domain.realtime — Real-time event bus used to push complaint updates
to live subscribers.

The bus is an external collaborator: the engine only ever calls
``publish(topic, payload)``.  The concrete class is chosen with the
``COMPLAINTS["REALTIME_BACKEND"]`` setting (a dotted path, resolved with
``import_string`` the same way Django resolves ``EMAIL_BACKEND``).

Topics
------
- ``complaint-<id>``  — every accepted mutation of one complaint.
- ``admin-updates``   — creation and deletion events for admin subscribers.

Usage::

    from core.domain.realtime import complaint_topic, get_event_bus

    get_event_bus().publish(
        complaint_topic(complaint.pk),
        {"event": COMPLAINT_UPDATED, "complaint": snapshot},
    )
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict, defaultdict, deque
from typing import Any, Callable

from django.conf import settings
from django.core.signals import setting_changed
from django.dispatch import receiver
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

COMPLAINT_CREATED = "complaint:created"
COMPLAINT_UPDATED = "complaint:updated"
COMPLAINT_DELETED = "complaint:deleted"
ADMIN_TOPIC = "admin-updates"

Subscriber = Callable[[str, dict[str, Any]], None]


def complaint_topic(complaint_id: Any) -> str:
    """Return the real-time topic name for a complaint."""
    return f"complaint-{complaint_id}"


class EventBus:
    """Interface every real-time backend implements."""

    def publish(self, topic: str, payload: dict[str, Any]) -> None:
        raise NotImplementedError


class InMemoryEventBus(EventBus):
    """
    Process-local publish/subscribe bus.

    Keeps a bounded history per topic so a subscriber that attaches
    late can catch up, and fans each published payload out to the
    callbacks registered for that topic.  History is kept for at most
    ``max_topics`` topics; the least recently published one is dropped
    first.  Safe to use from the dispatcher's worker threads.
    """

    def __init__(self, history_size: int = 50, max_topics: int = 1000) -> None:
        self._lock = threading.Lock()
        self._history_size = history_size
        self._max_topics = max_topics
        self._subscribers: dict[str, list[Subscriber]] = defaultdict(list)
        self._history: OrderedDict[str, deque] = OrderedDict()

    def subscribe(self, topic: str, callback: Subscriber) -> Callable[[], None]:
        """Register *callback* for *topic*; returns an unsubscribe function."""
        with self._lock:
            self._subscribers[topic].append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(topic)
                if callbacks and callback in callbacks:
                    callbacks.remove(callback)
                    if not callbacks:
                        del self._subscribers[topic]

        return _unsubscribe

    def publish(self, topic: str, payload: dict[str, Any]) -> None:
        with self._lock:
            self._remember(topic, payload)
            callbacks = list(self._subscribers.get(topic, []))

        for callback in callbacks:
            try:
                callback(topic, payload)
            except Exception:
                logger.exception("Subscriber %r failed on topic %s", callback, topic)

    def _remember(self, topic: str, payload: dict[str, Any]) -> None:
        history = self._history.get(topic)
        if history is None:
            history = self._history[topic] = deque(maxlen=self._history_size)
        else:
            self._history.move_to_end(topic)
        history.append(payload)
        while len(self._history) > self._max_topics:
            self._history.popitem(last=False)

    def history(self, topic: str) -> list[dict[str, Any]]:
        with self._lock:
            return list(self._history.get(topic, ()))

    def topics(self) -> list[str]:
        """Topics with retained history, least recently published first."""
        with self._lock:
            return list(self._history)

    def clear(self) -> None:
        with self._lock:
            self._subscribers.clear()
            self._history.clear()


_default_bus: EventBus | None = None
_default_bus_lock = threading.Lock()


def get_event_bus() -> EventBus:
    """Return the process-wide bus configured by ``REALTIME_BACKEND``."""
    global _default_bus
    with _default_bus_lock:
        if _default_bus is None:
            backend = settings.COMPLAINTS.get(
                "REALTIME_BACKEND", "core.domain.realtime.InMemoryEventBus",
            )
            _default_bus = import_string(backend)()
        return _default_bus


def reset_event_bus() -> None:
    global _default_bus
    with _default_bus_lock:
        _default_bus = None


@receiver(setting_changed)
def _reset_on_settings_change(setting: str, **kwargs: Any) -> None:
    if setting == "COMPLAINTS":
        reset_event_bus()
