"""
Complaints app — Side-Effect Dispatcher.

Delivers the externally visible consequences of an accepted mutation:
email notices, in-app ``Notification`` rows and real-time events.  The
engine hands over a ``MutationEvent`` from ``transaction.on_commit``,
so nothing here runs for a mutation that did not commit.

Delivery is best effort and attempted at most once.  Every effect runs
in its own ``try`` block; failures are logged with ``logger.exception``
and never reach the caller of the engine.

By default the event is handed to a thread pool of ``DISPATCH_WORKERS``
workers, so a slow mail relay never holds up the request that committed
the mutation.  ``COMPLAINTS["DISPATCH_ASYNC"] = False`` delivers inline
right after commit.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.signals import setting_changed
from django.db import close_old_connections
from django.dispatch import receiver

from core.domain.notifications import (
    ASSIGNMENT_NOTICE,
    NEW_COMPLAINT,
    STATUS_UPDATE,
    NotificationService,
)
from core.domain.realtime import (
    ADMIN_TOPIC,
    COMPLAINT_CREATED,
    COMPLAINT_DELETED,
    COMPLAINT_UPDATED,
    EventBus,
    complaint_topic,
    get_event_bus,
)

logger = logging.getLogger(__name__)

# ── Mutation kinds ──────────────────────────────────────────────────
CREATED = "created"
FIELDS_CHANGED = "fields_changed"
STATUS_CHANGED = "status_changed"
ASSIGNED = "assigned"
UNASSIGNED = "unassigned"
NOTE_ADDED = "note_added"
FEEDBACK_SUBMITTED = "feedback_submitted"
DELETED = "deleted"


@dataclass(frozen=True)
class MutationEvent:
    """
    What the engine committed.

    ``diff`` maps field → ``{"old": ..., "new": ...}`` and only holds
    fields that actually changed.  ``snapshot`` is the complaint as
    stored after the write.
    """

    kinds: frozenset[str]
    complaint_id: int
    actor_id: int | None
    diff: dict[str, Any] = field(default_factory=dict)
    snapshot: dict[str, Any] = field(default_factory=dict)


def display_status(value: str | None) -> str:
    """``in_progress`` → ``IN PROGRESS``."""
    return (value or "").replace("_", " ").upper()


class SideEffectDispatcher:
    """
    Turns a ``MutationEvent`` into notices and real-time publishes.

    Parameters
    ----------
    bus : EventBus, optional
        Defaults to ``core.domain.realtime.get_event_bus()``.
    notifier : optional
        Object with ``send(address, template_kind, context)`` and
        ``create(recipients=..., template_kind=..., context=...,
        complaint_id=...)``.  Defaults to ``NotificationService``.
    executor : concurrent.futures.Executor, optional
        When given, ``submit`` runs delivery on it instead of inline.
    """

    def __init__(
        self,
        *,
        bus: EventBus | None = None,
        notifier: Any = None,
        executor: Executor | None = None,
        site_url: str | None = None,
        admin_email: str | None = None,
    ) -> None:
        self._bus = bus
        self.notifier = notifier or NotificationService
        self.executor = executor
        config = getattr(settings, "COMPLAINTS", {})
        self.site_url = (site_url if site_url is not None else config.get("SITE_URL", "")).rstrip("/")
        self.admin_email = admin_email if admin_email is not None else config.get("ADMIN_NOTIFICATION_EMAIL")

    @property
    def bus(self) -> EventBus:
        return self._bus or get_event_bus()

    # ── scheduling ──────────────────────────────────────────────────

    def submit(self, event: MutationEvent) -> None:
        """Deliver ``event`` inline, or on the executor when one is configured."""
        if self.executor is None:
            self.dispatch(event)
            return
        try:
            self.executor.submit(self._dispatch_in_worker, event)
        except RuntimeError:
            logger.exception(
                "Dispatch executor rejected event for complaint #%s; delivering inline",
                event.complaint_id,
            )
            self.dispatch(event)

    def _dispatch_in_worker(self, event: MutationEvent) -> None:
        close_old_connections()
        try:
            self.dispatch(event)
        finally:
            close_old_connections()

    # ── delivery ────────────────────────────────────────────────────

    def dispatch(self, event: MutationEvent) -> None:
        """Deliver every effect of ``event``; never raises."""
        steps = []
        if STATUS_CHANGED in event.kinds:
            steps.append(self._notify_status_change)
        if ASSIGNED in event.kinds:
            steps.append(self._notify_assignee)
        if CREATED in event.kinds:
            steps.append(self._notify_admins)
        steps.append(self._publish)

        for step in steps:
            try:
                step(event)
            except Exception:
                logger.exception(
                    "Side effect %s failed for complaint #%s",
                    step.__name__, event.complaint_id,
                )

    def _notify_status_change(self, event: MutationEvent) -> None:
        change = event.diff.get("status") or {}
        submitter = self._load_user(event.snapshot.get("submitted_by"))
        if submitter is None:
            return
        context = {
            "recipient_name": submitter.display_name,
            "complaint_title": event.snapshot.get("title", ""),
            "old_status": display_status(change.get("old")),
            "new_status": display_status(change.get("new")),
            "complaint_link": self.link("resident", event.complaint_id),
        }
        self._deliver(submitter, STATUS_UPDATE, context, event)

    def _notify_assignee(self, event: MutationEvent) -> None:
        change = event.diff.get("assignee") or {}
        assignee = self._load_user(change.get("new"))
        if assignee is None:
            return
        context = {
            "recipient_name": assignee.display_name,
            "complaint_title": event.snapshot.get("title", ""),
            "complaint_description": event.snapshot.get("description", ""),
            "complaint_link": self.link("staff", event.complaint_id),
        }
        self._deliver(assignee, ASSIGNMENT_NOTICE, context, event)

    def _notify_admins(self, event: MutationEvent) -> None:
        if not self.admin_email:
            return
        submitter = self._load_user(event.snapshot.get("submitted_by"), require_contact=False)
        context = {
            "complaint_title": event.snapshot.get("title", ""),
            "complaint_description": event.snapshot.get("description", ""),
            "complaint_category": event.snapshot.get("category", ""),
            "complaint_priority": event.snapshot.get("priority", ""),
            "submitted_by": submitter.display_name if submitter else "",
            "submitted_by_email": submitter.email if submitter else "",
            "complaint_link": self.link("admin", event.complaint_id),
        }
        try:
            self.notifier.send(self.admin_email, NEW_COMPLAINT, context)
        except Exception:
            logger.exception(
                "Failed to send [%s] notice for complaint #%s",
                NEW_COMPLAINT, event.complaint_id,
            )

    def _deliver(self, user, template_kind: str, context: dict[str, Any], event: MutationEvent) -> None:
        try:
            self.notifier.create(
                recipients=user,
                template_kind=template_kind,
                context=context,
                complaint_id=event.complaint_id,
            )
        except Exception:
            logger.exception(
                "Failed to record [%s] notification for user #%s on complaint #%s",
                template_kind, user.pk, event.complaint_id,
            )
        try:
            self.notifier.send(user.contact_address, template_kind, context)
        except Exception:
            logger.exception(
                "Failed to send [%s] notice to user #%s for complaint #%s",
                template_kind, user.pk, event.complaint_id,
            )

    def _publish(self, event: MutationEvent) -> None:
        if CREATED in event.kinds:
            name = COMPLAINT_CREATED
        elif DELETED in event.kinds:
            name = COMPLAINT_DELETED
        else:
            name = COMPLAINT_UPDATED
        payload = {
            "event": name,
            "kinds": sorted(event.kinds),
            "changes": event.diff,
            "complaint": event.snapshot,
        }
        topics = [complaint_topic(event.complaint_id)]
        if name != COMPLAINT_UPDATED:
            topics.append(ADMIN_TOPIC)
        for topic in topics:
            try:
                self.bus.publish(topic, payload)
            except Exception:
                logger.exception("Failed to publish on %s", topic)

    # ── helpers ─────────────────────────────────────────────────────

    def link(self, area: str, complaint_id: Any) -> str:
        return f"{self.site_url}/{area}/complaints/{complaint_id}"

    @staticmethod
    def _load_user(user_id: Any, *, require_contact: bool = True):
        """User with a contactable address, or ``None``."""
        if user_id is None:
            return None
        User = get_user_model()
        try:
            user = User.objects.get(pk=user_id)
        except User.DoesNotExist:
            return None
        if require_contact and user.contact_address is None:
            return None
        return user


# ═══════════════════════════════════════════════════════════════════
#  Process-wide dispatcher
# ═══════════════════════════════════════════════════════════════════

_default_dispatcher: SideEffectDispatcher | None = None
_default_lock = threading.Lock()


def get_dispatcher() -> SideEffectDispatcher:
    """Dispatcher built from ``settings.COMPLAINTS`` (cached)."""
    global _default_dispatcher
    with _default_lock:
        if _default_dispatcher is None:
            config = getattr(settings, "COMPLAINTS", {})
            executor = None
            if config.get("DISPATCH_ASYNC", True):
                executor = ThreadPoolExecutor(
                    max_workers=int(config.get("DISPATCH_WORKERS", 4)),
                    thread_name_prefix="complaint-dispatch",
                )
            _default_dispatcher = SideEffectDispatcher(executor=executor)
        return _default_dispatcher


def reset_dispatcher() -> None:
    global _default_dispatcher
    with _default_lock:
        if _default_dispatcher is not None and _default_dispatcher.executor is not None:
            _default_dispatcher.executor.shutdown(wait=False)
        _default_dispatcher = None


@receiver(setting_changed)
def _reset_on_settings_change(setting: str, **kwargs: Any) -> None:
    if setting == "COMPLAINTS":
        reset_dispatcher()
