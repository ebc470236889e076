"""
Core app services — **Service Layer**.

Holds the cross-app read services served by the core app: the
system-constants catalogue and the per-user notification inbox.

╔══════════════════════════════════════════════════════════════════════╗
║  CROSS-APP IMPORT RULE                                             ║
║                                                                    ║
║  NEVER import models from other apps at the **module level**.      ║
║  Import them inside the method that needs them, or resolve them    ║
║  with ``apps.get_model``.                                          ║
╚══════════════════════════════════════════════════════════════════════╝
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from django.db.models import QuerySet
from django.utils import timezone

from core.domain.transactions import get_or_not_found

if TYPE_CHECKING:
    from accounts.models import User
    from core.models import Notification


# ════════════════════════════════════════════════════════════════════
#  System Constants Service
# ════════════════════════════════════════════════════════════════════

class SystemConstantsService:
    """
    Gathers all system-wide choice enumerations into a single dict for
    the frontend.

    This service is **stateless** — it does not depend on the requesting
    user.
    """

    @staticmethod
    def get_constants() -> dict[str, Any]:
        """Return all system constants as a dict."""
        from accounts.models import UserRole
        from complaints.models import (
            AssignmentStatus,
            ComplaintCategory,
            ComplaintPriority,
            ComplaintStatus,
        )

        to_list = SystemConstantsService._choices_to_list

        return {
            "complaint_statuses": to_list(ComplaintStatus),
            "complaint_priorities": to_list(ComplaintPriority),
            "complaint_categories": to_list(ComplaintCategory),
            "assignment_statuses": to_list(AssignmentStatus),
            "roles": to_list(UserRole),
        }

    @staticmethod
    def _choices_to_list(
        choices_class: type,
    ) -> list[dict[str, str]]:
        """
        Convert a Django ``TextChoices`` class to a list of
        ``{"value": ..., "label": ...}`` dicts.
        """
        return [
            {"value": str(value), "label": str(label)}
            for value, label in choices_class.choices
        ]


# ═══════════════════════════════════════════════════════════════════
#  Notification Inbox Service
# ═══════════════════════════════════════════════════════════════════

class NotificationInboxService:
    """
    Handles listing and marking in-app notifications as read for a
    given user.
    """

    def __init__(self, user: User) -> None:
        self.user = user

    def list_notifications(self, *, unread_only: bool = False) -> QuerySet:
        """Return notifications for ``self.user``, most recent first."""
        from core.models import Notification

        qs = (
            Notification.objects
            .filter(recipient=self.user)
            .order_by("-created_at", "-id")
        )
        if unread_only:
            qs = qs.filter(is_read=False)
        return qs

    def mark_as_read(self, notification_id: Any) -> Notification:
        """
        Mark a single notification as read.

        Raises:
            NotFound: If the notification does not exist or belongs to
                      another user.
        """
        from core.models import Notification

        notification = get_or_not_found(
            Notification, notification_id, recipient=self.user,
        )
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = timezone.now()
            notification.save(update_fields=["is_read", "read_at"])
        return notification
