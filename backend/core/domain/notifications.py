"""
core.domain.notifications — Outbound notice delivery + in-app records.

Centralises notification creation so every caller uses one consistent
entry-point rather than calling ``send_mail`` or constructing
``Notification`` objects directly.

Design decisions
----------------
* **Template kinds, not ad-hoc strings** — callers name a template kind
  (``status-update``, ``assignment-notice``, ``new-complaint``) and pass a
  context dict; subject/body rendering lives here.
* **Mail through Django** — ``send`` goes through ``django.core.mail`` so
  the configured ``EMAIL_BACKEND`` decides the transport (SMTP in
  production, locmem under tests).
* **Errors propagate** — ``send`` does not swallow transport errors.  The
  side-effect dispatcher is the single place that catches and logs them.

Usage::

    from core.domain.notifications import NotificationService

    NotificationService.send(
        "resident@example.com",
        "status-update",
        {"complaint_title": "Leaking pipe", "old_status": "PENDING", ...},
    )
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable

from django.conf import settings
from django.core.mail import send_mail
from django.db import models

if TYPE_CHECKING:
    from accounts.models import User
    from core.models import Notification

logger = logging.getLogger(__name__)

STATUS_UPDATE = "status-update"
ASSIGNMENT_NOTICE = "assignment-notice"
NEW_COMPLAINT = "new-complaint"

# ── Template kind → (subject template, body template) ───────────────
_TEMPLATES: dict[str, tuple[str, str]] = {
    STATUS_UPDATE: (
        "Complaint Status Updated: {complaint_title}",
        "Hello {recipient_name},\n\n"
        "Your complaint \"{complaint_title}\" status has been updated.\n"
        "Previous Status: {old_status}\n"
        "New Status: {new_status}\n\n"
        "View complaint: {complaint_link}\n",
    ),
    ASSIGNMENT_NOTICE: (
        "New Complaint Assignment: {complaint_title}",
        "Hello {recipient_name},\n\n"
        "You have been assigned a new complaint:\n"
        "Title: {complaint_title}\n"
        "Description: {complaint_description}\n\n"
        "View complaint: {complaint_link}\n",
    ),
    NEW_COMPLAINT: (
        "New Complaint Submitted: {complaint_title}",
        "New Complaint Submitted\n\n"
        "Title: {complaint_title}\n"
        "Description: {complaint_description}\n"
        "Category: {complaint_category}\n"
        "Priority: {complaint_priority}\n"
        "Submitted By: {submitted_by} ({submitted_by_email})\n\n"
        "View complaint: {complaint_link}\n",
    ),
}


class _Defaulting(dict):
    """``format_map`` helper that renders unknown placeholders as blanks."""

    def __missing__(self, key: str) -> str:
        return ""


class NotificationService:
    """
    Stateless helper for rendering and delivering notices.

    All methods are classmethods — no instance state is needed.
    """

    @classmethod
    def render(cls, template_kind: str, context: dict[str, Any]) -> tuple[str, str]:
        """
        Render ``(subject, body)`` for a template kind.

        Unknown kinds fall back to a generic title and a key/value dump
        of the context so nothing is silently dropped.
        """
        values = _Defaulting(context)
        try:
            subject_tpl, body_tpl = _TEMPLATES[template_kind]
        except KeyError:
            subject = template_kind.replace("-", " ").title()
            body = "\n".join(f"{k}: {v}" for k, v in sorted(context.items()))
            return subject, body
        return subject_tpl.format_map(values), body_tpl.format_map(values)

    @classmethod
    def send(cls, address: str, template_kind: str, context: dict[str, Any]) -> None:
        """
        Deliver one notice by email.

        Raises whatever the configured mail backend raises; callers that
        must not fail (the dispatcher) catch and log.
        """
        subject, body = cls.render(template_kind, context)
        from_email = settings.COMPLAINTS.get("FROM_EMAIL") or settings.DEFAULT_FROM_EMAIL
        send_mail(subject, body, from_email, [address], fail_silently=False)
        logger.info("Sent [%s] notice to %s", template_kind, address)

    @classmethod
    def create(
        cls,
        *,
        recipients: User | Iterable[User],
        template_kind: str,
        context: dict[str, Any] | None = None,
        complaint_id: int | None = None,
    ) -> list[Notification]:
        """
        Create one in-app ``Notification`` per recipient.

        Args:
            recipients:     A single ``User`` or iterable of ``User``
                            instances.
            template_kind:  Key into the template table; the rendered
                            subject becomes the title.
            context:        Template context.  ``complaint_link`` is
                            stored as the notification link.
            complaint_id:   The complaint the notice is about.

        Returns:
            List of created ``Notification`` instances.
        """
        from core.models import Notification  # circular import

        if isinstance(recipients, models.Model):
            recipients = [recipients]
        else:
            recipients = list(recipients)

        if not recipients:
            logger.warning(
                "NotificationService.create called with empty recipients "
                "for template_kind=%s",
                template_kind,
            )
            return []

        context = context or {}
        title, message = cls.render(template_kind, context)

        notifications = [
            Notification.objects.create(
                recipient=recipient,
                kind=template_kind,
                title=title[:255],
                message=message,
                complaint_id=complaint_id,
                link=str(context.get("complaint_link", ""))[:500],
            )
            for recipient in recipients
        ]

        logger.info(
            "Created %d notification(s) [%s]",
            len(notifications),
            template_kind,
        )
        return notifications
