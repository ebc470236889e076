"""
Core app models.

``TimeStampedModel`` is the abstract base for complaint-side tables;
``Notification`` is the in-app copy of a notice sent to a user.
"""

from django.conf import settings
from django.db import models


class TimeStampedModel(models.Model):
    """
    Abstract base model that provides self-updating ``created_at`` and
    ``updated_at`` timestamp fields for every concrete child model.
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name="Created At",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name="Updated At",
    )

    class Meta:
        abstract = True


class NotificationKind(models.TextChoices):
    STATUS_UPDATE = "status-update", "Status Update"
    ASSIGNMENT_NOTICE = "assignment-notice", "Assignment Notice"
    NEW_COMPLAINT = "new-complaint", "New Complaint"


class Notification(models.Model):
    """
    In-app notice about a complaint: a status change for its submitter
    or a new assignment for a staff member.

    ``complaint_id`` is a plain column, not a foreign key, so the inbox
    outlives a deleted complaint.
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        verbose_name="Recipient",
    )
    kind = models.CharField(
        max_length=20,
        choices=NotificationKind.choices,
        verbose_name="Kind",
    )
    title = models.CharField(max_length=255, verbose_name="Title")
    message = models.TextField(verbose_name="Message")
    complaint_id = models.PositiveBigIntegerField(
        null=True,
        blank=True,
        db_index=True,
        verbose_name="Complaint ID",
    )
    link = models.CharField(max_length=500, blank=True, default="", verbose_name="Link")
    is_read = models.BooleanField(default=False, verbose_name="Read")
    read_at = models.DateTimeField(null=True, blank=True, verbose_name="Read At")
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Created At")

    class Meta:
        verbose_name = "Notification"
        verbose_name_plural = "Notifications"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["recipient", "is_read"], name="core_notif_inbox_idx"),
        ]

    def __str__(self):
        return f"[{self.kind}] {self.title} → {self.recipient}"
