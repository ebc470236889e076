"""
Core app serializers.

**Response-only** serializers for the endpoints served by the core app:
system constants and the notification inbox.  They work with the plain
dicts and model instances produced by ``core.services``.
"""

from __future__ import annotations

from rest_framework import serializers


# ════════════════════════════════════════════════════════════════════
#  System Constants / Enums
# ════════════════════════════════════════════════════════════════════

class ChoiceItemSerializer(serializers.Serializer):
    """
    A single key-label pair representing one choice/enum option.

    Example::

        {"value": "in_progress", "label": "In Progress"}
    """

    value = serializers.CharField(
        help_text="Machine-readable value to send in API requests.",
    )
    label = serializers.CharField(
        help_text="Human-readable display label for the UI.",
    )


class SystemConstantsSerializer(serializers.Serializer):
    """
    Top-level response serializer for ``GET /api/core/constants/``.

    Response shape::

        {
            "complaint_statuses": [
                {"value": "pending", "label": "Pending"},
                ...
            ],
            "complaint_priorities": [...],
            "complaint_categories": [...],
            "assignment_statuses": [...],
            "roles": [...]
        }
    """

    complaint_statuses = ChoiceItemSerializer(
        many=True,
        help_text="Complaint lifecycle statuses.",
    )
    complaint_priorities = ChoiceItemSerializer(
        many=True,
        help_text="Complaint priority levels.",
    )
    complaint_categories = ChoiceItemSerializer(
        many=True,
        help_text="Complaint categories.",
    )
    assignment_statuses = ChoiceItemSerializer(
        many=True,
        help_text="Assignment record statuses.",
    )
    roles = ChoiceItemSerializer(
        many=True,
        help_text="Actor roles.",
    )


# ════════════════════════════════════════════════════════════════════
#  Notifications
# ════════════════════════════════════════════════════════════════════

class NotificationSerializer(serializers.Serializer):
    """
    Read-only serializer for ``Notification`` instances.

    Used by the Notification ViewSet to list and retrieve notifications
    for the authenticated user.
    """

    id = serializers.IntegerField(read_only=True, help_text="Notification PK.")
    title = serializers.CharField(
        read_only=True,
        help_text="Short notification title.",
    )
    message = serializers.CharField(
        read_only=True,
        help_text="Full notification message body.",
    )
    is_read = serializers.BooleanField(
        read_only=True,
        help_text="Whether the recipient has marked this notification as read.",
    )
    created_at = serializers.DateTimeField(
        read_only=True,
        help_text="When the notification was created.",
    )
    kind = serializers.CharField(
        read_only=True,
        help_text="status-update, assignment-notice or new-complaint.",
    )
    complaint_id = serializers.IntegerField(
        read_only=True,
        allow_null=True,
        help_text="PK of the complaint the notice is about.",
    )
    link = serializers.CharField(
        read_only=True,
        help_text="Frontend URL of the complaint.",
    )
    read_at = serializers.DateTimeField(
        read_only=True,
        allow_null=True,
        help_text="When the recipient marked the notification as read.",
    )
