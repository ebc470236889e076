"""
Complaints app serializers.

Contains all Request and Response serializers for the Complaints API.
Serializers handle field definitions and shape validation only.  **No
policy, transition or assignment logic lives here** — those belong in
``policies.py``, ``transitions.py`` and ``services.py``.

Structure
---------
1. Filter / query-param serializers
2. Read serializers (list, detail, notes, assignments, activity)
3. Write serializers (create, patch, assign, note, feedback, cancel)
"""

from __future__ import annotations

from typing import Any

from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import (
    Assignment,
    AssignmentStatus,
    Complaint,
    ComplaintActivity,
    ComplaintCategory,
    ComplaintNote,
    ComplaintPriority,
    ComplaintStatus,
)

User = get_user_model()


# ═══════════════════════════════════════════════════════════════════
#  1. Filter / Query-Parameter Serializers
# ═══════════════════════════════════════════════════════════════════


class ComplaintFilterSerializer(serializers.Serializer):
    """Optional query-parameter filters for ``GET /api/complaints/``."""

    status = serializers.ChoiceField(choices=ComplaintStatus.choices, required=False)
    priority = serializers.ChoiceField(choices=ComplaintPriority.choices, required=False)
    category = serializers.ChoiceField(choices=ComplaintCategory.choices, required=False)


class AssignmentFilterSerializer(serializers.Serializer):
    """Optional query-parameter filters for ``GET /api/assignments/``."""

    assignee = serializers.IntegerField(required=False, min_value=1, help_text="Admins only; ignored for staff.")
    status = serializers.ChoiceField(choices=AssignmentStatus.choices, required=False)


# ═══════════════════════════════════════════════════════════════════
#  2. Read Serializers
# ═══════════════════════════════════════════════════════════════════


class UserSummarySerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(source="display_name", read_only=True)

    class Meta:
        model = User
        fields = ["id", "username", "full_name", "role"]
        read_only_fields = fields


class ComplaintNoteSerializer(serializers.ModelSerializer):
    author = UserSummarySerializer(read_only=True)

    class Meta:
        model = ComplaintNote
        fields = ["id", "content", "author", "is_internal", "created_at"]
        read_only_fields = fields


class LocationSerializer(serializers.Serializer):
    building = serializers.CharField(read_only=True)
    floor = serializers.CharField(read_only=True)
    room = serializers.CharField(read_only=True)


class ComplaintListSerializer(serializers.ModelSerializer):
    """Compact representation for the list endpoint."""

    status_display = serializers.CharField(source="get_status_display", read_only=True)
    priority_display = serializers.CharField(source="get_priority_display", read_only=True)
    submitted_by = UserSummarySerializer(read_only=True)
    assigned_to = UserSummarySerializer(read_only=True, allow_null=True)

    class Meta:
        model = Complaint
        fields = [
            "id",
            "title",
            "category",
            "priority",
            "priority_display",
            "status",
            "status_display",
            "submitted_by",
            "assigned_to",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ComplaintDetailSerializer(ComplaintListSerializer):
    """
    Full complaint with notes, location and feedback.

    Internal notes are only included when the serializer context carries
    ``include_internal_notes=True`` (staff and admins).
    """

    location = serializers.SerializerMethodField()
    notes = serializers.SerializerMethodField()
    feedback = serializers.SerializerMethodField()

    class Meta(ComplaintListSerializer.Meta):
        fields = ComplaintListSerializer.Meta.fields + [
            "description",
            "attachments",
            "location",
            "notes",
            "resolved_at",
            "feedback",
        ]
        read_only_fields = fields

    def get_location(self, obj: Complaint) -> dict[str, str]:
        return {"building": obj.building, "floor": obj.floor, "room": obj.room}

    def get_notes(self, obj: Complaint) -> list[dict[str, Any]]:
        notes = obj.notes.select_related("author").order_by("created_at", "id")
        if not self.context.get("include_internal_notes", False):
            notes = notes.filter(is_internal=False)
        return ComplaintNoteSerializer(notes, many=True).data

    def get_feedback(self, obj: Complaint) -> dict[str, Any] | None:
        if obj.feedback_rating is None:
            return None
        return {
            "rating": obj.feedback_rating,
            "comment": obj.feedback_comment,
            "submitted_at": obj.feedback_submitted_at,
        }


class AssignmentSerializer(serializers.ModelSerializer):
    assignee = UserSummarySerializer(read_only=True)
    assigned_by = UserSummarySerializer(read_only=True)

    class Meta:
        model = Assignment
        fields = [
            "id",
            "complaint",
            "assignee",
            "assigned_by",
            "assigned_at",
            "due_date",
            "status",
            "note",
        ]
        read_only_fields = fields


class AssignmentListSerializer(AssignmentSerializer):
    """Assignment record with enough of its complaint to render a work queue."""

    complaint_title = serializers.CharField(source="complaint.title", read_only=True)
    complaint_status = serializers.CharField(source="complaint.status", read_only=True)
    complaint_priority = serializers.CharField(source="complaint.priority", read_only=True)

    class Meta(AssignmentSerializer.Meta):
        fields = AssignmentSerializer.Meta.fields + [
            "complaint_title",
            "complaint_status",
            "complaint_priority",
        ]
        read_only_fields = fields


class ComplaintActivitySerializer(serializers.ModelSerializer):
    actor = UserSummarySerializer(read_only=True, allow_null=True)

    class Meta:
        model = ComplaintActivity
        fields = ["id", "actor", "action", "from_status", "to_status", "version", "details", "created_at"]
        read_only_fields = fields


# ═══════════════════════════════════════════════════════════════════
#  3. Write Serializers
# ═══════════════════════════════════════════════════════════════════


class LocationInputSerializer(serializers.Serializer):
    building = serializers.CharField(required=False, allow_blank=True, max_length=100)
    floor = serializers.CharField(required=False, allow_blank=True, max_length=20)
    room = serializers.CharField(required=False, allow_blank=True, max_length=50)


class ComplaintCreateSerializer(serializers.Serializer):
    """``POST /api/complaints/`` body."""

    title = serializers.CharField(max_length=200)
    description = serializers.CharField()
    category = serializers.ChoiceField(choices=ComplaintCategory.choices)
    priority = serializers.ChoiceField(choices=ComplaintPriority.choices, required=False)
    attachments = serializers.ListField(
        child=serializers.CharField(max_length=500),
        required=False,
        help_text="Opaque attachment references from the file store.",
    )
    location = LocationInputSerializer(required=False)

    def to_engine(self) -> dict[str, Any]:
        """Flatten ``location`` into the building/floor/room patch keys."""
        data = dict(self.validated_data)
        data.update(data.pop("location", None) or {})
        return data


class ComplaintPatchSerializer(ComplaintCreateSerializer):
    """
    ``PATCH /api/complaints/{id}/`` body.

    Every field is optional; only the keys present are sent to the
    engine, which decides whether the actor may apply them.
    """

    title = serializers.CharField(max_length=200, required=False)
    description = serializers.CharField(required=False)
    category = serializers.ChoiceField(choices=ComplaintCategory.choices, required=False)
    status = serializers.CharField(required=False)
    assignee = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    note = serializers.JSONField(required=False)
    expected_version = serializers.IntegerField(required=False, allow_null=True, min_value=0)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        if not set(attrs) - {"expected_version"}:
            raise serializers.ValidationError("Nothing to update.")
        return attrs

    def to_engine(self) -> tuple[int | None, dict[str, Any]]:
        data = super().to_engine()
        expected_version = data.pop("expected_version", None)
        return expected_version, data


class AssignSerializer(serializers.Serializer):
    assignee = serializers.IntegerField(min_value=1)
    due_date = serializers.DateTimeField(required=False, allow_null=True)
    note = serializers.CharField(required=False, allow_blank=True, default="")
    expected_version = serializers.IntegerField(required=False, allow_null=True, min_value=0)


class VersionedActionSerializer(serializers.Serializer):
    expected_version = serializers.IntegerField(required=False, allow_null=True, min_value=0)


class NoteCreateSerializer(VersionedActionSerializer):
    content = serializers.CharField()
    is_internal = serializers.BooleanField(required=False, default=False)


class FeedbackSerializer(VersionedActionSerializer):
    rating = serializers.IntegerField(min_value=1, max_value=5)
    comment = serializers.CharField(required=False, allow_blank=True, default="")


class CancelSerializer(VersionedActionSerializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")
