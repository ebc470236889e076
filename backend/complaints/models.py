"""
Complaints app models.

Covers the complaint lifecycle — submission by a resident, triage and
assignment by an admin, work by the assigned staff member, resolution
and the resident's feedback.

``Complaint.assigned_to`` is the single source of truth for who
currently owns a complaint.  ``Assignment`` rows are an append-only
history written in the same transaction as the complaint update.
"""

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from core.models import TimeStampedModel


# ────────────────────────────────────────────────────────────────────
# Choice enumerations
# ────────────────────────────────────────────────────────────────────

class ComplaintStatus(models.TextChoices):
    """
    Complaint lifecycle states.  ``resolved`` and ``cancelled`` are
    terminal.
    """

    PENDING = "pending", "Pending"
    IN_PROGRESS = "in_progress", "In Progress"
    RESOLVED = "resolved", "Resolved"
    CANCELLED = "cancelled", "Cancelled"


TERMINAL_STATUSES = frozenset({ComplaintStatus.RESOLVED, ComplaintStatus.CANCELLED})


class ComplaintPriority(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"
    URGENT = "urgent", "Urgent"


class ComplaintCategory(models.TextChoices):
    MAINTENANCE = "maintenance", "Maintenance"
    SECURITY = "security", "Security"
    CLEANLINESS = "cleanliness", "Cleanliness"
    NOISE = "noise", "Noise"
    PARKING = "parking", "Parking"
    UTILITIES = "utilities", "Utilities"
    SAFETY = "safety", "Safety"
    OTHER = "other", "Other"


class AssignmentStatus(models.TextChoices):
    """Assignment-record status, distinct from the complaint status."""

    ACTIVE = "active", "Active"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


# ────────────────────────────────────────────────────────────────────
# Models
# ────────────────────────────────────────────────────────────────────

class Complaint(TimeStampedModel):
    """
    Central work item — a complaint raised by a resident.

    * ``version`` increments exactly once per accepted mutation; every
      write goes through a compare-and-swap on it.
    * ``resolved_at`` is set if and only if ``status == resolved``.
    * Feedback may only be recorded once, after resolution.
    """

    title = models.CharField(
        max_length=200,
        verbose_name="Title",
    )
    description = models.TextField(
        verbose_name="Description",
    )
    category = models.CharField(
        max_length=20,
        choices=ComplaintCategory.choices,
        verbose_name="Category",
        db_index=True,
    )
    priority = models.CharField(
        max_length=10,
        choices=ComplaintPriority.choices,
        default=ComplaintPriority.MEDIUM,
        verbose_name="Priority",
        db_index=True,
    )
    status = models.CharField(
        max_length=20,
        choices=ComplaintStatus.choices,
        default=ComplaintStatus.PENDING,
        verbose_name="Status",
        db_index=True,
    )

    # ── People ──────────────────────────────────────────────────────
    submitted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="submitted_complaints",
        verbose_name="Submitted By",
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_complaints",
        verbose_name="Assigned To",
    )

    # ── Attachments (opaque references owned by the file store) ─────
    attachments = models.JSONField(
        default=list,
        blank=True,
        verbose_name="Attachment References",
    )

    # ── Location ────────────────────────────────────────────────────
    building = models.CharField(max_length=100, blank=True, default="", verbose_name="Building")
    floor = models.CharField(max_length=20, blank=True, default="", verbose_name="Floor")
    room = models.CharField(max_length=50, blank=True, default="", verbose_name="Room")

    # ── Resolution / feedback ───────────────────────────────────────
    resolved_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="Resolved At",
    )
    feedback_rating = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(5)],
        verbose_name="Feedback Rating",
    )
    feedback_comment = models.TextField(
        blank=True,
        default="",
        verbose_name="Feedback Comment",
    )
    feedback_submitted_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="Feedback Submitted At",
    )

    version = models.PositiveIntegerField(
        default=0,
        verbose_name="Version",
        help_text="Optimistic-concurrency token; bumped on every accepted mutation.",
    )

    class Meta:
        verbose_name = "Complaint"
        verbose_name_plural = "Complaints"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "priority"], name="complaint_status_prio_idx"),
            models.Index(fields=["submitted_by", "status"], name="complaint_submitter_idx"),
            models.Index(fields=["assigned_to", "status"], name="complaint_assignee_idx"),
        ]

    def __str__(self):
        return f"Complaint #{self.pk} — {self.title}"

    @property
    def is_closed(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def has_feedback(self) -> bool:
        return self.feedback_rating is not None


class ComplaintNote(models.Model):
    """
    Append-only note on a complaint.  Internal notes are hidden from
    residents.
    """

    complaint = models.ForeignKey(
        Complaint,
        on_delete=models.CASCADE,
        related_name="notes",
        verbose_name="Complaint",
    )
    content = models.TextField(verbose_name="Content")
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="complaint_notes",
        verbose_name="Author",
    )
    is_internal = models.BooleanField(default=False, verbose_name="Internal")
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Created At")

    class Meta:
        verbose_name = "Complaint Note"
        verbose_name_plural = "Complaint Notes"
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"Note by {self.author} on Complaint #{self.complaint_id}"


class Assignment(TimeStampedModel):
    """
    One assignment of a complaint to a staff member.

    Reassignment supersedes the active record (marks it ``cancelled``)
    and creates a new one; rows are never repointed.
    """

    complaint = models.ForeignKey(
        Complaint,
        on_delete=models.CASCADE,
        related_name="assignments",
        verbose_name="Complaint",
    )
    assignee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="complaint_assignments",
        verbose_name="Assignee",
    )
    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="complaint_assignments_made",
        verbose_name="Assigned By",
    )
    assigned_at = models.DateTimeField(verbose_name="Assigned At")
    due_date = models.DateTimeField(null=True, blank=True, verbose_name="Due Date")
    status = models.CharField(
        max_length=10,
        choices=AssignmentStatus.choices,
        default=AssignmentStatus.ACTIVE,
        verbose_name="Status",
        db_index=True,
    )
    note = models.TextField(blank=True, default="", verbose_name="Note")

    class Meta:
        verbose_name = "Assignment"
        verbose_name_plural = "Assignments"
        ordering = ["assigned_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["complaint"],
                condition=models.Q(status="active"),
                name="one_active_assignment_per_complaint",
            ),
        ]

    def __str__(self):
        return f"{self.assignee} on Complaint #{self.complaint_id} ({self.status})"


class ComplaintActivity(models.Model):
    """
    Immutable audit trail of every accepted change to a complaint.

    Rows outlive the complaint: deleting one leaves its history in
    place and appends a ``complaint_deleted`` entry, so the relation
    carries no database constraint.
    """

    complaint = models.ForeignKey(
        Complaint,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name="activity",
        verbose_name="Complaint",
    )
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="complaint_activity",
        verbose_name="Actor",
    )
    action = models.CharField(max_length=30, verbose_name="Action")
    from_status = models.CharField(
        max_length=20,
        choices=ComplaintStatus.choices,
        blank=True,
        default="",
        verbose_name="Previous Status",
    )
    to_status = models.CharField(
        max_length=20,
        choices=ComplaintStatus.choices,
        blank=True,
        default="",
        verbose_name="New Status",
    )
    version = models.PositiveIntegerField(verbose_name="Resulting Version")
    details = models.JSONField(default=dict, blank=True, verbose_name="Details")
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Created At")

    class Meta:
        verbose_name = "Complaint Activity"
        verbose_name_plural = "Complaint Activity"
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"Complaint #{self.complaint_id}: {self.action} (v{self.version})"
