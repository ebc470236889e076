import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

STATUS_CHOICES = [
    ("pending", "Pending"),
    ("in_progress", "In Progress"),
    ("resolved", "Resolved"),
    ("cancelled", "Cancelled"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Complaint",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("title", models.CharField(max_length=200, verbose_name="Title")),
                ("description", models.TextField(verbose_name="Description")),
                ("category", models.CharField(choices=[("maintenance", "Maintenance"), ("security", "Security"), ("cleanliness", "Cleanliness"), ("noise", "Noise"), ("parking", "Parking"), ("utilities", "Utilities"), ("safety", "Safety"), ("other", "Other")], db_index=True, max_length=20, verbose_name="Category")),
                ("priority", models.CharField(choices=[("low", "Low"), ("medium", "Medium"), ("high", "High"), ("urgent", "Urgent")], db_index=True, default="medium", max_length=10, verbose_name="Priority")),
                ("status", models.CharField(choices=STATUS_CHOICES, db_index=True, default="pending", max_length=20, verbose_name="Status")),
                ("attachments", models.JSONField(blank=True, default=list, verbose_name="Attachment References")),
                ("building", models.CharField(blank=True, default="", max_length=100, verbose_name="Building")),
                ("floor", models.CharField(blank=True, default="", max_length=20, verbose_name="Floor")),
                ("room", models.CharField(blank=True, default="", max_length=50, verbose_name="Room")),
                ("resolved_at", models.DateTimeField(blank=True, null=True, verbose_name="Resolved At")),
                ("feedback_rating", models.PositiveSmallIntegerField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(5)], verbose_name="Feedback Rating")),
                ("feedback_comment", models.TextField(blank=True, default="", verbose_name="Feedback Comment")),
                ("feedback_submitted_at", models.DateTimeField(blank=True, null=True, verbose_name="Feedback Submitted At")),
                ("version", models.PositiveIntegerField(default=0, help_text="Optimistic-concurrency token; bumped on every accepted mutation.", verbose_name="Version")),
                ("assigned_to", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="assigned_complaints", to=settings.AUTH_USER_MODEL, verbose_name="Assigned To")),
                ("submitted_by", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="submitted_complaints", to=settings.AUTH_USER_MODEL, verbose_name="Submitted By")),
            ],
            options={
                "verbose_name": "Complaint",
                "verbose_name_plural": "Complaints",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "priority"], name="complaint_status_prio_idx"),
                    models.Index(fields=["submitted_by", "status"], name="complaint_submitter_idx"),
                    models.Index(fields=["assigned_to", "status"], name="complaint_assignee_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ComplaintNote",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("content", models.TextField(verbose_name="Content")),
                ("is_internal", models.BooleanField(default=False, verbose_name="Internal")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("author", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="complaint_notes", to=settings.AUTH_USER_MODEL, verbose_name="Author")),
                ("complaint", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="notes", to="complaints.complaint", verbose_name="Complaint")),
            ],
            options={
                "verbose_name": "Complaint Note",
                "verbose_name_plural": "Complaint Notes",
                "ordering": ["created_at", "id"],
            },
        ),
        migrations.CreateModel(
            name="Assignment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("assigned_at", models.DateTimeField(verbose_name="Assigned At")),
                ("due_date", models.DateTimeField(blank=True, null=True, verbose_name="Due Date")),
                ("status", models.CharField(choices=[("active", "Active"), ("completed", "Completed"), ("cancelled", "Cancelled")], db_index=True, default="active", max_length=10, verbose_name="Status")),
                ("note", models.TextField(blank=True, default="", verbose_name="Note")),
                ("assigned_by", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="complaint_assignments_made", to=settings.AUTH_USER_MODEL, verbose_name="Assigned By")),
                ("assignee", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="complaint_assignments", to=settings.AUTH_USER_MODEL, verbose_name="Assignee")),
                ("complaint", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="assignments", to="complaints.complaint", verbose_name="Complaint")),
            ],
            options={
                "verbose_name": "Assignment",
                "verbose_name_plural": "Assignments",
                "ordering": ["assigned_at", "id"],
                "constraints": [
                    models.UniqueConstraint(condition=models.Q(("status", "active")), fields=("complaint",), name="one_active_assignment_per_complaint"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ComplaintActivity",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(max_length=30, verbose_name="Action")),
                ("from_status", models.CharField(blank=True, choices=STATUS_CHOICES, default="", max_length=20, verbose_name="Previous Status")),
                ("to_status", models.CharField(blank=True, choices=STATUS_CHOICES, default="", max_length=20, verbose_name="New Status")),
                ("version", models.PositiveIntegerField(verbose_name="Resulting Version")),
                ("details", models.JSONField(blank=True, default=dict, verbose_name="Details")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("actor", models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="complaint_activity", to=settings.AUTH_USER_MODEL, verbose_name="Actor")),
                ("complaint", models.ForeignKey(db_constraint=False, on_delete=django.db.models.deletion.DO_NOTHING, related_name="activity", to="complaints.complaint", verbose_name="Complaint")),
            ],
            options={
                "verbose_name": "Complaint Activity",
                "verbose_name_plural": "Complaint Activity",
                "ordering": ["created_at", "id"],
            },
        ),
    ]
