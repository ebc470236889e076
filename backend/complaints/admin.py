from django.contrib import admin

from .models import Assignment, Complaint, ComplaintActivity, ComplaintNote


class ComplaintNoteInline(admin.TabularInline):
    model = ComplaintNote
    extra = 0
    readonly_fields = ("content", "author", "is_internal", "created_at")


class AssignmentInline(admin.TabularInline):
    model = Assignment
    extra = 0
    readonly_fields = ("assignee", "assigned_by", "assigned_at", "due_date",
                       "status", "note")


class ComplaintActivityInline(admin.TabularInline):
    model = ComplaintActivity
    extra = 0
    readonly_fields = ("actor", "action", "from_status", "to_status",
                       "version", "details", "created_at")


@admin.register(Complaint)
class ComplaintAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "status", "priority", "category",
                    "submitted_by", "assigned_to", "version", "created_at")
    list_filter = ("status", "priority", "category")
    search_fields = ("title", "description")
    # Edits must go through the engine so the version stays authoritative.
    readonly_fields = ("status", "assigned_to", "resolved_at", "version",
                       "feedback_rating", "feedback_comment",
                       "feedback_submitted_at")
    inlines = [ComplaintNoteInline, AssignmentInline, ComplaintActivityInline]


@admin.register(Assignment)
class AssignmentAdmin(admin.ModelAdmin):
    list_display = ("complaint", "assignee", "assigned_by", "assigned_at",
                    "status")
    list_filter = ("status",)
