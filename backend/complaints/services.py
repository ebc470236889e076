"""
Complaints app Service Layer.

This module is the **single source of truth** for all business logic
in the ``complaints`` app.  Views must remain thin: validate input via
serializers, call a service method, and render the result.

Architecture
------------
- ``ComplaintStore``            — load a complaint; compare-and-swap writes.
- ``AssignmentCoordinator``     — who may own a complaint; append-only
                                  assignment history.
- ``ComplaintLifecycleEngine``  — the mutation entry point (create, apply,
                                  assign/unassign, notes, feedback, cancel,
                                  delete).  Returns a ``MutationResult``;
                                  domain errors never escape it.
- ``ComplaintQueryService``     — role-scoped read paths.

Mutation pipeline
-----------------
::

    load ─► version check ─► policy ─► transition ─► assignment
         ─► CAS write + dependent inserts (one transaction)
         ─► on commit: side-effect dispatch (best effort)

Nothing is dispatched for a request that fails or rolls back, and a
request that changes nothing does not bump the version.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Any

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone

from accounts.actors import Actor
from accounts.models import UserRole
from core.domain.access import ScopeConfig, apply_role_scope, require_role
from core.domain.exception_handler import status_for
from core.domain.exceptions import (
    ComplaintClosed,
    DomainError,
    Forbidden,
    NotFound,
    ValidationError,
    VersionConflict,
)
from core.domain.transactions import cas_delete, cas_update

from . import policies, transitions
from .dispatch import (
    ASSIGNED,
    CREATED,
    DELETED,
    FEEDBACK_SUBMITTED,
    FIELDS_CHANGED,
    NOTE_ADDED,
    STATUS_CHANGED,
    UNASSIGNED,
    MutationEvent,
    SideEffectDispatcher,
    get_dispatcher,
)
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

logger = logging.getLogger(__name__)

User = get_user_model()

_MAX_LENGTHS = {
    "title": 200,
    "building": 100,
    "floor": 20,
    "room": 50,
}
_CHOICE_FIELDS = {
    "category": ComplaintCategory,
    "priority": ComplaintPriority,
}


# ═══════════════════════════════════════════════════════════════════
#  Results & snapshots
# ═══════════════════════════════════════════════════════════════════


@dataclass
class MutationResult:
    """
    Structured outcome of an engine operation.

    Exactly one of ``complaint`` / ``error`` is meaningful: on success
    ``complaint`` is the fresh row (``changed`` tells whether anything
    was written); on failure ``error`` is the domain error.
    """

    ok: bool
    complaint: Complaint | None = None
    error: DomainError | None = None
    changed: bool = False
    assignment: Assignment | None = None

    @classmethod
    def success(cls, complaint: Complaint, *, changed: bool = True, assignment: Assignment | None = None) -> "MutationResult":
        return cls(ok=True, complaint=complaint, changed=changed, assignment=assignment)

    @classmethod
    def failure(cls, error: DomainError) -> "MutationResult":
        return cls(ok=False, error=error)

    @property
    def error_code(self) -> str | None:
        return self.error.code if self.error is not None else None

    @property
    def http_status(self) -> int:
        return status_for(self.error) if self.error is not None else 200

    @property
    def version(self) -> int | None:
        return self.complaint.version if self.complaint is not None else None


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def build_snapshot(complaint: Complaint, *, include_internal: bool = False) -> dict[str, Any]:
    """
    JSON-ready view of a complaint, as published to live subscribers.

    Internal notes are left out unless ``include_internal`` is set.
    """
    notes = complaint.notes.all()
    if not include_internal:
        notes = notes.filter(is_internal=False)

    feedback = None
    if complaint.feedback_rating is not None:
        feedback = {
            "rating": complaint.feedback_rating,
            "comment": complaint.feedback_comment,
            "submitted_at": _iso(complaint.feedback_submitted_at),
        }

    return {
        "id": complaint.pk,
        "title": complaint.title,
        "description": complaint.description,
        "category": complaint.category,
        "priority": complaint.priority,
        "status": complaint.status,
        "submitted_by": complaint.submitted_by_id,
        "assigned_to": complaint.assigned_to_id,
        "attachments": list(complaint.attachments or []),
        "location": {
            "building": complaint.building,
            "floor": complaint.floor,
            "room": complaint.room,
        },
        "notes": [
            {
                "id": note.pk,
                "content": note.content,
                "author": note.author_id,
                "is_internal": note.is_internal,
                "created_at": _iso(note.created_at),
            }
            for note in notes
        ],
        "resolved_at": _iso(complaint.resolved_at),
        "feedback": feedback,
        "version": complaint.version,
        "created_at": _iso(complaint.created_at),
        "updated_at": _iso(complaint.updated_at),
    }


# ═══════════════════════════════════════════════════════════════════
#  Field validation
# ═══════════════════════════════════════════════════════════════════


def clean_content_fields(values: dict[str, Any], *, creating: bool = False) -> dict[str, Any]:
    """
    Validate and normalise title/description/category/priority/
    attachments/location values.

    Raises ``ValidationError`` carrying every bad field at once.
    """
    errors: dict[str, list[str]] = {}
    cleaned: dict[str, Any] = {}

    for name in ("title", "description"):
        if name not in values:
            if creating:
                errors[name] = ["This field is required."]
            continue
        value = values[name]
        if not isinstance(value, str) or not value.strip():
            errors[name] = ["This field may not be blank."]
            continue
        value = value.strip()
        limit = _MAX_LENGTHS.get(name)
        if limit and len(value) > limit:
            errors[name] = [f"Ensure this field has no more than {limit} characters."]
            continue
        cleaned[name] = value

    for name, choices in _CHOICE_FIELDS.items():
        if name not in values:
            if creating and name == "category":
                errors[name] = ["This field is required."]
            continue
        if values[name] not in choices.values:
            errors[name] = [f"'{values[name]}' is not a valid choice."]
            continue
        cleaned[name] = values[name]

    if "attachments" in values:
        refs = values["attachments"]
        if not isinstance(refs, (list, tuple)) or not all(
            isinstance(ref, str) and ref.strip() for ref in refs
        ):
            errors["attachments"] = ["Expected a list of attachment references."]
        else:
            cleaned["attachments"] = [ref.strip() for ref in refs]

    for name in policies.LOCATION_FIELDS:
        if name not in values:
            continue
        value = values[name]
        if value is None:
            value = ""
        if not isinstance(value, str) or len(value) > _MAX_LENGTHS[name]:
            errors[name] = [f"Expected text of at most {_MAX_LENGTHS[name]} characters."]
            continue
        cleaned[name] = value.strip()

    if errors:
        raise ValidationError("Invalid complaint fields.", errors=errors)
    return cleaned


def clean_note(value: Any) -> dict[str, Any]:
    """Accepts ``"text"`` or ``{"content": "text", "is_internal": bool}``."""
    if isinstance(value, str):
        value = {"content": value}
    if not isinstance(value, dict):
        raise ValidationError.for_field("note", "Expected note text or an object with 'content'.")
    content = value.get("content")
    if not isinstance(content, str) or not content.strip():
        raise ValidationError.for_field("note", "Note content may not be blank.")
    is_internal = value.get("is_internal", False)
    if not isinstance(is_internal, bool):
        raise ValidationError.for_field("note", "'is_internal' must be true or false.")
    return {"content": content.strip(), "is_internal": is_internal}


# ═══════════════════════════════════════════════════════════════════
#  Store
# ═══════════════════════════════════════════════════════════════════


class ComplaintStore:
    """
    The only code path that reads or writes ``Complaint`` rows for the
    engine.  Writes are conditional on the caller's expected version.
    """

    def get(self, complaint_id: Any) -> Complaint:
        try:
            return Complaint.objects.select_related("submitted_by", "assigned_to").get(pk=complaint_id)
        except (Complaint.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Complaint with pk={complaint_id} does not exist.")

    def cas_write(self, complaint_id: Any, expected_version: int, changes: dict[str, Any]) -> int:
        """Apply ``changes`` iff the stored version is ``expected_version``; returns the new version."""
        return cas_update(
            Complaint,
            pk=complaint_id,
            expected_version=expected_version,
            changes=changes,
        )

    def cas_delete(self, complaint_id: Any, expected_version: int) -> int:
        """Delete the complaint with its notes and assignment rows iff the version matches."""
        return cas_delete(Complaint, pk=complaint_id, expected_version=expected_version)


# ═══════════════════════════════════════════════════════════════════
#  Assignment Coordinator
# ═══════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class AssignmentPlan:
    """A validated (re)assignment, not yet written."""

    assignee: Any  # User | None
    changes: dict[str, Any] = field(default_factory=dict)

    @property
    def is_unassign(self) -> bool:
        return self.assignee is None


class AssignmentCoordinator:
    """
    Owns ``Complaint.assigned_to`` and the ``Assignment`` history.

    ``plan`` validates a request against the current snapshot;
    ``record`` writes the history rows and must run in the same
    transaction as the complaint CAS write.
    """

    @staticmethod
    def plan(actor: Actor, complaint: Complaint, assignee_id: Any) -> AssignmentPlan | None:
        """
        Validate an assign/unassign request.

        Returns ``None`` when the request would not change the current
        assignee (idempotent resubmission).

        Raises
        ------
        Forbidden
            The actor is not an admin.
        ComplaintClosed
            The complaint is resolved or cancelled.
        ValidationError
            The target user does not exist, is inactive or is not staff.
        """
        require_role(actor, UserRole.ADMIN, message="Only admins may assign complaints.")
        if complaint.is_closed:
            raise ComplaintClosed()

        if assignee_id is None:
            if complaint.assigned_to_id is None:
                return None
            return AssignmentPlan(assignee=None, changes={"assigned_to": None})

        try:
            assignee = User.objects.get(pk=assignee_id)
        except (User.DoesNotExist, ValueError, TypeError):
            raise ValidationError.for_field("assignee", f"User with pk={assignee_id} does not exist.")
        if not assignee.is_active or assignee.role != UserRole.STAFF:
            raise ValidationError.for_field("assignee", "Complaints can only be assigned to active staff members.")

        if complaint.assigned_to_id == assignee.pk:
            return None
        return AssignmentPlan(assignee=assignee, changes={"assigned_to": assignee})

    @staticmethod
    def close_active(complaint_id: Any, status: str) -> int:
        """Move the active assignment record (if any) to ``status``."""
        return Assignment.objects.filter(
            complaint_id=complaint_id,
            status=AssignmentStatus.ACTIVE,
        ).update(status=status, updated_at=timezone.now())

    @staticmethod
    def record(
        plan: AssignmentPlan,
        complaint_id: Any,
        actor: Actor,
        *,
        due_date=None,
        note: str = "",
    ) -> Assignment | None:
        """
        Supersede the active record and, for an assignment, append a
        new ``active`` one.
        """
        AssignmentCoordinator.close_active(complaint_id, AssignmentStatus.CANCELLED)
        if plan.is_unassign:
            return None
        return Assignment.objects.create(
            complaint_id=complaint_id,
            assignee=plan.assignee,
            assigned_by_id=actor.id,
            assigned_at=timezone.now(),
            due_date=due_date,
            status=AssignmentStatus.ACTIVE,
            note=note or "",
        )


# ═══════════════════════════════════════════════════════════════════
#  Mutation Orchestrator
# ═══════════════════════════════════════════════════════════════════


class ComplaintLifecycleEngine:
    """
    Entry point for every complaint mutation.

    Parameters
    ----------
    store : ComplaintStore, optional
    coordinator : AssignmentCoordinator, optional
    dispatcher : SideEffectDispatcher, optional
        Defaults to the process-wide dispatcher built from
        ``settings.COMPLAINTS``; resolved at dispatch time.
    """

    def __init__(
        self,
        store: ComplaintStore | None = None,
        coordinator: AssignmentCoordinator | None = None,
        dispatcher: SideEffectDispatcher | None = None,
    ) -> None:
        self.store = store or ComplaintStore()
        self.coordinator = coordinator or AssignmentCoordinator()
        self._dispatcher = dispatcher

    @property
    def dispatcher(self) -> SideEffectDispatcher:
        return self._dispatcher or get_dispatcher()

    # ── public operations ───────────────────────────────────────────

    def create_complaint(self, actor: Actor, data: dict[str, Any]) -> MutationResult:
        """Create a ``pending`` complaint at version 0 submitted by ``actor``."""
        return self._guard("create", actor, None, partial(self._create, actor, data))

    def apply(
        self,
        actor: Actor,
        complaint_id: Any,
        expected_version: int | None,
        patch: dict[str, Any],
    ) -> MutationResult:
        """
        Apply a field/status/assignee/note patch.

        ``expected_version`` of ``None`` skips the up-front check; the
        write is still conditional on the version that was loaded.
        """
        return self._guard(
            "apply", actor, complaint_id,
            partial(self._mutate, actor, complaint_id, expected_version, dict(patch)),
        )

    def assign(
        self,
        actor: Actor,
        complaint_id: Any,
        assignee_id: Any,
        *,
        expected_version: int | None = None,
        due_date=None,
        note: str = "",
    ) -> MutationResult:
        return self._guard(
            "assign", actor, complaint_id,
            partial(
                self._mutate, actor, complaint_id, expected_version,
                {policies.ASSIGNEE_FIELD: assignee_id},
                due_date=due_date, assignment_note=note,
            ),
        )

    def unassign(self, actor: Actor, complaint_id: Any, *, expected_version: int | None = None) -> MutationResult:
        return self.assign(actor, complaint_id, None, expected_version=expected_version)

    def add_note(
        self,
        actor: Actor,
        complaint_id: Any,
        content: str,
        *,
        is_internal: bool = False,
        expected_version: int | None = None,
    ) -> MutationResult:
        return self._guard(
            "add_note", actor, complaint_id,
            partial(
                self._mutate, actor, complaint_id, expected_version,
                {policies.NOTE_FIELD: {"content": content, "is_internal": is_internal}},
            ),
        )

    def submit_feedback(
        self,
        actor: Actor,
        complaint_id: Any,
        rating: Any,
        comment: str = "",
        *,
        expected_version: int | None = None,
    ) -> MutationResult:
        """Record the submitter's rating (1–5) once the complaint is resolved."""
        return self._guard(
            "submit_feedback", actor, complaint_id,
            partial(self._feedback, actor, complaint_id, rating, comment, expected_version),
        )

    def cancel(
        self,
        actor: Actor,
        complaint_id: Any,
        *,
        reason: str = "",
        expected_version: int | None = None,
    ) -> MutationResult:
        """Cancel a pending complaint (submitter while unassigned, or admin)."""
        return self._guard(
            "cancel", actor, complaint_id,
            partial(self._cancel, actor, complaint_id, reason, expected_version),
        )

    def delete(
        self,
        actor: Actor,
        complaint_id: Any,
        *,
        expected_version: int | None = None,
    ) -> MutationResult:
        """
        Remove a complaint with its notes and assignment history.

        Admins only.  The activity log keeps its rows and gains a
        ``complaint_deleted`` entry.
        """
        return self._guard(
            "delete", actor, complaint_id,
            partial(self._delete, actor, complaint_id, expected_version),
        )

    # ── error boundary ──────────────────────────────────────────────

    def _guard(self, operation: str, actor: Actor, complaint_id: Any, fn) -> MutationResult:
        try:
            return fn()
        except DomainError as exc:
            log = logger.warning if isinstance(exc, Forbidden) else logger.info
            log(
                "Rejected %s on complaint #%s by %s#%s: [%s] %s",
                operation, complaint_id, actor.role, actor.id, exc.code, exc,
            )
            return MutationResult.failure(exc)

    # ── implementations ─────────────────────────────────────────────

    def _load(self, complaint_id: Any, expected_version: int | None) -> Complaint:
        if expected_version is not None and (
            isinstance(expected_version, bool) or not isinstance(expected_version, int)
        ):
            raise ValidationError.for_field("expected_version", "Expected an integer version.")
        complaint = self.store.get(complaint_id)
        if expected_version is not None and expected_version != complaint.version:
            raise VersionConflict(expected=expected_version, current=complaint.version)
        return complaint

    def _create(self, actor: Actor, data: dict[str, Any]) -> MutationResult:
        cleaned = clean_content_fields(data, creating=True)
        cleaned.setdefault("priority", ComplaintPriority.MEDIUM)

        with transaction.atomic():
            complaint = Complaint.objects.create(
                submitted_by_id=actor.id,
                status=ComplaintStatus.PENDING,
                version=0,
                **cleaned,
            )
            ComplaintActivity.objects.create(
                complaint=complaint,
                actor_id=actor.id,
                action="created",
                to_status=ComplaintStatus.PENDING,
                version=0,
                details={"fields": sorted(cleaned)},
            )
            complaint = self.store.get(complaint.pk)
            self._schedule(MutationEvent(
                kinds=frozenset({CREATED}),
                complaint_id=complaint.pk,
                actor_id=actor.id,
                diff={},
                snapshot=build_snapshot(complaint),
            ))

        logger.info("Complaint #%s created by %s#%s", complaint.pk, actor.role, actor.id)
        return MutationResult.success(complaint)

    def _mutate(
        self,
        actor: Actor,
        complaint_id: Any,
        expected_version: int | None,
        patch: dict[str, Any],
        *,
        due_date=None,
        assignment_note: str = "",
    ) -> MutationResult:
        unknown = set(patch) - policies.ALL_FIELDS
        if unknown:
            raise ValidationError(
                "Unknown fields in patch.",
                errors={name: ["Unknown field."] for name in sorted(unknown)},
            )
        if not patch:
            raise ValidationError("The patch is empty.")

        complaint = self._load(complaint_id, expected_version)

        decision = policies.resolve(actor, complaint, patch)
        denied = decision.denied(patch)
        if denied:
            if decision.is_forbidden:
                message = "You may not modify this complaint."
            else:
                message = "You may not change: " + ", ".join(sorted(denied)) + "."
            raise Forbidden(message, fields=denied)

        # Field values: only what actually differs from the stored row.
        changes: dict[str, Any] = {}
        diff: dict[str, dict[str, Any]] = {}
        content = clean_content_fields({k: v for k, v in patch.items() if k in policies.CONTENT_FIELDS})
        for name, value in content.items():
            old = getattr(complaint, name)
            if old != value:
                changes[name] = value
                diff[name] = {"old": old, "new": value}

        kinds: set[str] = set()
        if diff:
            kinds.add(FIELDS_CHANGED)

        assignment_plan = None
        if policies.ASSIGNEE_FIELD in patch:
            assignment_plan = self.coordinator.plan(actor, complaint, patch[policies.ASSIGNEE_FIELD])
            if assignment_plan is not None:
                changes.update(assignment_plan.changes)
                new_id = assignment_plan.assignee.pk if assignment_plan.assignee else None
                diff["assignee"] = {"old": complaint.assigned_to_id, "new": new_id}
                kinds.add(UNASSIGNED if assignment_plan.is_unassign else ASSIGNED)

        transition = None
        if policies.STATUS_FIELD in patch:
            target = patch[policies.STATUS_FIELD]
            if not isinstance(target, str):
                raise ValidationError.for_field("status", "Expected a status value.")
            transition = transitions.validate(actor, complaint, target)
            if transition.is_noop:
                transition = None
            else:
                if assignment_plan is not None and target in transitions.ASSIGNMENT_STATUS_ON_CLOSE:
                    raise ComplaintClosed("A complaint cannot be reassigned and closed in one request.")
                changes.update(transition.changes)
                diff["status"] = {"old": transition.current, "new": transition.target}
                kinds.add(STATUS_CHANGED)

        note = None
        if policies.NOTE_FIELD in patch:
            note = clean_note(patch[policies.NOTE_FIELD])
            kinds.add(NOTE_ADDED)

        if not kinds:
            logger.debug("No-op patch on complaint #%s by %s#%s", complaint.pk, actor.role, actor.id)
            return MutationResult.success(complaint, changed=False)

        assignment = None
        with transaction.atomic():
            new_version = self.store.cas_write(complaint.pk, complaint.version, changes)

            if assignment_plan is not None:
                assignment = self.coordinator.record(
                    assignment_plan, complaint.pk, actor,
                    due_date=due_date, note=assignment_note,
                )
            if transition is not None and transition.assignment_status:
                self.coordinator.close_active(complaint.pk, transition.assignment_status)
            if note is not None:
                created = ComplaintNote.objects.create(
                    complaint_id=complaint.pk, author_id=actor.id, **note,
                )
                diff["note"] = {"id": created.pk, "is_internal": created.is_internal}

            ComplaintActivity.objects.create(
                complaint_id=complaint.pk,
                actor_id=actor.id,
                action=_activity_action(kinds),
                from_status=transition.current if transition else "",
                to_status=transition.target if transition else "",
                version=new_version,
                details=_jsonable(diff),
            )

            updated = self.store.get(complaint.pk)
            self._schedule(MutationEvent(
                kinds=frozenset(kinds),
                complaint_id=updated.pk,
                actor_id=actor.id,
                diff=_jsonable(diff),
                snapshot=build_snapshot(updated),
            ))

        logger.info(
            "Complaint #%s v%s → v%s by %s#%s (%s)",
            updated.pk, complaint.version, new_version, actor.role, actor.id,
            ", ".join(sorted(kinds)),
        )
        return MutationResult.success(updated, assignment=assignment)

    def _feedback(
        self,
        actor: Actor,
        complaint_id: Any,
        rating: Any,
        comment: str,
        expected_version: int | None,
    ) -> MutationResult:
        complaint = self._load(complaint_id, expected_version)

        if actor.id != complaint.submitted_by_id:
            raise Forbidden("Only the submitter may give feedback.", fields=["feedback"])
        if complaint.status != ComplaintStatus.RESOLVED:
            raise ValidationError.for_field("feedback", "Feedback can only be given on resolved complaints.")
        if complaint.has_feedback:
            raise ValidationError.for_field("feedback", "Feedback has already been submitted.")
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError.for_field("rating", "Rating must be an integer between 1 and 5.")
        comment = (comment or "").strip()

        with transaction.atomic():
            new_version = self.store.cas_write(complaint.pk, complaint.version, {
                "feedback_rating": rating,
                "feedback_comment": comment,
                "feedback_submitted_at": timezone.now(),
            })
            ComplaintActivity.objects.create(
                complaint_id=complaint.pk,
                actor_id=actor.id,
                action="feedback_submitted",
                version=new_version,
                details={"rating": rating},
            )
            updated = self.store.get(complaint.pk)
            self._schedule(MutationEvent(
                kinds=frozenset({FEEDBACK_SUBMITTED}),
                complaint_id=updated.pk,
                actor_id=actor.id,
                diff={"feedback": {"old": None, "new": {"rating": rating, "comment": comment}}},
                snapshot=build_snapshot(updated),
            ))

        logger.info("Feedback %s/5 on complaint #%s (v%s)", rating, updated.pk, new_version)
        return MutationResult.success(updated)

    def _cancel(
        self,
        actor: Actor,
        complaint_id: Any,
        reason: str,
        expected_version: int | None,
    ) -> MutationResult:
        complaint = self._load(complaint_id, expected_version)
        if not actor.is_admin and actor.id != complaint.submitted_by_id:
            raise Forbidden("Only the submitter or an admin may cancel a complaint.", fields=["status"])
        transition = transitions.validate(actor, complaint, ComplaintStatus.CANCELLED)
        if transition.is_noop:
            return MutationResult.success(complaint, changed=False)

        diff: dict[str, Any] = {"status": {"old": transition.current, "new": transition.target}}
        kinds = {STATUS_CHANGED}
        with transaction.atomic():
            new_version = self.store.cas_write(complaint.pk, complaint.version, transition.changes)
            self.coordinator.close_active(complaint.pk, transition.assignment_status)
            if reason and reason.strip():
                created = ComplaintNote.objects.create(
                    complaint_id=complaint.pk,
                    author_id=actor.id,
                    content=reason.strip(),
                    is_internal=False,
                )
                diff["note"] = {"id": created.pk, "is_internal": False}
                kinds.add(NOTE_ADDED)
            ComplaintActivity.objects.create(
                complaint_id=complaint.pk,
                actor_id=actor.id,
                action="cancelled",
                from_status=transition.current,
                to_status=transition.target,
                version=new_version,
                details=diff,
            )
            updated = self.store.get(complaint.pk)
            self._schedule(MutationEvent(
                kinds=frozenset(kinds),
                complaint_id=updated.pk,
                actor_id=actor.id,
                diff=diff,
                snapshot=build_snapshot(updated),
            ))

        logger.info("Complaint #%s cancelled by %s#%s (v%s)", updated.pk, actor.role, actor.id, new_version)
        return MutationResult.success(updated)

    def _delete(self, actor: Actor, complaint_id: Any, expected_version: int | None) -> MutationResult:
        require_role(actor, UserRole.ADMIN, message="Only admins may delete complaints.")
        complaint = self._load(complaint_id, expected_version)
        snapshot = build_snapshot(complaint)

        with transaction.atomic():
            self.store.cas_delete(complaint.pk, complaint.version)
            ComplaintActivity.objects.create(
                complaint_id=complaint.pk,
                actor_id=actor.id,
                action="complaint_deleted",
                from_status=complaint.status,
                version=complaint.version,
                details={"title": complaint.title},
            )
            self._schedule(MutationEvent(
                kinds=frozenset({DELETED}),
                complaint_id=complaint.pk,
                actor_id=actor.id,
                snapshot=snapshot,
            ))

        logger.info("Complaint #%s deleted by %s#%s (v%s)", complaint.pk, actor.role, actor.id, complaint.version)
        return MutationResult.success(complaint)

    def _schedule(self, event: MutationEvent) -> None:
        # Runs only if the surrounding transaction commits.
        transaction.on_commit(partial(self._dispatch, event))

    def _dispatch(self, event: MutationEvent) -> None:
        self.dispatcher.submit(event)


def _activity_action(kinds: set[str]) -> str:
    for kind in (STATUS_CHANGED, ASSIGNED, UNASSIGNED, FIELDS_CHANGED, NOTE_ADDED):
        if kind in kinds:
            return kind
    return "updated"


def _jsonable(value: Any) -> Any:
    """Coerce diff values (datetimes, model instances) into JSON-safe values."""
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if hasattr(value, "_meta"):
        return value.pk
    return value


# ═══════════════════════════════════════════════════════════════════
#  Queries
# ═══════════════════════════════════════════════════════════════════

COMPLAINT_SCOPE: ScopeConfig = {
    UserRole.ADMIN: lambda qs, actor: qs,
    UserRole.STAFF: lambda qs, actor: qs.filter(assigned_to_id=actor.id),
    UserRole.RESIDENT: lambda qs, actor: qs.filter(submitted_by_id=actor.id),
}


class ComplaintQueryService:
    """Role-scoped read access to complaints and their history."""

    FILTER_FIELDS = ("status", "priority", "category")

    @staticmethod
    def list_for(actor: Actor, filters: dict[str, Any] | None = None) -> QuerySet[Complaint]:
        """
        Complaints visible to ``actor``.

        Residents see their own, staff see those assigned to them and
        admins see everything.  ``filters`` may narrow by status,
        priority or category.
        """
        qs = apply_role_scope(
            Complaint.objects.select_related("submitted_by", "assigned_to"),
            actor,
            scope_config=COMPLAINT_SCOPE,
        )
        for name in ComplaintQueryService.FILTER_FIELDS:
            value = (filters or {}).get(name)
            if value:
                qs = qs.filter(**{name: value})
        return qs.order_by("-created_at")

    @staticmethod
    def get_for(actor: Actor, complaint_id: Any) -> Complaint:
        """Single complaint, ``NotFound`` when it is outside the actor's scope."""
        qs = ComplaintQueryService.list_for(actor).prefetch_related("notes__author")
        try:
            return qs.get(pk=complaint_id)
        except (Complaint.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Complaint with pk={complaint_id} does not exist.")

    @staticmethod
    def visible_notes(actor: Actor, complaint: Complaint) -> QuerySet[ComplaintNote]:
        notes = complaint.notes.select_related("author").order_by("created_at", "id")
        if actor.is_resident:
            notes = notes.filter(is_internal=False)
        return notes

    @staticmethod
    def assignment_history(actor: Actor, complaint_id: Any) -> QuerySet[Assignment]:
        """Assignment records, oldest first.  Admins and the current assignee only."""
        complaint = ComplaintQueryService.get_for(actor, complaint_id)
        if not actor.is_admin and complaint.assigned_to_id != actor.id:
            raise Forbidden("Only admins and the assignee may view assignment history.")
        return (
            Assignment.objects
            .filter(complaint_id=complaint.pk)
            .select_related("assignee", "assigned_by")
            .order_by("assigned_at", "id")
        )

    @staticmethod
    def assignments_for(actor: Actor, filters: dict[str, Any] | None = None) -> QuerySet[Assignment]:
        """
        Assignment records across complaints, newest first.

        Staff only ever see their own; admins may narrow by ``assignee``.
        Both may filter by record ``status``.  Residents are refused.
        """
        require_role(
            actor, UserRole.STAFF, UserRole.ADMIN,
            message="Only staff and admins may list assignments.",
        )
        filters = filters or {}
        qs = Assignment.objects.select_related("complaint", "assignee", "assigned_by")
        if actor.is_staff:
            qs = qs.filter(assignee_id=actor.id)
        elif filters.get("assignee"):
            qs = qs.filter(assignee_id=filters["assignee"])
        if filters.get("status"):
            qs = qs.filter(status=filters["status"])
        return qs.order_by("-assigned_at", "-id")

    @staticmethod
    def activity(actor: Actor, complaint_id: Any) -> QuerySet[ComplaintActivity]:
        """Audit trail for a complaint.  Admins only."""
        require_role(actor, UserRole.ADMIN, message="Only admins may view complaint activity.")
        complaint = ComplaintQueryService.get_for(actor, complaint_id)
        return (
            ComplaintActivity.objects
            .filter(complaint_id=complaint.pk)
            .select_related("actor")
            .order_by("created_at", "id")
        )
