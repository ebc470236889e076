"""
Complaints app — Policy Resolver.

Pure function mapping ``(actor, complaint, requested fields)`` to the
subset of patch fields the actor may apply.  No database access, no
side effects; the complaint may be a model instance or any object with
``status``, ``submitted_by_id`` and ``assigned_to_id`` attributes.

Rules, evaluated in order
-------------------------
1. **Admin**    — every field, always.
2. **Staff**    — only on complaints assigned to them; ``status`` and
   ``note`` only.
3. **Resident** — only on their own complaints while ``pending``;
   content fields (title, description, category, priority,
   attachments, location).
4. Anyone else  — nothing, reason ``"Forbidden"``.

The resolver never raises.  The orchestrator turns
``requested - allowed`` into a ``Forbidden`` error.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from .models import ComplaintStatus

# ── Patchable field names ──────────────────────────────────────────
LOCATION_FIELDS = frozenset({"building", "floor", "room"})
CONTENT_FIELDS = frozenset({
    "title", "description", "category", "priority", "attachments",
}) | LOCATION_FIELDS
STATUS_FIELD = "status"
ASSIGNEE_FIELD = "assignee"
NOTE_FIELD = "note"

ALL_FIELDS = CONTENT_FIELDS | {STATUS_FIELD, ASSIGNEE_FIELD, NOTE_FIELD}
STAFF_FIELDS = frozenset({STATUS_FIELD, NOTE_FIELD})
RESIDENT_FIELDS = CONTENT_FIELDS

# ── Reasons ────────────────────────────────────────────────────────
REASON_ADMIN = "admin"
REASON_ASSIGNEE = "assignee"
REASON_SUBMITTER = "submitter"
REASON_FORBIDDEN = "Forbidden"


@dataclass(frozen=True)
class PolicyDecision:
    allowed_fields: frozenset[str]
    reason: str

    def denied(self, requested: Iterable[str]) -> frozenset[str]:
        """Requested fields outside the allowed set."""
        return frozenset(requested) - self.allowed_fields

    @property
    def is_forbidden(self) -> bool:
        return self.reason == REASON_FORBIDDEN


def permitted_fields(actor: Any, complaint: Any) -> PolicyDecision:
    """Everything the actor may touch on this complaint, with the rule that granted it."""
    if actor.is_admin:
        return PolicyDecision(ALL_FIELDS, REASON_ADMIN)

    if actor.is_staff:
        if complaint.assigned_to_id is not None and actor.id == complaint.assigned_to_id:
            return PolicyDecision(STAFF_FIELDS, REASON_ASSIGNEE)
        return PolicyDecision(frozenset(), REASON_FORBIDDEN)

    if actor.is_resident:
        if (
            actor.id == complaint.submitted_by_id
            and complaint.status == ComplaintStatus.PENDING
        ):
            return PolicyDecision(RESIDENT_FIELDS, REASON_SUBMITTER)

    return PolicyDecision(frozenset(), REASON_FORBIDDEN)


def resolve(actor: Any, complaint: Any, requested_fields: Iterable[str]) -> PolicyDecision:
    """
    Return the subset of ``requested_fields`` the actor may apply.

    Unknown field names are never allowed.
    """
    grant = permitted_fields(actor, complaint)
    requested = frozenset(requested_fields)
    return PolicyDecision(grant.allowed_fields & requested, grant.reason)
