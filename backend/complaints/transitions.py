"""
Complaints app — Transition Validator.

Encodes the complaint status state machine::

    pending ──► in_progress ──► resolved
       │  ◄──────── (admin)
       └──────► cancelled

``resolved`` and ``cancelled`` are terminal for every role, admin
included.  Re-submitting the current status is always a legal no-op.

``validate`` is pure: it reads the actor and the complaint snapshot and
returns a ``TransitionDecision`` describing the column writes the
transition requires.  It raises ``InvalidTransition`` for a non-edge
and ``Forbidden`` for a legal edge taken by the wrong actor.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from django.utils import timezone

from core.domain.exceptions import Forbidden, InvalidTransition

from .models import AssignmentStatus, ComplaintStatus, TERMINAL_STATUSES

# ── Actor kinds, relative to one complaint ──────────────────────────
ADMIN = "admin"
ASSIGNEE = "assignee"
SUBMITTER_UNASSIGNED = "submitter_unassigned"

#: (current, target) → actor kinds allowed to take the edge.
ALLOWED_TRANSITIONS: dict[tuple[str, str], frozenset[str]] = {
    (ComplaintStatus.PENDING, ComplaintStatus.IN_PROGRESS): frozenset({ASSIGNEE, ADMIN}),
    (ComplaintStatus.PENDING, ComplaintStatus.CANCELLED): frozenset({SUBMITTER_UNASSIGNED, ADMIN}),
    (ComplaintStatus.IN_PROGRESS, ComplaintStatus.RESOLVED): frozenset({ASSIGNEE, ADMIN}),
    (ComplaintStatus.IN_PROGRESS, ComplaintStatus.PENDING): frozenset({ADMIN}),
}

#: Assignment-record status that follows a complaint into a terminal state.
ASSIGNMENT_STATUS_ON_CLOSE: dict[str, str] = {
    ComplaintStatus.RESOLVED: AssignmentStatus.COMPLETED,
    ComplaintStatus.CANCELLED: AssignmentStatus.CANCELLED,
}


@dataclass(frozen=True)
class TransitionDecision:
    """
    Outcome of a legal transition request.

    ``changes`` holds the complaint columns to write (empty for a
    no-op).  ``assignment_status`` is the status the active assignment
    record moves to, if any.
    """

    current: str
    target: str
    changes: dict[str, Any] = field(default_factory=dict)
    assignment_status: str | None = None

    @property
    def is_noop(self) -> bool:
        return self.current == self.target


def actor_kinds(actor: Any, complaint: Any) -> frozenset[str]:
    """Which of the state-machine actor kinds ``actor`` counts as on ``complaint``."""
    kinds = set()
    if actor.is_admin:
        kinds.add(ADMIN)
    if complaint.assigned_to_id is not None and actor.id == complaint.assigned_to_id:
        kinds.add(ASSIGNEE)
    if actor.id == complaint.submitted_by_id and complaint.assigned_to_id is None:
        kinds.add(SUBMITTER_UNASSIGNED)
    return frozenset(kinds)


def validate(
    actor: Any,
    complaint: Any,
    target: str,
    *,
    now: datetime | None = None,
) -> TransitionDecision:
    """
    Decide whether ``actor`` may move ``complaint`` to ``target``.

    Raises
    ------
    InvalidTransition
        ``target`` is not a known status, or ``current → target`` is not
        an edge.  Every transition out of a terminal state lands here.
    Forbidden
        The edge exists but the actor is not one of the kinds allowed
        to take it.
    """
    current = complaint.status

    if target not in ComplaintStatus.values:
        raise InvalidTransition(current=current, target=target, reason="unknown status")

    if current == target:
        return TransitionDecision(current=current, target=target)

    allowed_kinds = ALLOWED_TRANSITIONS.get((current, target))
    if allowed_kinds is None:
        reason = "terminal state" if current in TERMINAL_STATUSES else None
        raise InvalidTransition(current=current, target=target, reason=reason)

    if not allowed_kinds & actor_kinds(actor, complaint):
        raise Forbidden(
            f"You may not move this complaint from '{current}' to '{target}'.",
            fields=["status"],
        )

    changes: dict[str, Any] = {"status": target}
    if target == ComplaintStatus.RESOLVED:
        changes["resolved_at"] = now or timezone.now()

    return TransitionDecision(
        current=current,
        target=target,
        changes=changes,
        assignment_status=ASSIGNMENT_STATUS_ON_CLOSE.get(target),
    )
