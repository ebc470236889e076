"""
core.domain.access — Role-scoped queryset selectors (shared patterns).

This module provides shared utilities that each app's service layer
calls to obtain querysets filtered by the requesting actor's role.

╔══════════════════════════════════════════════════════════════════╗
║  IMPORTANT — Per-app scoping logic does NOT live here.          ║
║  Each app's service layer owns its own scope-config mapping.    ║
║  This module provides:                                          ║
║    1) ``apply_role_scope`` — role-keyed queryset dispatch.      ║
║    2) ``require_role``     — guard that raises ``Forbidden``.   ║
╚══════════════════════════════════════════════════════════════════╝

Usage in an app's service layer::

    from core.domain.access import apply_role_scope

    COMPLAINT_SCOPE = {
        "admin":    lambda qs, a: qs,
        "staff":    lambda qs, a: qs.filter(assigned_to_id=a.id),
        "resident": lambda qs, a: qs.filter(submitted_by_id=a.id),
    }

    qs = apply_role_scope(Complaint.objects.all(), actor, scope_config=COMPLAINT_SCOPE)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from django.db.models import QuerySet

from core.domain.exceptions import Forbidden

if TYPE_CHECKING:
    from accounts.actors import Actor

# Takes (queryset, actor) and returns a filtered queryset.
ScopeFilter = Callable[[QuerySet, "Actor"], QuerySet]

# Role value → filter.
ScopeConfig = dict[str, ScopeFilter]


def apply_role_scope(
    queryset: QuerySet,
    actor: Actor,
    *,
    scope_config: ScopeConfig,
    default: str = "none",
) -> QuerySet:
    """
    Apply the scope filter registered for the actor's role.

    Args:
        queryset:     Base (unfiltered) queryset.
        actor:        The requesting actor.
        scope_config: Mapping of role value → filter function.
        default:      What to do when the role has no entry.
                      ``"none"`` (default) → empty queryset.
                      ``"all"`` → return unfiltered.

    Returns:
        The (possibly filtered) queryset.
    """
    filter_fn = scope_config.get(actor.role)
    if filter_fn is not None:
        return filter_fn(queryset, actor)

    if default == "none":
        return queryset.none()
    return queryset


def require_role(actor: Actor, *allowed_roles: str, message: str = "") -> None:
    """
    Guard that raises ``Forbidden`` if the actor's role is not among
    ``allowed_roles``.

    Example::

        require_role(actor, UserRole.ADMIN, message="Only admins may assign complaints.")
    """
    if actor.role not in allowed_roles:
        raise Forbidden(
            message
            or (
                f"Role '{actor.role}' is not permitted for this operation. "
                f"Required: {', '.join(allowed_roles)}."
            )
        )
