"""
core.domain.transactions — Helpers for optimistic-concurrency writes.

Every mutable aggregate in the engine carries an integer ``version``
column.  Writes go through ``cas_update``, a single conditional
``UPDATE … WHERE pk = %s AND version = %s`` that either applies the
change and bumps the version, or touches nothing.  ``cas_delete`` is
the same guard for removing a row.  No row is ever locked
for the duration of a request, so concurrent requests against different
complaints never wait on each other, and two requests against the same
complaint at the same base version see exactly one winner.

Usage::

    from django.db import transaction
    from core.domain.transactions import cas_update

    with transaction.atomic():
        new_version = cas_update(
            Complaint,
            pk=complaint.pk,
            expected_version=complaint.version,
            changes={"status": "in_progress"},
        )
        ...  # dependent inserts (notes, history) in the same transaction
"""

from __future__ import annotations

from typing import Any, TypeVar

from django.db import models
from django.db.models import F
from django.utils import timezone

from core.domain.exceptions import NotFound, VersionConflict

M = TypeVar("M", bound=models.Model)


def get_or_not_found(model_class: type[M], pk: Any, **lookups: Any) -> M:
    """
    ``model_class.objects.get(pk=pk)`` that raises the domain ``NotFound``.

    Args:
        model_class: The Django model class.
        pk:          Primary key value.
        **lookups:   Extra filter kwargs (e.g. role scoping).

    Raises:
        NotFound: If no row matches.
    """
    try:
        return model_class.objects.get(pk=pk, **lookups)
    except (model_class.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"{model_class.__name__} with pk={pk} does not exist.")


def cas_update(
    model_class: type[M],
    *,
    pk: Any,
    expected_version: int,
    changes: dict[str, Any],
    version_field: str = "version",
) -> int:
    """
    Apply *changes* only if the stored version equals *expected_version*.

    Must be called inside ``transaction.atomic()`` whenever the caller
    performs dependent writes, so a later failure rolls the update back.

    Args:
        model_class:      The Django model class.
        pk:               Primary key of the row to update.
        expected_version: Version the caller based its change on.
        changes:          Column → new value.  May be empty (a pure
                          version bump, e.g. when only a child row is
                          appended).
        version_field:    Name of the integer version column.

    Returns:
        The new version number.

    Raises:
        NotFound:        If the row no longer exists.
        VersionConflict: If the row exists but its version moved on.
    """
    values = dict(changes)
    if any(f.name == "updated_at" for f in model_class._meta.concrete_fields):
        values.setdefault("updated_at", timezone.now())
    values[version_field] = F(version_field) + 1

    updated = model_class.objects.filter(
        pk=pk, **{version_field: expected_version},
    ).update(**values)

    if updated == 0:
        current = (
            model_class.objects
            .filter(pk=pk)
            .values_list(version_field, flat=True)
            .first()
        )
        if current is None:
            raise NotFound(f"{model_class.__name__} with pk={pk} does not exist.")
        raise VersionConflict(expected=expected_version, current=current)

    return expected_version + 1


def cas_delete(
    model_class: type[M],
    *,
    pk: Any,
    expected_version: int,
    version_field: str = "version",
) -> int:
    """
    Delete the row only if its version still equals *expected_version*.

    Cascades follow the model's ``on_delete`` rules.  Returns the number
    of rows removed, cascades included.

    Raises:
        NotFound:        If the row no longer exists.
        VersionConflict: If the row exists but its version moved on.
    """
    total, per_model = model_class.objects.filter(
        pk=pk, **{version_field: expected_version},
    ).delete()

    if not per_model.get(model_class._meta.label):
        current = (
            model_class.objects
            .filter(pk=pk)
            .values_list(version_field, flat=True)
            .first()
        )
        if current is None:
            raise NotFound(f"{model_class.__name__} with pk={pk} does not exist.")
        raise VersionConflict(expected=expected_version, current=current)

    return total
