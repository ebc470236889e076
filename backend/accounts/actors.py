"""
Actor value object.

The identity/session layer resolves every inbound request to an
``Actor`` exactly once; the complaint engine only ever sees this small
immutable pair, never the request or the ``User`` row.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .models import UserRole


@dataclass(frozen=True)
class Actor:
    id: int
    role: str

    @classmethod
    def from_user(cls, user: Any) -> "Actor":
        """Build an actor from an authenticated user.  Superusers act as admins."""
        role = UserRole.ADMIN if user.is_superuser else user.role
        return cls(id=user.pk, role=str(role))

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_staff(self) -> bool:
        return self.role == UserRole.STAFF

    @property
    def is_resident(self) -> bool:
        return self.role == UserRole.RESIDENT
