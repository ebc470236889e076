"""
Accounts app models.

Defines the fixed role set of the community-issue tracker and a custom
User model that extends Django's ``AbstractUser``.  Every user holds
exactly one role (resident, staff or admin); the complaint lifecycle
engine never reads the role from anywhere else.
"""

from django.contrib.auth.models import AbstractUser
from django.db import models


class UserRole(models.TextChoices):
    """Mutually exclusive actor roles."""

    RESIDENT = "resident", "Resident"
    STAFF = "staff", "Staff"
    ADMIN = "admin", "Admin"


class User(AbstractUser):
    """
    Custom user model for the community-issue tracker.

    * Residents submit complaints and rate their resolution.
    * Staff work on complaints assigned to them.
    * Admins triage, assign and may edit anything.

    Login is supported via username, email or phone number together
    with the password (see ``accounts.backends``).
    """

    email = models.EmailField(
        unique=True,
        verbose_name="Email Address",
    )
    role = models.CharField(
        max_length=10,
        choices=UserRole.choices,
        default=UserRole.RESIDENT,
        db_index=True,
        verbose_name="Role",
    )
    phone_number = models.CharField(
        max_length=20,
        blank=True,
        default="",
        verbose_name="Phone Number",
    )
    apartment = models.CharField(
        max_length=50,
        blank=True,
        default="",
        verbose_name="Apartment",
    )
    building = models.CharField(
        max_length=100,
        blank=True,
        default="",
        verbose_name="Building",
    )

    REQUIRED_FIELDS = ["email"]

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"

    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"

    @property
    def display_name(self) -> str:
        return self.get_full_name() or self.username

    @property
    def contact_address(self) -> str | None:
        """Email address notices may be sent to, or ``None`` if not contactable."""
        if not self.is_active or not self.email:
            return None
        return self.email
