"""
Smoke tests — verify that Django boots, URL routing resolves, and
the core domain modules are importable.

These tests require a DB (they use ``@pytest.mark.django_db`` where
needed) but do NOT require real data — they just prove the plumbing
works.
"""

from __future__ import annotations

import pytest
from django.urls import resolve, reverse


# ════════════════════════════════════════════════════════════════════
#  URL Routing Smoke Tests
# ════════════════════════════════════════════════════════════════════

class TestURLRouting:
    """Ensure all top-level app URL namespaces resolve without 404."""

    EXPECTED_URLS = [
        # (url_name, expected_path_prefix)
        ("complaint-list",         "/api/complaints/"),
        ("assignment-list",        "/api/assignments/"),
        ("accounts:login",         "/api/accounts/auth/login/"),
        ("accounts:me",            "/api/accounts/me/"),
        ("core:system-constants",  "/api/core/constants/"),
        ("core:notification-list", "/api/core/notifications/"),
    ]

    @pytest.mark.parametrize("url_name,expected_prefix", EXPECTED_URLS)
    def test_url_resolves(self, url_name: str, expected_prefix: str):
        """Named URL reverses to the expected path prefix."""
        url = reverse(url_name)
        assert url.startswith(expected_prefix), (
            f"{url_name} resolved to {url}, expected prefix {expected_prefix}"
        )

    @pytest.mark.parametrize("url_name,expected_prefix", EXPECTED_URLS)
    def test_url_resolve_matches_view(self, url_name: str, expected_prefix: str):
        """Path resolves to a view function (not a 404)."""
        match = resolve(expected_prefix)
        assert match.func is not None

    @pytest.mark.parametrize("action", ["assign", "unassign", "notes", "feedback", "cancel", "assignments", "activity"])
    def test_complaint_actions_reverse(self, action: str):
        assert reverse(f"complaint-{action}", args=[7]) == f"/api/complaints/7/{action}/"


# ════════════════════════════════════════════════════════════════════
#  Core Domain Module Import Tests
# ════════════════════════════════════════════════════════════════════

class TestCoreDomainImports:
    """Verify that shared domain utility modules are importable."""

    def test_import_exceptions(self):
        from core.domain.exceptions import (
            ComplaintClosed,
            Conflict,
            DomainError,
            Forbidden,
            InvalidTransition,
            NotFound,
            ValidationError,
            VersionConflict,
        )
        # Ensure they form an inheritance chain
        for conflict in (InvalidTransition, VersionConflict, ComplaintClosed):
            assert issubclass(conflict, Conflict)
        assert issubclass(Conflict, DomainError)
        assert issubclass(Forbidden, DomainError)
        assert issubclass(NotFound, DomainError)
        assert issubclass(ValidationError, DomainError)

    def test_import_notifications(self):
        from core.domain.notifications import NotificationService
        assert hasattr(NotificationService, "create")
        assert hasattr(NotificationService, "send")

    def test_import_transactions(self):
        from core.domain.transactions import cas_delete, cas_update, get_or_not_found
        assert callable(cas_delete)
        assert callable(cas_update)
        assert callable(get_or_not_found)

    def test_import_realtime(self):
        from core.domain.realtime import get_event_bus
        assert callable(get_event_bus)


# ════════════════════════════════════════════════════════════════════
#  Exception Behaviour Tests
# ════════════════════════════════════════════════════════════════════

class TestDomainExceptions:
    """Unit tests for domain exception classes."""

    def test_domain_error_message(self):
        from core.domain.exceptions import DomainError
        err = DomainError("test message")
        assert str(err) == "test message"

    def test_invalid_transition_structured(self):
        from core.domain.exceptions import InvalidTransition
        err = InvalidTransition(
            current="resolved",
            target="pending",
            reason="terminal state",
        )
        assert "resolved" in str(err)
        assert "pending" in str(err)
        assert "terminal state" in str(err)
        assert err.current == "resolved"
        assert err.target == "pending"

    def test_invalid_transition_plain_message(self):
        from core.domain.exceptions import InvalidTransition
        err = InvalidTransition("Cannot reopen.")
        assert str(err) == "Cannot reopen."

    def test_forbidden_lists_fields_sorted(self):
        from core.domain.exceptions import Forbidden
        err = Forbidden(fields={"status", "assignee"})
        assert err.as_dict()["fields"] == ["assignee", "status"]

    def test_version_conflict_reports_current_version(self):
        from core.domain.exceptions import VersionConflict
        err = VersionConflict(expected=2, current=4)
        assert err.as_dict() == {
            "detail": str(err),
            "code": "version_conflict",
            "current_version": 4,
        }

    @pytest.mark.parametrize(
        "exc_name,status_code",
        [
            ("ValidationError", 400),
            ("Forbidden", 403),
            ("NotFound", 404),
            ("InvalidTransition", 409),
            ("VersionConflict", 409),
            ("ComplaintClosed", 409),
        ],
    )
    def test_status_mapping(self, exc_name: str, status_code: int):
        from core.domain import exceptions
        from core.domain.exception_handler import status_for
        assert status_for(getattr(exceptions, exc_name)()) == status_code


# ════════════════════════════════════════════════════════════════════
#  Access Helper Unit Tests
# ════════════════════════════════════════════════════════════════════

class TestAccessHelpers:
    """Unit tests for core.domain.access helpers."""

    def test_apply_role_scope_unknown_role_default_all(self):
        """Unknown role with default='all' returns unfiltered qs."""
        from unittest.mock import MagicMock
        from accounts.actors import Actor
        from core.domain.access import apply_role_scope

        qs = MagicMock()
        result = apply_role_scope(qs, Actor(id=1, role="auditor"), scope_config={}, default="all")
        assert result is qs  # returned unmodified

    def test_apply_role_scope_unknown_role_default_none(self):
        """Unknown role with default='none' returns empty qs."""
        from unittest.mock import MagicMock
        from accounts.actors import Actor
        from core.domain.access import apply_role_scope

        qs = MagicMock()
        apply_role_scope(qs, Actor(id=1, role="auditor"), scope_config={})
        qs.none.assert_called_once()

    def test_apply_role_scope_dispatches_on_role(self):
        from unittest.mock import MagicMock
        from accounts.actors import Actor
        from core.domain.access import apply_role_scope

        qs = MagicMock()
        actor = Actor(id=9, role="staff")
        apply_role_scope(qs, actor, scope_config={"staff": lambda q, a: q.filter(assigned_to_id=a.id)})
        qs.filter.assert_called_once_with(assigned_to_id=9)

    def test_require_role_raises(self):
        """require_role raises Forbidden for wrong role."""
        from accounts.actors import Actor
        from core.domain.access import require_role
        from core.domain.exceptions import Forbidden

        with pytest.raises(Forbidden):
            require_role(Actor(id=1, role="resident"), "staff", "admin")


# ════════════════════════════════════════════════════════════════════
#  Transactions
# ════════════════════════════════════════════════════════════════════

@pytest.mark.django_db
class TestCasUpdate:

    def _complaint(self, create_user):
        from complaints.models import Complaint
        return Complaint.objects.create(
            title="Flickering hallway light",
            description="Third floor.",
            category="utilities",
            submitted_by=create_user(),
        )

    def test_bumps_version_on_match(self, create_user):
        from complaints.models import Complaint
        from core.domain.transactions import cas_update

        complaint = self._complaint(create_user)
        assert cas_update(Complaint, pk=complaint.pk, expected_version=0, changes={"priority": "high"}) == 1

        complaint.refresh_from_db()
        assert complaint.version == 1
        assert complaint.priority == "high"

    def test_conflict_touches_nothing(self, create_user):
        from complaints.models import Complaint
        from core.domain.exceptions import VersionConflict
        from core.domain.transactions import cas_update

        complaint = self._complaint(create_user)
        with pytest.raises(VersionConflict) as excinfo:
            cas_update(Complaint, pk=complaint.pk, expected_version=3, changes={"priority": "high"})

        assert excinfo.value.current == 0
        complaint.refresh_from_db()
        assert complaint.priority == "medium"

    def test_missing_row_is_not_found(self):
        from complaints.models import Complaint
        from core.domain.exceptions import NotFound
        from core.domain.transactions import cas_update

        with pytest.raises(NotFound):
            cas_update(Complaint, pk=424242, expected_version=0, changes={})

    def test_delete_requires_matching_version(self, create_user):
        from complaints.models import Complaint
        from core.domain.exceptions import VersionConflict
        from core.domain.transactions import cas_delete

        complaint = self._complaint(create_user)
        with pytest.raises(VersionConflict):
            cas_delete(Complaint, pk=complaint.pk, expected_version=1)
        assert Complaint.objects.filter(pk=complaint.pk).exists()

        assert cas_delete(Complaint, pk=complaint.pk, expected_version=0) == 1
        assert not Complaint.objects.filter(pk=complaint.pk).exists()


# ════════════════════════════════════════════════════════════════════
#  Real-time bus
# ════════════════════════════════════════════════════════════════════

class TestInMemoryEventBus:

    def test_subscribers_receive_and_history_is_bounded(self):
        from core.domain.realtime import InMemoryEventBus

        bus = InMemoryEventBus(history_size=2)
        seen = []
        unsubscribe = bus.subscribe("complaint-1", lambda topic, payload: seen.append(payload["n"]))

        for n in range(3):
            bus.publish("complaint-1", {"n": n})
        unsubscribe()
        bus.publish("complaint-1", {"n": 3})

        assert seen == [0, 1, 2]
        assert [p["n"] for p in bus.history("complaint-1")] == [2, 3]

    def test_failing_subscriber_does_not_block_others(self):
        from core.domain.realtime import InMemoryEventBus

        bus = InMemoryEventBus()
        seen = []

        def boom(topic, payload):
            raise RuntimeError("socket closed")

        bus.subscribe("admin-updates", boom)
        bus.subscribe("admin-updates", lambda topic, payload: seen.append(topic))
        bus.publish("admin-updates", {})

        assert seen == ["admin-updates"]

    def test_history_is_kept_for_a_bounded_number_of_topics(self):
        from core.domain.realtime import InMemoryEventBus, complaint_topic

        bus = InMemoryEventBus(max_topics=3)
        for complaint_id in range(10_000):
            bus.publish(complaint_topic(complaint_id), {"n": complaint_id})
        bus.publish(complaint_topic(9_997), {"n": "again"})
        bus.publish(complaint_topic(42), {"n": 42})

        assert bus.topics() == ["complaint-9999", "complaint-9997", "complaint-42"]
        assert bus.history(complaint_topic(0)) == []
        assert [p["n"] for p in bus.history(complaint_topic(9_997))] == [9_997, "again"]

    def test_unsubscribing_the_last_callback_forgets_the_topic(self):
        from core.domain.realtime import InMemoryEventBus

        bus = InMemoryEventBus()
        unsubscribe = bus.subscribe("complaint-5", lambda topic, payload: None)
        unsubscribe()
        unsubscribe()

        assert "complaint-5" not in bus._subscribers

    def test_default_bus_is_process_wide(self, event_bus):
        from core.domain.realtime import get_event_bus
        assert get_event_bus() is event_bus
