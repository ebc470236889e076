"""
Integration tests — complaint endpoints end-to-end over HTTP.

Endpoints under test (``complaints/urls.py``):
    GET/POST   /api/complaints/                    (complaint-list)
    GET/PATCH  /api/complaints/{id}/               (complaint-detail)
    POST       /api/complaints/{id}/assign/        (complaint-assign)
    POST       /api/complaints/{id}/unassign/      (complaint-unassign)
    POST       /api/complaints/{id}/notes/         (complaint-notes)
    POST       /api/complaints/{id}/feedback/      (complaint-feedback)
    POST       /api/complaints/{id}/cancel/        (complaint-cancel)
    GET        /api/complaints/{id}/assignments/   (complaint-assignments)
    GET        /api/complaints/{id}/activity/      (complaint-activity)
    DELETE     /api/complaints/{id}/               (complaint-detail)
    GET        /api/assignments/                   (assignment-list)

Every request authenticates through the real login endpoint so the
JWT path is exercised too.
"""

from __future__ import annotations

from django.core import mail
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from accounts.models import User, UserRole
from complaints.models import Complaint, ComplaintNote
from core.models import Notification

_PASSWORD = "Str0ng!Pass99"


class ComplaintApiTestBase(TestCase):

    @classmethod
    def setUpTestData(cls):
        def make(username, role, phone):
            return User.objects.create_user(
                username=username, password=_PASSWORD, email=f"{username}@example.com",
                phone_number=phone, role=role,
            )

        cls.resident = make("api_resident", UserRole.RESIDENT, "09150000001")
        cls.neighbour = make("api_neighbour", UserRole.RESIDENT, "09150000002")
        cls.staff = make("api_staff", UserRole.STAFF, "09150000003")
        cls.other_staff = make("api_staff2", UserRole.STAFF, "09150000004")
        cls.admin = make("api_admin", UserRole.ADMIN, "09150000005")

    def setUp(self):
        self.client = APIClient()
        self.list_url = reverse("complaint-list")

    # ── Helpers ──────────────────────────────────────────────────────

    def login_as(self, user):
        resp = self.client.post(
            reverse("accounts:login"),
            {"identifier": user.username, "password": _PASSWORD},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {resp.data['access']}")

    def detail_url(self, pk):
        return reverse("complaint-detail", args=[pk])

    def action_url(self, name, pk):
        return reverse(f"complaint-{name}", args=[pk])

    def create_as_resident(self, **overrides):
        self.login_as(self.resident)
        payload = {
            "title": "Noisy generator",
            "description": "Runs all night behind block C.",
            "category": "noise",
            "location": {"building": "C", "floor": "1", "room": ""},
        }
        payload.update(overrides)
        with self.captureOnCommitCallbacks(execute=True):
            resp = self.client.post(self.list_url, payload, format="json")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, msg=resp.data)
        return resp.data

    def post_committed(self, url, data=None):
        with self.captureOnCommitCallbacks(execute=True):
            return self.client.post(url, data or {}, format="json")

    def patch_committed(self, url, data):
        with self.captureOnCommitCallbacks(execute=True):
            return self.client.patch(url, data, format="json")

    def assign(self, pk, assignee):
        self.login_as(self.admin)
        resp = self.post_committed(self.action_url("assign", pk), {"assignee": assignee.pk})
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        return resp.data


class ComplaintCreateAndReadTests(ComplaintApiTestBase):

    def test_unauthenticated_requests_are_rejected(self):
        resp = self.client.get(self.list_url)
        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_resident_creates_pending_complaint_at_version_zero(self):
        data = self.create_as_resident(priority="high")

        self.assertEqual(data["status"], "pending")
        self.assertEqual(data["version"], 0)
        self.assertEqual(data["priority"], "high")
        self.assertEqual(data["location"], {"building": "C", "floor": "1", "room": ""})
        self.assertEqual(data["submitted_by"]["id"], self.resident.pk)
        self.assertIsNone(data["assigned_to"])

    def test_priority_defaults_to_medium(self):
        data = self.create_as_resident()
        self.assertEqual(data["priority"], "medium")

    def test_invalid_category_is_400(self):
        self.login_as(self.resident)
        resp = self.client.post(
            self.list_url,
            {"title": "x", "description": "y", "category": "weather"},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("category", resp.data)

    def test_list_is_scoped_by_role(self):
        mine = self.create_as_resident()
        self.login_as(self.neighbour)
        with self.captureOnCommitCallbacks(execute=True):
            theirs = self.client.post(
                self.list_url,
                {"title": "Parking spot taken", "description": "Again.", "category": "parking"},
                format="json",
            ).data
        self.assign(theirs["id"], self.staff)

        self.login_as(self.resident)
        self.assertEqual([c["id"] for c in self.client.get(self.list_url).data], [mine["id"]])

        self.login_as(self.staff)
        self.assertEqual([c["id"] for c in self.client.get(self.list_url).data], [theirs["id"]])

        self.login_as(self.other_staff)
        self.assertEqual(self.client.get(self.list_url).data, [])

        self.login_as(self.admin)
        self.assertEqual(
            sorted(c["id"] for c in self.client.get(self.list_url).data),
            sorted([mine["id"], theirs["id"]]),
        )

    def test_list_filters_by_status(self):
        first = self.create_as_resident()
        second = self.create_as_resident(title="Second issue")
        self.post_committed(self.action_url("cancel", second["id"]))

        resp = self.client.get(self.list_url, {"status": "pending"})

        self.assertEqual([c["id"] for c in resp.data], [first["id"]])

    def test_other_residents_complaint_is_404(self):
        data = self.create_as_resident()
        self.login_as(self.neighbour)

        resp = self.client.get(self.detail_url(data["id"]))

        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.data["code"], "not_found")

    def test_internal_notes_are_hidden_from_residents(self):
        data = self.create_as_resident()
        self.login_as(self.admin)
        self.post_committed(self.action_url("notes", data["id"]), {"content": "Contractor is slow.", "is_internal": True})
        resp = self.post_committed(self.action_url("notes", data["id"]), {"content": "Scheduled for Friday."})
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED, msg=resp.data)
        self.assertEqual(len(resp.data["notes"]), 2)

        self.login_as(self.resident)
        resp = self.client.get(self.detail_url(data["id"]))

        self.assertEqual([n["content"] for n in resp.data["notes"]], ["Scheduled for Friday."])
        self.assertEqual(resp.data["version"], 2)


class ComplaintPatchTests(ComplaintApiTestBase):

    def test_stale_patch_is_409_with_current_version(self):
        data = self.create_as_resident()
        resp = self.patch_committed(self.detail_url(data["id"]), {"priority": "high", "expected_version": 0})
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertEqual(resp.data["version"], 1)

        resp = self.patch_committed(self.detail_url(data["id"]), {"priority": "low", "expected_version": 0})

        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["code"], "version_conflict")
        self.assertEqual(resp.data["current_version"], 1)
        self.assertEqual(Complaint.objects.get(pk=data["id"]).priority, "high")

    def test_resident_status_change_is_403_with_fields(self):
        data = self.create_as_resident()

        resp = self.patch_committed(self.detail_url(data["id"]), {"status": "cancelled", "title": "Updated"})

        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(resp.data["code"], "forbidden")
        self.assertEqual(resp.data["fields"], ["status"])
        self.assertEqual(Complaint.objects.get(pk=data["id"]).title, "Noisy generator")

    def test_illegal_transition_is_409(self):
        data = self.create_as_resident()
        self.login_as(self.admin)

        resp = self.patch_committed(self.detail_url(data["id"]), {"status": "resolved"})

        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["code"], "invalid_transition")

    def test_patch_with_only_expected_version_is_400(self):
        data = self.create_as_resident()

        resp = self.client.patch(self.detail_url(data["id"]), {"expected_version": 0}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_staff_progresses_and_resolves_with_note(self):
        data = self.create_as_resident()
        self.assign(data["id"], self.staff)
        self.login_as(self.staff)

        resp = self.patch_committed(self.detail_url(data["id"]), {"status": "in_progress", "expected_version": 1})
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)

        resp = self.patch_committed(
            self.detail_url(data["id"]),
            {"status": "resolved", "note": {"content": "Generator replaced.", "is_internal": False}},
        )
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertEqual(resp.data["status"], "resolved")
        self.assertEqual(resp.data["version"], 3)
        self.assertIsNotNone(resp.data["resolved_at"])
        self.assertEqual(ComplaintNote.objects.filter(complaint_id=data["id"]).count(), 1)


class ComplaintActionTests(ComplaintApiTestBase):

    def test_assign_endpoint_emails_the_assignee(self):
        data = self.create_as_resident()
        mail.outbox.clear()

        body = self.assign(data["id"], self.staff)

        self.assertEqual(body["assigned_to"]["id"], self.staff.pk)
        self.assertEqual(body["version"], 1)
        self.assertEqual([m.to for m in mail.outbox], [[self.staff.email]])

    def test_assign_to_a_resident_is_400(self):
        data = self.create_as_resident()
        self.login_as(self.admin)

        resp = self.post_committed(self.action_url("assign", data["id"]), {"assignee": self.neighbour.pk})

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("assignee", resp.data["errors"])

    def test_staff_cannot_assign(self):
        data = self.create_as_resident()
        self.login_as(self.staff)

        resp = self.post_committed(self.action_url("assign", data["id"]), {"assignee": self.staff.pk})

        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_unassign_and_history(self):
        data = self.create_as_resident()
        self.assign(data["id"], self.staff)
        self.assign(data["id"], self.other_staff)

        resp = self.post_committed(self.action_url("unassign", data["id"]), {"expected_version": 2})
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertIsNone(resp.data["assigned_to"])

        resp = self.client.get(self.action_url("assignments", data["id"]))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual([a["assignee"]["id"] for a in resp.data], [self.staff.pk, self.other_staff.pk])
        self.assertEqual([a["status"] for a in resp.data], ["cancelled", "cancelled"])

    def test_activity_is_admin_only(self):
        data = self.create_as_resident()

        resp = self.client.get(self.action_url("activity", data["id"]))
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

        self.login_as(self.admin)
        resp = self.client.get(self.action_url("activity", data["id"]))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual([a["action"] for a in resp.data], ["created"])

    def test_resident_cancels_and_gets_notified(self):
        data = self.create_as_resident()

        resp = self.post_committed(self.action_url("cancel", data["id"]), {"reason": "Resolved itself."})

        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertEqual(resp.data["status"], "cancelled")
        self.assertEqual([n["content"] for n in resp.data["notes"]], ["Resolved itself."])
        self.assertEqual([m.to for m in mail.outbox], [[self.resident.email]])

    def test_feedback_after_resolution(self):
        data = self.create_as_resident()
        self.login_as(self.admin)
        self.patch_committed(self.detail_url(data["id"]), {"assignee": self.staff.pk, "status": "in_progress"})
        self.patch_committed(self.detail_url(data["id"]), {"status": "resolved"})

        self.login_as(self.resident)
        resp = self.post_committed(self.action_url("feedback", data["id"]), {"rating": 4, "comment": "Thanks"})
        self.assertEqual(resp.status_code, status.HTTP_200_OK, msg=resp.data)
        self.assertEqual(resp.data["feedback"]["rating"], 4)

        resp = self.post_committed(self.action_url("feedback", data["id"]), {"rating": 5})
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_feedback_rating_out_of_range_is_400(self):
        data = self.create_as_resident()

        resp = self.client.post(self.action_url("feedback", data["id"]), {"rating": 9}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("rating", resp.data)


class ComplaintDeleteAndQueueTests(ComplaintApiTestBase):

    def test_admin_deletes_complaint(self):
        data = self.create_as_resident()

        resp = self.client.delete(self.detail_url(data["id"]))
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

        self.login_as(self.admin)
        with self.captureOnCommitCallbacks(execute=True):
            resp = self.client.delete(self.detail_url(data["id"]), {"expected_version": 0}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Complaint.objects.filter(pk=data["id"]).exists())
        self.assertEqual(self.client.get(self.detail_url(data["id"])).status_code, status.HTTP_404_NOT_FOUND)

    def test_stale_delete_is_409(self):
        data = self.create_as_resident()
        self.patch_committed(self.detail_url(data["id"]), {"priority": "high"})
        self.login_as(self.admin)

        resp = self.client.delete(self.detail_url(data["id"]), {"expected_version": 0}, format="json")

        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["current_version"], 1)

    def test_assignment_queue_is_scoped_by_role(self):
        first = self.create_as_resident()
        second = self.create_as_resident(title="Second issue")
        self.assign(first["id"], self.staff)
        self.assign(second["id"], self.other_staff)
        queue_url = reverse("assignment-list")

        self.login_as(self.staff)
        resp = self.client.get(queue_url, {"assignee": self.other_staff.pk})
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual([a["complaint"] for a in resp.data], [first["id"]])
        self.assertEqual(resp.data[0]["complaint_title"], "Noisy generator")

        self.login_as(self.admin)
        resp = self.client.get(queue_url)
        self.assertEqual([a["complaint"] for a in resp.data], [second["id"], first["id"]])
        resp = self.client.get(queue_url, {"assignee": self.other_staff.pk, "status": "active"})
        self.assertEqual([a["complaint"] for a in resp.data], [second["id"]])
        resp = self.client.get(queue_url, {"status": "archived"})
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

        self.login_as(self.resident)
        self.assertEqual(self.client.get(queue_url).status_code, status.HTTP_403_FORBIDDEN)


class CoreEndpointTests(ComplaintApiTestBase):

    def test_constants_are_public(self):
        resp = self.client.get(reverse("core:system-constants"))

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertIn({"value": "in_progress", "label": "In Progress"}, resp.data["complaint_statuses"])
        self.assertEqual(
            [r["value"] for r in resp.data["roles"]], ["resident", "staff", "admin"],
        )

    def test_notifications_list_and_mark_read(self):
        data = self.create_as_resident()
        self.post_committed(self.action_url("cancel", data["id"]))

        resp = self.client.get(reverse("core:notification-list"), {"unread": "true"})
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(len(resp.data), 1)
        self.assertEqual(resp.data[0]["complaint_id"], data["id"])
        self.assertEqual(resp.data[0]["kind"], "status-update")
        notification_id = resp.data[0]["id"]

        resp = self.client.post(reverse("core:notification-mark-as-read", args=[notification_id]))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertTrue(resp.data["is_read"])
        self.assertIsNotNone(resp.data["read_at"])
        self.assertEqual(self.client.get(reverse("core:notification-list"), {"unread": "true"}).data, [])

    def test_cannot_read_someone_elses_notification(self):
        data = self.create_as_resident()
        self.post_committed(self.action_url("cancel", data["id"]))
        notification = Notification.objects.get(recipient=self.resident)

        self.login_as(self.neighbour)
        resp = self.client.post(reverse("core:notification-mark-as-read", args=[notification.pk]))

        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
