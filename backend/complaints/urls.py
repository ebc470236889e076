"""
Complaints app URL configuration.

All routes are registered under the ``/api/`` prefix.

Route Hierarchy
---------------
  /api/complaints/                        → list / create
  /api/complaints/{id}/                   → retrieve / partial_update / destroy

  ── Assignment @actions ─────────────────────────────────────────
  POST /api/complaints/{id}/assign/
  POST /api/complaints/{id}/unassign/

  ── Sub-resource @actions ───────────────────────────────────────
  POST /api/complaints/{id}/notes/
  POST /api/complaints/{id}/feedback/
  POST /api/complaints/{id}/cancel/
  GET  /api/complaints/{id}/assignments/
  GET  /api/complaints/{id}/activity/

  ── Work queue ──────────────────────────────────────────────────
  GET  /api/assignments/                  → assignment records across complaints
"""

from rest_framework.routers import DefaultRouter

from .views import AssignmentViewSet, ComplaintViewSet

router = DefaultRouter()
router.register(
    prefix=r"complaints",
    viewset=ComplaintViewSet,
    basename="complaint",
)
router.register(
    prefix=r"assignments",
    viewset=AssignmentViewSet,
    basename="assignment",
)

urlpatterns = router.urls
