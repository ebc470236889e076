"""
Complaints app ViewSets.

Architecture: Views are intentionally thin.
Every view follows the strict three-step pattern:

    1. Parse / validate input via a serializer.
    2. Delegate to ``ComplaintLifecycleEngine`` (writes) or
       ``ComplaintQueryService`` (reads).
    3. Serialize the result and return a DRF ``Response``.

The engine returns a ``MutationResult`` instead of raising; failures
are rendered with the error's own body and HTTP status.  Domain errors
raised on read paths are rendered by
``core.domain.exception_handler.domain_exception_handler``.
"""

from __future__ import annotations

from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
)
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from accounts.actors import Actor

from .serializers import (
    AssignmentFilterSerializer,
    AssignmentListSerializer,
    AssignmentSerializer,
    AssignSerializer,
    CancelSerializer,
    ComplaintActivitySerializer,
    ComplaintCreateSerializer,
    ComplaintDetailSerializer,
    ComplaintFilterSerializer,
    ComplaintListSerializer,
    ComplaintPatchSerializer,
    FeedbackSerializer,
    NoteCreateSerializer,
    VersionedActionSerializer,
)
from .services import ComplaintLifecycleEngine, ComplaintQueryService, MutationResult

_MUTATION_ERRORS = {
    400: OpenApiResponse(description="Validation error."),
    403: OpenApiResponse(description="Policy denied one or more fields."),
    404: OpenApiResponse(description="Complaint not found."),
    409: OpenApiResponse(description="Invalid transition, version conflict or closed complaint."),
}


class ComplaintViewSet(viewsets.ViewSet):
    """
    Central ViewSet for the complaints app.

    Uses ``viewsets.ViewSet`` (not ``ModelViewSet``) so every action is
    explicitly defined.  The base permission is ``IsAuthenticated``;
    role and ownership checks live in the engine.
    """

    permission_classes = [IsAuthenticated]
    engine_class = ComplaintLifecycleEngine

    # ── Helpers ──────────────────────────────────────────────────────

    def get_engine(self) -> ComplaintLifecycleEngine:
        return self.engine_class()

    def _actor(self, request: Request) -> Actor:
        return Actor.from_user(request.user)

    def _detail_context(self, request: Request, actor: Actor) -> dict:
        return {
            "request": request,
            "include_internal_notes": not actor.is_resident,
        }

    def _render(
        self,
        request: Request,
        actor: Actor,
        result: MutationResult,
        success_status: int = status.HTTP_200_OK,
    ) -> Response:
        if not result.ok:
            return Response(result.error.as_dict(), status=result.http_status)
        out = ComplaintDetailSerializer(result.complaint, context=self._detail_context(request, actor))
        return Response(out.data, status=success_status)

    # ── Standard CRUD ────────────────────────────────────────────────

    @extend_schema(
        summary="List complaints",
        description=(
            "Residents see their own complaints, staff see complaints assigned "
            "to them, admins see all."
        ),
        parameters=[
            OpenApiParameter(name="status", type=str, location=OpenApiParameter.QUERY, description="Filter by status."),
            OpenApiParameter(name="priority", type=str, location=OpenApiParameter.QUERY, description="Filter by priority."),
            OpenApiParameter(name="category", type=str, location=OpenApiParameter.QUERY, description="Filter by category."),
        ],
        responses={200: OpenApiResponse(response=ComplaintListSerializer(many=True), description="Complaints.")},
        tags=["Complaints"],
    )
    def list(self, request: Request) -> Response:
        filter_serializer = ComplaintFilterSerializer(data=request.query_params)
        filter_serializer.is_valid(raise_exception=True)

        qs = ComplaintQueryService.list_for(self._actor(request), filter_serializer.validated_data)
        serializer = ComplaintListSerializer(qs, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Submit a complaint",
        request=ComplaintCreateSerializer,
        responses={
            201: OpenApiResponse(response=ComplaintDetailSerializer, description="Complaint created (version 0)."),
            400: OpenApiResponse(description="Validation error."),
        },
        tags=["Complaints"],
    )
    def create(self, request: Request) -> Response:
        serializer = ComplaintCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        actor = self._actor(request)
        result = self.get_engine().create_complaint(actor, serializer.to_engine())
        return self._render(request, actor, result, status.HTTP_201_CREATED)

    @extend_schema(
        summary="Retrieve a complaint",
        responses={
            200: OpenApiResponse(response=ComplaintDetailSerializer, description="Complaint detail."),
            404: OpenApiResponse(description="Complaint not found."),
        },
        tags=["Complaints"],
    )
    def retrieve(self, request: Request, pk: int = None) -> Response:
        actor = self._actor(request)
        complaint = ComplaintQueryService.get_for(actor, pk)
        serializer = ComplaintDetailSerializer(complaint, context=self._detail_context(request, actor))
        return Response(serializer.data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Patch a complaint",
        description=(
            "Apply field edits, a status transition, an assignee change and/or "
            "a note.  Send ``expected_version`` to guard against concurrent edits; "
            "a 409 ``version_conflict`` means reload and retry."
        ),
        request=ComplaintPatchSerializer,
        responses={200: OpenApiResponse(response=ComplaintDetailSerializer, description="Updated complaint."), **_MUTATION_ERRORS},
        tags=["Complaints"],
    )
    def partial_update(self, request: Request, pk: int = None) -> Response:
        serializer = ComplaintPatchSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        expected_version, patch = serializer.to_engine()

        actor = self._actor(request)
        result = self.get_engine().apply(actor, pk, expected_version, patch)
        return self._render(request, actor, result)

    @extend_schema(
        summary="Delete a complaint",
        description="Admins only.  Notes and assignment history go with it; the activity log is kept.",
        request=VersionedActionSerializer,
        responses={204: OpenApiResponse(description="Deleted."), **_MUTATION_ERRORS},
        tags=["Complaints"],
    )
    def destroy(self, request: Request, pk: int = None) -> Response:
        serializer = VersionedActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        actor = self._actor(request)
        result = self.get_engine().delete(
            actor, pk, expected_version=serializer.validated_data.get("expected_version"),
        )
        if not result.ok:
            return Response(result.error.as_dict(), status=result.http_status)
        return Response(status=status.HTTP_204_NO_CONTENT)

    # ── Assignment @actions ──────────────────────────────────────────

    @action(detail=True, methods=["post"], url_path="assign")
    @extend_schema(
        summary="Assign a complaint",
        request=AssignSerializer,
        responses={200: OpenApiResponse(response=ComplaintDetailSerializer, description="Assigned."), **_MUTATION_ERRORS},
        tags=["Complaints"],
    )
    def assign(self, request: Request, pk: int = None) -> Response:
        serializer = AssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        actor = self._actor(request)
        result = self.get_engine().assign(
            actor, pk, data["assignee"],
            expected_version=data.get("expected_version"),
            due_date=data.get("due_date"),
            note=data.get("note", ""),
        )
        return self._render(request, actor, result)

    @action(detail=True, methods=["post"], url_path="unassign")
    @extend_schema(
        summary="Unassign a complaint",
        request=VersionedActionSerializer,
        responses={200: OpenApiResponse(response=ComplaintDetailSerializer, description="Unassigned."), **_MUTATION_ERRORS},
        tags=["Complaints"],
    )
    def unassign(self, request: Request, pk: int = None) -> Response:
        serializer = VersionedActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        actor = self._actor(request)
        result = self.get_engine().unassign(
            actor, pk, expected_version=serializer.validated_data.get("expected_version"),
        )
        return self._render(request, actor, result)

    # ── Sub-resource @actions ────────────────────────────────────────

    @action(detail=True, methods=["post"], url_path="notes")
    @extend_schema(
        summary="Add a note",
        request=NoteCreateSerializer,
        responses={201: OpenApiResponse(response=ComplaintDetailSerializer, description="Note added."), **_MUTATION_ERRORS},
        tags=["Complaints"],
    )
    def notes(self, request: Request, pk: int = None) -> Response:
        serializer = NoteCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        actor = self._actor(request)
        result = self.get_engine().add_note(
            actor, pk, data["content"],
            is_internal=data["is_internal"],
            expected_version=data.get("expected_version"),
        )
        return self._render(request, actor, result, status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="feedback")
    @extend_schema(
        summary="Rate a resolved complaint",
        request=FeedbackSerializer,
        responses={200: OpenApiResponse(response=ComplaintDetailSerializer, description="Feedback recorded."), **_MUTATION_ERRORS},
        tags=["Complaints"],
    )
    def feedback(self, request: Request, pk: int = None) -> Response:
        serializer = FeedbackSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        actor = self._actor(request)
        result = self.get_engine().submit_feedback(
            actor, pk, data["rating"], data["comment"],
            expected_version=data.get("expected_version"),
        )
        return self._render(request, actor, result)

    @action(detail=True, methods=["post"], url_path="cancel")
    @extend_schema(
        summary="Cancel a pending complaint",
        request=CancelSerializer,
        responses={200: OpenApiResponse(response=ComplaintDetailSerializer, description="Cancelled."), **_MUTATION_ERRORS},
        tags=["Complaints"],
    )
    def cancel(self, request: Request, pk: int = None) -> Response:
        serializer = CancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        actor = self._actor(request)
        result = self.get_engine().cancel(
            actor, pk,
            reason=data["reason"],
            expected_version=data.get("expected_version"),
        )
        return self._render(request, actor, result)

    @action(detail=True, methods=["get"], url_path="assignments")
    @extend_schema(
        summary="Assignment history",
        responses={
            200: OpenApiResponse(response=AssignmentSerializer(many=True), description="Oldest first."),
            403: OpenApiResponse(description="Admins and the assignee only."),
            404: OpenApiResponse(description="Complaint not found."),
        },
        tags=["Complaints"],
    )
    def assignments(self, request: Request, pk: int = None) -> Response:
        qs = ComplaintQueryService.assignment_history(self._actor(request), pk)
        return Response(AssignmentSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"], url_path="activity")
    @extend_schema(
        summary="Activity log",
        responses={
            200: OpenApiResponse(response=ComplaintActivitySerializer(many=True), description="Oldest first."),
            403: OpenApiResponse(description="Admins only."),
            404: OpenApiResponse(description="Complaint not found."),
        },
        tags=["Complaints"],
    )
    def activity(self, request: Request, pk: int = None) -> Response:
        qs = ComplaintQueryService.activity(self._actor(request), pk)
        return Response(ComplaintActivitySerializer(qs, many=True).data, status=status.HTTP_200_OK)


class AssignmentViewSet(viewsets.ViewSet):
    """
    Work queue across complaints.

    Staff see the assignment records made out to them; admins see every
    record and may filter by assignee.  Residents get 403.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List assignments",
        parameters=[
            OpenApiParameter(name="assignee", type=int, location=OpenApiParameter.QUERY, description="Assignee user ID (admins only)."),
            OpenApiParameter(name="status", type=str, location=OpenApiParameter.QUERY, description="active, completed or cancelled."),
        ],
        responses={
            200: OpenApiResponse(response=AssignmentListSerializer(many=True), description="Newest first."),
            403: OpenApiResponse(description="Staff and admins only."),
        },
        tags=["Assignments"],
    )
    def list(self, request: Request) -> Response:
        filter_serializer = AssignmentFilterSerializer(data=request.query_params)
        filter_serializer.is_valid(raise_exception=True)

        qs = ComplaintQueryService.assignments_for(
            Actor.from_user(request.user), filter_serializer.validated_data,
        )
        return Response(AssignmentListSerializer(qs, many=True).data, status=status.HTTP_200_OK)
