"""
ViewSet for the disputes API.

URL Structure:
    /api/v1/disputes/                   GET (list), POST (create)
    /api/v1/disputes/stats/             GET (admin)
    /api/v1/disputes/{id}/              GET
    /api/v1/disputes/{id}/evidence/     POST (parties)
    /api/v1/disputes/{id}/messages/     POST (parties, admins)
    /api/v1/disputes/{id}/assign/       POST (admin)
    /api/v1/disputes/{id}/priority/     PATCH (admin)
    /api/v1/disputes/{id}/resolve/      POST (admin)
    /api/v1/disputes/{id}/close/        POST (admin)
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.exceptions import BaseApplicationError
from core.permissions import IsPlatformAdmin
from core.views import error_response
from disputes.exceptions import DisputeNotFoundError
from disputes.serializers import (
    AddEvidenceSerializer,
    AddMessageSerializer,
    AssignDisputeSerializer,
    DisputeCreateSerializer,
    DisputeListQuerySerializer,
    DisputeListSerializer,
    DisputeMessageSerializer,
    DisputeSerializer,
    PrioritySerializer,
    ResolveDisputeSerializer,
)
from disputes.services import dispute_resolver

User = get_user_model()

TAGS = ["Disputes"]
ADMIN_ACTIONS = ("assign", "priority", "resolve", "close", "stats")


@extend_schema_view(
    list=extend_schema(
        operation_id="list_disputes",
        summary="List disputes",
        tags=TAGS,
        parameters=[
            OpenApiParameter("status", str),
            OpenApiParameter("category", str),
            OpenApiParameter("priority", str, description="Admins with all=true"),
            OpenApiParameter("assigned_to", str, description="Admins with all=true"),
            OpenApiParameter("all", bool, description="Admins only: every dispute"),
        ],
    ),
    create=extend_schema(
        operation_id="create_dispute",
        summary="Open a dispute",
        tags=TAGS,
        request=DisputeCreateSerializer,
        responses={201: DisputeSerializer},
    ),
    retrieve=extend_schema(operation_id="get_dispute", summary="Get dispute", tags=TAGS),
)
class DisputeViewSet(viewsets.GenericViewSet):
    """
    list / create / retrieve:
        Disputes the caller is a party to.

    evidence / messages:
        Add evidence (parties) or post a message (parties and admins).

    assign / priority / resolve / close:
        Admin triage and settlement. Resolving settles the booking's escrow.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = DisputeSerializer
    lookup_value_regex = "[0-9a-f-]{36}"

    def get_permissions(self):
        if self.action in ADMIN_ACTIONS:
            return [IsAuthenticated(), IsPlatformAdmin()]
        return super().get_permissions()

    def list(self, request):
        query = DisputeListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        filters = dict(query.validated_data)
        queryset = dispute_resolver.list_disputes(request.user, all_users=filters.pop("all"), **filters)

        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(DisputeListSerializer(page, many=True).data)
        return Response(DisputeListSerializer(queryset, many=True).data)

    def create(self, request):
        serializer = DisputeCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            dispute = dispute_resolver.create_dispute(request.user, **serializer.validated_data)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(DisputeSerializer(dispute).data, status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        try:
            dispute = dispute_resolver.get_dispute(pk, request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(DisputeSerializer(dispute).data)

    @extend_schema(operation_id="get_dispute_stats", summary="Dispute counts", tags=TAGS)
    @action(detail=False, methods=["get"])
    def stats(self, request):
        return Response(dispute_resolver.dispute_stats())

    @extend_schema(operation_id="add_dispute_evidence", summary="Add evidence", tags=TAGS, request=AddEvidenceSerializer)
    @action(detail=True, methods=["post"])
    def evidence(self, request, pk=None):
        serializer = AddEvidenceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._run(dispute_resolver.add_evidence, pk, request.user, serializer.validated_data["evidence"])

    @extend_schema(
        operation_id="add_dispute_message",
        summary="Post a message",
        tags=TAGS,
        request=AddMessageSerializer,
        responses={201: DisputeMessageSerializer},
    )
    @action(detail=True, methods=["post"])
    def messages(self, request, pk=None):
        serializer = AddMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            message = dispute_resolver.add_message(pk, request.user, **serializer.validated_data)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(DisputeMessageSerializer(message).data, status=status.HTTP_201_CREATED)

    @extend_schema(operation_id="assign_dispute", summary="Assign reviewer", tags=TAGS, request=AssignDisputeSerializer)
    @action(detail=True, methods=["post"])
    def assign(self, request, pk=None):
        serializer = AssignDisputeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        assign_to_id = serializer.validated_data.get("assign_to")
        assignee = request.user
        if assign_to_id:
            assignee = User.objects.filter(id=assign_to_id).first()
            if assignee is None:
                return error_response(DisputeNotFoundError("Assignee not found", error_code="USER_NOT_FOUND"))
        return self._run(dispute_resolver.assign_dispute, pk, request.user, assignee)

    @extend_schema(operation_id="update_dispute_priority", summary="Set priority", tags=TAGS, request=PrioritySerializer)
    @action(detail=True, methods=["patch"])
    def priority(self, request, pk=None):
        serializer = PrioritySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._run(dispute_resolver.update_priority, pk, serializer.validated_data["priority"])

    @extend_schema(operation_id="resolve_dispute", summary="Resolve dispute", tags=TAGS, request=ResolveDisputeSerializer)
    @action(detail=True, methods=["post"])
    def resolve(self, request, pk=None):
        serializer = ResolveDisputeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._run(dispute_resolver.resolve_dispute, pk, request.user, **serializer.validated_data)

    @extend_schema(operation_id="close_dispute", summary="Close dispute", tags=TAGS, request=None)
    @action(detail=True, methods=["post"])
    def close(self, request, pk=None):
        return self._run(dispute_resolver.close_dispute, pk, request.user)

    def _run(self, operation, pk, *args, **kwargs):
        try:
            operation(pk, *args, **kwargs)
            dispute = dispute_resolver.get_dispute(pk, self.request.user)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(DisputeSerializer(dispute).data)
