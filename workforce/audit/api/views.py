from __future__ import annotations

from typing import TYPE_CHECKING

from rest_framework.generics import ListAPIView
from rest_framework.response import Response
from rest_framework.views import APIView

from workforce.audit.api.serializers import AuditLogSerializer
from workforce.audit.models import AuditLog
from workforce.users.api.permissions import IsAuditViewer

if TYPE_CHECKING:
    from django.db.models import QuerySet

DEFAULT_RECENT_LIMIT = 5
MAX_RECENT_LIMIT = 50


class AuditLogListView(ListAPIView):
    permission_classes = [IsAuditViewer]
    serializer_class = AuditLogSerializer
    filterset_fields = ["action", "entity_type", "entity_id", "organization", "actor"]

    def get_queryset(self) -> QuerySet[AuditLog]:
        return AuditLog.objects.select_related("actor").all()


class RecentAuditView(APIView):
    permission_classes = [IsAuditViewer]

    def get(self, request):
        try:
            limit = int(request.query_params.get("limit", DEFAULT_RECENT_LIMIT))
        except (TypeError, ValueError):
            limit = DEFAULT_RECENT_LIMIT
        limit = max(1, min(limit, MAX_RECENT_LIMIT))

        rows = list(AuditLog.objects.select_related("actor")[:limit])
        data = AuditLogSerializer(rows, many=True).data
        return Response({"results": data, "limit": limit})
