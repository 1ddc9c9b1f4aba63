"""Kit templates and the physical kit instances built from them."""

from drf_spectacular.utils import extend_schema
from rest_framework import mixins
from rest_framework import permissions
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from workforce.kits import services
from workforce.kits.api.serializers import KitInstanceSerializer
from workforce.kits.api.serializers import KitTemplateSerializer
from workforce.kits.api.serializers import RejectKitTemplateSerializer
from workforce.kits.exceptions import KitError
from workforce.kits.models import KitInstance
from workforce.kits.models import KitTemplate
from workforce.organizations.models import organization_ids_for
from workforce.users.api.permissions import IsGlobalOperator
from workforce.users.api.permissions import IsKitManagerOrReadOnly
from workforce.users.roles import has_global_access

APPROVER_PERMISSIONS = [permissions.IsAuthenticated, IsGlobalOperator]


class KitTemplateViewSet(
    mixins.ListModelMixin,
    mixins.CreateModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = KitTemplateSerializer
    permission_classes = [IsKitManagerOrReadOnly]
    filterset_fields = ["client_organization", "approval_status", "is_active", "template_type"]

    def get_queryset(self):
        user = self.request.user
        qs = KitTemplate.objects.select_related("client_organization")
        if has_global_access(user):
            return qs
        return qs.filter(client_organization_id__in=organization_ids_for(user))

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)

    @extend_schema(tags=["Kits"], request=None, responses=KitTemplateSerializer)
    @action(detail=True, methods=["post"], permission_classes=APPROVER_PERMISSIONS)
    def approve(self, request, pk=None):
        template = self.get_object()
        try:
            template = services.approve_kit_template(template.pk, request.user)
        except KitError as exc:
            raise ValidationError({"detail": str(exc)}) from exc
        return Response(self.get_serializer(template).data)

    @extend_schema(tags=["Kits"], request=RejectKitTemplateSerializer, responses=KitTemplateSerializer)
    @action(detail=True, methods=["post"], permission_classes=APPROVER_PERMISSIONS)
    def reject(self, request, pk=None):
        template = self.get_object()
        ser = RejectKitTemplateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        try:
            template = services.reject_kit_template(
                template.pk, request.user, ser.validated_data["reason"]
            )
        except KitError as exc:
            raise ValidationError({"detail": str(exc)}) from exc
        return Response(self.get_serializer(template).data)


class KitInstanceViewSet(
    mixins.ListModelMixin,
    mixins.CreateModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = KitInstanceSerializer
    permission_classes = [IsKitManagerOrReadOnly]
    filterset_fields = ["template", "status", "condition", "region", "assigned_to"]

    def get_queryset(self):
        user = self.request.user
        qs = KitInstance.objects.select_related("template", "assigned_to")
        if has_global_access(user):
            return qs
        return qs.filter(
            template__client_organization_id__in=organization_ids_for(user)
        )

    def perform_create(self, serializer):
        data = dict(serializer.validated_data)
        template = data.pop("template")
        try:
            serializer.instance = services.create_kit_instance(
                template, created_by=self.request.user, **data
            )
        except KitError as exc:
            raise ValidationError({"template": [str(exc)]}) from exc
