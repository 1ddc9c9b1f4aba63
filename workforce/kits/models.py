from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _


class KitTemplate(models.Model):
    """Approved bill of materials a client agrees to for its events."""

    class ApprovalStatus(models.TextChoices):
        PENDING = "pending", _("Pending")
        APPROVED = "approved", _("Approved")
        REJECTED = "rejected", _("Rejected")

    client_organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.PROTECT,
        related_name="kit_templates",
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    template_type = models.CharField(max_length=50, default="standard")
    target_regions = models.JSONField(default=list, blank=True)
    estimated_value = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True
    )
    setup_instructions = models.TextField(blank=True)
    breakdown_instructions = models.TextField(blank=True)
    approval_status = models.CharField(
        max_length=20,
        choices=ApprovalStatus.choices,
        default=ApprovalStatus.PENDING,
        db_index=True,
    )
    rejection_reason = models.TextField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="kit_templates_created",
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="kit_templates_approved",
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name", "id"]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.name

    @property
    def is_usable(self) -> bool:
        return self.is_active and self.approval_status == self.ApprovalStatus.APPROVED


class KitInstance(models.Model):
    class Status(models.TextChoices):
        AVAILABLE = "available", _("Available")
        IN_USE = "in_use", _("In Use")
        MAINTENANCE = "maintenance", _("Maintenance")
        NEEDS_REPLENISHMENT = "needs_replenishment", _("Needs Replenishment")

    class Condition(models.TextChoices):
        GOOD = "good", _("Good")
        FAIR = "fair", _("Fair")
        POOR = "poor", _("Poor")
        DAMAGED = "damaged", _("Damaged")

    template = models.ForeignKey(
        KitTemplate, on_delete=models.PROTECT, related_name="instances"
    )
    instance_name = models.CharField(max_length=255)
    serial_number = models.CharField(max_length=100, blank=True)
    status = models.CharField(
        max_length=30, choices=Status.choices, default=Status.AVAILABLE
    )
    condition = models.CharField(
        max_length=20, choices=Condition.choices, default=Condition.GOOD
    )
    current_location = models.CharField(max_length=255, blank=True)
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="kit_instances",
    )
    assigned_at = models.DateTimeField(null=True, blank=True)
    region = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["instance_name", "id"]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.instance_name
