"""Kit template approval and instance creation."""

from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from workforce.audit.utils import log_action
from workforce.kits.exceptions import KitTemplateNotApprovedError
from workforce.kits.exceptions import KitTemplateStateError
from workforce.kits.exceptions import KitValidationError
from workforce.kits.models import KitInstance
from workforce.kits.models import KitTemplate
from workforce.realtime.events import kits as kit_events

logger = logging.getLogger(__name__)


def _lock_template(template_id) -> KitTemplate:
    return KitTemplate.objects.select_for_update().get(pk=template_id)


@transaction.atomic
def approve_kit_template(template_id, approved_by) -> KitTemplate:
    template = _lock_template(template_id)
    if template.approval_status == KitTemplate.ApprovalStatus.APPROVED:
        msg = f"Kit template {template.pk} is already approved"
        raise KitTemplateStateError(msg)
    template.approval_status = KitTemplate.ApprovalStatus.APPROVED
    template.approved_by = approved_by
    template.approved_at = timezone.now()
    template.rejection_reason = ""
    template.save(
        update_fields=[
            "approval_status",
            "approved_by",
            "approved_at",
            "rejection_reason",
            "updated_at",
        ]
    )
    log_action(
        "kit_template_approved",
        actor=approved_by,
        organization=template.client_organization,
        entity_type="kit_template",
        entity_id=template.pk,
    )
    kit_events.kit_template_approved(template, approved_by)
    logger.info("Kit template %s approved", template.pk)
    return template


@transaction.atomic
def reject_kit_template(template_id, rejected_by, reason: str) -> KitTemplate:
    reason = (reason or "").strip()
    if not reason:
        msg = "A rejection reason is required"
        raise KitValidationError(msg)
    template = _lock_template(template_id)
    template.approval_status = KitTemplate.ApprovalStatus.REJECTED
    template.rejection_reason = reason
    template.approved_by = None
    template.approved_at = None
    template.save(
        update_fields=[
            "approval_status",
            "rejection_reason",
            "approved_by",
            "approved_at",
            "updated_at",
        ]
    )
    log_action(
        "kit_template_rejected",
        actor=rejected_by,
        organization=template.client_organization,
        entity_type="kit_template",
        entity_id=template.pk,
        message=reason,
    )
    kit_events.kit_template_rejected(template, rejected_by)
    return template


@transaction.atomic
def create_kit_instance(template: KitTemplate, *, created_by=None, **fields) -> KitInstance:
    """Build a physical kit from ``template``.

    Raises ``KitTemplateNotApprovedError`` unless the template is approved and
    active.
    """

    if not template.is_usable:
        msg = f"Kit template {template.pk} is not approved and active"
        raise KitTemplateNotApprovedError(msg)
    if fields.get("assigned_to") is not None and "assigned_at" not in fields:
        fields["assigned_at"] = timezone.now()
    instance = KitInstance.objects.create(template=template, **fields)
    log_action(
        "kit_instance_created",
        actor=created_by,
        organization=template.client_organization,
        entity_type="kit_instance",
        entity_id=instance.pk,
        after={"template": template.pk, "status": instance.status},
    )
    kit_events.kit_instance_created(instance)
    return instance
