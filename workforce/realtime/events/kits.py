from __future__ import annotations

from typing import TYPE_CHECKING
from typing import Any

from workforce.realtime.events.bookings import publish_on_commit

if TYPE_CHECKING:
    from workforce.kits.models import KitInstance
    from workforce.kits.models import KitTemplate

KIT_TEMPLATE_APPROVED = "KIT_TEMPLATE_APPROVED"
KIT_TEMPLATE_REJECTED = "KIT_TEMPLATE_REJECTED"
KIT_INSTANCE_CREATED = "KIT_INSTANCE_CREATED"


def build_template_payload(template: KitTemplate, **extra: Any) -> dict[str, Any]:
    payload = {
        "templateId": template.pk,
        "clientId": template.client_organization_id,
        "approvalStatus": template.approval_status,
    }
    payload.update(extra)
    return payload


def kit_template_approved(template: KitTemplate, approved_by) -> None:
    publish_on_commit(
        KIT_TEMPLATE_APPROVED,
        build_template_payload(template, approvedBy=getattr(approved_by, "pk", None)),
    )


def kit_template_rejected(template: KitTemplate, rejected_by) -> None:
    publish_on_commit(
        KIT_TEMPLATE_REJECTED,
        build_template_payload(
            template,
            rejectedBy=getattr(rejected_by, "pk", None),
            reason=template.rejection_reason,
        ),
    )


def kit_instance_created(instance: KitInstance) -> None:
    publish_on_commit(
        KIT_INSTANCE_CREATED,
        {
            "instanceId": instance.pk,
            "templateId": instance.template_id,
            "status": instance.status,
        },
    )
