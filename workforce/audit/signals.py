from django.contrib.auth.signals import user_logged_in
from django.dispatch import receiver

from .utils import client_ip
from .utils import log_action


@receiver(user_logged_in)
def on_user_logged_in(sender, request, user, **kwargs):
    log_action(
        "login",
        actor=user,
        entity_type="user",
        entity_id=user.pk,
        ip_address=client_ip(request),
        user_agent=request.META.get("HTTP_USER_AGENT", "") if request else "",
    )
