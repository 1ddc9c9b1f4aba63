from django.urls import path

from workforce.audit.api.views import AuditLogListView
from workforce.audit.api.views import RecentAuditView

app_name = "audit"

urlpatterns = [
    path("", AuditLogListView.as_view(), name="list"),
    path("recent/", RecentAuditView.as_view(), name="recent"),
]
