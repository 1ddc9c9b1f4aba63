from django.conf import settings
from django.urls import include
from django.urls import path
from rest_framework.routers import DefaultRouter
from rest_framework.routers import SimpleRouter

from workforce.bookings.api.views import BookingViewSet
from workforce.bookings.api.views import EventInstanceViewSet
from workforce.bookings.api.views import RecurrencePreviewView
from workforce.kits.api.views import KitInstanceViewSet
from workforce.kits.api.views import KitTemplateViewSet

router = DefaultRouter() if settings.DEBUG else SimpleRouter()

router.register("bookings", BookingViewSet, basename="bookings")
router.register("events", EventInstanceViewSet, basename="events")
router.register("kits/templates", KitTemplateViewSet, basename="kit-templates")
router.register("kits/instances", KitInstanceViewSet, basename="kit-instances")


app_name = "api"
urlpatterns = [
    path(
        "audit/",
        include(("workforce.audit.api.urls", "audit"), namespace="audit"),
    ),
    path(
        "recurrence/preview/",
        RecurrencePreviewView.as_view(),
        name="recurrence-preview",
    ),
    *router.urls,
]
