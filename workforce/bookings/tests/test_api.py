import json
from unittest import mock

import pytest
from rest_framework.test import APIClient

from workforce.bookings.models import Booking
from workforce.bookings.models import EventInstance
from workforce.organizations.models import Organization

pytestmark = pytest.mark.django_db

BOOKINGS_URL = "/api/v1/bookings/"


@pytest.fixture
def client_for():
    def make(user):
        api = APIClient()
        api.force_authenticate(user=user)
        return api

    return make


def test_list_is_wrapped_in_data_envelope(client_for, user, booking):
    res = client_for(user).get(BOOKINGS_URL)

    assert res.status_code == 200
    body = json.loads(res.content)
    assert set(body) == {"data"}
    assert [row["id"] for row in body["data"]["results"]] == [booking.pk]


def test_create_booking_for_own_organization(client_for, user, organization):
    res = client_for(user).post(
        BOOKINGS_URL,
        {
            "client_organization": organization.pk,
            "title": "Store demo",
            "start_date": "2030-02-01",
            "end_date": "2030-02-01",
            "status": "approved",
        },
        format="json",
    )

    assert res.status_code == 201, res.data
    created = Booking.objects.get(pk=res.data["id"])
    assert created.created_by == user
    # status is server controlled
    assert created.status == Booking.Status.DRAFT


def test_create_rejects_foreign_organization(client_for, user):
    other = Organization.objects.create(name="Elsewhere")
    res = client_for(user).post(
        BOOKINGS_URL,
        {
            "client_organization": other.pk,
            "title": "Sneaky",
            "start_date": "2030-02-01",
            "end_date": "2030-02-01",
        },
        format="json",
    )

    assert res.status_code == 400
    assert "client_organization" in res.data["details"]


@pytest.mark.parametrize(
    ("payload", "field"),
    [
        (
            {"start_date": "2030-02-05", "end_date": "2030-02-01"},
            "non_field_errors",
        ),
        (
            {
                "start_date": "2030-02-01",
                "end_date": "2030-02-01",
                "is_recurring": True,
                "recurrence_pattern": "FREQ=WEEKLY;BYDAY=XX",
            },
            "recurrence_pattern",
        ),
        (
            {"start_date": "2030-02-01", "end_date": "2030-02-01", "is_recurring": True},
            "recurrence_pattern",
        ),
        (
            {
                "start_date": "2030-02-01",
                "end_date": "2030-02-01",
                "is_recurring": True,
                "recurrence_pattern": "FREQ=DAILY;COUNT=²",
            },
            "recurrence_pattern",
        ),
    ],
)
def test_create_validation_errors(client_for, user, organization, payload, field):
    res = client_for(user).post(
        BOOKINGS_URL,
        {"client_organization": organization.pk, "title": "Bad", **payload},
        format="json",
    )

    assert res.status_code == 400
    assert field in res.data["details"]


def test_approve_generates_events(client_for, reviewer, booking):
    res = client_for(reviewer).post(
        f"{BOOKINGS_URL}{booking.pk}/approve/", {"generate_events": True}, format="json"
    )

    assert res.status_code == 200, res.data
    assert res.data["status"] == Booking.Status.APPROVED
    assert res.data["event_count"] == 11

    events = client_for(reviewer).get(f"{BOOKINGS_URL}{booking.pk}/events/")
    assert events.status_code == 200
    assert len(events.data) == 11
    assert events.data[0]["date"] == "2030-01-07"


def test_approve_twice_is_a_validation_error(client_for, reviewer, booking):
    api = client_for(reviewer)
    api.post(f"{BOOKINGS_URL}{booking.pk}/approve/", {"generate_events": False}, format="json")

    res = api.post(f"{BOOKINGS_URL}{booking.pk}/approve/", {}, format="json")

    assert res.status_code == 400
    body = json.loads(res.content)
    assert "cannot be approved" in body["error"]
    assert "details" in body


def test_reject_requires_reason(client_for, reviewer, booking):
    res = client_for(reviewer).post(
        f"{BOOKINGS_URL}{booking.pk}/reject/", {"reason": ""}, format="json"
    )

    assert res.status_code == 400
    assert "reason" in res.data["details"]


def test_cancel(client_for, reviewer, booking):
    res = client_for(reviewer).post(
        f"{BOOKINGS_URL}{booking.pk}/cancel/", {"reason": "Weather"}, format="json"
    )

    assert res.status_code == 200
    assert res.data["status"] == Booking.Status.CANCELED
    assert res.data["cancel_reason"] == "Weather"


def test_missing_booking_is_404_envelope(client_for, reviewer):
    res = client_for(reviewer).post(f"{BOOKINGS_URL}999999/approve/", {}, format="json")

    assert res.status_code == 404
    assert set(json.loads(res.content)) == {"error", "details"}


class TestEventInstanceEndpoints:
    @pytest.fixture
    def event(self, client_for, reviewer, booking):
        client_for(reviewer).post(
            f"{BOOKINGS_URL}{booking.pk}/approve/", {"generate_events": True}, format="json"
        )
        return booking.event_instances.first()

    def test_member_lists_events(self, client_for, user, event):
        res = client_for(user).get("/api/v1/events/", {"booking": event.booking_id})

        assert res.status_code == 200
        rows = res.data["results"]
        assert len(rows) == 11
        assert rows[0]["booking_title"] == "Spring activation"

    def test_assign_manager(self, client_for, reviewer, user, event):
        res = client_for(reviewer).post(
            f"/api/v1/events/{event.pk}/assign-manager/", {"manager": user.pk}, format="json"
        )

        assert res.status_code == 200, res.data
        assert res.data["field_manager"] == user.pk

    def test_assign_manager_requires_reviewer(self, client_for, user, event):
        res = client_for(user).post(
            f"/api/v1/events/{event.pk}/assign-manager/", {"manager": user.pk}, format="json"
        )
        assert res.status_code == 403

    def test_preparation_flow(self, client_for, user, event):
        api = client_for(user)
        with mock.patch("workforce.realtime.events.bookings.publish_best_effort"):
            started = api.post(
                f"/api/v1/events/{event.pk}/start-preparation/",
                {"tasks": ["load van"]},
                format="json",
            )
            ready = api.post(
                f"/api/v1/events/{event.pk}/mark-ready/",
                {"details": {"kit": "packed"}},
                format="json",
            )

        assert started.data["preparation_status"] == EventInstance.PreparationStatus.IN_PROGRESS
        assert ready.data["preparation_status"] == EventInstance.PreparationStatus.READY

    def test_canceled_event_cannot_be_prepared(self, client_for, user, event):
        EventInstance.objects.filter(pk=event.pk).update(status=EventInstance.Status.CANCELED)

        res = client_for(user).post(f"/api/v1/events/{event.pk}/start-preparation/", {}, format="json")

        assert res.status_code == 400


class TestRecurrencePreview:
    url = "/api/v1/recurrence/preview/"

    def test_preview(self, client_for, user):
        res = client_for(user).get(
            self.url, {"start": "2025-01-06", "rule": "FREQ=WEEKLY;BYDAY=MO,WE,FR;COUNT=4"}
        )

        assert res.status_code == 200
        assert res.data["dates"] == ["2025-01-06", "2025-01-08", "2025-01-10", "2025-01-13"]
        assert res.data["count"] == 4
        assert res.data["description"] == "Weekly on Monday, Wednesday, Friday, 4 times"

    def test_legacy_name_and_end(self, client_for, user):
        res = client_for(user).get(
            self.url, {"start": "2025-01-01", "rule": "daily", "end": "2025-01-03"}
        )

        assert res.data["rule"] == "FREQ=DAILY"
        assert res.data["dates"] == ["2025-01-01", "2025-01-02", "2025-01-03"]

    def test_invalid_rule(self, client_for, user):
        res = client_for(user).get(self.url, {"start": "2025-01-01", "rule": "FREQ=HOURLY"})

        assert res.status_code == 400
        assert "rule" in res.data["details"]

    def test_missing_start(self, client_for, user):
        res = client_for(user).get(self.url, {"rule": "FREQ=DAILY"})
        assert res.status_code == 400

    def test_rule_with_non_ascii_digits_is_rejected(self, client_for, user):
        res = client_for(user).get(
            self.url, {"start": "2025-01-06", "rule": "FREQ=DAILY;COUNT=²"}
        )

        assert res.status_code == 400
        assert "rule" in res.data["details"]
