import os
from datetime import datetime

import pytest

# Django is configured before any backend module is imported.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "helparo_backend.settings")
os.environ["DISPATCH_DB_NAME"] = ":memory:"
os.environ.pop("PUSH_GATEWAY_URL", None)

import django  # noqa: E402

django.setup()

from helpers.models import HelperProfile  # noqa: E402
from service_requests.models import Category, ServiceRequest, Urgency  # noqa: E402

KM_PER_DEGREE_LAT = 111.195

HYDERABAD = (17.3850, 78.4867)


def offset_north(origin, km):
    """A point `km` due north of `origin` (good to a few metres)."""
    return (origin[0] + km / KM_PER_DEGREE_LAT, origin[1])


@pytest.fixture
def now():
    return datetime(2026, 1, 15, 12, 0, 0)


@pytest.fixture
def plumbing():
    return Category(id="cat_plumbing", name="Plumbing", slug="plumbing")


@pytest.fixture
def make_request(plumbing):
    def _make(request_id="req_1", **overrides):
        fields = dict(
            id=request_id,
            customer_id="cust_1",
            category_id=plumbing.id,
            category=plumbing,
            location=HYDERABAD,
            service_address="Banjara Hills",
            estimated_price=499,
            urgency=Urgency.IMMEDIATE,
        )
        fields.update(overrides)
        return ServiceRequest(**fields)

    return _make


@pytest.fixture
def make_helper(now):
    def _make(helper_id, km=None, categories=("plumbing",), **attrs):
        location = offset_north(HYDERABAD, km) if km is not None else (None, None)
        attrs.setdefault("is_online", True)
        attrs.setdefault("full_name", helper_id.title())
        return HelperProfile.new(helper_id, location[0], location[1], categories=list(categories), **attrs)

    return _make


@pytest.fixture(scope="session")
def django_db():
    from django.core.management import call_command

    call_command("migrate", run_syncdb=True, verbosity=0)


@pytest.fixture
def db(django_db):
    from dispatch_api import models

    yield
    for model in (models.Notification, models.BroadcastNotification, models.ServiceRequest,
                  models.HelperProfile, models.CustomerProfile, models.Category):
        model.objects.all().delete()
