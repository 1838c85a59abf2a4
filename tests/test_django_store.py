import pytest

from dispatch.dispatcher import Dispatcher
from dispatch.errors import AlreadyAssignedError, TerminalStateError
from notifications.channels import InMemoryChannel
from notifications.models import BroadcastNotification, BroadcastRowStatus
from service_requests.models import BroadcastStatus, RequestStatus, Urgency

from conftest import HYDERABAD, offset_north

pytestmark = pytest.mark.usefixtures("db")


@pytest.fixture
def seeded():
    from dispatch_api import models

    plumbing = models.Category.objects.create(id="cat_plumbing", name="Plumbing", slug="plumbing")
    models.CustomerProfile.objects.create(id="cust_1", full_name="Priya")
    models.ServiceRequest.objects.create(
        id="req_1",
        customer_id="cust_1",
        category=plumbing,
        latitude=HYDERABAD[0],
        longitude=HYDERABAD[1],
        service_address="Banjara Hills",
        estimated_price=499,
        urgency=Urgency.IMMEDIATE.value,
    )
    for helper_id, km, categories in (("h1", 1, ["plumbing"]), ("h2", 4, ["plumbing"]), ("h3", 9, ["electrical"])):
        lat, lon = offset_north(HYDERABAD, km)
        models.HelperProfile.objects.create(
            id=helper_id,
            user_id=f"user_{helper_id}",
            full_name=helper_id.upper(),
            is_approved=True,
            is_online=True,
            latitude=lat,
            longitude=lon,
            service_categories=categories,
            rating=4.6,
        )
    models.HelperProfile.objects.create(id="h_off", user_id="user_h_off", is_approved=True, is_online=False)
    return models


@pytest.fixture
def store():
    from dispatch_api.store import DjangoDispatchStore

    return DjangoDispatchStore()


def test_request_round_trips_to_domain(seeded, store):
    request = store.get_request("req_1")

    assert request.location == HYDERABAD
    assert request.category.slug == "plumbing"
    assert request.category_name == "Plumbing"
    assert request.urgency == Urgency.IMMEDIATE
    assert request.status == RequestStatus.DRAFT
    assert request.version == 0
    assert store.get_request("missing") is None
    assert store.get_customer_name("cust_1") == "Priya"
    assert store.get_customer_name("nobody") is None


def test_conditional_update_affects_exactly_one_row(seeded, store):
    guard = {"assigned_helper_id": None, "version": 0}

    first = store.conditional_update_request("req_1", guard, {"assigned_helper_id": "h1",
                                                              "status": RequestStatus.ASSIGNED})
    second = store.conditional_update_request("req_1", guard, {"assigned_helper_id": "h2"})

    assert first.assigned_helper_id == "h1"
    assert first.status == RequestStatus.ASSIGNED
    assert first.version == 1
    assert second is None
    row = seeded.ServiceRequest.objects.get(pk="req_1")
    assert (row.assigned_helper_id, row.status, row.version) == ("h1", "assigned", 1)


def test_eligible_helpers(seeded, store):
    assert sorted(h.id for h in store.list_eligible_helpers()) == ["h1", "h2", "h3"]
    assert len(store.list_helpers()) == 4
    assert store.get_helper("h1").service_categories == ("plumbing",)


def test_broadcast_rows(seeded, store):
    row = BroadcastNotification(request_id="req_1", helper_id="h1", round=1, distance_km=1.0)

    assert store.insert_broadcasts([row, row]) == 1
    assert store.mark_broadcasts("req_1", BroadcastRowStatus.DECLINED, helper_id="h1") == 1
    assert store.list_broadcasts("req_1")[0].status == BroadcastRowStatus.DECLINED
    assert store.delete_broadcasts("req_1") == 1


def test_full_flow_against_the_database(seeded, store):
    channel = InMemoryChannel()
    dispatcher = Dispatcher(store, channel)

    outcome = dispatcher.broadcast("req_1")
    assert outcome.helpers_notified == 3
    assert seeded.BroadcastNotification.objects.filter(request_id="req_1", round=1).count() == 3
    assert seeded.Notification.objects.filter(user_id="cust_1").count() == 1

    dispatcher.accept("req_1", "h2")
    with pytest.raises(AlreadyAssignedError):
        dispatcher.accept("req_1", "h1")

    rows = {row.helper_id: row.status for row in store.list_broadcasts("req_1")}
    assert rows == {"h1": BroadcastRowStatus.EXPIRED, "h2": BroadcastRowStatus.ACCEPTED,
                    "h3": BroadcastRowStatus.EXPIRED}

    outcome = dispatcher.cancel_by_helper("req_1", "h2")
    assert outcome.round == 2
    assert set(seeded.BroadcastNotification.objects.values_list("round", flat=True)) == {2}

    dispatcher.accept("req_1", "h1")
    dispatcher.start_work("req_1", "h1")
    dispatcher.complete("req_1")

    assert store.get_request("req_1").broadcast_status == BroadcastStatus.COMPLETED
    with pytest.raises(TerminalStateError):
        dispatcher.rebroadcast("req_1")
