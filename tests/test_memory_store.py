import threading

import pytest

from dispatch.errors import DispatchStoreError
from notifications.models import BroadcastNotification, BroadcastRowStatus
from service_requests.models import RequestStatus
from store.memory import InMemoryDispatchStore


@pytest.fixture
def store(make_request):
    store = InMemoryDispatchStore()
    store.add_request(make_request(status=RequestStatus.OPEN))
    return store


def test_get_request_returns_a_copy(store):
    copy = store.get_request("req_1")
    copy.status = RequestStatus.CANCELLED
    assert store.get_request("req_1").status == RequestStatus.OPEN


def test_conditional_update_applies_and_bumps_version(store):
    updated = store.conditional_update_request("req_1", {"version": 0}, {"title": "Leaking tap"})

    assert updated.title == "Leaking tap"
    assert updated.version == 1
    assert store.get_request("req_1").version == 1


def test_conditional_update_guard_failure_changes_nothing(store):
    assert store.conditional_update_request("req_1", {"version": 5}, {"title": "x"}) is None
    assert store.get_request("req_1").title == ""
    assert store.get_request("req_1").version == 0


def test_none_in_guard_means_is_null(store):
    assert store.conditional_update_request("req_1", {"assigned_helper_id": None}, {"assigned_helper_id": "h1"})
    assert store.conditional_update_request("req_1", {"assigned_helper_id": None}, {"assigned_helper_id": "h2"}) is None
    assert store.get_request("req_1").assigned_helper_id == "h1"


def test_conditional_update_of_unknown_request(store):
    assert store.conditional_update_request("nope", {}, {"title": "x"}) is None


def test_compare_and_swap_has_one_winner_under_threads(store):
    barrier = threading.Barrier(20)
    winners = []

    def claim(helper_id):
        barrier.wait()
        if store.conditional_update_request("req_1", {"assigned_helper_id": None}, {"assigned_helper_id": helper_id}):
            winners.append(helper_id)

    threads = [threading.Thread(target=claim, args=(f"h{i}",)) for i in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(winners) == 1
    assert store.get_request("req_1").assigned_helper_id == winners[0]


def test_broadcast_rows_are_unique_per_round(store):
    row = BroadcastNotification(request_id="req_1", helper_id="h1", round=1, distance_km=1.0)

    assert store.insert_broadcasts([row, row]) == 1
    assert store.insert_broadcasts([BroadcastNotification("req_1", "h1", 2, 1.0)]) == 1
    assert len(store.list_broadcasts("req_1")) == 2

    assert store.delete_broadcasts("req_1") == 2
    assert store.list_broadcasts("req_1") == []


def test_mark_broadcasts_filters(store):
    store.insert_broadcasts([BroadcastNotification("req_1", h, 1, 1.0) for h in ("h1", "h2", "h3")])

    assert store.mark_broadcasts("req_1", BroadcastRowStatus.ACCEPTED, helper_id="h2") == 1
    assert store.mark_broadcasts("req_1", BroadcastRowStatus.EXPIRED, exclude_helper_id="h2") == 2

    statuses = {row.helper_id: row.status for row in store.list_broadcasts("req_1")}
    assert statuses == {
        "h1": BroadcastRowStatus.EXPIRED,
        "h2": BroadcastRowStatus.ACCEPTED,
        "h3": BroadcastRowStatus.EXPIRED,
    }


def test_eligible_helpers(store, make_helper):
    store.add_helpers([make_helper("on", km=1), make_helper("off", km=1, is_online=False)])
    assert [h.id for h in store.list_eligible_helpers()] == ["on"]
    assert len(store.list_helpers()) == 2


def test_failure_injection(store):
    store.failing_operations.add("delete_broadcasts")
    with pytest.raises(DispatchStoreError) as excinfo:
        store.delete_broadcasts("req_1")
    assert excinfo.value.http_status == 500
