import pytest
from rest_framework.test import APIRequestFactory

from dispatch.dispatcher import Dispatcher
from notifications.channels import InMemoryChannel
from service_requests.models import BroadcastStatus, RequestStatus
from store.memory import InMemoryDispatchStore

from conftest import HYDERABAD, offset_north


@pytest.fixture
def factory():
    return APIRequestFactory()


@pytest.fixture
def store(make_request, make_helper):
    store = InMemoryDispatchStore()
    store.add_request(make_request())
    store.add_request(make_request("req_done", status=RequestStatus.COMPLETED,
                                   broadcast_status=BroadcastStatus.COMPLETED, assigned_helper_id="h1"))
    store.add_helpers([make_helper("h1", km=1), make_helper("h2", km=2)])
    return store


@pytest.fixture
def dispatcher(store):
    return Dispatcher(store, InMemoryChannel())


def call(view_class, request, dispatcher, **kwargs):
    view = view_class.as_view(dispatcher_factory=lambda: dispatcher)
    return view(request, **kwargs)


def test_rebroadcast_success(factory, dispatcher):
    from dispatch_api.views import RebroadcastRequestView

    response = call(RebroadcastRequestView, factory.post("/api/v1/requests/req_1/rebroadcast/"),
                    dispatcher, request_id="req_1")

    assert response.status_code == 200
    assert response.data == {
        "success": True,
        "message": "Job re-broadcasted to 2 helpers",
        "helpersNotified": 2,
    }


@pytest.mark.parametrize(
    "request_id, status_code, kind",
    [("missing", 404, "not_found"), ("req_done", 400, "terminal_state")],
)
def test_rebroadcast_errors(factory, dispatcher, request_id, status_code, kind):
    from dispatch_api.views import RebroadcastRequestView

    response = call(RebroadcastRequestView, factory.post(f"/api/v1/requests/{request_id}/rebroadcast/"),
                    dispatcher, request_id=request_id)

    assert response.status_code == status_code
    assert response.data["success"] is False
    assert response.data["kind"] == kind
    assert response.data["error"]


def test_store_failure_is_a_500(factory, dispatcher, store):
    from dispatch_api.views import RebroadcastRequestView

    store.failing_operations.add("conditional_update_request")
    response = call(RebroadcastRequestView, factory.post("/api/v1/requests/req_1/rebroadcast/"),
                    dispatcher, request_id="req_1")

    assert response.status_code == 500
    assert response.data["kind"] == "store_failure"


def test_unexpected_error_is_a_500(factory):
    from dispatch_api.views import RebroadcastRequestView

    class Broken:
        def rebroadcast(self, request_id):
            raise RuntimeError("boom")

    response = call(RebroadcastRequestView, factory.post("/api/v1/requests/req_1/rebroadcast/"),
                    Broken(), request_id="req_1")

    assert response.status_code == 500
    assert response.data["kind"] == "internal"


def test_accept_then_conflict(factory, dispatcher):
    from dispatch_api.views import AcceptRequestView

    dispatcher.broadcast("req_1")

    first = call(AcceptRequestView, factory.post("/api/v1/requests/req_1/accept/", {"helper_id": "h1"},
                                                 format="json"), dispatcher, request_id="req_1")
    second = call(AcceptRequestView, factory.post("/api/v1/requests/req_1/accept/", {"helper_id": "h2"},
                                                  format="json"), dispatcher, request_id="req_1")

    assert first.status_code == 200
    assert first.data["request"]["assigned_helper_id"] == "h1"
    assert first.data["request"]["status"] == "assigned"
    assert second.status_code == 409
    assert second.data["kind"] == "already_assigned"


def test_accept_by_unknown_or_busy_helper(factory, dispatcher, store, make_helper):
    from dispatch_api.views import AcceptRequestView

    store.add_helper(make_helper("busy", km=1, is_on_job=True))
    dispatcher.broadcast("req_1")

    unknown = call(AcceptRequestView, factory.post("/api/v1/requests/req_1/accept/", {"helper_id": "ghost"},
                                                   format="json"), dispatcher, request_id="req_1")
    busy = call(AcceptRequestView, factory.post("/api/v1/requests/req_1/accept/", {"helper_id": "busy"},
                                                format="json"), dispatcher, request_id="req_1")

    assert unknown.status_code == 404
    assert unknown.data["kind"] == "not_found"
    assert busy.status_code == 409
    assert busy.data["kind"] == "helper_busy"


def test_accept_requires_helper_id(factory, dispatcher):
    from dispatch_api.views import AcceptRequestView

    response = call(AcceptRequestView, factory.post("/api/v1/requests/req_1/accept/", {}, format="json"),
                    dispatcher, request_id="req_1")

    assert response.status_code == 400


def test_helper_cancel(factory, dispatcher):
    from dispatch_api.views import HelperCancelView

    dispatcher.broadcast("req_1")
    dispatcher.accept("req_1", "h1")

    wrong = call(HelperCancelView, factory.post("/api/v1/requests/req_1/cancel/", {"helper_id": "h2"},
                                                format="json"), dispatcher, request_id="req_1")
    right = call(HelperCancelView, factory.post("/api/v1/requests/req_1/cancel/", {"helper_id": "h1"},
                                                format="json"), dispatcher, request_id="req_1")

    assert wrong.status_code == 403
    assert wrong.data["kind"] == "not_assigned_helper"
    assert right.status_code == 200
    assert right.data["helpersNotified"] == 2


@pytest.mark.usefixtures("db")
def test_match_helpers_endpoint(factory):
    from dispatch_api import models
    from dispatch_api.views import MatchHelpersView

    lat, lon = offset_north(HYDERABAD, 1)
    models.HelperProfile.objects.create(
        id="h1", user_id="user_h1", full_name="Ravi", is_approved=True, is_online=True,
        latitude=lat, longitude=lon, service_categories=["plumbing"], rating=4.9, completed_jobs=60,
        avg_response_time_minutes=3, has_immediate_slot=True, verification_count=2,
    )
    models.HelperProfile.objects.create(
        id="h2", user_id="user_h2", full_name="Far", is_approved=True,
        latitude=lat + 1, longitude=lon, service_categories=["plumbing"],
    )

    request = factory.post(
        "/api/v1/helpers/match/",
        {"service_type": "plumbing", "latitude": HYDERABAD[0], "longitude": HYDERABAD[1], "urgency": "immediate"},
        format="json",
    )
    response = MatchHelpersView.as_view()(request)

    assert response.status_code == 200
    assert response.data["count"] == 1
    [match] = response.data["matches"]
    assert match["helper_id"] == "h1"
    assert match["match_score"] >= 80
    assert "top_rated" in match["badges"]
    assert match["explanation"].startswith("Excellent match!") or match["explanation"].startswith("Perfect")


@pytest.mark.usefixtures("db")
def test_match_helpers_notifies_requester(factory):
    from dispatch_api import models
    from dispatch_api.views import MatchHelpersView

    lat, lon = offset_north(HYDERABAD, 1)
    models.HelperProfile.objects.create(
        id="h1", user_id="user_h1", full_name="Ravi", is_approved=True, is_online=True,
        latitude=lat, longitude=lon, service_categories=["plumbing"], rating=4.9, completed_jobs=60,
        avg_response_time_minutes=3, has_immediate_slot=True, verification_count=2,
    )
    channel = InMemoryChannel()
    view = MatchHelpersView.as_view(channel_factory=lambda: channel)

    request = factory.post(
        "/api/v1/helpers/match/",
        {"service_type": "plumbing", "latitude": HYDERABAD[0], "longitude": HYDERABAD[1],
         "urgency": "immediate", "request_id": "req_1", "customer_id": "cust_1"},
        format="json",
    )
    response = view(request)

    assert response.status_code == 200
    assert response.data["requesterNotified"] is True
    [pushed] = channel.for_recipient("cust_1")
    assert pushed.title == "1 perfect helpers found!"
    assert pushed.body == "Ravi matches your request"
    assert models.Notification.objects.filter(user_id="cust_1", request_id="req_1").count() == 1


@pytest.mark.usefixtures("db")
def test_match_helpers_without_matches_sends_nothing(factory):
    from dispatch_api.views import MatchHelpersView

    channel = InMemoryChannel()
    request = factory.post(
        "/api/v1/helpers/match/",
        {"service_type": "plumbing", "request_id": "req_1", "customer_id": "cust_1"},
        format="json",
    )
    response = MatchHelpersView.as_view(channel_factory=lambda: channel)(request)

    assert response.status_code == 200
    assert response.data["count"] == 0
    assert response.data["requesterNotified"] is False
    assert channel.delivered == []


def test_match_helpers_needs_both_request_and_customer(factory):
    from dispatch_api.views import MatchHelpersView

    request = factory.post("/api/v1/helpers/match/", {"service_type": "plumbing", "request_id": "req_1"},
                           format="json")
    response = MatchHelpersView.as_view()(request)

    assert response.status_code == 400


def test_match_helpers_validation(factory):
    from dispatch_api.views import MatchHelpersView

    request = factory.post("/api/v1/helpers/match/", {"service_type": "plumbing", "latitude": 17.0},
                           format="json")
    response = MatchHelpersView.as_view()(request)

    assert response.status_code == 400
