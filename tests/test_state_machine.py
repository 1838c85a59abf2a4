from dataclasses import replace
from datetime import timedelta

import pytest

from dispatch.errors import InvalidTransitionError, NotAssignedHelperError, TerminalStateError
from dispatch.state_machines import (
    acceptance_changes,
    acceptance_guard,
    broadcast_reset,
    completion_changes,
    ensure_helper_can_cancel,
    requester_cancellation_changes,
    start_work_changes,
)
from service_requests.models import BroadcastStatus, RequestStatus


@pytest.fixture
def assigned(make_request, now):
    return make_request(
        status=RequestStatus.ASSIGNED,
        broadcast_status=BroadcastStatus.ACCEPTED,
        assigned_helper_id="h1",
        helper_accepted_at=now,
        broadcast_round=1,
    )


def test_broadcast_reset_clears_assignment_and_bumps_round(assigned, now):
    changes = broadcast_reset(assigned, now)

    assert changes["status"] == RequestStatus.OPEN
    assert changes["broadcast_status"] == BroadcastStatus.BROADCASTING
    assert changes["assigned_helper_id"] is None
    assert changes["helper_accepted_at"] is None
    assert changes["work_started_at"] is None
    assert changes["broadcast_expires_at"] == now + timedelta(minutes=30)
    assert changes["broadcast_round"] == 2


def test_broadcast_reset_honours_ttl(make_request, now):
    changes = broadcast_reset(make_request(), now, ttl_minutes=5)
    assert changes["broadcast_expires_at"] == now + timedelta(minutes=5)


def test_broadcast_reset_rejects_completed(make_request, now):
    with pytest.raises(TerminalStateError):
        broadcast_reset(make_request(broadcast_status=BroadcastStatus.COMPLETED), now)


def test_acceptance_guard_and_changes(now):
    assert acceptance_guard() == {
        "assigned_helper_id": None,
        "status": RequestStatus.OPEN,
        "broadcast_status": BroadcastStatus.BROADCASTING,
    }
    changes = acceptance_changes("h9", now)
    assert changes["assigned_helper_id"] == "h9"
    assert changes["status"] == RequestStatus.ASSIGNED
    assert changes["helper_accepted_at"] == now


def test_assigned_helper_can_cancel_before_start(assigned):
    ensure_helper_can_cancel(assigned, "h1")


def test_other_helper_cannot_cancel(assigned):
    with pytest.raises(NotAssignedHelperError) as excinfo:
        ensure_helper_can_cancel(assigned, "h2")
    assert excinfo.value.http_status == 403


def test_cancel_after_start_is_rejected(assigned, now):
    started = start_work_changes(assigned, "h1", now)
    assigned.work_started_at = started["work_started_at"]

    with pytest.raises(InvalidTransitionError):
        ensure_helper_can_cancel(assigned, "h1")


def test_cancel_of_unassigned_request_is_rejected(make_request):
    with pytest.raises(InvalidTransitionError):
        ensure_helper_can_cancel(make_request(status=RequestStatus.OPEN), "h1")


def test_start_work_requires_assignment(make_request, assigned, now):
    assert start_work_changes(assigned, "h1", now)["status"] == RequestStatus.IN_PROGRESS

    with pytest.raises(NotAssignedHelperError):
        start_work_changes(assigned, "h2", now)
    with pytest.raises(InvalidTransitionError):
        start_work_changes(make_request(status=RequestStatus.OPEN), "h1", now)


@pytest.mark.parametrize("status", [RequestStatus.ASSIGNED, RequestStatus.IN_PROGRESS])
def test_complete_is_terminal(make_request, now, status):
    changes = completion_changes(make_request(status=status, assigned_helper_id="h1"), now)
    assert changes["status"] == RequestStatus.COMPLETED
    assert changes["broadcast_status"] == BroadcastStatus.COMPLETED


@pytest.mark.parametrize("status", [RequestStatus.DRAFT, RequestStatus.OPEN, RequestStatus.CANCELLED])
def test_complete_from_wrong_state(make_request, now, status):
    with pytest.raises(InvalidTransitionError):
        completion_changes(make_request(status=status), now)


def test_requester_cancel(make_request, assigned, now):
    changes = requester_cancellation_changes(assigned, now)
    assert changes["status"] == RequestStatus.CANCELLED
    assert changes["broadcast_status"] == BroadcastStatus.COMPLETED
    assert changes["assigned_helper_id"] is None

    with pytest.raises(InvalidTransitionError):
        requester_cancellation_changes(make_request(status=RequestStatus.COMPLETED), now)


def test_assignment_follows_status_through_the_lifecycle(make_request, now):
    request = make_request()
    assert request.has_consistent_assignment

    steps = [
        lambda r: broadcast_reset(r, now),
        lambda r: acceptance_changes("h1", now),
        lambda r: broadcast_reset(r, now),
        lambda r: acceptance_changes("h2", now),
        lambda r: start_work_changes(r, "h2", now),
        lambda r: completion_changes(r, now),
    ]
    for step in steps:
        request = replace(request, **step(request))
        assert request.has_consistent_assignment, request.status

    assert request.status == RequestStatus.COMPLETED
    assert request.assigned_helper_id == "h2"


def test_requester_cancel_keeps_assignment_consistent(assigned, now):
    cancelled = replace(assigned, **requester_cancellation_changes(assigned, now))
    assert cancelled.has_consistent_assignment


@pytest.mark.parametrize("status, helper_id", [
    (RequestStatus.OPEN, "h1"),
    (RequestStatus.ASSIGNED, None),
    (RequestStatus.IN_PROGRESS, None),
])
def test_inconsistent_assignment_is_detected(make_request, status, helper_id):
    assert not make_request(status=status, assigned_helper_id=helper_id).has_consistent_assignment
