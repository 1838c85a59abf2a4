"""
Service request lifecycle rules.

    draft/open --broadcast--> open (broadcasting)
    open       --accept-----> assigned
    assigned   --helper cancels before start--> open (re-broadcast)
    assigned   --start------> in_progress
    assigned/in_progress --complete--> completed   (broadcast_status=completed, terminal)
    any non-terminal --requester cancels--> cancelled (terminal)

Each function validates a transition against the request as read and returns
the field changes to hand to DispatchStore.conditional_update_request. Nothing
here writes anything.
"""

from datetime import datetime, timedelta
from typing import Any, Dict

from service_requests.models import BroadcastStatus, RequestStatus, ServiceRequest

from ..errors import (
    InvalidTransitionError,
    NotAssignedHelperError,
    TerminalStateError,
)


def broadcast_reset(request: ServiceRequest, now: datetime, ttl_minutes: int = 30) -> Dict[str, Any]:
    """
    Put a request (new, or assigned-then-dropped) back into broadcasting.
    """
    if request.broadcast_status == BroadcastStatus.COMPLETED:
        raise TerminalStateError(f"Cannot re-broadcast a completed job ({request.id})")

    return {
        "status": RequestStatus.OPEN,
        "broadcast_status": BroadcastStatus.BROADCASTING,
        "assigned_helper_id": None,
        "helper_accepted_at": None,
        "work_started_at": None,
        "broadcast_expires_at": now + timedelta(minutes=ttl_minutes),
        "broadcast_round": request.broadcast_round + 1,
        "updated_at": now,
    }


def acceptance_guard() -> Dict[str, Any]:
    """
    Predicate the accept write is conditioned on. Evaluated by the store in
    the same statement as the write, never read-then-write.
    """
    return {
        "assigned_helper_id": None,
        "status": RequestStatus.OPEN,
        "broadcast_status": BroadcastStatus.BROADCASTING,
    }


def acceptance_changes(helper_id: str, now: datetime) -> Dict[str, Any]:
    return {
        "assigned_helper_id": helper_id,
        "status": RequestStatus.ASSIGNED,
        "broadcast_status": BroadcastStatus.ACCEPTED,
        "helper_accepted_at": now,
        "updated_at": now,
    }


def ensure_helper_can_cancel(request: ServiceRequest, helper_id: str) -> None:
    """
    Only the helper holding the assignment may cancel, and only before work
    has started. Later cancellation is a dispute, not a re-broadcast.
    """
    if request.status != RequestStatus.ASSIGNED or request.assigned_helper_id is None:
        raise InvalidTransitionError(
            f"Request {request.id} is not assigned (status={request.status.value})"
        )
    if request.assigned_helper_id != helper_id:
        raise NotAssignedHelperError(f"Helper {helper_id} does not hold request {request.id}")
    if request.work_started_at is not None:
        raise InvalidTransitionError(f"Work on request {request.id} has already started")


def start_work_changes(request: ServiceRequest, helper_id: str, now: datetime) -> Dict[str, Any]:
    if request.status != RequestStatus.ASSIGNED:
        raise InvalidTransitionError(
            f"Cannot start work on request {request.id} from {request.status.value}"
        )
    if request.assigned_helper_id != helper_id:
        raise NotAssignedHelperError(f"Helper {helper_id} does not hold request {request.id}")
    return {
        "status": RequestStatus.IN_PROGRESS,
        "work_started_at": now,
        "updated_at": now,
    }


def completion_changes(request: ServiceRequest, now: datetime) -> Dict[str, Any]:
    if request.status not in (RequestStatus.ASSIGNED, RequestStatus.IN_PROGRESS):
        raise InvalidTransitionError(
            f"Cannot complete request {request.id} from {request.status.value}"
        )
    return {
        "status": RequestStatus.COMPLETED,
        "broadcast_status": BroadcastStatus.COMPLETED,
        "updated_at": now,
    }


def requester_cancellation_changes(request: ServiceRequest, now: datetime) -> Dict[str, Any]:
    if request.status in (RequestStatus.COMPLETED, RequestStatus.CANCELLED):
        raise InvalidTransitionError(
            f"Request {request.id} is already {request.status.value}"
        )
    return {
        "status": RequestStatus.CANCELLED,
        "broadcast_status": BroadcastStatus.COMPLETED,
        "assigned_helper_id": None,
        "updated_at": now,
    }
