"""
Purpose: Orchestrator / decision pipeline (the "glue").
What it does:
Takes a service request id, flips the request into broadcasting, clears the
previous round's broadcast rows, filters + ranks helpers and hands the ranked
list to the notification fan-out. Also owns the follow-up transitions:
accept (first helper wins), decline, helper cancel + re-broadcast, start,
complete and requester cancel.

Every write to a request is a compare-and-swap at the store. Nothing here
holds a lock; the store is the only shared mutable resource.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from notifications.fanout import FanoutResult, NotificationFanout
from notifications.models import BroadcastRowStatus
from service_requests.models import BroadcastStatus, ServiceRequest

from .candidate_filter import filter_candidates
from .errors import AlreadyAssignedError, ConcurrentUpdateError, HelperBusyError, NotFoundError
from .policy import DispatchPolicy, default_dispatch_policy
from .ports import DispatchStore, NotificationChannel
from .scoring import MatchingCriteria, rank_for_dispatch
from .state_machines import (
    acceptance_changes,
    acceptance_guard,
    broadcast_reset,
    completion_changes,
    ensure_helper_can_cancel,
    requester_cancellation_changes,
    start_work_changes,
)

DEFAULT_CUSTOMER_NAME = "A customer"


@dataclass(frozen=True)
class BroadcastOutcome:
    request_id: str
    helpers_notified: int
    round: int
    message: str
    failed: int = 0


class Dispatcher:
    """
    Coordinates one request through broadcast and assignment.

    store and channel are injected (see dispatch.ports); there are no
    module-level clients.
    """

    def __init__(
        self,
        store: DispatchStore,
        channel: NotificationChannel,
        policy: Optional[DispatchPolicy] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.channel = channel
        self.policy = policy or default_dispatch_policy()
        self.logger = logger or logging.getLogger(__name__)
        self.fanout = NotificationFanout(store, channel, logger=self.logger)

    # ---- Broadcast ----

    def broadcast(self, request_id: str, now: Optional[datetime] = None) -> BroadcastOutcome:
        """
        First broadcast of a request (called on creation).
        """
        request = self._load(request_id)
        return self._run_broadcast(request, now or datetime.utcnow(), rebroadcast=False)

    def rebroadcast(self, request_id: str, now: Optional[datetime] = None) -> BroadcastOutcome:
        """
        Broadcast again with the previous round's rows cleared first.
        Raises TerminalStateError for completed requests before writing anything.
        """
        request = self._load(request_id)
        return self._run_broadcast(request, now or datetime.utcnow(), rebroadcast=True)

    def _run_broadcast(
        self,
        request: ServiceRequest,
        now: datetime,
        *,
        rebroadcast: bool,
        guard: Optional[Mapping[str, Any]] = None,
    ) -> BroadcastOutcome:
        # 1. terminal check (raises before any write)
        changes = broadcast_reset(request, now, self.policy.broadcast_ttl_minutes)

        # 2. notification copy context
        customer_name = self.store.get_customer_name(request.customer_id) or DEFAULT_CUSTOMER_NAME

        # candidate filtering only reads; doing it before the write keeps an
        # invalid request from being flipped into broadcasting
        snapshot = self.store.list_eligible_helpers()
        candidates = filter_candidates(request, snapshot, self.policy)

        # 3. conditional reset
        expected: Dict[str, Any] = {"version": request.version}
        expected.update(guard or {})
        updated = self.store.conditional_update_request(request.id, expected, changes)
        if updated is None:
            self.logger.warning("broadcast lost its guard", extra={"request_id": request.id})
            raise ConcurrentUpdateError(f"Service request {request.id} changed during broadcast")

        # 4. stale rows from earlier rounds
        deleted = self.store.delete_broadcasts(request.id)

        # 5. ranking
        criteria = MatchingCriteria.from_request(updated)
        ranked = rank_for_dispatch(candidates, criteria, by=self.policy.dispatch_sort, now=now)

        # 6. fan-out + requester summary
        result: FanoutResult = self.fanout.notify(
            updated, ranked, customer_name=customer_name, rebroadcast=rebroadcast, now=now
        )

        # an accept or cancel can land between the reset and the fan-out;
        # rows written after it must not stay open
        current = self.store.get_request(updated.id)
        if current is not None and current.broadcast_status == BroadcastStatus.BROADCASTING:
            self.fanout.notify_requester(updated, result.delivered, rebroadcast=rebroadcast)
        else:
            self._close_late_rows(current or updated)

        self.logger.info(
            "request broadcast",
            extra={
                "request_id": updated.id,
                "round": updated.broadcast_round,
                "candidates": len(candidates),
                "delivered": result.delivered,
                "failed": result.failed,
                "stale_rows_deleted": deleted,
            },
        )

        if rebroadcast:
            message = f"Job re-broadcasted to {result.delivered} helpers"
        else:
            message = f"Request broadcasted to {result.delivered} qualified helpers!"

        return BroadcastOutcome(
            request_id=updated.id,
            helpers_notified=result.delivered,
            round=updated.broadcast_round,
            message=message,
            failed=result.failed,
        )

    # ---- Helper-side transitions ----

    def accept(self, request_id: str, helper_id: str, now: Optional[datetime] = None) -> ServiceRequest:
        """
        First helper wins. The write is conditioned on the request still being
        open, broadcasting and unassigned; losers get AlreadyAssignedError.
        Unknown helpers and helpers already on a job are turned away before
        the write.
        """
        now = now or datetime.utcnow()
        helper = self.store.get_helper(helper_id)
        if helper is None:
            raise NotFoundError(f"Helper profile {helper_id} not found")
        if helper.is_on_job:
            raise HelperBusyError(f"Helper {helper_id} is currently on a job")

        updated = self.store.conditional_update_request(
            request_id, acceptance_guard(), acceptance_changes(helper_id, now)
        )

        if updated is None:
            current = self.store.get_request(request_id)
            if current is None:
                raise NotFoundError(f"Service request {request_id} not found")
            self.logger.info(
                "accept lost",
                extra={"request_id": request_id, "helper_id": helper_id,
                       "assigned_helper_id": current.assigned_helper_id},
            )
            raise AlreadyAssignedError(f"Service request {request_id} is no longer available")

        self.store.mark_broadcasts(request_id, BroadcastRowStatus.ACCEPTED, helper_id=helper_id, responded_at=now)
        self.store.mark_broadcasts(request_id, BroadcastRowStatus.EXPIRED, exclude_helper_id=helper_id)

        self.fanout.notify_acceptance(updated, helper)

        self.logger.info("request accepted", extra={"request_id": request_id, "helper_id": helper_id})
        return updated

    def decline(self, request_id: str, helper_id: str, now: Optional[datetime] = None) -> int:
        self._load(request_id)
        return self.store.mark_broadcasts(
            request_id, BroadcastRowStatus.DECLINED, helper_id=helper_id, responded_at=now or datetime.utcnow()
        )

    def cancel_by_helper(self, request_id: str, helper_id: str, now: Optional[datetime] = None) -> BroadcastOutcome:
        """
        The assigned helper drops the job before starting it; the request goes
        straight back out with re-broadcast copy.
        """
        request = self._load(request_id)
        ensure_helper_can_cancel(request, helper_id)
        self.logger.info("helper cancelled, re-broadcasting",
                         extra={"request_id": request_id, "helper_id": helper_id})
        return self._run_broadcast(
            request,
            now or datetime.utcnow(),
            rebroadcast=True,
            guard={"assigned_helper_id": helper_id, "work_started_at": None},
        )

    def start_work(self, request_id: str, helper_id: str, now: Optional[datetime] = None) -> ServiceRequest:
        request = self._load(request_id)
        changes = start_work_changes(request, helper_id, now or datetime.utcnow())
        return self._apply(request, changes)

    # ---- Terminal transitions ----

    def complete(self, request_id: str, now: Optional[datetime] = None) -> ServiceRequest:
        request = self._load(request_id)
        return self._apply(request, completion_changes(request, now or datetime.utcnow()))

    def cancel_request(self, request_id: str, now: Optional[datetime] = None) -> ServiceRequest:
        now = now or datetime.utcnow()
        request = self._load(request_id)
        updated = self._apply(request, requester_cancellation_changes(request, now))
        self.store.mark_broadcasts(request_id, BroadcastRowStatus.EXPIRED)
        return updated

    # ---- Internals ----

    def _load(self, request_id: str) -> ServiceRequest:
        request = self.store.get_request(request_id)
        if request is None:
            raise NotFoundError(f"Service request {request_id} not found")
        return request

    def _close_late_rows(self, request: ServiceRequest) -> None:
        winner = request.assigned_helper_id
        if winner is not None:
            self.store.mark_broadcasts(request.id, BroadcastRowStatus.ACCEPTED, helper_id=winner,
                                       responded_at=request.helper_accepted_at)
        expired = self.store.mark_broadcasts(request.id, BroadcastRowStatus.EXPIRED, exclude_helper_id=winner)
        self.logger.info(
            "broadcast overtaken during fan-out",
            extra={"request_id": request.id, "status": request.status.value, "rows_expired": expired},
        )

    def _apply(self, request: ServiceRequest, changes: Mapping[str, Any]) -> ServiceRequest:
        updated = self.store.conditional_update_request(request.id, {"version": request.version}, changes)
        if updated is None:
            raise ConcurrentUpdateError(f"Service request {request.id} changed concurrently")
        self.logger.info("request updated",
                         extra={"request_id": request.id, "status": updated.status.value})
        return updated
