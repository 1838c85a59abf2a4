"""
Purpose: Notification fan-out for a broadcast round.
What it does:
- For every ranked candidate: write the BroadcastNotification row for this
  round and push a job notification to the helper.
- Tell the requester how many helpers were reached.
- Tell the requester when a helper accepts, and about top recommendations.

Delivery is fire-and-forget per recipient: one failure is logged and counted,
never raised, and never undoes the others. Returns counts so the caller can
say "sent to N helpers".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence, Set, Tuple

from dispatch.errors import DispatchStoreError, PartialDeliveryError
from helpers.models import HelperProfile
from service_requests.models import ServiceRequest

from .models import BroadcastNotification, Notification, NotificationStatus

logger = logging.getLogger(__name__)


@dataclass
class FanoutResult:
    delivered: int = 0
    failed_recipients: List[str] = field(default_factory=list)
    skipped_duplicates: int = 0

    @property
    def failed(self) -> int:
        return len(self.failed_recipients)


def format_price(amount: float) -> str:
    if float(amount).is_integer():
        return str(int(amount))
    return f"{amount:.2f}"


def format_distance(distance_km: float) -> str:
    return f"{distance_km:.1f}km away" if distance_km > 0 else "Near you"


class NotificationFanout:
    """
    Writes broadcast rows and notifications through the store and delivers
    through the channel. Both are injected (see dispatch.ports).
    """

    def __init__(self, store, channel, logger: Optional[logging.Logger] = None):
        self.store = store
        self.channel = channel
        self.logger = logger or logging.getLogger(__name__)

    # ---- Public API ----

    def notify(
        self,
        request: ServiceRequest,
        ranked: Sequence,
        *,
        customer_name: str,
        rebroadcast: bool = False,
        now: Optional[datetime] = None,
    ) -> FanoutResult:
        """
        Fan a broadcast round out to `ranked` (RankedCandidate items, best
        first). Duplicate helpers within one round are sent once.
        """
        now = now or datetime.utcnow()
        result = FanoutResult()
        sent: List[Notification] = []
        seen: Set[Tuple[str, int, str]] = set()

        for item in ranked:
            candidate = item.candidate
            helper: HelperProfile = candidate.helper
            row = BroadcastNotification(
                request_id=request.id,
                helper_id=helper.id,
                round=request.broadcast_round,
                distance_km=round(candidate.distance_km, 2),
                sent_at=now,
            )
            if row.key in seen:
                result.skipped_duplicates += 1
                continue
            seen.add(row.key)

            notification = self._job_notification(
                request,
                helper.user_id,
                candidate.distance_km,
                item.match.match_reasons,
                customer_name=customer_name,
                rebroadcast=rebroadcast,
            )
            try:
                self.store.insert_broadcasts([row])
                delivered = self.channel.deliver(helper.user_id, notification)
            except Exception as exc:
                self.logger.error(
                    "delivery to helper failed",
                    extra={"request_id": request.id, "helper_id": helper.id, "error": str(exc)},
                )
                delivered = False

            if delivered:
                notification.status = NotificationStatus.SENT
                result.delivered += 1
            else:
                notification.status = NotificationStatus.FAILED
                result.failed_recipients.append(helper.id)
            sent.append(notification)

        self._record(sent, request.id)

        if result.failed_recipients:
            partial = PartialDeliveryError(
                f"{result.failed} of {result.failed + result.delivered} deliveries failed for request {request.id}",
                failed_recipients=result.failed_recipients,
            )
            self.logger.warning(partial.message, extra={"request_id": request.id,
                                                        "failed_recipients": partial.failed_recipients})

        self.logger.info(
            "broadcast fan-out complete",
            extra={"request_id": request.id, "round": request.broadcast_round, "delivered": result.delivered},
        )
        return result

    def notify_requester(
        self,
        request: ServiceRequest,
        helpers_notified: int,
        *,
        rebroadcast: bool = False,
    ) -> bool:
        category = request.category_name
        if rebroadcast:
            title = "🔄 Finding Another Helper"
            body = (f"Your {category} request is being sent to {helpers_notified} helpers. "
                    f"You'll receive responses soon!")
        else:
            title = "✅ Request Broadcasted Successfully!"
            body = (f"Your {category} request has been sent to {helpers_notified} qualified helpers. "
                    f"You'll receive responses soon!")

        notification = Notification(
            user_id=request.customer_id,
            request_id=request.id,
            title=title,
            body=body,
            data={
                "type": "job_rebroadcast" if rebroadcast else "request_broadcasted",
                "request_id": request.id,
                "helpers_notified": helpers_notified,
            },
        )
        return self._send_single(request.customer_id, notification)

    def notify_acceptance(self, request: ServiceRequest, helper: Optional[HelperProfile]) -> bool:
        helper_name = (helper.full_name if helper else "") or "A helper"
        notification = Notification(
            user_id=request.customer_id,
            request_id=request.id,
            title="🎉 Helper Found!",
            body=f"{helper_name} has accepted your request and is on the way!",
            data={
                "type": "helper_accepted",
                "request_id": request.id,
                "helper_id": request.assigned_helper_id,
                "helper_name": helper_name,
            },
        )
        return self._send_single(request.customer_id, notification)

    def notify_top_matches(self, customer_id: str, request_id: str, matches: Sequence) -> bool:
        """
        Tell the requester about their best recommended helpers (top 3).
        """
        top = list(matches)[:3]
        if not top:
            return False

        others = len(top) - 1
        body = top[0].helper_name or "A helper"
        if others:
            body += f" and {others} others match your request"
        else:
            body += " matches your request"

        notification = Notification(
            user_id=customer_id,
            request_id=request_id,
            title=f"{len(top)} perfect helpers found!",
            body=body,
            data={
                "type": "smart_match_found",
                "request_id": request_id,
                "helper_ids": [m.helper_id for m in top],
            },
        )
        return self._send_single(customer_id, notification)

    # ---- Internals ----

    def _job_notification(
        self,
        request: ServiceRequest,
        user_id: str,
        distance_km: float,
        match_reasons: Sequence[str],
        *,
        customer_name: str,
        rebroadcast: bool,
    ) -> Notification:
        category = request.category_name
        title = f"🔔 Job Available Again: {category}!" if rebroadcast else f"🔔 New {category} Job!"
        body = f"{customer_name} needs help! ₹{format_price(request.estimated_price)} • {format_distance(distance_km)}"

        return Notification(
            user_id=user_id,
            request_id=request.id,
            title=title,
            body=body,
            data={
                "type": "job_rebroadcast" if rebroadcast else "new_job_broadcast",
                "request_id": request.id,
                "category": category,
                "estimated_price": request.estimated_price,
                "urgency": request.urgency.value,
                "customer_name": customer_name,
                "address": request.service_address,
                "distance_km": f"{distance_km:.1f}",
                "match_reasons": list(match_reasons),
            },
        )

    def _send_single(self, recipient_id: str, notification: Notification) -> bool:
        try:
            delivered = self.channel.deliver(recipient_id, notification)
        except Exception as exc:
            self.logger.error(
                "delivery failed",
                extra={"recipient_id": recipient_id, "request_id": notification.request_id, "error": str(exc)},
            )
            delivered = False

        notification.status = NotificationStatus.SENT if delivered else NotificationStatus.FAILED
        self._record([notification], notification.request_id)
        return delivered

    def _record(self, notifications: List[Notification], request_id: str) -> None:
        if not notifications:
            return
        try:
            self.store.insert_notifications(notifications)
        except DispatchStoreError as exc:
            self.logger.error("could not record notifications",
                              extra={"request_id": request_id, "error": exc.message})
