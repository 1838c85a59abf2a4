"""
Purpose: Records produced by the notification fan-out.
What it does:
- BroadcastNotification: one row per (request, broadcast round, helper),
  the thing a helper's app renders as an actionable job card.
- Notification: generic push / in-app message handed to a delivery channel.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class BroadcastRowStatus(str, Enum):
    SENT = "sent"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


class NotificationStatus(str, Enum):
    QUEUED = "queued"
    SENT = "sent"
    FAILED = "failed"
    READ = "read"


@dataclass(frozen=True)
class BroadcastNotification:
    request_id: str
    helper_id: str
    round: int
    distance_km: float
    status: BroadcastRowStatus = BroadcastRowStatus.SENT
    sent_at: datetime = field(default_factory=datetime.utcnow)
    responded_at: Optional[datetime] = None

    @property
    def key(self) -> Tuple[str, int, str]:
        return (self.request_id, self.round, self.helper_id)


@dataclass
class Notification:
    user_id: str
    request_id: str
    title: str
    body: str
    data: Dict[str, Any] = field(default_factory=dict)
    channel: str = "push"
    status: NotificationStatus = NotificationStatus.QUEUED

    def as_payload(self) -> Dict[str, Any]:
        """Wire shape handed to push gateways."""
        return {
            "user_id": self.user_id,
            "request_id": self.request_id,
            "channel": self.channel,
            "title": self.title,
            "body": self.body,
            "data": self.data,
        }
