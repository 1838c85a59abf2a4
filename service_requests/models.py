"""
Purpose: Domain models for the Service Requests capability.
What it does:
- Defines core data structures:
- ServiceRequest (id, requester, category, location, price, urgency, lifecycle fields)
- Category (id, name, slug, parent)

Defines enums/constants:
- RequestStatus = DRAFT | OPEN | ASSIGNED | IN_PROGRESS | COMPLETED | CANCELLED
- BroadcastStatus = NONE | BROADCASTING | ACCEPTED | COMPLETED
- Urgency = IMMEDIATE | SAME_DAY | SCHEDULED | FLEXIBLE

Rule: No persistence, no dispatch logic. Models only.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

LatLon = Tuple[float, float]


class RequestStatus(str, Enum):
    DRAFT = "draft"
    OPEN = "open"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BroadcastStatus(str, Enum):
    NONE = "none"
    BROADCASTING = "broadcasting"
    ACCEPTED = "accepted"
    # terminal: no further broadcasting
    COMPLETED = "completed"


class Urgency(str, Enum):
    IMMEDIATE = "immediate"
    SAME_DAY = "same_day"
    SCHEDULED = "scheduled"
    FLEXIBLE = "flexible"


# statuses that must carry an assigned_helper_id
ASSIGNED_STATES = frozenset(
    {RequestStatus.ASSIGNED, RequestStatus.IN_PROGRESS, RequestStatus.COMPLETED}
)


@dataclass(frozen=True)
class Category:
    """
    Service category metadata used for category matching and notification copy.
    """
    id: str
    name: str = "Service"
    slug: str = ""
    parent_id: Optional[str] = None


@dataclass
class ServiceRequest:
    """
    A unit of work posted by a requester.

    `version` is bumped by the store on every successful conditional update
    and is what the dispatcher guards its writes with.
    """
    id: str
    customer_id: str
    category_id: str
    location: Optional[LatLon]

    category: Optional[Category] = None
    title: str = ""
    description: str = ""
    service_address: str = ""
    estimated_price: float = 0.0
    urgency: Urgency = Urgency.FLEXIBLE
    budget_range: Optional[Tuple[float, float]] = None

    status: RequestStatus = RequestStatus.DRAFT
    broadcast_status: BroadcastStatus = BroadcastStatus.NONE
    assigned_helper_id: Optional[str] = None
    helper_accepted_at: Optional[datetime] = None
    work_started_at: Optional[datetime] = None
    broadcast_expires_at: Optional[datetime] = None
    # bumped on every Broadcast; scopes BroadcastNotification rows
    broadcast_round: int = 0

    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None
    version: int = 0

    @property
    def category_name(self) -> str:
        return self.category.name if self.category and self.category.name else "Service"

    @property
    def category_slug(self) -> str:
        return self.category.slug if self.category else ""

    @property
    def category_parent_id(self) -> Optional[str]:
        return self.category.parent_id if self.category else None

    @property
    def is_terminal(self) -> bool:
        return self.broadcast_status == BroadcastStatus.COMPLETED

    @property
    def has_consistent_assignment(self) -> bool:
        """assigned_helper_id is set exactly when status is assigned or later."""
        return (self.assigned_helper_id is not None) == (self.status in ASSIGNED_STATES)
