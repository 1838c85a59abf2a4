"""
Purpose: The two collaborators the dispatcher is handed at construction.
What it does:
- DispatchStore: persistence boundary (requests, helper snapshot, broadcast
  rows, notification rows). Every method either applies fully or raises
  DispatchStoreError.
- NotificationChannel: per-recipient delivery (push gateway, in-app feed...).

Rule: Interfaces only. Implementations live in store/ and notifications/ and
in the Django backend.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Mapping, Optional, Protocol, Sequence

from helpers.models import HelperProfile
from notifications.models import BroadcastNotification, BroadcastRowStatus, Notification
from service_requests.models import ServiceRequest


class DispatchStore(Protocol):

    def get_request(self, request_id: str) -> Optional[ServiceRequest]:
        ...

    def get_customer_name(self, customer_id: str) -> Optional[str]:
        ...

    def conditional_update_request(
        self,
        request_id: str,
        expected: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> Optional[ServiceRequest]:
        """
        Compare-and-swap on a single request row.

        Applies `changes` only if every field in `expected` currently holds the
        given value (None means "IS NULL"), bumping `version` in the same
        write. Returns the updated request, or None when the guard did not
        hold (including when the row does not exist).
        """
        ...

    def list_eligible_helpers(self) -> List[HelperProfile]:
        """Approved helpers, not on a job, online or available-now."""
        ...

    def get_helper(self, helper_id: str) -> Optional[HelperProfile]:
        ...

    def insert_broadcasts(self, rows: Sequence[BroadcastNotification]) -> int:
        """Insert rows, skipping any (request, round, helper) already present."""
        ...

    def delete_broadcasts(self, request_id: str) -> int:
        ...

    def list_broadcasts(self, request_id: str) -> List[BroadcastNotification]:
        ...

    def mark_broadcasts(
        self,
        request_id: str,
        status: BroadcastRowStatus,
        *,
        helper_id: Optional[str] = None,
        exclude_helper_id: Optional[str] = None,
        responded_at: Optional[datetime] = None,
    ) -> int:
        ...

    def insert_notifications(self, rows: Sequence[Notification]) -> int:
        ...


class NotificationChannel(Protocol):

    def deliver(self, recipient_id: str, notification: Notification) -> bool:
        """True when the recipient was reached. May raise; callers isolate."""
        ...

