"""
Purpose: In-memory implementation of dispatch.ports.DispatchStore.
What it does:
- Owns dicts of requests, helpers, requester names, broadcast rows and
  notification rows.
- conditional_update_request is a compare-and-swap serialised by one lock,
  so two concurrent accepts can never both succeed.
- Hands out copies; callers never hold a reference into store state.

Used by the tests and the simulation script. The Django backend has its own
adapter (dispatch_api.store).
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Tuple

from dispatch.errors import DispatchStoreError
from helpers.models import HelperProfile
from notifications.models import BroadcastNotification, BroadcastRowStatus, Notification
from service_requests.models import ServiceRequest

logger = logging.getLogger(__name__)


@dataclass
class StoreStats:
    requests: int
    helpers: int
    broadcasts: int
    notifications: int


@dataclass
class InMemoryDispatchStore:
    """
    Dict-backed store.

    `failing_operations` names methods that raise DispatchStoreError, which is
    how tests simulate the database going away mid-broadcast.
    """
    _requests: Dict[str, ServiceRequest] = field(default_factory=dict)
    _helpers: Dict[str, HelperProfile] = field(default_factory=dict)
    _customer_names: Dict[str, str] = field(default_factory=dict)
    _broadcasts: Dict[Tuple[str, int, str], BroadcastNotification] = field(default_factory=dict)
    _notifications: List[Notification] = field(default_factory=list)

    failing_operations: Set[str] = field(default_factory=set)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    # --- Seeding ---

    def add_request(self, request: ServiceRequest) -> None:
        with self._lock:
            self._requests[request.id] = replace(request)

    def add_helper(self, helper: HelperProfile) -> None:
        with self._lock:
            self._helpers[helper.id] = helper

    def add_helpers(self, helpers: Sequence[HelperProfile]) -> None:
        for helper in helpers:
            self.add_helper(helper)

    def set_customer_name(self, customer_id: str, name: str) -> None:
        self._customer_names[customer_id] = name

    # --- Requests ---

    def get_request(self, request_id: str) -> Optional[ServiceRequest]:
        self._check("get_request")
        with self._lock:
            request = self._requests.get(request_id)
            return replace(request) if request else None

    def get_customer_name(self, customer_id: str) -> Optional[str]:
        self._check("get_customer_name")
        return self._customer_names.get(customer_id)

    def conditional_update_request(
        self,
        request_id: str,
        expected: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> Optional[ServiceRequest]:
        self._check("conditional_update_request")
        with self._lock:
            current = self._requests.get(request_id)
            if current is None:
                return None

            for name, value in expected.items():
                actual = getattr(current, name)
                if value is None:
                    if actual is not None:
                        return None
                elif actual != value:
                    return None

            updated = replace(current, **changes, version=current.version + 1)
            self._requests[request_id] = updated
            return replace(updated)

    # --- Helpers ---

    def list_eligible_helpers(self) -> List[HelperProfile]:
        self._check("list_eligible_helpers")
        with self._lock:
            return [h for h in self._helpers.values() if h.is_dispatchable]

    def list_helpers(self) -> List[HelperProfile]:
        with self._lock:
            return list(self._helpers.values())

    def get_helper(self, helper_id: str) -> Optional[HelperProfile]:
        self._check("get_helper")
        return self._helpers.get(helper_id)

    # --- Broadcast rows ---

    def insert_broadcasts(self, rows: Sequence[BroadcastNotification]) -> int:
        self._check("insert_broadcasts")
        inserted = 0
        with self._lock:
            for row in rows:
                if row.key in self._broadcasts:
                    continue
                self._broadcasts[row.key] = row
                inserted += 1
        return inserted

    def delete_broadcasts(self, request_id: str) -> int:
        self._check("delete_broadcasts")
        with self._lock:
            keys = [key for key in self._broadcasts if key[0] == request_id]
            for key in keys:
                del self._broadcasts[key]
        return len(keys)

    def list_broadcasts(self, request_id: str) -> List[BroadcastNotification]:
        self._check("list_broadcasts")
        with self._lock:
            rows = [row for key, row in self._broadcasts.items() if key[0] == request_id]
        return sorted(rows, key=lambda row: (row.round, row.helper_id))

    def mark_broadcasts(
        self,
        request_id: str,
        status: BroadcastRowStatus,
        *,
        helper_id: Optional[str] = None,
        exclude_helper_id: Optional[str] = None,
        responded_at: Optional[datetime] = None,
    ) -> int:
        self._check("mark_broadcasts")
        updated = 0
        with self._lock:
            for key, row in list(self._broadcasts.items()):
                if key[0] != request_id:
                    continue
                if helper_id is not None and row.helper_id != helper_id:
                    continue
                if exclude_helper_id is not None and row.helper_id == exclude_helper_id:
                    continue
                self._broadcasts[key] = replace(row, status=status, responded_at=responded_at)
                updated += 1
        return updated

    # --- Notifications ---

    def insert_notifications(self, rows: Sequence[Notification]) -> int:
        self._check("insert_notifications")
        with self._lock:
            self._notifications.extend(rows)
        return len(rows)

    def notifications_for(self, user_id: str) -> List[Notification]:
        return [n for n in self._notifications if n.user_id == user_id]

    def stats(self) -> StoreStats:
        return StoreStats(
            requests=len(self._requests),
            helpers=len(self._helpers),
            broadcasts=len(self._broadcasts),
            notifications=len(self._notifications),
        )

    # --- Failure injection ---

    def _check(self, operation: str) -> None:
        if operation in self.failing_operations:
            logger.error("store operation failed", extra={"operation": operation})
            raise DispatchStoreError(f"store operation {operation} failed")
