"""
In-process delivery channel. Records what would have been pushed; used by the
simulation script and the tests.
"""

from __future__ import annotations

import threading
from typing import Iterable, List, Optional, Set, Tuple

from .models import Notification
from .push_client import PushDeliveryError


class InMemoryChannel:
    """
    Satisfies dispatch.ports.NotificationChannel.

    Recipients listed in `failing_recipients` raise PushDeliveryError, which is
    how tests exercise partial delivery.
    """

    def __init__(self, failing_recipients: Optional[Iterable[str]] = None):
        self.failing_recipients: Set[str] = set(failing_recipients or ())
        self.delivered: List[Tuple[str, Notification]] = []
        self._lock = threading.Lock()

    def deliver(self, recipient_id: str, notification: Notification) -> bool:
        if recipient_id in self.failing_recipients:
            raise PushDeliveryError(f"recipient {recipient_id} unreachable")
        with self._lock:
            self.delivered.append((recipient_id, notification))
        return True

    def recipients(self) -> List[str]:
        return [recipient for recipient, _ in self.delivered]

    def for_recipient(self, recipient_id: str) -> List[Notification]:
        return [n for recipient, n in self.delivered if recipient == recipient_id]
