from .request_state import (
    broadcast_reset,
    acceptance_guard,
    acceptance_changes,
    ensure_helper_can_cancel,
    start_work_changes,
    completion_changes,
    requester_cancellation_changes,
)

__all__ = [
    "broadcast_reset",
    "acceptance_guard",
    "acceptance_changes",
    "ensure_helper_can_cancel",
    "start_work_changes",
    "completion_changes",
    "requester_cancellation_changes",
]
