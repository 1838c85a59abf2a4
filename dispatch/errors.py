"""
Purpose: Error taxonomy for the dispatch pipeline.

Every error carries a stable `kind` string and the HTTP-style status the API
layer answers with. PartialDeliveryError is informational: it is logged by the
fan-out and never raised out of a broadcast.
"""

from typing import Iterable, List


class DispatchError(Exception):
    """Base class for all dispatch failures."""
    kind = "internal"
    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(DispatchError):
    """Referenced request or helper does not exist."""
    kind = "not_found"
    http_status = 404


class TerminalStateError(DispatchError):
    """Broadcast attempted on a request whose broadcast_status is completed."""
    kind = "terminal_state"
    http_status = 400


class AlreadyAssignedError(DispatchError):
    """Accept lost the race: another helper already holds the request."""
    kind = "already_assigned"
    http_status = 409


class HelperBusyError(DispatchError):
    """The accepting helper is already working another job."""
    kind = "helper_busy"
    http_status = 409


class InvalidRequestError(DispatchError):
    """Request is missing the coordinates or category the filter needs."""
    kind = "invalid_request"
    http_status = 400


class InvalidTransitionError(DispatchError):
    """Raised when an invalid request lifecycle transition is attempted."""
    kind = "invalid_transition"
    http_status = 400


class NotAssignedHelperError(DispatchError):
    """A helper tried to act on a request assigned to someone else."""
    kind = "not_assigned_helper"
    http_status = 403


class ConcurrentUpdateError(DispatchError):
    """The request changed between read and conditional write."""
    kind = "concurrent_update"
    http_status = 409


class DispatchStoreError(DispatchError):
    """The persistence layer failed to apply a read or write."""
    kind = "store_failure"
    http_status = 500


class PartialDeliveryError(DispatchError):
    """Some, but not necessarily all, notification deliveries failed."""
    kind = "partial_delivery"
    http_status = 200

    def __init__(self, message: str, failed_recipients: Iterable[str] = ()):
        super().__init__(message)
        self.failed_recipients: List[str] = list(failed_recipients)
