#Marks notifications as a package.
#Re-exports the fan-out, the record models and the delivery channels.

from .models import BroadcastNotification, BroadcastRowStatus, Notification, NotificationStatus
from .push_client import PushGatewayClient, PushDeliveryError
from .channels import InMemoryChannel
from .fanout import NotificationFanout, FanoutResult

__all__ = [
    "BroadcastNotification",
    "BroadcastRowStatus",
    "Notification",
    "NotificationStatus",
    "PushGatewayClient",
    "PushDeliveryError",
    "InMemoryChannel",
    "NotificationFanout",
    "FanoutResult",
]
