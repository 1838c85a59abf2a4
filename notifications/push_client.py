#Purpose: The push gateway "adapter/client".
#Sole responsibility: talk to the push gateway via HTTP and report per-recipient success.
#Encapsulates gateway-specific details:
#URL construction (/v1/push)
#timeouts/error handling
#payload shape
#It should not contain dispatch rules or scoring.


from dotenv import load_dotenv
import logging
import os

import requests

from .models import Notification

# Read push gateway base URL from environment
# Example in .env:
# PUSH_GATEWAY_URL=https://push.internal.example
load_dotenv()
PUSH_GATEWAY_URL = os.getenv("PUSH_GATEWAY_URL")

logger = logging.getLogger(__name__)


class PushDeliveryError(Exception):
    """Custom exception for push gateway failures."""
    pass


class PushGatewayClient:
    """
    Push Gateway Adapter / Client

    Sole responsibility:
    - POST one notification per recipient
    - Raise PushDeliveryError on transport errors or non-2xx answers

    Satisfies dispatch.ports.NotificationChannel.
    """
    def __init__(self, base_url: str = None, timeout: float = 5, session: requests.Session = None):
        self.base_url = base_url or PUSH_GATEWAY_URL
        self.timeout = timeout #how long to wait for the gateway before giving up
        self.session = session or requests.Session()

        if not self.base_url:
            raise ValueError("Push gateway URL not set. Please set PUSH_GATEWAY_URL in the .env file.")

    def deliver(self, recipient_id: str, notification: Notification) -> bool:
        """
        Send `notification` to `recipient_id`.

        Returns True when the gateway accepted it.
        """
        url = f"{self.base_url.rstrip('/')}/v1/push"
        payload = notification.as_payload()
        payload["recipient_id"] = recipient_id

        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise PushDeliveryError(f"Push gateway unreachable: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise PushDeliveryError(
                f"Push gateway rejected notification for {recipient_id}: HTTP {response.status_code}"
            )

        logger.debug("push delivered", extra={"recipient_id": recipient_id, "request_id": notification.request_id})
        return True
