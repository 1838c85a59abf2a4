"""
Wires the dispatch core to the Django store and the configured delivery
channel. Views call build_dispatcher() per request; nothing is cached at
module level.
"""

import logging

from django.conf import settings

from dispatch.dispatcher import Dispatcher
from dispatch.policy import dispatch_policy_from_env
from notifications.channels import InMemoryChannel
from notifications.push_client import PushGatewayClient

from .store import DjangoDispatchStore

logger = logging.getLogger(__name__)


def build_channel():
    base_url = getattr(settings, "PUSH_GATEWAY_URL", None)
    if base_url:
        return PushGatewayClient(base_url=base_url, timeout=settings.PUSH_GATEWAY_TIMEOUT)
    # local development: notifications are recorded, not pushed
    logger.warning("PUSH_GATEWAY_URL not set, notifications stay in-process")
    return InMemoryChannel()


def build_dispatcher() -> Dispatcher:
    return Dispatcher(
        store=DjangoDispatchStore(),
        channel=build_channel(),
        policy=dispatch_policy_from_env(),
        logger=logging.getLogger("dispatch"),
    )
