"""Downstream delivery package (webhook client and batch dispatcher)."""

from .dispatcher import DeliveryDispatcher, build_payload
from .webhook import WebhookClient

__all__ = ["DeliveryDispatcher", "WebhookClient", "build_payload"]
