"""Channel sender adapters."""

from delivery.services.channels.email import EmailChannelSender
from delivery.services.channels.gateway import GatewayChannelSender
from delivery.services.channels.in_app import InAppChannelSender, InAppMessage

__all__ = [
    "EmailChannelSender",
    "GatewayChannelSender",
    "InAppChannelSender",
    "InAppMessage",
]
