"""Push notification transports."""

from .client import ConsolePushSender, HttpPushSender, PushDeliveryResult, PushSender, build_push_sender

__all__ = [
    "ConsolePushSender",
    "HttpPushSender",
    "PushDeliveryResult",
    "PushSender",
    "build_push_sender",
]
