"""Delivery channels and the dispatcher that drives them."""

from .base import Channel, DeliveryContext, DeliveryResult
from .dispatcher import ALL_CHANNELS_FAILED, DispatchOutcome, Dispatcher
from .email import EmailChannel
from .push import PushChannel
from .realtime import RealtimeChannel, RealtimeSender
from .registry import ChannelRegistry

__all__ = [
    "ALL_CHANNELS_FAILED",
    "Channel",
    "ChannelRegistry",
    "DeliveryContext",
    "DeliveryResult",
    "DispatchOutcome",
    "Dispatcher",
    "EmailChannel",
    "PushChannel",
    "RealtimeChannel",
    "RealtimeSender",
]
