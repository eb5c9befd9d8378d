"""Channel name -> channel implementation lookup."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from calendar_notifier.features.notifications.channels.base import Channel


class ChannelRegistry:
    """Holds the channels available to the dispatcher.

    Example:
        registry = ChannelRegistry([PushChannel(push), EmailChannel(email)])
        registry.get("push")
    """

    def __init__(self, channels: Iterable[Channel] = ()) -> None:
        self._channels: dict[str, Channel] = {}
        for channel in channels:
            self.register(channel)

    def register(self, channel: Channel) -> None:
        self._channels[channel.name] = channel

    def get(self, name: str) -> Channel | None:
        return self._channels.get(name)

    @property
    def names(self) -> list[str]:
        return sorted(self._channels)

    def __contains__(self, name: object) -> bool:
        return name in self._channels
