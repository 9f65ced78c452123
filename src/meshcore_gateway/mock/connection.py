"""In-memory companion radio for development and tests."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator

from meshcore_gateway.core.enums import DeviceEventType, TxtType
from meshcore_gateway.core.models import (
    ChannelInfo,
    ChannelMessage,
    ContactMessage,
    DeviceEvent,
    PeerProfile,
    SelfInfo,
    WaitingMessage,
)

from .data import create_mock_channels, create_mock_contacts, create_mock_self_info

MOCK_MAX_CHANNELS = 8


class MockDeviceConnection:
    """Scriptable stand-in for :class:`MeshcoreConnection`.

    Contacts and channels are plain lists the caller may replace.  Every
    command is appended to ``calls``; outgoing texts are collected in
    ``sent_messages`` and ``sent_channel_messages``.  ``connect_failures``
    makes that many leading ``connect()`` calls raise ``ConnectionError``,
    and ``emit_connected=False`` simulates a device that never reports in.
    """

    def __init__(
        self,
        *,
        contacts: list[PeerProfile] | None = None,
        channels: list[ChannelInfo] | None = None,
        self_info: SelfInfo | None = None,
        connect_failures: int = 0,
        emit_connected: bool = True,
    ) -> None:
        self.contacts = list(create_mock_contacts() if contacts is None else contacts)
        self.channels = {
            ch.channel_idx: ch
            for ch in (create_mock_channels() if channels is None else channels)
        }
        self.self_info = self_info or create_mock_self_info()
        self.connect_failures = connect_failures
        self.emit_connected = emit_connected
        self.connected = False
        self.calls: list[str] = []
        self.sent_messages: list[tuple[bytes, str, int]] = []
        self.sent_channel_messages: list[tuple[int, str]] = []
        self.waiting: list[WaitingMessage] = []
        self._events: asyncio.Queue[DeviceEvent] = asyncio.Queue()

    def count(self, name: str) -> int:
        return self.calls.count(name)

    def _emit(self, event_type: DeviceEventType, payload: object = None) -> None:
        self._events.put_nowait(DeviceEvent(type=event_type, payload=payload))

    async def connect(self) -> None:
        self.calls.append("connect")
        if self.connect_failures > 0:
            self.connect_failures -= 1
            raise ConnectionError("mock device unavailable")
        self.connected = True
        if self.emit_connected:
            self._emit(DeviceEventType.CONNECTED)

    async def disconnect(self) -> None:
        self.calls.append("disconnect")
        self.connected = False

    async def reboot(self) -> None:
        self.calls.append("reboot")

    async def sync_device_time(self) -> None:
        self.calls.append("sync_device_time")

    async def send_flood_advert(self) -> None:
        self.calls.append("send_flood_advert")

    async def send_zero_hop_advert(self) -> None:
        self.calls.append("send_zero_hop_advert")

    async def get_self_info(self) -> SelfInfo:
        self.calls.append("get_self_info")
        return self.self_info

    async def get_contacts(self) -> list[PeerProfile]:
        self.calls.append("get_contacts")
        return list(self.contacts)

    async def find_contact_by_public_key_prefix(self, prefix: bytes) -> PeerProfile | None:
        self.calls.append("find_contact_by_public_key_prefix")
        for profile in self.contacts:
            if profile.public_key.startswith(prefix):
                return profile
        return None

    async def get_channel(self, index: int) -> ChannelInfo | None:
        self.calls.append("get_channel")
        if not 0 <= index < MOCK_MAX_CHANNELS:
            return None
        return self.channels.get(index) or ChannelInfo(channel_idx=index, name="", secret=bytes(16))

    async def get_channels(self) -> list[ChannelInfo]:
        self.calls.append("get_channels")
        return [
            self.channels.get(i) or ChannelInfo(channel_idx=i, name="", secret=bytes(16))
            for i in range(MOCK_MAX_CHANNELS)
        ]

    async def set_channel(self, index: int, name: str, secret: bytes) -> None:
        self.calls.append("set_channel")
        self.channels[index] = ChannelInfo(channel_idx=index, name=name, secret=secret)

    async def delete_channel(self, index: int) -> None:
        self.calls.append("delete_channel")
        self.channels.pop(index, None)

    async def send_text_message(
        self, public_key: bytes, text: str, kind: int = TxtType.PLAIN
    ) -> None:
        self.calls.append("send_text_message")
        self.sent_messages.append((public_key, text, kind))

    async def send_channel_text_message(self, channel_idx: int, text: str) -> None:
        self.calls.append("send_channel_text_message")
        self.sent_channel_messages.append((channel_idx, text))

    async def get_waiting_messages(self) -> list[WaitingMessage]:
        self.calls.append("get_waiting_messages")
        waiting, self.waiting = self.waiting, []
        return waiting

    async def listen_events(self) -> AsyncIterator[DeviceEvent]:
        while True:
            yield await self._events.get()

    # -- injection helpers ------------------------------------------------

    def inject_advert(self, public_key: bytes, *, new: bool = False) -> None:
        """Queue an advert; ``new`` mimics a first-time contact advert."""
        event_type = DeviceEventType.NEW_ADVERT if new else DeviceEventType.ADVERT
        self._emit(event_type, PeerProfile(public_key=public_key))

    def inject_message(self, message: ContactMessage | ChannelMessage) -> None:
        """Queue a message and signal that messages are waiting."""
        if isinstance(message, ContactMessage):
            self.waiting.append(WaitingMessage(contact_message=message))
        else:
            self.waiting.append(WaitingMessage(channel_message=message))
        self._emit(DeviceEventType.MESSAGE_WAITING)

    def inject_disconnect(self, error: object = None) -> None:
        self.connected = False
        if error is not None:
            self._emit(DeviceEventType.ERROR, error)
        else:
            self._emit(DeviceEventType.DISCONNECTED)
