"""Companion-radio connection over the ``meshcore`` library.

Wraps a ``meshcore.MeshCore`` serial session behind the gateway's
``DeviceConnectionProtocol``: library commands become coroutines returning
gateway models, and library push events are bridged onto a single
``asyncio.Queue`` consumed through ``listen_events()``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, AsyncIterator

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
from meshcore_gateway.core.time import to_micro_degrees

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHANNELS = 8
CHANNEL_SECRET_LENGTH = 16


class DeviceCommandError(Exception):
    """The device answered a command with an error."""


def import_meshcore() -> tuple[Any, Any]:
    try:
        from meshcore import EventType, MeshCore
    except ImportError as exc:
        raise RuntimeError("meshcore is not available. Install the `meshcore` package.") from exc
    return MeshCore, EventType


def _hex_bytes(value: Any) -> bytes | None:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    try:
        return bytes.fromhex(str(value))
    except ValueError:
        return None


def profile_from_contact(contact: dict[str, Any]) -> PeerProfile | None:
    """Convert a library contact (or advert) dict into a PeerProfile."""
    public_key = _hex_bytes(contact.get("public_key"))
    if not public_key:
        return None
    return PeerProfile(
        public_key=public_key,
        adv_name=contact.get("adv_name") or None,
        type=contact.get("type"),
        last_advert=contact.get("last_advert"),
        last_mod=contact.get("lastmod", contact.get("last_mod")),
        adv_lat=to_micro_degrees(contact.get("adv_lat")),
        adv_lon=to_micro_degrees(contact.get("adv_lon")),
        flags=contact.get("flags"),
        out_path_len=contact.get("out_path_len"),
        out_path=_hex_bytes(contact.get("out_path")),
    )


def contact_message_from_payload(payload: dict[str, Any]) -> ContactMessage:
    return ContactMessage(
        pubkey_prefix=_hex_bytes(payload.get("pubkey_prefix")) or b"",
        text=payload.get("text", ""),
        sender_timestamp=payload.get("sender_timestamp"),
        txt_type=payload.get("txt_type", 0),
        path_len=payload.get("path_len"),
    )


def channel_message_from_payload(payload: dict[str, Any]) -> ChannelMessage:
    return ChannelMessage(
        channel_idx=payload.get("channel_idx", 0),
        text=payload.get("text", ""),
        sender_timestamp=payload.get("sender_timestamp"),
        txt_type=payload.get("txt_type", 0),
        path_len=payload.get("path_len"),
    )


class MeshcoreConnection:
    """Serial companion radio driven by the ``meshcore`` library.

    The library reports transport loss (port closed, device unplugged) only
    through its ``DISCONNECTED`` push event, so a lost link surfaces here as
    ``DeviceEventType.DISCONNECTED`` carrying the library's payload.  This
    connection never emits ``DeviceEventType.ERROR``.  Error replies to
    commands are raised to the caller as :class:`DeviceCommandError`.
    """

    def __init__(self, port: str, baudrate: int = 115_200) -> None:
        self.port = port
        self.baudrate = baudrate
        self._mc: Any = None
        self._event_type: Any = None
        self._subscriptions: list[Any] = []
        self._events: asyncio.Queue[DeviceEvent] = asyncio.Queue()
        self._max_channels = DEFAULT_MAX_CHANNELS

    def _emit(self, event_type: DeviceEventType, payload: object = None) -> None:
        self._events.put_nowait(DeviceEvent(type=event_type, payload=payload))

    def _require(self) -> Any:
        if self._mc is None:
            raise RuntimeError("Device is not connected.")
        return self._mc

    async def _command(self, coro: Any) -> Any:
        result = await coro
        if result is not None and result.type == self._event_type.ERROR:
            raise DeviceCommandError(f"device returned error: {result.payload}")
        return result

    async def connect(self) -> None:
        MeshCore, EventType = import_meshcore()
        self._event_type = EventType
        await self._drop_session()

        logger.info("Connecting to %s @ %d", self.port, self.baudrate)
        mc = await MeshCore.create_serial(self.port, self.baudrate)
        if mc is None or not getattr(mc, "is_connected", True):
            raise ConnectionError(f"Could not connect to {self.port}")
        self._mc = mc

        query = await self._command(mc.commands.send_device_query())
        payload = getattr(query, "payload", None) or {}
        self._max_channels = payload.get("max_channels") or DEFAULT_MAX_CHANNELS

        self._subscribe()
        self._emit(DeviceEventType.CONNECTED)

    def _subscribe(self) -> None:
        EventType = self._event_type
        mc = self._mc

        async def on_disconnected(event: Any) -> None:
            self._emit(DeviceEventType.DISCONNECTED, getattr(event, "payload", None))

        async def on_messages_waiting(event: Any) -> None:
            self._emit(DeviceEventType.MESSAGE_WAITING)

        async def on_new_contact(event: Any) -> None:
            profile = profile_from_contact(event.payload or {})
            if profile is not None:
                self._emit(DeviceEventType.NEW_ADVERT, profile)

        async def on_advertisement(event: Any) -> None:
            public_key = _hex_bytes((event.payload or {}).get("public_key"))
            if public_key:
                self._emit(DeviceEventType.ADVERT, PeerProfile(public_key=public_key))

        self._subscriptions = [
            mc.subscribe(EventType.DISCONNECTED, on_disconnected),
            mc.subscribe(EventType.MESSAGES_WAITING, on_messages_waiting),
            mc.subscribe(EventType.NEW_CONTACT, on_new_contact),
            mc.subscribe(EventType.ADVERTISEMENT, on_advertisement),
        ]

    async def _drop_session(self) -> None:
        if self._mc is None:
            return
        for subscription in self._subscriptions:
            try:
                self._mc.unsubscribe(subscription)
            except Exception as exc:  # noqa: BLE001
                logger.debug("unsubscribe failed: %s", exc)
        self._subscriptions = []
        try:
            await self._mc.disconnect()
        except Exception as exc:  # noqa: BLE001
            logger.debug("disconnect of stale session failed: %s", exc)
        self._mc = None

    async def disconnect(self) -> None:
        await self._drop_session()

    async def reboot(self) -> None:
        await self._require().commands.reboot()

    async def sync_device_time(self) -> None:
        await self._command(self._require().commands.set_time(int(time.time())))

    async def send_flood_advert(self) -> None:
        await self._command(self._require().commands.send_advert(flood=True))

    async def send_zero_hop_advert(self) -> None:
        await self._command(self._require().commands.send_advert(flood=False))

    async def get_self_info(self) -> SelfInfo:
        info = self._require().self_info or {}
        return SelfInfo(
            name=info.get("name", ""),
            public_key=_hex_bytes(info.get("public_key")) or b"",
            type=info.get("adv_type"),
            adv_lat=to_micro_degrees(info.get("adv_lat")),
            adv_lon=to_micro_degrees(info.get("adv_lon")),
        )

    async def get_contacts(self) -> list[PeerProfile]:
        result = await self._command(self._require().commands.get_contacts())
        contacts = result.payload or {}
        profiles = (profile_from_contact(contact) for contact in contacts.values())
        return [profile for profile in profiles if profile is not None]

    async def find_contact_by_public_key_prefix(self, prefix: bytes) -> PeerProfile | None:
        prefix_hex = prefix.hex()
        for profile in await self.get_contacts():
            if profile.public_key_hex.startswith(prefix_hex):
                return profile
        return None

    async def get_channel(self, index: int) -> ChannelInfo | None:
        result = await self._require().commands.get_channel(index)
        if result is None or result.type == self._event_type.ERROR:
            return None
        payload = result.payload or {}
        return ChannelInfo(
            channel_idx=payload.get("channel_idx", index),
            name=payload.get("channel_name", ""),
            secret=_hex_bytes(payload.get("channel_secret")) or b"",
        )

    async def get_channels(self) -> list[ChannelInfo]:
        channels: list[ChannelInfo] = []
        for index in range(self._max_channels):
            channel = await self.get_channel(index)
            if channel is None:
                break
            channels.append(channel)
        return channels

    async def set_channel(self, index: int, name: str, secret: bytes) -> None:
        await self._command(self._require().commands.set_channel(index, name, secret))

    async def delete_channel(self, index: int) -> None:
        await self.set_channel(index, "", bytes(CHANNEL_SECRET_LENGTH))

    async def send_text_message(
        self, public_key: bytes, text: str, kind: int = TxtType.PLAIN
    ) -> None:
        commands = self._require().commands
        if kind == TxtType.CLI_DATA:
            await self._command(commands.send_cmd(public_key, text))
        else:
            await self._command(commands.send_msg(public_key, text))

    async def send_channel_text_message(self, channel_idx: int, text: str) -> None:
        await self._command(self._require().commands.send_chan_msg(channel_idx, text))

    async def get_waiting_messages(self) -> list[WaitingMessage]:
        EventType = self._event_type
        commands = self._require().commands
        waiting: list[WaitingMessage] = []
        while True:
            result = await commands.get_msg()
            if result is None or result.type in (EventType.NO_MORE_MSGS, EventType.ERROR):
                break
            if result.type == EventType.CONTACT_MSG_RECV:
                waiting.append(
                    WaitingMessage(contact_message=contact_message_from_payload(result.payload))
                )
            elif result.type == EventType.CHANNEL_MSG_RECV:
                waiting.append(
                    WaitingMessage(channel_message=channel_message_from_payload(result.payload))
                )
        return waiting

    async def listen_events(self) -> AsyncIterator[DeviceEvent]:
        while True:
            yield await self._events.get()
