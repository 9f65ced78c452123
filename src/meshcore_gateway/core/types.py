"""Protocol stubs for the gateway's collaborators.

The device connection, record store and AI gate are consumed through these
interfaces so the pipeline and bot layers can run against the real
``meshcore`` adapter, the in-memory mock, or a test double alike.
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Awaitable, Callable, Protocol

from .models import (
    AdvertRecord,
    ChannelInfo,
    Completion,
    DeviceEvent,
    MessageRecord,
    PeerProfile,
    SelfInfo,
    WaitingMessage,
)

# Rows returned by record store reads
RecordDict = dict[str, Any]

# Fetches the device's full contact list (used as a cache-miss fallback)
ContactsFetcher = Callable[[], Awaitable[list[PeerProfile]]]


class DeviceConnectionProtocol(Protocol):
    """Companion radio connection as seen by the gateway."""

    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...

    async def reboot(self) -> None: ...

    async def sync_device_time(self) -> None: ...

    async def send_flood_advert(self) -> None: ...

    async def send_zero_hop_advert(self) -> None: ...

    async def get_self_info(self) -> SelfInfo: ...

    async def get_contacts(self) -> list[PeerProfile]: ...

    async def get_channels(self) -> list[ChannelInfo]: ...

    async def get_channel(self, index: int) -> ChannelInfo | None: ...

    async def set_channel(self, index: int, name: str, secret: bytes) -> None: ...

    async def delete_channel(self, index: int) -> None: ...

    async def find_contact_by_public_key_prefix(self, prefix: bytes) -> PeerProfile | None: ...

    async def send_text_message(self, public_key: bytes, text: str, kind: int) -> None: ...

    async def send_channel_text_message(self, channel_idx: int, text: str) -> None: ...

    async def get_waiting_messages(self) -> list[WaitingMessage]: ...

    def listen_events(self) -> AsyncIterator[DeviceEvent]: ...


class RecordStoreProtocol(Protocol):
    def upsert_advert(self, record: AdvertRecord) -> None: ...

    def save_message(self, record: MessageRecord) -> None: ...

    def find_adverts_by_name(self, adv_name: str, limit: int = 3) -> list[RecordDict]: ...

    def get_adverts(self) -> list[RecordDict]: ...

    def get_messages(self, limit: int = 100) -> list[RecordDict]: ...


class CompletionClientProtocol(Protocol):
    async def complete(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
    ) -> Completion: ...
