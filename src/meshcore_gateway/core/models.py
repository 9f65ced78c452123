from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime


@dataclass(slots=True)
class PeerProfile:
    """Last-known profile of a mesh peer, keyed by its public key.

    Any field except ``public_key`` may be ``None`` when the source
    (an advert, a contact read) did not carry it.
    """

    public_key: bytes
    adv_name: str | None = None
    type: int | None = None
    last_advert: int | None = None
    last_mod: int | None = None
    adv_lat: int | None = None  # micro-degrees
    adv_lon: int | None = None  # micro-degrees
    flags: int | None = None
    out_path_len: int | None = None
    out_path: bytes | None = None

    @property
    def public_key_hex(self) -> str:
        return self.public_key.hex()


@dataclass(slots=True)
class SelfInfo:
    name: str
    public_key: bytes
    type: int | None = None
    adv_lat: int | None = None
    adv_lon: int | None = None


@dataclass(slots=True)
class ChannelInfo:
    channel_idx: int
    name: str
    secret: bytes = b""


@dataclass(slots=True)
class ContactMessage:
    """Direct message as delivered by the device (sender known by key prefix only)."""

    pubkey_prefix: bytes
    text: str
    sender_timestamp: int | None = None
    txt_type: int = 0
    path_len: int | None = None


@dataclass(slots=True)
class ChannelMessage:
    channel_idx: int
    text: str
    sender_timestamp: int | None = None
    txt_type: int = 0
    path_len: int | None = None


@dataclass(slots=True)
class WaitingMessage:
    """One entry of a waiting-message drain; exactly one side is set."""

    contact_message: ContactMessage | None = None
    channel_message: ChannelMessage | None = None


@dataclass(slots=True)
class DeviceEvent:
    type: str
    payload: object = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(slots=True)
class AdvertEvent:
    """Advert merged against the directory; raw values plus rendered fields."""

    public_key: bytes
    type: int | None = None
    type_name: str | None = None
    adv_name: str | None = None
    last_advert: int | None = None
    last_mod: int | None = None
    adv_lat: int | None = None
    adv_lon: int | None = None
    last_advert_text: str = ""
    last_mod_text: str = ""
    adv_lat_text: str = ""
    adv_lon_text: str = ""

    @property
    def public_key_hex(self) -> str:
        return self.public_key.hex()

    def to_profile(self) -> PeerProfile:
        return PeerProfile(
            public_key=self.public_key,
            adv_name=self.adv_name,
            type=self.type,
            last_advert=self.last_advert,
            last_mod=self.last_mod,
            adv_lat=self.adv_lat,
            adv_lon=self.adv_lon,
        )


@dataclass(slots=True)
class ContactMessageEvent:
    public_key: str | None
    adv_name: str | None
    text: str
    sender_timestamp: int | None = None


@dataclass(slots=True)
class ChannelMessageEvent:
    channel_idx: int
    channel_name: str | None
    text: str
    adv_name: str | None = None
    public_key: str | None = None
    sender_timestamp: int | None = None


@dataclass(slots=True)
class AdvertRecord:
    public_key: str
    type: str | None = None
    adv_name: str | None = None
    last_advert: int | None = None
    last_mod: int | None = None
    adv_lat: str | None = None
    adv_lon: str | None = None


@dataclass(slots=True)
class MessageRecord:
    text: str
    public_key: str | None = None
    channel_idx: int | None = None
    channel_name: str | None = None
    adv_name: str | None = None
    sender_timestamp: int | None = None


@dataclass(slots=True)
class Completion:
    text: str
    raw: object = None
