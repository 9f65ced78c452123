"""Merge partial device payloads into complete, typed events.

An advert may carry only a public key, or a subset of the profile fields.
Each field is taken from the advert when present and otherwise from the
peer's last-known profile, so downstream records are always as complete as
what the gateway has seen so far.
"""

from __future__ import annotations

import logging

from meshcore_gateway.core.models import (
    AdvertEvent,
    AdvertRecord,
    ChannelMessage,
    ChannelMessageEvent,
    ContactMessage,
    ContactMessageEvent,
    PeerProfile,
)
from meshcore_gateway.core.text import split_channel_text
from meshcore_gateway.core.time import adv_type_name, format_coordinate, format_datetime
from meshcore_gateway.core.types import DeviceConnectionProtocol

from .peer_directory import PeerDirectory

logger = logging.getLogger(__name__)

MERGED_FIELDS = ("type", "adv_name", "last_advert", "last_mod", "adv_lat", "adv_lon")


def pick(field: str, raw: object, profile: PeerProfile | None) -> object:
    """Value of *field* from *raw* if set, else from *profile*, else None."""
    value = getattr(raw, field, None)
    if value is not None:
        return value
    if profile is None:
        return None
    return getattr(profile, field, None)


def merge_advert(raw: PeerProfile, profile: PeerProfile | None) -> AdvertEvent:
    values = {name: pick(name, raw, profile) for name in MERGED_FIELDS}
    return AdvertEvent(
        public_key=raw.public_key,
        type_name=adv_type_name(values["type"]),
        last_advert_text=format_datetime(values["last_advert"]),
        last_mod_text=format_datetime(values["last_mod"]),
        adv_lat_text=format_coordinate(values["adv_lat"]),
        adv_lon_text=format_coordinate(values["adv_lon"]),
        **values,
    )


def advert_record(event: AdvertEvent) -> AdvertRecord:
    return AdvertRecord(
        public_key=event.public_key_hex,
        type=event.type_name,
        adv_name=event.adv_name,
        last_advert=event.last_advert,
        last_mod=event.last_mod,
        adv_lat=event.adv_lat_text,
        adv_lon=event.adv_lon_text,
    )


def render_profile(profile: PeerProfile) -> dict[str, object]:
    """JSON-ready view of a profile; routing fields are left out."""
    return {
        "publicKey": profile.public_key_hex,
        "advName": profile.adv_name,
        "type": adv_type_name(profile.type),
        "lastAdvert": format_datetime(profile.last_advert),
        "lastMod": format_datetime(profile.last_mod),
        "advLat": format_coordinate(profile.adv_lat),
        "advLon": format_coordinate(profile.adv_lon),
    }


class EventNormalizer:
    def __init__(self, directory: PeerDirectory, connection: DeviceConnectionProtocol) -> None:
        self._directory = directory
        self._connection = connection

    async def resolve_advert_profile(self, public_key: bytes) -> PeerProfile | None:
        """Directory first, then the device; a device failure means "no profile"."""
        cached = self._directory.lookup_by_identity(public_key)
        if cached is not None:
            return cached
        try:
            return await self._connection.find_contact_by_public_key_prefix(public_key)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to fetch contact info for advert %s: %s", public_key.hex(), exc)
            return None

    async def normalize_advert(self, raw: PeerProfile) -> AdvertEvent:
        profile = await self.resolve_advert_profile(raw.public_key)
        return merge_advert(raw, profile)

    def normalize_contact_message(
        self, message: ContactMessage, profile: PeerProfile | None
    ) -> ContactMessageEvent:
        return ContactMessageEvent(
            public_key=profile.public_key_hex if profile is not None else None,
            adv_name=profile.adv_name if profile is not None else None,
            text=message.text,
            sender_timestamp=message.sender_timestamp,
        )

    def normalize_channel_message(
        self, message: ChannelMessage, channel_name: str | None
    ) -> ChannelMessageEvent:
        adv_name, text = split_channel_text(message.text)
        return ChannelMessageEvent(
            channel_idx=message.channel_idx,
            channel_name=channel_name,
            text=text,
            adv_name=adv_name,
            sender_timestamp=message.sender_timestamp,
        )
