"""Ingestion of device events: directory update, persistence, bot dispatch.

Every step is wrapped on its own.  A failing insert or a failing bot hook is
logged and the remaining steps still run; nothing is re-raised to the event
loop.
"""

from __future__ import annotations

import logging

from meshcore_gateway.core.enums import MessageSource
from meshcore_gateway.core.models import (
    AdvertEvent,
    ChannelMessage,
    ChannelMessageEvent,
    ContactMessage,
    ContactMessageEvent,
    MessageRecord,
    PeerProfile,
)
from meshcore_gateway.core.types import DeviceConnectionProtocol, RecordStoreProtocol

from .bot import BotDispatch
from .normalizer import EventNormalizer, advert_record
from .peer_directory import PeerDirectory

logger = logging.getLogger(__name__)

# rows considered when resolving a channel sender from stored adverts
ADVERT_FALLBACK_LIMIT = 3


class IngestionPipeline:
    def __init__(
        self,
        *,
        connection: DeviceConnectionProtocol,
        directory: PeerDirectory,
        store: RecordStoreProtocol,
        bot: BotDispatch,
        normalizer: EventNormalizer | None = None,
    ) -> None:
        self._connection = connection
        self._directory = directory
        self._store = store
        self._bot = bot
        self._normalizer = normalizer or EventNormalizer(directory, connection)

    async def on_advert(self, raw: PeerProfile) -> AdvertEvent:
        event = await self._normalizer.normalize_advert(raw)
        self._directory.upsert(event.to_profile())
        logger.info(
            "Received advert %s name=%s type=%s last_advert=%s last_mod=%s lat=%s lon=%s",
            event.public_key_hex,
            event.adv_name,
            event.type_name,
            event.last_advert_text,
            event.last_mod_text,
            event.adv_lat_text,
            event.adv_lon_text,
        )
        try:
            self._store.upsert_advert(advert_record(event))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to persist advert %s: %s", event.public_key_hex, exc)
        await self._dispatch(MessageSource.ADVERT, event)
        return event

    async def on_messages_waiting(self) -> None:
        """Drain the device's message queue and ingest each message in order."""
        try:
            waiting = await self._connection.get_waiting_messages()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to fetch waiting messages: %s", exc)
            return
        for message in waiting:
            try:
                if message.contact_message is not None:
                    await self.on_contact_message(message.contact_message)
                if message.channel_message is not None:
                    await self.on_channel_message(message.channel_message)
            except Exception:
                logger.exception("Unhandled error while ingesting message")

    async def on_contact_message(self, message: ContactMessage) -> ContactMessageEvent:
        profile = self._directory.lookup_by_prefix(message.pubkey_prefix)
        if profile is None:
            try:
                profile = await self._connection.find_contact_by_public_key_prefix(
                    message.pubkey_prefix
                )
            except Exception as exc:  # noqa: BLE001
                logger.warning("Contact lookup for %s failed: %s", message.pubkey_prefix.hex(), exc)
        event = self._normalizer.normalize_contact_message(message, profile)
        logger.info("Received contact message from %s: %r", event.adv_name or "Unknown", event.text)

        if profile is not None:
            self._directory.upsert(profile)
        try:
            self._store.save_message(
                MessageRecord(
                    text=event.text,
                    public_key=event.public_key,
                    adv_name=event.adv_name,
                    sender_timestamp=event.sender_timestamp,
                )
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to persist contact message: %s", exc)

        if profile is None:
            logger.info("Unknown contact %s, not engaging", message.pubkey_prefix.hex())
            return event
        await self._dispatch(MessageSource.CONTACT, event)
        return event

    async def on_channel_message(self, message: ChannelMessage) -> ChannelMessageEvent:
        channel_name: str | None = None
        try:
            channel = await self._connection.get_channel(message.channel_idx)
            channel_name = channel.name if channel is not None else None
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to read channel %d: %s", message.channel_idx, exc)

        event = self._normalizer.normalize_channel_message(message, channel_name)
        if event.adv_name:
            event.public_key = await self.resolve_channel_sender(event.adv_name)
        logger.info(
            "Received channel message on %s (%d) from %s: %r",
            channel_name,
            event.channel_idx,
            event.adv_name,
            event.text,
        )

        try:
            self._store.save_message(
                MessageRecord(
                    text=event.text,
                    public_key=event.public_key,
                    channel_idx=event.channel_idx,
                    channel_name=event.channel_name,
                    adv_name=event.adv_name,
                    sender_timestamp=event.sender_timestamp,
                )
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to persist channel message: %s", exc)
        await self._dispatch(MessageSource.CHANNEL, event)
        return event

    async def resolve_channel_sender(self, adv_name: str) -> str | None:
        """Public key (hex) for a display name seen in a channel message.

        Tries the directory's name index, then a device contact read, then
        stored adverts.  Stored adverts only resolve when every recent row
        agrees on one key; several keys mean the name is ambiguous.
        """
        profile: PeerProfile | None = None
        try:
            profile = await self._directory.resolve_by_display_name(
                adv_name, self._connection.get_contacts
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Device contact read for %r failed: %s", adv_name, exc)
        if profile is not None:
            return profile.public_key_hex

        try:
            rows = self._store.find_adverts_by_name(adv_name, ADVERT_FALLBACK_LIMIT)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Advert lookup for %r failed: %s", adv_name, exc)
            return None

        keys = list(dict.fromkeys(row["public_key"] for row in rows if row.get("public_key")))
        if len(keys) > 1:
            logger.info("Ambiguous adverts for %r, keeping public key empty: %s", adv_name, keys)
            return None
        if not keys:
            return None
        try:
            public_key = bytes.fromhex(keys[0])
        except ValueError:
            logger.warning("Stored advert key %r is not hex", keys[0])
            return None
        self._directory.upsert(
            PeerProfile(public_key=public_key, adv_name=adv_name, last_mod=rows[0].get("last_mod"))
        )
        logger.debug("Resolved %r via stored adverts: %s", adv_name, keys[0])
        return keys[0]

    async def _dispatch(self, source: MessageSource, event: object) -> None:
        try:
            await self._bot.dispatch(source, event)
        except Exception:
            logger.exception("Bot dispatch for %s event failed", source)
