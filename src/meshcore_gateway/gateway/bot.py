"""Reactive bot layer fed by the ingestion pipeline.

Channel messages can trigger two independent side effects: a machine
translation relayed to another channel, and a reply when the bot is
mentioned.  Both run as detached tasks; ingestion of the next message
does not wait for them.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Iterable

from meshcore_gateway.core.enums import MessageSource
from meshcore_gateway.core.models import ChannelMessageEvent
from meshcore_gateway.core.text import is_mentioned
from meshcore_gateway.core.types import CompletionClientProtocol, DeviceConnectionProtocol

logger = logging.getLogger(__name__)

# longest text the device will put on a channel
MAX_CHANNEL_TEXT = 135
RELAY_QUIESCENT_DELAY = 10.0


class BotActionError(Exception):
    """A bot side effect could not be carried out."""


def translation_budget(adv_name: str | None) -> int:
    """Characters left for the translation once ``"<name>: "`` is prefixed."""
    return max(MAX_CHANNEL_TEXT - (len(adv_name or "Unknown") + 2), 0)


class BotDispatch:
    def __init__(
        self,
        connection: DeviceConnectionProtocol,
        *,
        ai_gate: CompletionClientProtocol | None = None,
        bot_channels: Iterable[int] = (),
        translate_from_channels: Iterable[int] = (),
        translate_to_channel: int | None = None,
        translate_language: str = "English",
        system_prompt: str = "",
        relay_delay: float = RELAY_QUIESCENT_DELAY,
    ) -> None:
        self._connection = connection
        self._ai_gate = ai_gate
        self.bot_channels = frozenset(bot_channels)
        self.translate_from_channels = frozenset(translate_from_channels)
        self.translate_to_channel = translate_to_channel
        self.translate_language = translate_language
        self._system_prompt = system_prompt
        self._relay_delay = relay_delay
        self.bot_name: str | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    def set_bot_name(self, name: str | None) -> None:
        self.bot_name = name or None

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def dispatch(self, source: str, event: object) -> None:
        if source == MessageSource.CONTACT:
            logger.debug("contact hook bot=%s event=%s", self.bot_name, event)
        elif source == MessageSource.ADVERT:
            logger.debug("advert hook bot=%s event=%s", self.bot_name, event)
        elif source == MessageSource.CHANNEL:
            if isinstance(event, ChannelMessageEvent):
                self._on_channel_message(event)
            else:
                logger.warning("Ignoring channel event with unexpected payload %r", event)
        else:
            logger.warning("Ignoring bot event with unknown source %r", source)

    def _on_channel_message(self, event: ChannelMessageEvent) -> None:
        if event.channel_idx in self.translate_from_channels:
            self._spawn(self.relay_translation(event), "translation relay")
        if event.channel_idx in self.bot_channels and is_mentioned(self.bot_name, event.text):
            self._spawn(self.reply_to_mention(event), "mention reply")

    async def relay_translation(self, event: ChannelMessageEvent) -> str:
        """Translate *event* and post it on the destination channel."""
        if self.translate_to_channel is None:
            raise BotActionError("no translation destination channel configured")
        if self._ai_gate is None:
            raise BotActionError("no AI gate configured")

        name = event.adv_name or "Unknown"
        budget = translation_budget(event.adv_name)
        completion = await self._ai_gate.complete(
            event.text,
            system_prompt=(
                f"Translate the user's message to {self.translate_language}. "
                f"Reply with the translation only, in at most {budget} characters."
            ),
        )
        translated = completion.text.strip()
        if not translated:
            raise BotActionError("empty translation")

        composed = f"{name}: {translated}"[:MAX_CHANNEL_TEXT]
        await asyncio.sleep(self._relay_delay)
        await self._connection.send_channel_text_message(self.translate_to_channel, composed)
        logger.info("Relayed translation to channel %d: %r", self.translate_to_channel, composed)
        return composed

    async def reply_to_mention(self, event: ChannelMessageEvent) -> str:
        prefix = f"@[{event.adv_name or 'Unknown'}] "
        if self._ai_gate is not None:
            budget = max(MAX_CHANNEL_TEXT - len(prefix), 0)
            completion = await self._ai_gate.complete(
                event.text,
                system_prompt=f"{self._system_prompt} Answer in at most {budget} characters.".strip(),
            )
            answer = completion.text.strip()
            if not answer:
                raise BotActionError("empty reply")
        else:
            answer = f"{self.bot_name} here"

        reply = f"{prefix}{answer}"[:MAX_CHANNEL_TEXT]
        await self._connection.send_channel_text_message(event.channel_idx, reply)
        logger.info("Replied on channel %d: %r", event.channel_idx, reply)
        return reply

    def _spawn(self, coro: Awaitable[str], label: str) -> None:
        task = asyncio.create_task(self._guard(coro, label))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _guard(self, coro: Awaitable[str], label: str) -> None:
        try:
            await coro
        except Exception as exc:  # noqa: BLE001
            logger.warning("%s failed: %s", label, exc)

    async def wait_idle(self) -> None:
        """Wait until every detached side effect has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
