"""Composition root: wires the gateway's parts around one device connection."""

from __future__ import annotations

import asyncio
import logging

from meshcore_gateway.core.enums import DeviceEventType
from meshcore_gateway.core.models import DeviceEvent, PeerProfile
from meshcore_gateway.core.types import CompletionClientProtocol, DeviceConnectionProtocol

from .ai_gate import AiGateClient
from .bot import RELAY_QUIESCENT_DELAY, BotDispatch
from .config import GatewayConfig
from .control import ControlActions, ControlServer
from .db import open_db
from .peer_directory import PeerDirectory
from .pipeline import IngestionPipeline
from .record_store import RecordStore
from .supervisor import ConnectionSupervisor

logger = logging.getLogger(__name__)


def create_connection(config: GatewayConfig) -> DeviceConnectionProtocol:
    if config.mock:
        from meshcore_gateway.mock import MockDeviceConnection

        return MockDeviceConnection()
    if not config.device:
        raise ValueError("MESHCORE_DEVICE is not set (use --mock for a simulated device)")

    from .connection import MeshcoreConnection

    return MeshcoreConnection(config.device, config.baudrate)


class Gateway:
    def __init__(
        self,
        config: GatewayConfig,
        *,
        connection: DeviceConnectionProtocol | None = None,
        ai_gate: CompletionClientProtocol | None = None,
        relay_delay: float = RELAY_QUIESCENT_DELAY,
        serve_http: bool = True,
    ) -> None:
        self.config = config
        self.connection = connection if connection is not None else create_connection(config)
        self.store = RecordStore(open_db(config.sqlite_db, config.sqlite_journal_mode))
        self.directory = PeerDirectory()

        self._ai_client: AiGateClient | None = None
        if ai_gate is None and config.ai.enabled:
            self._ai_client = AiGateClient(config.ai)
            ai_gate = self._ai_client
        self.ai_gate = ai_gate

        self.bot = BotDispatch(
            self.connection,
            ai_gate=ai_gate,
            bot_channels=config.bot_channels,
            translate_from_channels=config.translate_from_channels,
            translate_to_channel=config.translate_to_channel,
            translate_language=config.translate_language,
            system_prompt=config.ai.system_prompt,
            relay_delay=relay_delay,
        )
        self.pipeline = IngestionPipeline(
            connection=self.connection,
            directory=self.directory,
            store=self.store,
            bot=self.bot,
        )
        self.supervisor = ConnectionSupervisor(
            self.connection,
            self.directory,
            bot=self.bot,
            device_path=None if config.mock else config.device,
            reconnect_delay=config.reconnect_delay,
        )
        self.control: ControlServer | None = None
        if serve_http:
            actions = ControlActions(
                connection=self.connection,
                directory=self.directory,
                store=self.store,
                supervisor=self.supervisor,
            )
            self.control = ControlServer(
                actions.table(),
                host=config.http_host,
                port=config.http_port,
                api_path=config.http_api,
            )
        self._stop_event = asyncio.Event()
        self._closed = False

    async def handle_event(self, event: DeviceEvent) -> None:
        """Route one device event; errors end here."""
        try:
            if event.type == DeviceEventType.CONNECTED:
                await self.supervisor.on_connected()
            elif event.type == DeviceEventType.DISCONNECTED:
                self.supervisor.on_disconnected()
            elif event.type == DeviceEventType.ERROR:
                self.supervisor.on_disconnected(event.payload or "unknown error")
            elif event.type == DeviceEventType.MESSAGE_WAITING:
                await self.pipeline.on_messages_waiting()
            elif event.type in (DeviceEventType.NEW_ADVERT, DeviceEventType.ADVERT):
                if isinstance(event.payload, PeerProfile):
                    await self.pipeline.on_advert(event.payload)
                else:
                    logger.warning("Advert event without a profile: %r", event.payload)
            else:
                logger.debug("Ignoring device event %s", event.type)
        except Exception:
            logger.exception("Unhandled error while handling %s event", event.type)

    async def _dispatch_events(self) -> None:
        async for event in self.connection.listen_events():
            await self.handle_event(event)

    async def run(self) -> None:
        """Run until :meth:`request_stop` is called."""
        logger.info("Starting gateway: %s", self.config.to_log_string())
        if self.control is not None:
            await self.control.start()
        dispatcher = asyncio.create_task(self._dispatch_events())
        connector = asyncio.create_task(self.supervisor.connect_device())
        try:
            await self._stop_event.wait()
        finally:
            connector.cancel()
            dispatcher.cancel()
            await asyncio.gather(connector, dispatcher, return_exceptions=True)
            await self.close()

    def request_stop(self) -> None:
        self._stop_event.set()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        logger.info("Stopping gateway")
        if self.control is not None:
            await self.control.stop()
        await self.supervisor.close()
        await self.bot.wait_idle()
        try:
            await self.connection.disconnect()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Device disconnect failed: %s", exc)
        if self._ai_client is not None:
            await self._ai_client.close()
        self.store.close()
