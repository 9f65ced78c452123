"""Keeps the device connection alive.

State moves ``disconnected -> connecting -> connected`` and back to
``disconnected`` on a failed connect, a disconnect, or a device error.  Every
way back to ``disconnected`` schedules at most one delayed reconnect; with no
reconnect delay configured the first failure is final.  A watchdog is armed
as soon as a connect call is issued.  If the device has not reported itself
connected when it fires, a connect call still in flight is cancelled and a
reconnect is queued.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from meshcore_gateway.core.enums import ConnectionState
from meshcore_gateway.core.models import SelfInfo
from meshcore_gateway.core.time import adv_type_name
from meshcore_gateway.core.types import DeviceConnectionProtocol

from .bot import BotDispatch
from .peer_directory import PeerDirectory

logger = logging.getLogger(__name__)


class ConnectionSupervisor:
    def __init__(
        self,
        connection: DeviceConnectionProtocol,
        directory: PeerDirectory,
        *,
        bot: BotDispatch | None = None,
        device_path: str | None = None,
        reconnect_delay: float = 0.0,
    ) -> None:
        self._connection = connection
        self._directory = directory
        self._bot = bot
        self.device_path = device_path
        self.reconnect_delay = reconnect_delay
        self.state = ConnectionState.DISCONNECTED
        self.self_info: SelfInfo | None = None
        self.reconnects_scheduled = 0
        self._reconnect_handle: asyncio.TimerHandle | None = None
        self._watchdog_handle: asyncio.TimerHandle | None = None
        self._attempt: asyncio.Future[None] | None = None
        self._missing_device_logged = False
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    def _device_label(self) -> str:
        if self.self_info is None:
            return "device"
        return f"{self.self_info.name} ({adv_type_name(self.self_info.type) or 'unknown'})"

    async def connect_device(self) -> None:
        """Attempt a single connect; failures schedule a reconnect."""
        if self._closed:
            return
        if self.device_path and not Path(self.device_path).exists():
            if not self._missing_device_logged:
                logger.warning(
                    "Device path not found: %s (retry every %.0f ms)",
                    self.device_path,
                    self.reconnect_delay * 1000,
                )
                self._missing_device_logged = True
            self.queue_reconnect()
            return

        self.state = ConnectionState.CONNECTING
        attempt = asyncio.ensure_future(self._connection.connect())
        self._attempt = attempt
        self._arm_watchdog()
        try:
            await attempt
        except asyncio.CancelledError:
            # Only swallow the cancel the watchdog issued on the inner attempt.
            current = asyncio.current_task()
            if not attempt.cancelled() or (current is not None and current.cancelling()):
                raise
            if not self._closed:
                logger.warning("Connect to %s timed out", self.device_path or "device")
        except Exception as exc:  # noqa: BLE001
            logger.warning("Connect to %s failed: %s", self.device_path or "device", exc)
            self._cancel_watchdog()
            self.state = ConnectionState.DISCONNECTED
            self.queue_reconnect()
        finally:
            if self._attempt is attempt:
                self._attempt = None

    def _arm_watchdog(self) -> None:
        self._cancel_watchdog()
        if self.reconnect_delay:
            loop = asyncio.get_running_loop()
            self._watchdog_handle = loop.call_later(self.reconnect_delay, self._on_watchdog)

    def _on_watchdog(self) -> None:
        self._watchdog_handle = None
        if not self.connected:
            logger.warning("Device did not report connected in time, reconnecting")
            if self._attempt is not None and not self._attempt.done():
                self._attempt.cancel()
            self.state = ConnectionState.DISCONNECTED
            self.queue_reconnect()

    def queue_reconnect(self) -> None:
        """Schedule one delayed reconnect; no-op if one is pending or reconnects are off."""
        if self._closed or not self.reconnect_delay or self._reconnect_handle is not None:
            return
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(self.reconnect_delay, self._fire_reconnect)
        self.reconnects_scheduled += 1
        logger.debug("Reconnect scheduled in %.3fs", self.reconnect_delay)

    def _fire_reconnect(self) -> None:
        self._reconnect_handle = None
        task = asyncio.create_task(self.connect_device())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _clear_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _cancel_watchdog(self) -> None:
        if self._watchdog_handle is not None:
            self._watchdog_handle.cancel()
            self._watchdog_handle = None

    async def on_connected(self) -> None:
        self.state = ConnectionState.CONNECTED
        self._missing_device_logged = False
        self._clear_reconnect()
        self._cancel_watchdog()

        try:
            self._directory.bulk_upsert(await self._connection.get_contacts())
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to warm contact cache: %s", exc)

        try:
            self.self_info = await self._connection.get_self_info()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to read self info: %s", exc)
        if self.self_info is not None and self._bot is not None:
            self._bot.set_bot_name(self.self_info.name)
        logger.info("%s connected on %s", self._device_label(), self.device_path or "device")

        try:
            await self._connection.sync_device_time()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to sync device time: %s", exc)
        try:
            await self._connection.send_zero_hop_advert()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to send zero-hop advert: %s", exc)

    def on_disconnected(self, error: object = None) -> None:
        self.state = ConnectionState.DISCONNECTED
        if error is not None:
            logger.warning("Connection error: %s", error)
        else:
            logger.info("%s disconnected from %s", self._device_label(), self.device_path or "device")
        self.queue_reconnect()

    async def close(self) -> None:
        self._closed = True
        self._clear_reconnect()
        self._cancel_watchdog()
        if self._attempt is not None:
            self._attempt.cancel()
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self.state = ConnectionState.DISCONNECTED
