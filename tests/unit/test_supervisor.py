from __future__ import annotations

import asyncio

from meshcore_gateway.core.enums import ConnectionState, DeviceEventType
from meshcore_gateway.gateway.bot import BotDispatch
from meshcore_gateway.gateway.peer_directory import PeerDirectory
from meshcore_gateway.gateway.supervisor import ConnectionSupervisor
from meshcore_gateway.mock import MockDeviceConnection


class _FlakyWarmupDevice(MockDeviceConnection):
    async def get_contacts(self):
        raise ConnectionError("contacts unavailable")

    async def sync_device_time(self):
        raise ConnectionError("clock refused")


async def _pump(device: MockDeviceConnection, supervisor: ConnectionSupervisor) -> None:
    async for event in device.listen_events():
        if event.type == DeviceEventType.CONNECTED:
            await supervisor.on_connected()
        elif event.type == DeviceEventType.DISCONNECTED:
            supervisor.on_disconnected()


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout)


def test_connect_warms_directory_and_runs_startup_actions(alice) -> None:
    device = MockDeviceConnection(contacts=[alice])
    directory = PeerDirectory()
    bot = BotDispatch(device)
    supervisor = ConnectionSupervisor(device, directory, bot=bot)

    async def scenario() -> None:
        pump = asyncio.create_task(_pump(device, supervisor))
        await supervisor.connect_device()
        await _wait_for(lambda: supervisor.connected and device.count("send_zero_hop_advert"))
        pump.cancel()
        await supervisor.close()

    asyncio.run(scenario())

    assert directory.lookup_by_identity(alice.public_key) is alice
    assert bot.bot_name == device.self_info.name
    assert supervisor.self_info == device.self_info
    assert device.count("sync_device_time") == 1
    assert device.count("send_zero_hop_advert") == 1


def test_warmup_failures_keep_connected(caplog) -> None:
    device = _FlakyWarmupDevice(contacts=[])
    supervisor = ConnectionSupervisor(device, PeerDirectory(), reconnect_delay=0.05)

    asyncio.run(supervisor.on_connected())

    assert supervisor.state == ConnectionState.CONNECTED
    assert not supervisor.reconnect_pending
    assert "contacts unavailable" in caplog.text
    assert "clock refused" in caplog.text
    assert device.count("send_zero_hop_advert") == 1


def test_reconnects_after_failures() -> None:
    device = MockDeviceConnection(contacts=[], connect_failures=2)
    supervisor = ConnectionSupervisor(device, PeerDirectory(), reconnect_delay=0.05)

    async def scenario() -> None:
        pump = asyncio.create_task(_pump(device, supervisor))
        await supervisor.connect_device()
        assert supervisor.state == ConnectionState.DISCONNECTED
        assert supervisor.reconnect_pending
        await _wait_for(lambda: supervisor.connected and device.count("send_zero_hop_advert") == 1)
        pump.cancel()
        await supervisor.close()

    asyncio.run(scenario())

    assert device.count("connect") == 3
    assert supervisor.reconnects_scheduled == 2
    assert device.count("get_contacts") == 1
    assert device.count("sync_device_time") == 1


def test_failure_is_final_without_reconnect_delay() -> None:
    device = MockDeviceConnection(contacts=[], connect_failures=1)
    supervisor = ConnectionSupervisor(device, PeerDirectory(), reconnect_delay=0)

    async def scenario() -> None:
        await supervisor.connect_device()
        await asyncio.sleep(0.05)

    asyncio.run(scenario())

    assert supervisor.state == ConnectionState.DISCONNECTED
    assert not supervisor.reconnect_pending
    assert device.count("connect") == 1


def test_queue_reconnect_is_idempotent() -> None:
    supervisor = ConnectionSupervisor(
        MockDeviceConnection(contacts=[]), PeerDirectory(), reconnect_delay=10
    )

    async def scenario() -> None:
        supervisor.queue_reconnect()
        supervisor.queue_reconnect()
        supervisor.on_disconnected()
        assert supervisor.reconnect_pending
        await supervisor.close()

    asyncio.run(scenario())

    assert supervisor.reconnects_scheduled == 1
    assert not supervisor.reconnect_pending


def test_missing_device_path_logged_once(tmp_path, caplog) -> None:
    device = MockDeviceConnection(contacts=[])
    supervisor = ConnectionSupervisor(
        device,
        PeerDirectory(),
        device_path=str(tmp_path / "ttyACM9"),
        reconnect_delay=0.02,
    )

    async def scenario() -> None:
        await supervisor.connect_device()
        await _wait_for(lambda: supervisor.reconnects_scheduled >= 3)
        await supervisor.close()

    asyncio.run(scenario())

    assert device.count("connect") == 0
    assert caplog.text.count("Device path not found") == 1


def test_watchdog_rearms_reconnect() -> None:
    device = MockDeviceConnection(contacts=[], emit_connected=False)
    supervisor = ConnectionSupervisor(device, PeerDirectory(), reconnect_delay=0.05)

    async def scenario() -> None:
        await supervisor.connect_device()
        assert supervisor.state == ConnectionState.CONNECTING
        await _wait_for(lambda: device.count("connect") >= 2)
        await supervisor.close()

    asyncio.run(scenario())

    assert supervisor.reconnects_scheduled >= 1
    assert supervisor.state == ConnectionState.DISCONNECTED


def test_disconnect_schedules_reconnect() -> None:
    device = MockDeviceConnection(contacts=[])
    supervisor = ConnectionSupervisor(device, PeerDirectory(), reconnect_delay=0.05)

    async def scenario() -> None:
        pump = asyncio.create_task(_pump(device, supervisor))
        await supervisor.connect_device()
        await _wait_for(lambda: supervisor.connected)
        device.inject_disconnect()
        await _wait_for(lambda: device.count("connect") == 2 and supervisor.connected)
        pump.cancel()
        await supervisor.close()

    asyncio.run(scenario())

    assert supervisor.reconnects_scheduled == 1


class _HangingDevice(MockDeviceConnection):
    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.abandoned = 0

    async def connect(self) -> None:
        self.calls.append("connect")
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.abandoned += 1
            raise


def test_watchdog_abandons_connect_that_never_returns(caplog) -> None:
    device = _HangingDevice(contacts=[])
    supervisor = ConnectionSupervisor(device, PeerDirectory(), reconnect_delay=0.05)

    async def scenario() -> None:
        first = asyncio.create_task(supervisor.connect_device())
        await _wait_for(lambda: device.count("connect") >= 2)
        assert first.done() and not first.cancelled()
        await supervisor.close()

    asyncio.run(scenario())

    assert supervisor.reconnects_scheduled >= 1
    assert device.abandoned >= 2
    assert supervisor.state == ConnectionState.DISCONNECTED
    assert "Connect to device timed out" in caplog.text


def test_hanging_connect_without_reconnect_delay_is_cancelled_on_close() -> None:
    device = _HangingDevice(contacts=[])
    supervisor = ConnectionSupervisor(device, PeerDirectory())

    async def scenario() -> None:
        attempt = asyncio.create_task(supervisor.connect_device())
        await _wait_for(lambda: device.count("connect") == 1)
        assert supervisor.state == ConnectionState.CONNECTING
        await supervisor.close()
        await asyncio.wait_for(attempt, 1.0)

    asyncio.run(scenario())

    assert device.abandoned == 1
    assert supervisor.reconnects_scheduled == 0
