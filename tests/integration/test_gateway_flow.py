"""End-to-end runs of the gateway against the in-memory device."""

from __future__ import annotations

import asyncio

import pytest

from meshcore_gateway.core.enums import DeviceEventType
from meshcore_gateway.core.models import ChannelMessage, ContactMessage, DeviceEvent, PeerProfile
from meshcore_gateway.gateway.config import GatewayConfig
from meshcore_gateway.gateway.service import Gateway, create_connection
from meshcore_gateway.mock import MockDeviceConnection
from meshcore_gateway.mock.data import create_mock_contacts


def _config(**overrides) -> GatewayConfig:
    config = GatewayConfig(mock=True, sqlite_db=":memory:", **overrides)
    return config


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout)


def test_create_connection_requires_device() -> None:
    assert isinstance(create_connection(_config()), MockDeviceConnection)
    with pytest.raises(ValueError, match="MESHCORE_DEVICE"):
        create_connection(GatewayConfig())


def test_gateway_ingests_and_replies(ai_factory) -> None:
    device = MockDeviceConnection()
    ai = ai_factory("Hello everyone")
    gateway = Gateway(
        _config(bot_channels=frozenset({0}), translate_from_channels=frozenset({1}), translate_to_channel=0),
        connection=device,
        ai_gate=ai,
        relay_delay=0,
        serve_http=False,
    )
    alice = create_mock_contacts()[2]
    stranger = PeerProfile(public_key=b"\x42" * 32)

    async def scenario() -> None:
        runner = asyncio.create_task(gateway.run())
        await _wait_for(lambda: device.count("send_zero_hop_advert") == 1)
        assert gateway.supervisor.connected
        assert len(gateway.directory) == len(device.contacts)

        device.inject_advert(stranger.public_key, new=True)
        device.inject_advert(alice.public_key)
        device.inject_message(ContactMessage(pubkey_prefix=alice.public_key[:6], text="dm"))
        device.inject_message(ChannelMessage(1, "Alice: Ahoj všichni"))
        device.inject_message(ChannelMessage(0, "Alice: @[Gateway] are you there?"))
        await _wait_for(lambda: len(device.sent_channel_messages) == 2)

        gateway.request_stop()
        await runner

    asyncio.run(scenario())

    assert sorted(device.sent_channel_messages) == [
        (0, "@[Alice] Hello everyone"),
        (0, "Alice: Hello everyone"),
    ]
    assert device.count("disconnect") == 1


def test_gateway_persists_what_it_sees() -> None:
    device = MockDeviceConnection()
    gateway = Gateway(_config(), connection=device, serve_http=False)
    alice = create_mock_contacts()[2]
    rows: dict = {}

    async def scenario() -> None:
        runner = asyncio.create_task(gateway.run())
        await _wait_for(lambda: gateway.supervisor.connected)
        device.inject_advert(alice.public_key)
        device.inject_message(ChannelMessage(0, "Alice: hi"))
        await _wait_for(lambda: device.count("get_waiting_messages") == 1)
        await asyncio.sleep(0.05)
        rows["adverts"] = gateway.store.get_adverts()
        rows["messages"] = gateway.store.get_messages()
        gateway.request_stop()
        await runner

    asyncio.run(scenario())

    assert rows["adverts"][0]["adv_name"] == "Alice"
    assert rows["messages"][0]["public_key"] == alice.public_key_hex
    assert rows["messages"][0]["channel_name"] == "Public"


def test_gateway_reconnects_after_disconnect() -> None:
    device = MockDeviceConnection()
    gateway = Gateway(_config(reconnect_delay_ms=50), connection=device, serve_http=False)

    async def scenario() -> None:
        runner = asyncio.create_task(gateway.run())
        await _wait_for(lambda: gateway.supervisor.connected)
        device.inject_disconnect(error="serial port closed")
        await _wait_for(lambda: device.count("connect") == 2 and gateway.supervisor.connected)
        gateway.request_stop()
        await runner

    asyncio.run(scenario())

    assert gateway.supervisor.reconnects_scheduled == 1


def test_handle_event_contains_errors(caplog) -> None:
    gateway = Gateway(_config(), connection=MockDeviceConnection(), serve_http=False)

    async def boom() -> None:
        raise RuntimeError("pipeline exploded")

    gateway.pipeline.on_messages_waiting = boom

    async def scenario() -> None:
        await gateway.handle_event(DeviceEvent(type=DeviceEventType.MESSAGE_WAITING))
        await gateway.handle_event(DeviceEvent(type=DeviceEventType.ADVERT, payload="garbage"))
        await gateway.close()

    asyncio.run(scenario())

    assert "pipeline exploded" in caplog.text
    assert "Advert event without a profile" in caplog.text


class _StuckDevice(MockDeviceConnection):
    async def connect(self) -> None:
        self.calls.append("connect")
        await asyncio.Event().wait()


def test_gateway_stops_while_connect_is_stuck() -> None:
    device = _StuckDevice()
    gateway = Gateway(_config(), connection=device, serve_http=False)

    async def scenario() -> None:
        runner = asyncio.create_task(gateway.run())
        await _wait_for(lambda: device.count("connect") == 1)
        gateway.request_stop()
        await asyncio.wait_for(runner, 1.0)

    asyncio.run(scenario())

    assert not gateway.supervisor.connected
    assert device.count("disconnect") == 1
