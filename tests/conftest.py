from __future__ import annotations

import pytest

from meshcore_gateway.core.models import Completion, PeerProfile
from meshcore_gateway.gateway.db import open_db
from meshcore_gateway.gateway.record_store import RecordStore
from meshcore_gateway.mock import MockDeviceConnection


class FakeAiGate:
    """Completion client returning canned answers and recording prompts."""

    def __init__(self, answer: str = "ok", error: Exception | None = None) -> None:
        self.answer = answer
        self.error = error
        self.calls: list[tuple[str, str | None]] = []

    async def complete(self, prompt, *, system_prompt=None, max_tokens=None) -> Completion:
        self.calls.append((prompt, system_prompt))
        if self.error is not None:
            raise self.error
        return Completion(text=self.answer)


class RecordingBot:
    def __init__(self) -> None:
        self.events: list[tuple[str, object]] = []

    async def dispatch(self, source, event) -> None:
        self.events.append((source, event))


def make_key(seed: int) -> bytes:
    return bytes([seed]) * 32


@pytest.fixture()
def store():
    s = RecordStore(open_db(":memory:"))
    yield s
    s.close()


@pytest.fixture()
def device() -> MockDeviceConnection:
    return MockDeviceConnection(contacts=[])


@pytest.fixture()
def alice() -> PeerProfile:
    return PeerProfile(
        public_key=make_key(0xA1),
        adv_name="Alice",
        type=1,
        last_advert=1_700_000_000,
        last_mod=1_700_000_100,
        adv_lat=50_087_500,
        adv_lon=14_421_300,
    )


@pytest.fixture()
def fake_ai() -> FakeAiGate:
    return FakeAiGate()


@pytest.fixture()
def recording_bot() -> RecordingBot:
    return RecordingBot()


@pytest.fixture()
def ai_factory() -> type[FakeAiGate]:
    return FakeAiGate
