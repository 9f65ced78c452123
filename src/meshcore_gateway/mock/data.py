"""Mock data constants and factory helpers for testing and development."""

from __future__ import annotations

import hashlib
import time

from meshcore_gateway.core.enums import AdvType
from meshcore_gateway.core.models import ChannelInfo, PeerProfile, SelfInfo
from meshcore_gateway.core.time import to_micro_degrees

# Mock peers (spread around Prague)
# Format: (name, lat, lon, adv_type)
MOCK_PEERS: list[tuple[str, float, float, AdvType]] = [
    ("Relay Alpha", 50.0875, 14.4213, AdvType.REPEATER),
    ("Relay Beta", 50.0755, 14.4378, AdvType.REPEATER),
    ("Alice", 50.0903, 14.4005, AdvType.CHAT),
    ("Bob", 50.0647, 14.4183, AdvType.CHAT),
    ("Chatroom", 50.1034, 14.3920, AdvType.ROOM),
]

MOCK_SELF_NAME = "Gateway"


def mock_public_key(name: str) -> bytes:
    """Deterministic 32-byte public key derived from a peer name."""
    return hashlib.sha256(f"meshcore-mock:{name}".encode()).digest()


def create_mock_self_info() -> SelfInfo:
    return SelfInfo(
        name=MOCK_SELF_NAME,
        public_key=mock_public_key(MOCK_SELF_NAME),
        type=AdvType.CHAT,
        adv_lat=to_micro_degrees(50.0880),
        adv_lon=to_micro_degrees(14.4208),
    )


def create_mock_contacts() -> list[PeerProfile]:
    now = int(time.time())
    return [
        PeerProfile(
            public_key=mock_public_key(name),
            adv_name=name,
            type=adv_type,
            last_advert=now - 600 * i,
            last_mod=now - 600 * i,
            adv_lat=to_micro_degrees(lat),
            adv_lon=to_micro_degrees(lon),
        )
        for i, (name, lat, lon, adv_type) in enumerate(MOCK_PEERS)
    ]


def create_mock_channels() -> list[ChannelInfo]:
    """Public channel on slot 0 plus one hashtag channel."""
    return [
        ChannelInfo(
            channel_idx=0,
            name="Public",
            secret=bytes.fromhex("8b3387e9c5cdea6ac9e5edbaa115cd72"),
        ),
        ChannelInfo(
            channel_idx=1,
            name="#test",
            secret=hashlib.sha256(b"#test").digest()[:16],
        ),
    ]
