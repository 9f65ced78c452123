from .enums import AdvType, ConnectionState, DeviceEventType, MessageSource, TxtType
from .models import (
    AdvertEvent,
    AdvertRecord,
    ChannelInfo,
    ChannelMessage,
    ChannelMessageEvent,
    Completion,
    ContactMessage,
    ContactMessageEvent,
    DeviceEvent,
    MessageRecord,
    PeerProfile,
    SelfInfo,
    WaitingMessage,
)
from .types import (
    CompletionClientProtocol,
    ContactsFetcher,
    DeviceConnectionProtocol,
    RecordDict,
    RecordStoreProtocol,
)

__all__ = [
    "AdvType",
    "AdvertEvent",
    "AdvertRecord",
    "ChannelInfo",
    "ChannelMessage",
    "ChannelMessageEvent",
    "Completion",
    "CompletionClientProtocol",
    "ConnectionState",
    "ContactMessage",
    "ContactMessageEvent",
    "ContactsFetcher",
    "DeviceConnectionProtocol",
    "DeviceEvent",
    "DeviceEventType",
    "MessageRecord",
    "MessageSource",
    "PeerProfile",
    "RecordDict",
    "RecordStoreProtocol",
    "SelfInfo",
    "TxtType",
    "WaitingMessage",
]
