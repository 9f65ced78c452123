"""Enums for device events, peer types, and connection state."""

from enum import IntEnum, StrEnum


class AdvType(IntEnum):
    """Advertised node type, as reported by the companion radio.

    From the MeshCore protocol:
        0: NONE     - Unset
        1: CHAT     - Chat client
        2: REPEATER - Repeater
        3: ROOM     - Room server
        4: SENSOR   - Sensor node
    """

    NONE = 0
    CHAT = 1
    REPEATER = 2
    ROOM = 3
    SENSOR = 4


class TxtType(IntEnum):
    """Text message kinds accepted by the device."""

    PLAIN = 0
    CLI_DATA = 1
    SIGNED_PLAIN = 2


class DeviceEventType(StrEnum):
    """Events produced by a device connection."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"
    MESSAGE_WAITING = "message-waiting"
    NEW_ADVERT = "new-advert"
    ADVERT = "advert"


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class MessageSource(StrEnum):
    """Origin of an event handed to the bot layer."""

    CONTACT = "contact"
    CHANNEL = "channel"
    ADVERT = "advert"
