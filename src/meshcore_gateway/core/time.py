"""Display rendering for device timestamps and coordinates."""

from __future__ import annotations

from datetime import datetime

from .enums import AdvType

DATETIME_FORMAT = "%d.%m.%Y %H:%M:%S"


def format_datetime(epoch: int | None) -> str:
    """Render epoch seconds as local ``DD.MM.YYYY HH:MM:SS``.

    ``0`` is a real timestamp and is rendered; only ``None`` yields "".
    """
    if epoch is None:
        return ""
    return datetime.fromtimestamp(epoch).strftime(DATETIME_FORMAT)


def format_coordinate(micro_degrees: int | None) -> str:
    if micro_degrees is None:
        return ""
    return f"{micro_degrees / 1_000_000:.6f}"


def to_micro_degrees(degrees: float | None) -> int | None:
    if degrees is None:
        return None
    return int(round(degrees * 1_000_000))


def adv_type_name(value: int | None) -> str | None:
    """Lower-case name of an advert type; unknown codes map to "unknown"."""
    if value is None:
        return None
    try:
        return AdvType(value).name.lower()
    except ValueError:
        return "unknown"
