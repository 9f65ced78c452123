from __future__ import annotations

from datetime import datetime

from meshcore_gateway.core.time import (
    adv_type_name,
    format_coordinate,
    format_datetime,
    to_micro_degrees,
)


def test_format_datetime_local_time() -> None:
    expected = datetime.fromtimestamp(1_700_000_000).strftime("%d.%m.%Y %H:%M:%S")
    assert format_datetime(1_700_000_000) == expected


def test_format_datetime_zero_is_rendered() -> None:
    assert format_datetime(0) == datetime.fromtimestamp(0).strftime("%d.%m.%Y %H:%M:%S")
    assert format_datetime(0) != ""


def test_format_datetime_none() -> None:
    assert format_datetime(None) == ""


def test_format_coordinate() -> None:
    assert format_coordinate(50_087_500) == "50.087500"
    assert format_coordinate(-122_419_400) == "-122.419400"
    assert format_coordinate(0) == "0.000000"
    assert format_coordinate(None) == ""


def test_to_micro_degrees() -> None:
    assert to_micro_degrees(50.0875) == 50_087_500
    assert to_micro_degrees(None) is None


def test_adv_type_name() -> None:
    assert adv_type_name(1) == "chat"
    assert adv_type_name(2) == "repeater"
    assert adv_type_name(3) == "room"
    assert adv_type_name(99) == "unknown"
    assert adv_type_name(None) is None
