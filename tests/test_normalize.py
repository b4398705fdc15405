from dataclasses import asdict, replace

import pytest

from strava_rides.details import project_activity
from strava_rides.normalize import (
    distance_km,
    format_moving_time,
    normalize_ride,
    normalize_rides,
    speed_kmh,
)


def ride(**overrides):
    base = {
        "id": 1,
        "type": "Ride",
        "name": "Lunch Ride",
        "start_date_local": "2025-04-08T13:56:26Z",
        "distance": 15000,
        "moving_time": 5400,
        "total_elevation_gain": 120.5,
        "average_speed": 10,
        "max_speed": 14.3,
        "has_heartrate": False,
        "calories": 410,
    }
    base.update(overrides)
    return project_activity(base)


def test_reference_conversion() -> None:
    display = normalize_ride(ride())

    assert display.average_speed == 36.0
    assert display.moving_time == "01.30"
    assert display.distance == 15.00
    assert display.start_date_local == "2025-04-08"
    assert display.max_speed == 51.5
    assert display.total_elevation_gain == 120.5
    assert display.url == "https://www.strava.com/activities/1"


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [
        (0, "00.0"),
        (3900, "01.5"),
        (3599, "00.60"),
        (45296, "12.35"),
        (90000, "25.0"),
    ],
)
def test_moving_time_keeps_unpadded_minutes(seconds, expected) -> None:
    assert format_moving_time(seconds) == expected


def test_rounding_is_half_up() -> None:
    assert speed_kmh(0.125) == 0.5
    assert distance_km(15005) == 15.01
    assert distance_km(14994) == 14.99


def test_missing_fields_become_none_without_raising() -> None:
    display = normalize_ride(project_activity({"id": 2, "type": "Ride", "name": "Degraded"}))

    assert display.distance is None
    assert display.moving_time is None
    assert display.average_speed is None
    assert display.max_speed is None
    assert display.start_date_local is None
    assert display.name == "Degraded"


def test_batch_keeps_order_and_survives_degraded_items() -> None:
    rides = [ride(name="first"), replace(ride(name="second"), distance=None), ride(name="third")]

    display = normalize_rides(rides)

    assert [item.name for item in display] == ["first", "second", "third"]
    assert display[1].distance is None


def test_display_ride_is_immutable() -> None:
    display = normalize_ride(ride())
    with pytest.raises(AttributeError):
        display.distance = 1.0  # type: ignore[misc]
    assert asdict(display)["distance"] == 15.0
