from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

from .details import RideDetail


@dataclass(frozen=True)
class DisplayRide:
    type: str | None
    name: str | None
    start_date_local: str | None
    distance: float | None
    moving_time: str | None
    total_elevation_gain: float | None
    average_speed: float | None
    max_speed: float | None
    has_heartrate: bool | None
    average_heartrate: float | None
    max_heartrate: float | None
    calories: float | None
    url: str


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _number(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value):
        return None
    return float(value)


def speed_kmh(meters_per_second: object) -> float | None:
    speed = _number(meters_per_second)
    if speed is None:
        return None
    # x36 then /10 keeps one decimal without float drift from x3.6
    return round_half_up(speed * 36) / 10


def distance_km(meters: object) -> float | None:
    distance = _number(meters)
    if distance is None:
        return None
    return round_half_up(distance / 10) / 100


def format_moving_time(seconds: object) -> str | None:
    """Render seconds as ``"HH.M"``: zero-padded hours, then whole minutes.

    Minutes are not padded, so 1h05m reads ``"01.5"``.
    """
    total = _number(seconds)
    if total is None:
        return None
    total_hours = total / 3600
    hours = math.floor(total_hours)
    minutes = round_half_up((total_hours - hours) * 60 * 100) / 100
    return f"{hours:02d}.{round_half_up(minutes)}"


def format_date(start_date_local: object) -> str | None:
    if not isinstance(start_date_local, str):
        return None
    return start_date_local[:10]


def normalize_ride(ride: RideDetail) -> DisplayRide:
    return DisplayRide(
        type=ride.type,
        name=ride.name,
        start_date_local=format_date(ride.start_date_local),
        distance=distance_km(ride.distance),
        moving_time=format_moving_time(ride.moving_time),
        total_elevation_gain=ride.total_elevation_gain,
        average_speed=speed_kmh(ride.average_speed),
        max_speed=speed_kmh(ride.max_speed),
        has_heartrate=ride.has_heartrate,
        average_heartrate=ride.average_heartrate,
        max_heartrate=ride.max_heartrate,
        calories=ride.calories,
        url=ride.url,
    )


def normalize_rides(rides: Sequence[RideDetail]) -> list[DisplayRide]:
    return [normalize_ride(ride) for ride in rides]
