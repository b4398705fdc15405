from __future__ import annotations

import sys
import time
from dataclasses import dataclass, fields
from typing import Any, Callable, Sequence

from .errors import ParseError, TransportError
from .transport import Transport, bearer, request_json

ACTIVITY_URL = "https://www.strava.com/activities/{id}"
DETAIL_DELAY = 0.1  # seconds between detail requests


@dataclass
class RideDetail:
    type: str | None
    name: str | None
    start_date_local: str | None
    distance: float | None
    moving_time: int | None
    total_elevation_gain: float | None
    average_speed: float | None
    max_speed: float | None
    has_heartrate: bool | None
    average_heartrate: float | None
    max_heartrate: float | None
    calories: float | None
    url: str


DETAIL_FIELDS = tuple(field.name for field in fields(RideDetail) if field.name != "url")


def project_activity(activity: dict[str, Any]) -> RideDetail:
    """Keep only the allow-listed fields; anything missing becomes ``None``."""
    values = {name: activity.get(name) for name in DETAIL_FIELDS}
    return RideDetail(**values, url=ACTIVITY_URL.format(id=activity.get("id")))


class DetailFetcher:
    def __init__(
        self,
        base_url: str,
        transports: Sequence[Transport],
        delay: float = DETAIL_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.transports = transports
        self.delay = delay
        self.sleep = sleep

    def detail(self, access_token: str, summary: dict[str, Any]) -> RideDetail:
        activity_id = summary.get("id")
        try:
            payload = request_json(
                self.transports,
                "GET",
                f"{self.base_url}/activities/{activity_id}",
                headers=bearer(access_token),
                params={"include_all_efforts": "true"},
            )
            if not isinstance(payload, dict):
                raise ParseError(f"Unexpected activity detail response for {activity_id}")
        except TransportError as exc:
            print(
                f"Detail fetch for activity {activity_id} failed ({exc}); keeping summary fields only",
                file=sys.stderr,
            )
            return project_activity(summary)
        return project_activity(payload)

    def fetch_details(self, access_token: str, summaries: Sequence[dict[str, Any]]) -> list[RideDetail]:
        print("Fetching activity details...")
        details: list[RideDetail] = []
        total = len(summaries)
        for index, summary in enumerate(summaries, start=1):
            print(f"Activity detail {index}/{total}: {summary.get('name')}")
            details.append(self.detail(access_token, summary))
            self.sleep(self.delay)
        return details
