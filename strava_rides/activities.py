from __future__ import annotations

import datetime as dt
import sys
from typing import Any, Sequence

from .errors import ParseError, TransportError
from .transport import Transport, bearer, request_json

RIDE_TYPE = "Ride"
PER_PAGE = 100


def year_bounds(year: int) -> tuple[int, int]:
    """Unix seconds for local midnight on Jan 1 of ``year`` and of ``year + 1``."""
    start = dt.datetime(year, 1, 1)
    end = dt.datetime(year + 1, 1, 1)
    return int(start.timestamp()), int(end.timestamp())


class ActivityFetcher:
    def __init__(self, base_url: str, transports: Sequence[Transport]) -> None:
        self.base_url = base_url.rstrip("/")
        self.transports = transports

    def fetch_page(self, access_token: str, after: int, before: int, page: int) -> list[dict[str, Any]]:
        batch = request_json(
            self.transports,
            "GET",
            f"{self.base_url}/athlete/activities",
            headers=bearer(access_token),
            params={"after": after, "before": before, "page": page, "per_page": PER_PAGE},
        )
        if not isinstance(batch, list):
            raise ParseError(f"Unexpected activities response for page {page}")
        return batch

    def list_rides(self, access_token: str, after: int, before: int) -> list[dict[str, Any]]:
        """Collect rides page by page until a page comes back empty.

        A page that fails on every transport ends pagination early and the
        rides gathered so far are returned.
        """
        print("Fetching activity list...")
        rides: list[dict[str, Any]] = []
        page = 1
        while True:
            print(f"Fetching page {page}...")
            try:
                batch = self.fetch_page(access_token, after, before, page)
            except TransportError as exc:
                print(
                    f"Giving up on activity list at page {page}: {exc}. "
                    f"Keeping {len(rides)} rides fetched so far.",
                    file=sys.stderr,
                )
                break

            if not batch:
                break

            page_rides = [
                activity
                for activity in batch
                if isinstance(activity, dict) and activity.get("type") == RIDE_TYPE
            ]
            print(f"Page {page}: {len(batch)} activities, {len(page_rides)} rides")
            rides.extend(page_rides)
            page += 1

        print(f"Found {len(rides)} rides")
        return rides
