from __future__ import annotations

import json
import sys
from typing import Any, Protocol, Sequence

import requests

from .errors import ParseError, TransportError

REQUEST_TIMEOUT = 30  # seconds


class Transport(Protocol):
    name: str

    def send(self, method: str, url: str, **kwargs: Any) -> requests.Response: ...


class SessionTransport:
    """Pooled keep-alive connection; the first strategy tried for every call."""

    name = "session"

    def __init__(self, session: requests.Session | None = None) -> None:
        self.session = session or requests.Session()

    def send(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        kwargs.setdefault("timeout", REQUEST_TIMEOUT)
        return self.session.request(method, url, **kwargs)

    def close(self) -> None:
        self.session.close()


class FreshConnectionTransport:
    """One-shot request on a new connection, used when the pooled one fails."""

    name = "fresh-connection"

    def send(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        kwargs.setdefault("timeout", REQUEST_TIMEOUT)
        headers = dict(kwargs.pop("headers", None) or {})
        headers["Connection"] = "close"
        return requests.request(method, url, headers=headers, **kwargs)


def default_transports() -> list[Transport]:
    return [SessionTransport(), FreshConnectionTransport()]


def close_transports(transports: Sequence[Transport]) -> None:
    for transport in transports:
        close = getattr(transport, "close", None)
        if close is not None:
            close()


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def decode_json(response: requests.Response) -> Any:
    try:
        return response.json()
    except (json.JSONDecodeError, ValueError) as exc:
        raise ParseError(f"Non-JSON response from {response.url or 'endpoint'}: {exc}") from exc


def send_once(transport: Transport, method: str, url: str, **kwargs: Any) -> Any:
    try:
        response = transport.send(method, url, **kwargs)
    except requests.RequestException as exc:
        raise TransportError(f"{method} {url} failed: {exc}") from exc

    if response.status_code >= 400:
        raise TransportError(
            f"Request failed ({response.status_code}) for {url}: {response.text}",
            status_code=response.status_code,
        )
    return decode_json(response)


def request_json(
    transports: Sequence[Transport],
    method: str,
    url: str,
    **kwargs: Any,
) -> Any:
    """Try each transport in order and return the first decoded JSON body.

    Raises the last ``TransportError`` (or ``ParseError``) once every strategy
    has failed.
    """
    if not transports:
        raise TransportError(f"No transports configured for {method} {url}")

    last_error: TransportError | None = None
    for index, transport in enumerate(transports):
        if index:
            print(f"Retrying {method} {url} via {transport.name} transport...")
        try:
            return send_once(transport, method, url, **kwargs)
        except TransportError as exc:
            print(f"{transport.name} transport failed: {exc}", file=sys.stderr)
            last_error = exc

    assert last_error is not None
    raise last_error
