from __future__ import annotations


class StravaRidesError(Exception):
    """Base class for failures the CLI reports and exits on."""


class TransportError(StravaRidesError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ParseError(TransportError):
    """Response body was not JSON, or not the shape the endpoint promises."""


class AuthError(StravaRidesError):
    pass


class ListenerError(StravaRidesError):
    pass
