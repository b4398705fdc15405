from unittest import mock

import pytest
import requests

from strava_rides.errors import ParseError, TransportError
from strava_rides.transport import FreshConnectionTransport, bearer, request_json


def test_falls_back_to_second_transport(fake_transport, make_response) -> None:
    primary = fake_transport("session", lambda *_: requests.ConnectionError("reset by peer"))
    fallback = fake_transport("fresh-connection", lambda *_: make_response(200, [{"id": 1}]))

    result = request_json([primary, fallback], "GET", "https://api.test/athlete/activities")

    assert result == [{"id": 1}]
    assert len(primary.calls) == 1
    assert len(fallback.calls) == 1


def test_primary_success_skips_fallback(fake_transport, make_response) -> None:
    primary = fake_transport("session", lambda *_: make_response(200, {"ok": True}))
    fallback = fake_transport("fresh-connection", lambda *_: pytest.fail("fallback should not run"))

    assert request_json([primary, fallback], "GET", "https://api.test/x") == {"ok": True}


def test_raises_last_error_when_every_transport_fails(fake_transport, make_response) -> None:
    primary = fake_transport("session", lambda *_: requests.Timeout("slow"))
    fallback = fake_transport("fresh-connection", lambda *_: make_response(503, text="unavailable"))

    with pytest.raises(TransportError) as excinfo:
        request_json([primary, fallback], "GET", "https://api.test/x")

    assert excinfo.value.status_code == 503
    assert "unavailable" in str(excinfo.value)


def test_non_json_body_is_parse_error(fake_transport, make_response) -> None:
    primary = fake_transport("session", lambda *_: make_response(200, text="<html>oops</html>"))

    with pytest.raises(ParseError):
        request_json([primary], "GET", "https://api.test/x")


def test_parse_error_is_retried_on_fallback(fake_transport, make_response) -> None:
    primary = fake_transport("session", lambda *_: make_response(200, text="not json"))
    fallback = fake_transport("fresh-connection", lambda *_: make_response(200, {"id": 7}))

    assert request_json([primary, fallback], "GET", "https://api.test/x") == {"id": 7}


def test_no_transports_is_an_error() -> None:
    with pytest.raises(TransportError):
        request_json([], "GET", "https://api.test/x")


def test_fresh_connection_transport_closes_connection(make_response) -> None:
    with mock.patch("strava_rides.transport.requests.request") as mock_request:
        mock_request.return_value = make_response(200, {})
        FreshConnectionTransport().send("GET", "https://api.test/x", headers=bearer("tok"))

    _, kwargs = mock_request.call_args
    assert kwargs["headers"] == {"Authorization": "Bearer tok", "Connection": "close"}
    assert kwargs["timeout"] == 30
