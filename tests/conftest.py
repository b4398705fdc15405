import json
from pathlib import Path

import pytest
import requests

from strava_rides.config import Settings


def build_response(status_code=200, payload=None, text=None):
    response = requests.Response()
    response.status_code = status_code
    response.url = "https://www.strava.com/api/v3/test"
    response.encoding = "utf-8"
    body = text if text is not None else json.dumps(payload)
    response._content = body.encode("utf-8")
    return response


class FakeTransport:
    def __init__(self, name, handler):
        self.name = name
        self.handler = handler
        self.calls = []

    def send(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        result = self.handler(method, url, kwargs)
        if isinstance(result, Exception):
            raise result
        return result


class ScriptedOperator:
    def __init__(self, *answers):
        self.answers = list(answers)
        self.questions = []

    def ask(self, question):
        self.questions.append(question)
        return self.answers.pop(0)


@pytest.fixture
def make_response():
    return build_response


@pytest.fixture
def fake_transport():
    return FakeTransport


@pytest.fixture
def scripted_operator():
    return ScriptedOperator


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        client_id="12345",
        client_secret="client-secret",
        redirect_uri="http://127.0.0.1:0/callback",
        token_file=tmp_path / "strava_token.json",
        output_file=tmp_path / "strava_data.json",
        auth_timeout=5,
    )
