import json
import stat

import pytest

from strava_rides.token_store import TokenStore


def test_round_trip(tmp_path) -> None:
    store = TokenStore(tmp_path / "token.json")
    record = {
        "access_token": "access-1",
        "refresh_token": "refresh-1",
        "expires_at": 1_744_000_000,
        "token_type": "Bearer",
    }

    store.save(record)

    assert store.load() == record
    assert json.loads((tmp_path / "token.json").read_text(encoding="utf-8")) == record


def test_save_overwrites_whole_record_with_private_mode(tmp_path) -> None:
    path = tmp_path / "nested" / "token.json"
    store = TokenStore(path)
    store.save({"access_token": "a", "refresh_token": "r", "expires_at": 1, "athlete": {"id": 9}})
    store.save({"access_token": "b", "refresh_token": "r2", "expires_at": 2})

    assert store.load() == {"access_token": "b", "refresh_token": "r2", "expires_at": 2}
    assert stat.S_IMODE(path.stat().st_mode) == 0o600
    assert [p.name for p in path.parent.iterdir()] == ["token.json"]


def test_missing_file_loads_as_none(tmp_path) -> None:
    assert TokenStore(tmp_path / "absent.json").load() is None


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        json.dumps(["access_token"]),
        json.dumps({"access_token": "a", "expires_at": 1}),
        json.dumps({"access_token": "a", "refresh_token": "r", "expires_at": None}),
        json.dumps({"access_token": "a", "refresh_token": "r", "expires_at": "1750000000"}),
        json.dumps({"access_token": "a", "refresh_token": "r", "expires_at": False}),
        json.dumps({"access_token": "", "refresh_token": "r", "expires_at": 1}),
        json.dumps({"access_token": "a", "refresh_token": 42, "expires_at": 1}),
    ],
)
def test_corrupt_or_partial_file_is_treated_as_absent(tmp_path, capsys, content) -> None:
    path = tmp_path / "token.json"
    path.write_text(content, encoding="utf-8")

    assert TokenStore(path).load() is None
    assert str(path) in capsys.readouterr().err


def test_save_rejects_partial_record(tmp_path) -> None:
    store = TokenStore(tmp_path / "token.json")
    with pytest.raises(ValueError):
        store.save({"access_token": "a"})
    assert not (tmp_path / "token.json").exists()
