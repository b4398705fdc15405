from __future__ import annotations

import json
import os
import sys
import tempfile
from pathlib import Path
from typing import Any

REQUIRED_TOKEN_FIELDS = ("access_token", "refresh_token", "expires_at")


def is_valid_record(record: Any) -> bool:
    if not isinstance(record, dict):
        return False
    if not all(field in record for field in REQUIRED_TOKEN_FIELDS):
        return False
    tokens_ok = all(
        isinstance(record[field], str) and record[field] for field in ("access_token", "refresh_token")
    )
    expires_at = record["expires_at"]
    return tokens_ok and isinstance(expires_at, (int, float)) and not isinstance(expires_at, bool)


class TokenStore:
    """Credential record persisted as one JSON object, replaced wholesale."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser()

    def load(self) -> dict[str, Any] | None:
        if not self.path.exists():
            return None
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                record = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            print(f"Failed to load token file {self.path}: {exc}", file=sys.stderr)
            return None

        if not is_valid_record(record):
            print(
                f"Ignoring token file {self.path}: expected non-empty access_token and refresh_token "
                "and a numeric expires_at",
                file=sys.stderr,
            )
            return None

        print(f"Found saved token in {self.path}")
        return record

    def save(self, record: dict[str, Any]) -> None:
        if not is_valid_record(record):
            raise ValueError(f"Token record must contain {', '.join(REQUIRED_TOKEN_FIELDS)}")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(record, handle, indent=2)
                handle.write("\n")
            tmp_path.chmod(0o600)
            os.replace(tmp_path, self.path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
        print(f"Saved token to {self.path}; the next run will reuse it.")
