from __future__ import annotations

import sys
import time
from typing import Any, Callable, Sequence

from .auth_flow import AuthorizationFlow, FlowState, abbreviate
from .config import Settings
from .errors import AuthError, TransportError
from .token_store import TokenStore, is_valid_record
from .transport import Transport, request_json

REFRESH_MARGIN = 3600  # seconds before expiry at which a token is refreshed


class TokenManager:
    """Return a usable access token, refreshing or authorizing as needed.

    A failed refresh raises ``AuthError`` and is not escalated to a full
    authorization; a rejected grant code is retried with a fresh code from the
    operator, up to ``settings.max_exchange_attempts`` times (unbounded when
    ``None``).
    """

    def __init__(
        self,
        settings: Settings,
        store: TokenStore,
        flow: AuthorizationFlow,
        transports: Sequence[Transport],
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.store = store
        self.flow = flow
        self.transports = transports
        self.clock = clock

    def get_access_token(self) -> str:
        record = self.store.load()
        if record is None:
            print("No saved token found; starting OAuth authorization...")
            return self.authorize()

        now = int(self.clock())
        if now >= int(record["expires_at"]) - REFRESH_MARGIN:
            print("Saved token expired or expires within the hour; refreshing...")
            return self.refresh(record["refresh_token"])

        print("Using saved token")
        return record["access_token"]

    def refresh(self, refresh_token: str) -> str:
        try:
            record = self._post_token(
                {
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                }
            )
        except AuthError as exc:
            print(f"Refreshing the access token failed: {exc}", file=sys.stderr)
            raise
        self._persist(record)
        return record["access_token"]

    def authorize(self) -> str:
        try:
            code = self.flow.run()
        except AuthError as exc:
            if self.flow.state is not FlowState.FAILED:
                raise
            print(f"Automatic authorization failed: {exc}", file=sys.stderr)
            print("Switching to manual authorization...")
            code = self.flow.prompt_manual()
        return self.exchange_code(code)

    def exchange_code(self, code: str) -> str:
        limit = self.settings.max_exchange_attempts
        attempt = 0
        while True:
            attempt += 1
            print(f"Exchanging authorization code {abbreviate(code)} for tokens...")
            try:
                record = self._post_token(
                    {
                        "grant_type": "authorization_code",
                        "code": code,
                    }
                )
            except AuthError as exc:
                print(f"Token exchange failed: {exc}", file=sys.stderr)
                if limit is not None and attempt >= limit:
                    raise AuthError(f"Giving up after {attempt} authorization code attempts") from exc
                print("\nThe authorization code may be invalid; requesting a new one...")
                code = self.flow.prompt_manual()
                continue

            print("Obtained access token")
            self._persist(record)
            return record["access_token"]

    def _persist(self, record: dict[str, Any]) -> None:
        # The new token is still used for this run when the file cannot be written.
        try:
            self.store.save(record)
        except OSError as exc:
            print(f"Failed to save token to {self.store.path}: {exc}", file=sys.stderr)

    def _post_token(self, fields: dict[str, str]) -> dict[str, Any]:
        data = {
            "client_id": self.settings.client_id,
            "client_secret": self.settings.client_secret,
            **fields,
        }
        try:
            payload = request_json(self.transports, "POST", self.settings.token_url, data=data)
        except TransportError as exc:
            raise AuthError(str(exc)) from exc

        if not is_valid_record(payload):
            raise AuthError("Token response lacks a usable access_token, refresh_token or expires_at")
        return payload
