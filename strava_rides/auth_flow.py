from __future__ import annotations

import re
import sys
import threading
import webbrowser
from enum import Enum
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Callable
from urllib.parse import parse_qs, urlencode, urlsplit

from .config import Settings
from .errors import AuthError, ListenerError
from .prompt import OperatorInput

CODE_PATTERN = re.compile(r"code=([^&\s]+)")


class FlowState(str, Enum):
    LISTENING = "listening"
    TIMED_OUT = "timed_out"
    MANUAL = "manual"
    DONE = "done"
    FAILED = "failed"


def build_authorize_url(settings: Settings) -> str:
    query = urlencode(
        {
            "client_id": settings.client_id,
            "redirect_uri": settings.redirect_uri,
            "response_type": "code",
            "scope": settings.scope,
        }
    )
    return f"{settings.oauth_base_url}/authorize?{query}"


def extract_code(raw: str) -> str:
    """Pull ``code`` out of a pasted redirect URL, or return the trimmed input."""
    text = raw.strip()
    if "code=" in text:
        parts = urlsplit(text)
        if parts.scheme and parts.netloc:
            values = parse_qs(parts.query).get("code")
            if values and values[0]:
                return values[0]
        match = CODE_PATTERN.search(text)
        if match:
            return match.group(1)
    return text


def abbreviate(secret: str) -> str:
    if len(secret) <= 8:
        return "*" * len(secret)
    return f"{secret[:4]}...{secret[-4:]}"


class CallbackHandler(BaseHTTPRequestHandler):
    server: "CallbackServer"

    def do_GET(self) -> None:
        flow = self.server.flow
        parts = urlsplit(self.path)
        if parts.path.rstrip("/") != flow.callback_path.rstrip("/"):
            self._html(404, "<h1>Not found</h1>")
            return

        query = parse_qs(parts.query)
        error = (query.get("error") or [""])[0]
        code = (query.get("code") or [""])[0]

        if error:
            self._html(200, "<h1>Authorization failed</h1><p>Close this window and check the console.</p>")
            flow.callback_failed(error)
        elif code:
            self._html(200, "<h1>Authorization complete</h1><p>Close this window and return to the console.</p>")
            flow.callback_succeeded(code)
        else:
            self._html(400, "<h1>Invalid callback</h1><p>No authorization code received; please retry.</p>")

    def _html(self, status: int, body: str) -> None:
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.end_headers()
        self.wfile.write(body.encode("utf-8"))

    def log_message(self, format: str, *args: object) -> None:
        return


class CallbackServer(HTTPServer):
    def __init__(self, address: tuple[str, int], flow: "AuthorizationFlow") -> None:
        self.flow = flow
        super().__init__(address, CallbackHandler)


class AuthorizationFlow:
    """Obtain a grant code from the local redirect listener or the operator.

    The listener waits ``timeout`` seconds for the provider redirect. Whichever
    of the callback and the timeout settles first decides the outcome; the
    listener is closed before manual input starts.
    """

    def __init__(
        self,
        settings: Settings,
        operator: OperatorInput,
        open_browser: Callable[[str], bool] = webbrowser.open,
        timeout: float | None = None,
    ) -> None:
        self.settings = settings
        self.operator = operator
        self.open_browser = open_browser
        self.timeout = settings.auth_timeout if timeout is None else timeout
        self.callback_path = settings.callback_path
        self.state: FlowState | None = None
        self.bound_port: int | None = None

        self._lock = threading.Lock()
        self._settled = threading.Event()
        self._server: CallbackServer | None = None
        self._server_thread: threading.Thread | None = None
        self._listener_closed = False
        self._code: str | None = None
        self._error: str | None = None

    @property
    def authorize_url(self) -> str:
        return build_authorize_url(self.settings)

    def run(self) -> str:
        try:
            self._start_listener()
        except ListenerError as exc:
            print(f"Could not start the authorization listener: {exc}", file=sys.stderr)
            print("Switching to manual authorization...")
            return self.prompt_manual()

        print("Authorize the app in the browser window that just opened.")
        print(f"If no browser opened, visit: {self.authorize_url}")
        self._launch_browser()

        if not self._settled.wait(self.timeout) and self._settle(FlowState.TIMED_OUT):
            print("\nAutomatic authorization timed out; switching to manual input...")
        self._close_listener()

        if self.state is FlowState.DONE:
            assert self._code is not None
            return self._code
        if self.state is FlowState.FAILED:
            raise AuthError(f"Authorization denied by provider: {self._error}")
        return self.prompt_manual()

    def prompt_manual(self) -> str:
        self.state = FlowState.MANUAL
        print("\nGet an authorization code manually:")
        print("1. Open this link in a browser:")
        print(f"\n{self.authorize_url}\n")
        print("2. Sign in to Strava and authorize the app")
        print("3. You will be redirected to a page that may not load")
        print("4. Copy the full URL from the address bar")
        raw = self.operator.ask("\nPaste the redirect URL or the authorization code: ")
        code = extract_code(raw)
        self.state = FlowState.DONE
        return code

    def callback_succeeded(self, code: str) -> None:
        if self._settle(FlowState.DONE, code=code):
            print(f"Received authorization code {abbreviate(code)}")

    def callback_failed(self, error: str) -> None:
        if self._settle(FlowState.FAILED, error=error):
            print(f"Authorization error from provider: {error}", file=sys.stderr)

    def _settle(self, state: FlowState, code: str | None = None, error: str | None = None) -> bool:
        with self._lock:
            if self._settled.is_set():
                return False
            self.state = state
            self._code = code
            self._error = error
            self._settled.set()
            return True

    def _start_listener(self) -> None:
        address = (self.settings.callback_host, self.settings.callback_port)
        try:
            self._server = CallbackServer(address, self)
        except OSError as exc:
            raise ListenerError(f"cannot bind {address[0]}:{address[1]}: {exc}") from exc

        self.bound_port = self._server.server_address[1]
        self.state = FlowState.LISTENING
        self._server_thread = threading.Thread(
            target=self._server.serve_forever,
            name="oauth-callback",
            daemon=True,
        )
        self._server_thread.start()

    def _close_listener(self) -> None:
        if self._listener_closed or self._server is None:
            return
        self._listener_closed = True
        self._server.shutdown()
        self._server.server_close()
        if self._server_thread is not None:
            self._server_thread.join()

    def _launch_browser(self) -> None:
        try:
            opened = self.open_browser(self.authorize_url)
        except webbrowser.Error as exc:
            print(f"Could not open a browser: {exc}", file=sys.stderr)
            return
        if not opened:
            print("Could not open a browser; use the link above.", file=sys.stderr)
