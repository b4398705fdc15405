from __future__ import annotations

import os
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit

DEFAULT_REDIRECT_URI = "http://localhost:8000/callback"
DEFAULT_SCOPE = "read,activity:read_all"
DEFAULT_BASE_URL = "https://www.strava.com/api/v3"
DEFAULT_TOKEN_FILE = "strava_token.json"
DEFAULT_OUTPUT_FILE = "strava_data.json"
DEFAULT_AUTH_TIMEOUT = 60  # seconds

REQUIRED_STRAVA_VARS = (
    "STRAVA_CLIENT_ID",
    "STRAVA_CLIENT_SECRET",
)
OPTIONAL_STRAVA_VARS = {
    "STRAVA_REDIRECT_URI": DEFAULT_REDIRECT_URI,
    "STRAVA_SCOPE": DEFAULT_SCOPE,
    "STRAVA_BASE_URL": DEFAULT_BASE_URL,
    "STRAVA_TOKEN": DEFAULT_TOKEN_FILE,
}
KEYCHAIN_SERVICE = "strava-rides"


@dataclass
class Settings:
    client_id: str
    client_secret: str
    redirect_uri: str = DEFAULT_REDIRECT_URI
    scope: str = DEFAULT_SCOPE
    base_url: str = DEFAULT_BASE_URL
    token_file: Path = Path(DEFAULT_TOKEN_FILE)
    output_file: Path = Path(DEFAULT_OUTPUT_FILE)
    auth_timeout: float = DEFAULT_AUTH_TIMEOUT
    max_exchange_attempts: int | None = None
    open_browser: bool = True

    @property
    def oauth_base_url(self) -> str:
        parts = urlsplit(self.base_url)
        return f"{parts.scheme}://{parts.netloc}/oauth"

    @property
    def token_url(self) -> str:
        return f"{self.oauth_base_url}/token"

    @property
    def callback_host(self) -> str:
        return urlsplit(self.redirect_uri).hostname or "localhost"

    @property
    def callback_port(self) -> int:
        port = urlsplit(self.redirect_uri).port
        return 8000 if port is None else port

    @property
    def callback_path(self) -> str:
        return urlsplit(self.redirect_uri).path or "/"


def is_readable_file(path: Path) -> bool:
    return path.is_file() and os.access(path, os.R_OK)


def dotenv_pair(raw_line: str) -> tuple[str, str] | None:
    line = raw_line.strip()
    if not line or line.startswith("#"):
        return None
    key, sep, value = line.removeprefix("export ").partition("=")
    key, value = key.strip(), value.strip()
    if not sep or not key:
        return None
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        value = value[1:-1]
    return key, value


def parse_dotenv(path: Path) -> dict[str, str]:
    if not is_readable_file(path):
        return {}
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return {}
    return dict(pair for pair in map(dotenv_pair, lines) if pair)


def discover_env_files() -> list[Path]:
    candidates = [Path(__file__).resolve().parent / ".env", Path.cwd() / ".env"]
    explicit_env_file = os.getenv("STRAVA_ENV_FILE")
    if explicit_env_file:
        candidates.insert(0, Path(explicit_env_file).expanduser())
    return list(dict.fromkeys(candidates))


def load_keychain_secret(var_name: str) -> str | None:
    # macOS keychain: service "strava-rides", account named after the variable.
    cmd = ["security", "find-generic-password", "-w", "-s", KEYCHAIN_SERVICE, "-a", var_name]
    try:
        result = subprocess.run(cmd, check=False, capture_output=True, text=True, timeout=10)
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    secret = result.stdout.strip() if result.returncode == 0 else ""
    return secret or None


def resolve_strava_values() -> tuple[dict[str, str], dict[str, str], list[Path]]:
    wanted = (*REQUIRED_STRAVA_VARS, *OPTIONAL_STRAVA_VARS)
    values: dict[str, str] = {}
    sources: dict[str, str] = {}

    for var_name in wanted:
        env_value = os.getenv(var_name)
        if env_value:
            values[var_name] = env_value
            sources[var_name] = "environment"

    env_files = discover_env_files()
    for env_file in env_files:
        if all(var_name in values for var_name in wanted):
            break
        if not is_readable_file(env_file):
            continue
        env_values = parse_dotenv(env_file)
        for var_name in wanted:
            if var_name in values:
                continue
            env_value = env_values.get(var_name)
            if env_value:
                values[var_name] = env_value
                sources[var_name] = f"dotenv:{env_file}"

    for var_name in REQUIRED_STRAVA_VARS:
        if var_name in values:
            continue
        keychain_value = load_keychain_secret(var_name)
        if keychain_value:
            values[var_name] = keychain_value
            sources[var_name] = "keychain"

    for var_name, default in OPTIONAL_STRAVA_VARS.items():
        if var_name not in values:
            values[var_name] = default
            sources[var_name] = "default"

    return values, sources, env_files


def format_missing_settings_message(missing_vars: list[str], searched_env_files: list[Path]) -> str:
    env_locations = ", ".join(shlex.quote(str(path)) for path in searched_env_files)
    missing = ", ".join(missing_vars)
    return (
        f"Missing Strava settings: {missing}\n"
        "Lookup order: environment variables -> .env files -> macOS keychain.\n"
        f"Searched .env paths: {env_locations}"
    )


def load_settings() -> tuple[Settings, dict[str, str]]:
    values, sources, searched_env_files = resolve_strava_values()
    missing_vars = [var for var in REQUIRED_STRAVA_VARS if var not in values]
    if missing_vars:
        raise SystemExit(format_missing_settings_message(missing_vars, searched_env_files))

    settings = Settings(
        client_id=values["STRAVA_CLIENT_ID"],
        client_secret=values["STRAVA_CLIENT_SECRET"],
        redirect_uri=values["STRAVA_REDIRECT_URI"],
        scope=values["STRAVA_SCOPE"],
        base_url=values["STRAVA_BASE_URL"].rstrip("/"),
        token_file=Path(values["STRAVA_TOKEN"]).expanduser(),
    )
    return settings, sources
