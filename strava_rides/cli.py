from __future__ import annotations

import argparse
import datetime as dt
import sys
import webbrowser
from pathlib import Path

import duckdb

from .activities import ActivityFetcher, year_bounds
from .auth_flow import AuthorizationFlow, extract_code
from .config import OPTIONAL_STRAVA_VARS, REQUIRED_STRAVA_VARS, Settings, load_settings
from .details import DetailFetcher
from .errors import StravaRidesError
from .normalize import normalize_rides
from .output import export_parquet, write_rides
from .prompt import ConsolePrompt, OperatorInput
from .token_store import TokenStore
from .tokens import TokenManager
from .transport import Transport, close_transports, default_transports


def positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("expected a whole number") from exc
    if parsed < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return parsed


def add_common_arguments(parser: argparse.ArgumentParser, suppress: bool = False) -> None:
    # Subcommand copies default to SUPPRESS so options given before the subcommand are kept.
    default = argparse.SUPPRESS if suppress else None
    parser.add_argument("--token-file", default=default, help="Override STRAVA_TOKEN.")
    parser.add_argument(
        "--auth-timeout",
        type=float,
        default=default,
        help="Seconds to wait for the browser redirect before asking for a code (default: 60).",
    )
    parser.add_argument(
        "--max-exchange-attempts",
        type=positive_int,
        default=default,
        help="Stop asking for new authorization codes after this many failures (default: unlimited).",
    )
    parser.add_argument(
        "--no-browser",
        action="store_true",
        default=argparse.SUPPRESS if suppress else False,
        help="Do not open a browser automatically.",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="strava-rides",
        description="Export a year of Strava rides to a local JSON file",
    )
    add_common_arguments(parser)

    common = argparse.ArgumentParser(add_help=False)
    add_common_arguments(common, suppress=True)

    subparsers = parser.add_subparsers(dest="command")

    fetch_parser = subparsers.add_parser(
        "fetch",
        parents=[common],
        help="Fetch rides and write them out (default).",
    )
    add_fetch_arguments(fetch_parser)

    authorize_parser = subparsers.add_parser(
        "authorize",
        parents=[common],
        help="Exchange an authorization code for tokens and save them.",
    )
    authorize_parser.add_argument("code", nargs="?", help="Authorization code or full redirect URL.")

    subparsers.add_parser(
        "check-credentials",
        parents=[common],
        help="Show where each Strava setting was found and exit without calling the API.",
    )
    return parser


def add_fetch_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--out", default=None, help="Output JSON path (default: ./strava_data.json).")
    parser.add_argument("--year", type=int, default=None, help="Calendar year to export (default: current).")
    parser.add_argument(
        "--skip-parquet",
        action="store_true",
        help="Skip DuckDB parquet export of the rides JSON.",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        args = parser.parse_args([*(argv if argv is not None else sys.argv[1:]), "fetch"])
    return args


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    if args.token_file:
        settings.token_file = Path(args.token_file).expanduser()
    if args.auth_timeout is not None:
        settings.auth_timeout = args.auth_timeout
    if args.max_exchange_attempts is not None:
        settings.max_exchange_attempts = args.max_exchange_attempts
    if getattr(args, "out", None):
        settings.output_file = Path(args.out).expanduser()
    settings.open_browser = not args.no_browser
    return settings


def build_token_manager(
    settings: Settings,
    operator: OperatorInput,
    transports: list[Transport],
) -> TokenManager:
    opener = webbrowser.open if settings.open_browser else (lambda _url: False)
    flow = AuthorizationFlow(settings, operator, open_browser=opener)
    return TokenManager(settings, TokenStore(settings.token_file), flow, transports)


def run_fetch(
    settings: Settings,
    operator: OperatorInput,
    transports: list[Transport],
    year: int,
    skip_parquet: bool = False,
) -> int:
    print(f"Fetching {year} rides...")
    access_token = build_token_manager(settings, operator, transports).get_access_token()
    print("Access token ready")

    after, before = year_bounds(year)
    summaries = ActivityFetcher(settings.base_url, transports).list_rides(access_token, after, before)
    details = DetailFetcher(settings.base_url, transports).fetch_details(access_token, summaries)
    rides = normalize_rides(details)

    write_rides(settings.output_file, rides)
    print(f"Wrote {len(rides)} rides to {settings.output_file}")

    if not skip_parquet and rides:
        parquet_path = export_parquet(settings.output_file)
        print(f"Wrote {parquet_path}")

    print("Done!")
    return len(rides)


def run_authorize(
    settings: Settings,
    operator: OperatorInput,
    transports: list[Transport],
    raw_code: str | None,
) -> None:
    manager = build_token_manager(settings, operator, transports)
    if raw_code:
        print("Using the authorization code from the command line")
        code = extract_code(raw_code)
    else:
        code = manager.flow.prompt_manual()
    manager.exchange_code(code)
    print("Run `strava-rides` to fetch rides with the saved token.")


def show_sources(sources: dict[str, str]) -> None:
    print("Strava settings:")
    for var in (*REQUIRED_STRAVA_VARS, *OPTIONAL_STRAVA_VARS):
        print(f"- {var}: {sources[var]}")


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    settings, sources = load_settings()
    settings = apply_overrides(settings, args)

    if args.command == "check-credentials":
        show_sources(sources)
        return

    transports = default_transports()
    try:
        with ConsolePrompt() as operator:
            if args.command == "authorize":
                run_authorize(settings, operator, transports, args.code)
            else:
                year = args.year or dt.date.today().year
                run_fetch(settings, operator, transports, year, skip_parquet=args.skip_parquet)
    except (StravaRidesError, OSError, duckdb.Error) as exc:
        raise SystemExit(f"Error: {exc}") from exc
    finally:
        close_transports(transports)


if __name__ == "__main__":
    main()
