"""
Command-line entry point exposing the core operations.

Usage:
    x-ads auth login          # run the three-legged OAuth flow
    x-ads auth status         # verify tokens by listing ad accounts
    x-ads accounts            # list accessible ad accounts
    x-ads media upload PATH   # upload an image, GIF or mp4 and print its ids
    x-ads tweet create TEXT   # create a tweet (optionally with a card or media)
    x-ads stats --entity CAMPAIGN [--ids ID ...] [--date-range last_7d | --start ISO --end ISO]

Requirements:
    Set environment variables, a .env file, or run ``x-ads auth login`` with:
    - X_API_KEY
    - X_API_SECRET
    - X_ACCESS_TOKEN / X_ACCESS_TOKEN_SECRET (written by ``auth login``)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Sequence

from x_ads import __version__
from x_ads.auth import AuthFlow
from x_ads.cancellation import CancellationToken
from x_ads.config import ConfigManager, resolve_ad_account_id
from x_ads.exceptions import ApiResponseError, XAdsError
from x_ads.factory import XAdsClientFactory
from x_ads.pagination import Paginator
from x_ads.services.media_service import ChunkedUploader, MediaService
from x_ads.services.stats_service import (
    DATE_RANGE_PRESETS,
    DEFAULT_DATE_RANGE,
    ENTITY_TYPES,
    GRANULARITIES,
    StatsService,
    parse_date_range,
)
from x_ads.services.tweet_service import TweetService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="x-ads",
        description="Manage X (Twitter) ad campaigns",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--credentials",
        type=Path,
        help="Path to the credential file (default: ~/.x-ads/credentials.json)",
    )
    parser.add_argument(
        "--dotenv",
        type=Path,
        help="Path to .env file (default: ./.env)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Give up on the command after this many seconds, backoff included",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    commands = parser.add_subparsers(dest="command", required=True)

    auth = commands.add_parser("auth", help="Authenticate with X (OAuth 1.0a)")
    auth_commands = auth.add_subparsers(dest="auth_command")
    auth_commands.add_parser("login", help="Run the 3-legged flow to obtain access tokens")
    auth_commands.add_parser("status", help="Verify tokens work and list accessible ad accounts")

    commands.add_parser("accounts", help="List accessible ad accounts")

    media = commands.add_parser("media", help="Media upload utilities")
    media_commands = media.add_subparsers(dest="media_command", required=True)
    upload = media_commands.add_parser("upload", help="Upload a media file and print the media_key")
    upload.add_argument("path", type=Path, help="Path to media file (.jpg, .png, .gif, .webp, .mp4)")

    tweet = commands.add_parser("tweet", help="Tweets used as promoted content")
    tweet_commands = tweet.add_subparsers(dest="tweet_command", required=True)
    create = tweet_commands.add_parser("create", help="Create a tweet")
    create.add_argument("text", help="Tweet text")
    create.add_argument("--card", help="Card URI or bare card id")
    create.add_argument("--media-id", dest="media_ids", action="append", default=[], help="Media id to attach (repeatable)")

    stats = commands.add_parser("stats", help="Fetch analytics for campaigns, line items or promoted tweets")
    stats.add_argument("--account", help="Ad account id (default: $X_AD_ACCOUNT_ID)")
    stats.add_argument("--entity", required=True, choices=ENTITY_TYPES, type=str.upper)
    stats.add_argument("--ids", nargs="+", help="Entity ids (default: every entity of the type)")
    stats.add_argument(
        "--date-range",
        help=f"Preset ({', '.join(DATE_RANGE_PRESETS)}) or YYYY-MM-DD..YYYY-MM-DD (default: {DEFAULT_DATE_RANGE})",
    )
    stats.add_argument("--start", help="Start time (ISO 8601), overrides --date-range")
    stats.add_argument("--end", help="End time (ISO 8601), overrides --date-range")
    stats.add_argument("--granularity", default="TOTAL", choices=GRANULARITIES, type=str.upper)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.timeout is not None and args.timeout <= 0:
        parser.error("--timeout must be positive")
    window = _stats_window(parser, args) if args.command == "stats" else None
    config = ConfigManager(args.credentials, dotenv_path=args.dotenv)
    cancel = CancellationToken.with_timeout(args.timeout) if args.timeout is not None else None

    try:
        if args.command == "auth" and args.auth_command in (None, "login"):
            AuthFlow(config).run(cancel=cancel)
            _emit({"ok": True, "credential_path": str(config.credential_path)})
        elif args.command == "auth" or args.command == "accounts":
            _emit(_list_accounts(config, cancel))
        elif args.command == "media":
            with XAdsClientFactory.create_from_config(config) as client:
                service = MediaService(ChunkedUploader(client))
                result = service.upload_file(args.path, cancel=cancel)
            _emit({"media_id": result.media_id, "media_key": result.media_key})
        elif args.command == "tweet":
            with XAdsClientFactory.create_from_config(config) as client:
                created = TweetService(client).create_tweet(
                    args.text, card=args.card, media_ids=args.media_ids
                )
            _emit(created.model_dump())
        elif args.command == "stats":
            account_id = resolve_ad_account_id(args.account)
            start_time, end_time = window
            with XAdsClientFactory.create_from_config(config) as client:
                entries = StatsService(client).fetch(
                    account_id,
                    entity=args.entity,
                    entity_ids=args.ids,
                    start_time=start_time,
                    end_time=end_time,
                    granularity=args.granularity,
                    cancel=cancel,
                )
            _emit([{"id": entry.id, "metrics": [s.values for s in entry.segments]} for entry in entries])
        return 0
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
        return 130
    except XAdsError as exc:
        _emit(_error_payload(exc), stream=sys.stderr)
        return 1


def _stats_window(parser: argparse.ArgumentParser, args: argparse.Namespace) -> tuple[str, str]:
    """``--start``/``--end`` when given, else the ``--date-range`` preset."""

    if args.start or args.end:
        if not (args.start and args.end):
            parser.error("--start and --end must be given together")
        return args.start, args.end
    try:
        return parse_date_range(args.date_range or DEFAULT_DATE_RANGE)
    except ValueError as exc:
        parser.error(str(exc))


def _list_accounts(config: ConfigManager, cancel: CancellationToken | None = None) -> list[Any]:
    with XAdsClientFactory.create_from_config(config) as client:
        return Paginator(client).fetch_all("GET", "accounts", {"with_deleted": "false"}, cancel=cancel)


def _error_payload(exc: XAdsError) -> dict[str, Any]:
    payload: dict[str, Any] = {"error": type(exc).__name__, "message": str(exc)}
    if isinstance(exc, ApiResponseError):
        payload["status"] = exc.status
        payload["errors"] = [
            error.model_dump() if hasattr(error, "model_dump") else error
            for error in exc.errors
        ]
    return payload


def _emit(payload: Any, *, stream: Any = None) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str), file=stream or sys.stdout)


if __name__ == "__main__":
    sys.exit(main())
