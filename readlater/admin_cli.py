import argparse
import os
import sys

from .errors import StoreError
from .store import get_or_create_feed_id


def feed_url(base_url: str, feed_id: str) -> str:
    return f"{base_url.rstrip('/')}/v1/feeds/{feed_id}/items"


def _print_feed_url(args) -> int:
    try:
        feed_id = get_or_create_feed_id(args.user_id)
    except LookupError as exc:
        print(exc, file=sys.stderr)
        return 1
    except StoreError as exc:
        print(f"Database error: {exc}", file=sys.stderr)
        return 1
    print(feed_url(args.base_url, feed_id))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="readlater-admin", description="Read-later administration")
    subcommands = parser.add_subparsers(dest="command", required=True)

    feed = subcommands.add_parser(
        "feed-url",
        help="Print a user's read-later feed URL, issuing a feed id on first use",
    )
    feed.add_argument("user_id")
    feed.add_argument(
        "--base-url",
        default=os.getenv("PUBLIC_BASE_URL", "http://localhost:8000"),
        help="Public address of the API (default: $PUBLIC_BASE_URL)",
    )
    feed.set_defaults(handler=_print_feed_url)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv if argv is not None else sys.argv[1:])
    return args.handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
