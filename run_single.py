# run_single.py
import argparse
import logging
import sys
import time
from typing import List, Optional

from bootstrap import init_client
from errors import ConfigError, FlomoError
from flomo_client import FlomoClient, memo_url

_log = logging.getLogger("flomo.cli")

EXAMPLES = """Examples:
  flomo -c "This is a note"
  flomo -content "This is a note" -tags "work,todo"
  echo "This is a note" | flomo
"""


def parse_tags(raw: Optional[str]) -> List[str]:
    # no dedup and no sanitizing: tags go out exactly as typed
    if not raw:
        return []
    return [t.strip() for t in raw.split(",") if t.strip()]


def apply_tags(content: str, tags: List[str]) -> str:
    for tag in tags:
        content += " #" + tag
    return content


def read_content(flag_value: Optional[str], stdin=None) -> str:
    """Use the flag when given, otherwise piped stdin; always trimmed."""
    stdin = stdin if stdin is not None else sys.stdin
    if flag_value:
        return flag_value.strip()
    if stdin is None or stdin.isatty():
        return ""
    _log.info("Reading content from stdin")
    return stdin.read().strip()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flomo",
        description="Send a note to flomo.",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-c", "-content", "--content", dest="content", default="",
                        help="Note content (read from stdin when omitted)")
    parser.add_argument("-t", "-tags", "--tags", dest="tags", default="",
                        help="Comma-separated tags (optional)")
    parser.add_argument("-v", "-verbose", "--verbose", dest="verbose", action="store_true",
                        help="Show verbose output")
    return parser


def process(client: FlomoClient, content: str, tags: List[str], verbose: bool = False) -> int:
    started = time.monotonic()
    content = apply_tags(content, tags)
    try:
        resp = client.write_note(content)
    except FlomoError as e:
        _log.error("Error sending note: %s", e)
        print(f"Error sending note: {e}")
        return 1
    duration = time.monotonic() - started

    print("\nNote sent successfully!")
    print(f"Created at: {resp.memo.created_at}")
    if resp.memo.tags:
        print(f"Tags: {', '.join(resp.memo.tags)}")
    print(f"View at: {memo_url(client.config.view_url, resp.memo.slug)}")

    if verbose:
        print("\nDetailed information:")
        print(f"- Source: {resp.memo.source}")
        print(f"- Creator ID: {resp.memo.creator_id}")
        print(f"- Response code: {resp.code}")
        print(f"- Response message: {resp.message}")
        print(f"- Total time: {duration:.3f}s")
    return 0


def main(argv: Optional[List[str]] = None, stdin=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        client = init_client("cli")
    except ConfigError as e:
        _log.error("%s", e)
        print(f"Error: {e}")
        print("Please set it in your .env file or environment")
        return 1

    content = read_content(args.content, stdin)
    if not content:
        print("Error: Note content is required")
        parser.print_usage()
        return 1

    return process(client, content, parse_tags(args.tags), verbose=args.verbose)


if __name__ == "__main__":
    sys.exit(main())
