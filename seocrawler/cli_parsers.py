"""Argument parser construction for the ``seocrawl`` command."""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

COMMANDS = ("crawl", "audit")


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--user-agent",
        type=str,
        default=None,
        help="User agent for requests (default: CRAWLER_USER_AGENT or seocrawler)",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        help="Write the report to this file instead of stdout",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Output the full result as JSON",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def _add_crawl_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "url",
        help="Start URL (absolute http/https)",
    )
    parser.add_argument(
        "--depth",
        type=int,
        default=None,
        help="Maximum link depth, 0 = start page only (default: CRAWLER_DEFAULT_DEPTH or 2)",
    )
    parser.add_argument(
        "--max-pages",
        type=int,
        default=None,
        help="Maximum number of fetches (default: CRAWLER_MAX_PAGES or 500)",
    )
    parser.add_argument(
        "--include-subdomains",
        action="store_true",
        help="Treat sibling subdomains as internal",
    )
    parser.add_argument(
        "--respect-robots",
        action="store_true",
        default=None,
        help="Honor robots.txt (default: CRAWLER_RESPECT_ROBOTS)",
    )
    parser.add_argument(
        "--snapshot",
        action="store_true",
        help="Also write an {input, output} snapshot to CRAWLER_SNAPSHOT_DIR",
    )
    _add_common_args(parser)


def _add_audit_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "urls",
        nargs="+",
        help="URL(s) to audit",
    )
    _add_common_args(parser)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="seocrawl",
        description="Crawl a site against its sitemaps, or audit URL indexability.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command")

    crawl_parser = subparsers.add_parser(
        "crawl",
        description="Breadth-first crawl merged with sitemap declarations.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  # Summary to stdout
  seocrawl crawl https://example.com/

  # Shallow crawl with a small budget
  seocrawl crawl https://example.com/ --depth 1 --max-pages 50

  # Full JSON result to a file
  seocrawl crawl https://example.com/ --json -o crawl.json

  # Honor robots.txt and keep a snapshot
  seocrawl crawl https://example.com/ --respect-robots --snapshot
""",
    )
    _add_crawl_args(crawl_parser)

    audit_parser = subparsers.add_parser(
        "audit",
        description="Audit status, redirects, canonical, noindex and hreflang.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  # One URL
  seocrawl audit https://example.com/

  # Several URLs as JSON
  seocrawl audit https://example.com/ https://example.com/old --json
""",
    )
    _add_audit_args(audit_parser)

    return parser


def _normalize_argv(argv: Optional[List[str]]) -> List[str]:
    effective_argv = list(sys.argv[1:] if argv is None else argv)
    if (
        effective_argv
        and effective_argv[0] not in COMMANDS
        and not effective_argv[0].startswith("-")
    ):
        return ["crawl", *effective_argv]
    return effective_argv


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse ``seocrawl`` arguments; a bare URL implies the crawl command."""
    parser = build_parser()
    args = parser.parse_args(_normalize_argv(argv))
    if not args.command:
        parser.error("a command is required (crawl or audit)")
    return args
