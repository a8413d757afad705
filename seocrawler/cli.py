"""Command-line interface for the SEO crawler and indexability auditor."""

from __future__ import annotations

import argparse
import asyncio
import logging
import shutil
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .cli_config import load_config
from .cli_parsers import parse_args
from .config import load_settings
from .models import AuditRequest, CrawlRequest
from .output import (
    audit_results_to_json,
    crawl_result_to_json,
    format_audit_markdown,
    format_crawl_markdown,
    write_output,
    write_snapshot,
)

# Configuration directory for global CLI usage
CONFIG_DIR = Path.home() / ".config" / "seocrawler"
CONFIG_ENV_FILE = CONFIG_DIR / ".env"


def _load_config() -> Optional[Path]:
    """Load .env from the working directory or ~/.config/seocrawler/."""
    return load_config(
        config_dir=CONFIG_DIR,
        config_env_file=CONFIG_ENV_FILE,
        cwd=Path.cwd(),
        load_env=load_dotenv,
        copy_file=shutil.copy,
    )


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


async def _run_crawl_async(args: argparse.Namespace) -> int:
    """Async entry point for ``seocrawl crawl``."""
    from . import crawl_site_async

    settings = load_settings()
    result = await crawl_site_async(
        args.url,
        depth=args.depth,
        max_pages=args.max_pages,
        include_subdomains=args.include_subdomains,
        user_agent=args.user_agent,
        respect_robots=args.respect_robots,
        settings=settings,
    )

    if args.snapshot:
        request = CrawlRequest(
            start_url=args.url,
            depth=args.depth,
            max_pages=args.max_pages,
            include_subdomains=args.include_subdomains,
            user_agent=args.user_agent,
        )
        write_snapshot(request.to_dict(), result, settings.snapshot_dir)

    if args.json_output:
        text = crawl_result_to_json(result)
    else:
        text = format_crawl_markdown(args.url, result)
    write_output(text, args.output)

    if result.stats.pages_fetched == 0:
        logging.error("No pages could be fetched from %s", args.url)
        return 1
    return 0


async def _run_audit_async(args: argparse.Namespace) -> int:
    """Async entry point for ``seocrawl audit``."""
    from . import audit_urls_async

    request = AuditRequest(urls=list(args.urls), user_agent=args.user_agent)
    results = await audit_urls_async(request.urls, user_agent=request.user_agent)

    failed = [result for result in results if result.status == 0]
    for result in failed:
        logging.warning("Failed: %s", result.url)

    if args.json_output:
        text = audit_results_to_json(results)
    else:
        text = format_audit_markdown(results)
    write_output(text, args.output)

    return 1 if len(failed) == len(results) else 0


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for ``seocrawl``."""
    args = parse_args(argv)
    _setup_logging(args.verbose)
    _load_config()

    runner = _run_audit_async if args.command == "audit" else _run_crawl_async
    try:
        return asyncio.run(runner(args))
    except KeyboardInterrupt:
        logging.info("Interrupted")
        return 130
    except Exception as exc:
        logging.error("Error: %s", exc)
        if args.verbose:
            logging.exception("Full traceback:")
        return 1


if __name__ == "__main__":
    sys.exit(main())
