"""Serialization, markdown summaries and snapshot files for crawl/audit results."""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlsplit

from .models import STATUS_BUCKETS, AuditResult, CrawlResult

LOGGER = logging.getLogger(__name__)

REPORT_PREVIEW = 10

_UNSAFE_HOST_CHARS = re.compile(r"[:/\\]")


def _format_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def to_json(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)


def crawl_result_to_json(result: CrawlResult) -> str:
    return to_json(result.to_dict())


def audit_results_to_json(results: Sequence[AuditResult]) -> str:
    return to_json({"results": [result.to_dict() for result in results]})


def _preview_lines(keys: Sequence[str]) -> List[str]:
    lines = [f"- {key}" for key in keys[:REPORT_PREVIEW]]
    if len(keys) > REPORT_PREVIEW:
        lines.append(f"- ... and {len(keys) - REPORT_PREVIEW} more")
    return lines


def format_crawl_markdown(start_url: str, result: CrawlResult) -> str:
    """Human summary: stats, status buckets and a preview of the reports."""
    stats = result.stats
    reports = result.reports
    lines = [
        f"# Crawl: {start_url}",
        f"_Crawled: {_format_timestamp()}_",
        "",
        "## Stats",
        f"- Pages fetched: {stats.pages_fetched}",
        f"- URLs from sitemap: {stats.pages_from_sitemap}",
        f"- URLs from HTML: {stats.pages_from_html}",
        f"- Inventory size: {len(result.inventory)}",
        f"- Internal links: {len(result.edges)}",
        f"- Elapsed: {stats.elapsed_ms} ms",
        "",
        "## Status codes",
    ]
    for bucket in STATUS_BUCKETS:
        lines.append(f"- {bucket}: {reports.status_buckets.get(bucket, 0)}")
    lines.append("")

    if result.sitemap:
        lines.append("## Sitemaps consulted")
        lines.extend(f"- {endpoint}" for endpoint in result.sitemap)
        lines.append("")

    orphans = reports.orphans_in_sitemap
    lines.append(f"## Orphans in sitemap ({len(orphans)})")
    lines.extend(_preview_lines(orphans))
    lines.append("")

    linked = reports.linked_not_in_sitemap
    lines.append(f"## Linked but not in sitemap ({len(linked)})")
    lines.extend(_preview_lines(linked))

    return "\n".join(lines)


def format_audit_markdown(results: Sequence[AuditResult]) -> str:
    lines = [
        f"# Indexability audit ({len(results)} URL(s))",
        f"_Audited: {_format_timestamp()}_",
        "",
    ]
    for result in results:
        lines.append(f"## {result.url}")
        if result.final_url != result.url:
            lines.append(f"- Final URL: {result.final_url}")
        lines.append(f"- Status: {result.status}")
        if result.redirect_chain:
            lines.append(f"- Redirects: {len(result.redirect_chain)}")
        lines.append(f"- Canonical: {result.canonical or '-'}")
        lines.append(
            f"- Noindex: meta={str(result.noindex.meta).lower()}, "
            f"header={str(result.noindex.header).lower()}"
        )
        if result.hreflang:
            langs = ", ".join(link.lang for link in result.hreflang)
            lines.append(f"- Hreflang: {langs}")
        if result.issues:
            lines.append("- Issues:")
            lines.extend(f"  - {issue}" for issue in result.issues)
        lines.append("")
    return "\n".join(lines)


def snapshot_path(
    start_url: str, snapshot_dir: str, now: Optional[datetime] = None
) -> Path:
    """``<snapshot_dir>/<host>-<timestamp>.json`` for a crawl of ``start_url``."""
    host = _UNSAFE_HOST_CHARS.sub("_", urlsplit(start_url).netloc) or "unknown"
    moment = now or datetime.now(timezone.utc)
    stamp = moment.strftime("%Y-%m-%dT%H-%M-%S-%f")
    return Path(snapshot_dir).resolve() / f"{host}-{stamp}.json"


def write_snapshot(
    request: Dict[str, Any],
    result: CrawlResult,
    snapshot_dir: str,
    now: Optional[datetime] = None,
) -> Path:
    """Persist ``{"input": request, "output": result}`` and return the path."""
    path = snapshot_path(request.get("startUrl", ""), snapshot_dir, now=now)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        to_json({"input": request, "output": result.to_dict()}), encoding="utf-8"
    )
    LOGGER.info("Wrote snapshot %s", path)
    return path


def write_output(text: str, output: Optional[str]) -> None:
    """Print ``text`` or write it to ``output``."""
    if output is None:
        print(text)
        return
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    LOGGER.info("Wrote %s", path)


def summarize_audit(results: List[AuditResult]) -> Dict[str, int]:
    return {
        "total": len(results),
        "failed": sum(1 for result in results if result.status == 0),
        "with_issues": sum(1 for result in results if result.issues),
    }
