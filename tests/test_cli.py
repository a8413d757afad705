"""Tests for seocrawler.cli and its parser/config helpers."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from seocrawler.cli import _run_audit_async, _run_crawl_async, main
from seocrawler.cli_config import load_config
from seocrawler.cli_parsers import _normalize_argv, parse_args
from seocrawler.models import AuditResult, CrawlResult, CrawlStats


def _crawl_args(**overrides) -> argparse.Namespace:
    values = dict(
        command="crawl",
        url="https://example.com/",
        depth=None,
        max_pages=None,
        include_subdomains=False,
        respect_robots=None,
        snapshot=False,
        user_agent=None,
        output=None,
        json_output=False,
        verbose=False,
    )
    values.update(overrides)
    return argparse.Namespace(**values)


def _audit_args(**overrides) -> argparse.Namespace:
    values = dict(
        command="audit",
        urls=["https://example.com/"],
        user_agent=None,
        output=None,
        json_output=False,
        verbose=False,
    )
    values.update(overrides)
    return argparse.Namespace(**values)


def _result(pages_fetched: int = 1) -> CrawlResult:
    return CrawlResult(stats=CrawlStats(pages_fetched=pages_fetched))


class TestParseArgs:
    def test_bare_url_implies_crawl(self):
        args = parse_args(["https://example.com/"])
        assert args.command == "crawl"
        assert args.url == "https://example.com/"
        assert args.depth is None
        assert args.max_pages is None
        assert args.respect_robots is None
        assert args.include_subdomains is False
        assert args.json_output is False
        assert args.snapshot is False

    def test_crawl_with_all_options(self):
        args = parse_args(
            [
                "crawl",
                "https://example.com/",
                "--depth",
                "1",
                "--max-pages",
                "50",
                "--include-subdomains",
                "--respect-robots",
                "--snapshot",
                "--user-agent",
                "bot",
                "--json",
                "-o",
                "out.json",
                "-v",
            ]
        )
        assert args.depth == 1
        assert args.max_pages == 50
        assert args.include_subdomains is True
        assert args.respect_robots is True
        assert args.snapshot is True
        assert args.user_agent == "bot"
        assert args.json_output is True
        assert args.output == "out.json"
        assert args.verbose is True

    def test_audit_many_urls(self):
        args = parse_args(["audit", "https://a.com/", "https://b.com/", "--json"])
        assert args.command == "audit"
        assert args.urls == ["https://a.com/", "https://b.com/"]
        assert args.json_output is True

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_args([])

    def test_audit_requires_url(self):
        with pytest.raises(SystemExit):
            parse_args(["audit"])

    def test_normalize_argv(self):
        assert _normalize_argv(["https://x.com/"]) == ["crawl", "https://x.com/"]
        assert _normalize_argv(["audit", "https://x.com/"]) == ["audit", "https://x.com/"]
        assert _normalize_argv(["--help"]) == ["--help"]
        assert _normalize_argv([]) == []


class TestLoadConfig:
    def test_prefers_cwd_env(self, tmp_path: Path):
        (tmp_path / ".env").write_text("CRAWLER_MAX_PAGES=5\n")
        config_dir = tmp_path / "config"
        load_env = MagicMock()

        found = load_config(
            config_dir=config_dir,
            config_env_file=config_dir / ".env",
            cwd=tmp_path,
            load_env=load_env,
            copy_file=MagicMock(),
        )

        assert found == tmp_path / ".env"
        load_env.assert_called_once_with(tmp_path / ".env")

    def test_uses_config_dir_env(self, tmp_path: Path):
        config_dir = tmp_path / "config"
        config_dir.mkdir()
        (config_dir / ".env").write_text("")
        cwd = tmp_path / "work"
        cwd.mkdir()
        load_env = MagicMock()

        found = load_config(
            config_dir=config_dir,
            config_env_file=config_dir / ".env",
            cwd=cwd,
            load_env=load_env,
            copy_file=MagicMock(),
        )

        assert found == config_dir / ".env"

    def test_seeds_from_example(self, tmp_path: Path):
        example = tmp_path / ".env.example"
        example.write_text("# CRAWLER_DEFAULT_DEPTH=2\n")
        config_dir = tmp_path / "config"
        cwd = tmp_path / "work"
        cwd.mkdir()
        load_env = MagicMock()
        copy_file = MagicMock()

        found = load_config(
            config_dir=config_dir,
            config_env_file=config_dir / ".env",
            cwd=cwd,
            load_env=load_env,
            copy_file=copy_file,
            example_file=example,
        )

        assert found == config_dir / ".env"
        assert config_dir.is_dir()
        copy_file.assert_called_once_with(example, config_dir / ".env")
        load_env.assert_called_once_with(config_dir / ".env")

    def test_nothing_to_load(self, tmp_path: Path):
        load_env = MagicMock()

        found = load_config(
            config_dir=tmp_path / "config",
            config_env_file=tmp_path / "config" / ".env",
            cwd=tmp_path,
            load_env=load_env,
            copy_file=MagicMock(),
            example_file=tmp_path / "missing.example",
        )

        assert found is None
        load_env.assert_not_called()

    def test_copy_failure_is_not_fatal(self, tmp_path: Path):
        example = tmp_path / ".env.example"
        example.write_text("")

        found = load_config(
            config_dir=tmp_path / "config",
            config_env_file=tmp_path / "config" / ".env",
            cwd=tmp_path / "elsewhere",
            load_env=MagicMock(),
            copy_file=MagicMock(side_effect=PermissionError("read-only")),
            example_file=example,
        )

        assert found is None


class TestMainEntryPoint:
    def test_main_crawl(self):
        with patch("seocrawler.cli._load_config"), patch(
            "seocrawler.cli._run_crawl_async", new_callable=AsyncMock
        ) as mock:
            mock.return_value = 0
            result = main(["https://example.com/", "--depth", "1"])

        assert result == 0
        assert mock.await_args.args[0].depth == 1

    def test_main_audit(self):
        with patch("seocrawler.cli._load_config"), patch(
            "seocrawler.cli._run_audit_async", new_callable=AsyncMock
        ) as mock:
            mock.return_value = 0
            result = main(["audit", "https://example.com/"])

        assert result == 0
        mock.assert_awaited_once()

    def test_main_crawl_error(self):
        with patch("seocrawler.cli._load_config"), patch(
            "seocrawler.cli._run_crawl_async",
            new_callable=AsyncMock,
            side_effect=Exception("error"),
        ):
            assert main(["https://example.com/"]) == 1

    def test_main_interrupted(self):
        with patch("seocrawler.cli._load_config"), patch(
            "seocrawler.cli._run_crawl_async",
            new_callable=AsyncMock,
            side_effect=KeyboardInterrupt,
        ):
            assert main(["https://example.com/"]) == 130


class TestRunCrawlAsync:
    @pytest.mark.asyncio
    async def test_markdown_to_stdout(self, capsys, clean_env):
        with patch(
            "seocrawler.crawl_site_async", new_callable=AsyncMock, return_value=_result()
        ) as mock:
            result = await _run_crawl_async(
                _crawl_args(depth=1, max_pages=10, user_agent="bot", respect_robots=True)
            )

        assert result == 0
        assert "# Crawl: https://example.com/" in capsys.readouterr().out
        kwargs = mock.await_args.kwargs
        assert kwargs["depth"] == 1
        assert kwargs["max_pages"] == 10
        assert kwargs["user_agent"] == "bot"
        assert kwargs["respect_robots"] is True

    @pytest.mark.asyncio
    async def test_json_to_file(self, tmp_path: Path, clean_env):
        target = tmp_path / "crawl.json"
        with patch(
            "seocrawler.crawl_site_async", new_callable=AsyncMock, return_value=_result()
        ):
            result = await _run_crawl_async(_crawl_args(json_output=True, output=str(target)))

        assert result == 0
        assert json.loads(target.read_text())["stats"]["pagesFetched"] == 1

    @pytest.mark.asyncio
    async def test_snapshot_written(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, clean_env, capsys
    ):
        monkeypatch.setenv("CRAWLER_SNAPSHOT_DIR", str(tmp_path / "snaps"))
        with patch(
            "seocrawler.crawl_site_async", new_callable=AsyncMock, return_value=_result()
        ):
            await _run_crawl_async(_crawl_args(snapshot=True, depth=2))

        [snapshot] = list((tmp_path / "snaps").iterdir())
        payload = json.loads(snapshot.read_text())
        assert payload["input"]["startUrl"] == "https://example.com/"
        assert payload["input"]["depth"] == 2
        assert snapshot.name.startswith("example.com-")

    @pytest.mark.asyncio
    async def test_nothing_fetched(self, capsys, clean_env):
        with patch(
            "seocrawler.crawl_site_async",
            new_callable=AsyncMock,
            return_value=_result(pages_fetched=0),
        ):
            assert await _run_crawl_async(_crawl_args()) == 1


class TestRunAuditAsync:
    @pytest.mark.asyncio
    async def test_some_failed(self, capsys):
        results = [
            AuditResult(url="https://a.com/", final_url="https://a.com/", status=200),
            AuditResult(
                url="https://b.com/", final_url="https://b.com/", status=0, issues=["fetch failed"]
            ),
        ]
        with patch(
            "seocrawler.audit_urls_async", new_callable=AsyncMock, return_value=results
        ) as mock:
            code = await _run_audit_async(
                _audit_args(urls=["https://a.com/", "https://b.com/"], json_output=True)
            )

        assert code == 0
        assert mock.await_args.args[0] == ["https://a.com/", "https://b.com/"]
        payload = json.loads(capsys.readouterr().out)
        assert [entry["status"] for entry in payload["results"]] == [200, 0]

    @pytest.mark.asyncio
    async def test_all_failed(self, capsys):
        results = [
            AuditResult(
                url="https://b.com/", final_url="https://b.com/", status=0, issues=["fetch failed"]
            )
        ]
        with patch("seocrawler.audit_urls_async", new_callable=AsyncMock, return_value=results):
            assert await _run_audit_async(_audit_args(urls=["https://b.com/"])) == 1
