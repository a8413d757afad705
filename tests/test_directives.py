"""Tests for robots directive parsing and merging."""

from __future__ import annotations

from seocrawler.directives import (
    RobotsDirectives,
    merge_all,
    merge_directives,
    parse_robots_directives,
)


class TestParse:
    def test_absent_values_assert_nothing(self):
        assert parse_robots_directives(None) is None
        assert parse_robots_directives("") is None
        assert parse_robots_directives("   ") is None

    def test_recognized_tokens(self):
        parsed = parse_robots_directives("NoIndex, nofollow; noarchive")
        assert parsed.noindex is True
        assert parsed.nofollow is True
        assert parsed.noarchive is True
        assert parsed.nosnippet is None
        assert parsed.to_dict() == {"noindex": True, "nofollow": True, "noarchive": True}

    def test_unknown_tokens_ignored(self):
        parsed = parse_robots_directives("max-snippet:-1, max-image-preview:large")
        assert parsed == RobotsDirectives()
        assert parsed.to_dict() == {}

    def test_all_is_not_a_negation(self):
        assert parse_robots_directives("index, follow, all").to_dict() == {}


class TestMerge:
    def test_none_is_identity(self):
        only = RobotsDirectives(noindex=True)
        assert merge_directives(None, only) is only
        assert merge_directives(only, None) is only
        assert merge_directives(None, None) is None

    def test_or_per_asserted_field(self):
        merged = merge_directives(
            RobotsDirectives(noindex=True), RobotsDirectives(nofollow=True)
        )
        assert merged.to_dict() == {"noindex": True, "nofollow": True}
        assert merged.nocache is None

    def test_merge_all_repeated_headers(self):
        merged = merge_all(["noarchive", "", "noindex, nosnippet"])
        assert merged.to_dict() == {"noarchive": True, "noindex": True, "nosnippet": True}

    def test_merge_all_empty(self):
        assert merge_all([]) is None
        assert merge_all(["", None]) is None
