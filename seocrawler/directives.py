"""Robots directive parsing for ``<meta name="robots">`` and ``X-Robots-Tag``."""

from __future__ import annotations

import re
from dataclasses import dataclass, fields
from typing import Dict, Iterable, Optional

_SEPARATORS = re.compile(r"[,;]+")


@dataclass(slots=True)
class RobotsDirectives:
    """Six independent directives; None means "not asserted"."""

    noindex: Optional[bool] = None
    nofollow: Optional[bool] = None
    noarchive: Optional[bool] = None
    nosnippet: Optional[bool] = None
    noimageindex: Optional[bool] = None
    nocache: Optional[bool] = None

    def to_dict(self) -> Dict[str, bool]:
        """Only the asserted directives."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


DIRECTIVE_NAMES = frozenset(f.name for f in fields(RobotsDirectives))


def parse_robots_directives(raw: Optional[str]) -> Optional[RobotsDirectives]:
    """Tokenize a directive string on commas/semicolons.

    Unknown tokens (``max-snippet:-1``, ``googlebot: noindex``) are ignored.
    An empty or absent value yields None; a value with no recognized token
    yields an empty ``RobotsDirectives``.
    """
    if not raw or not raw.strip():
        return None
    directives = RobotsDirectives()
    for token in _SEPARATORS.split(raw):
        name = token.strip().lower()
        if name in DIRECTIVE_NAMES:
            setattr(directives, name, True)
    return directives


def _merge_flag(a: Optional[bool], b: Optional[bool]) -> Optional[bool]:
    if a is None:
        return b
    if b is None:
        return a
    return a or b


def merge_directives(
    a: Optional[RobotsDirectives], b: Optional[RobotsDirectives]
) -> Optional[RobotsDirectives]:
    """OR two directive sets, only over the fields either side asserts."""
    if a is None:
        return b
    if b is None:
        return a
    return RobotsDirectives(
        **{
            name: _merge_flag(getattr(a, name), getattr(b, name))
            for name in DIRECTIVE_NAMES
        }
    )


def merge_all(values: Iterable[Optional[str]]) -> Optional[RobotsDirectives]:
    """Parse and merge every raw value (e.g. repeated headers)."""
    merged: Optional[RobotsDirectives] = None
    for value in values:
        merged = merge_directives(merged, parse_robots_directives(value))
    return merged
