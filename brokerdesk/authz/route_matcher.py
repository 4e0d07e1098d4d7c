"""
Route matching for view route patterns.

A view's ``route_pattern`` is a path template made of literal segments and
single-segment wildcards::

    /companias/*/editar   matches   /companias/123/editar
                          but not   /companias/123/456/editar
                          nor       /companias/editar

Patterns are compiled once into a ``RoutePattern`` (segments + wildcard
positions) and reused across checks. There is no prefix matching and no
multi-segment glob (``**``). A malformed pattern compiles to a value that never
matches, so callers never have to handle an exception here.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import logging

logger = logging.getLogger(__name__)

WILDCARD = "*"


@dataclass(frozen=True)
class RoutePattern:
    """Compiled route pattern."""

    source: str
    segments: tuple[str, ...]
    wildcard_positions: frozenset[int]
    valid: bool = True

    @property
    def has_wildcards(self) -> bool:
        return bool(self.wildcard_positions)

    def matches(self, request_path: str) -> bool:
        if not self.valid:
            return False

        if not self.has_wildcards:
            return request_path == self.source

        request_segments = request_path.split("/")
        if len(request_segments) != len(self.segments):
            return False

        for index, (expected, actual) in enumerate(zip(self.segments, request_segments)):
            if index in self.wildcard_positions:
                if not actual:
                    return False
            elif expected != actual:
                return False
        return True


def _invalid(pattern: str) -> RoutePattern:
    logger.debug("Malformed route pattern treated as never-matching pattern=%r", pattern)
    return RoutePattern(source=pattern, segments=(), wildcard_positions=frozenset(), valid=False)


@lru_cache(maxsize=1024)
def compile_pattern(pattern: str) -> RoutePattern:
    """
    Compile ``pattern`` into a ``RoutePattern``.

    Results are cached per pattern string, so a view's pattern is compiled once
    no matter how many checks use it.
    """

    if not pattern.startswith("/"):
        return _invalid(pattern)

    segments = tuple(pattern.split("/"))
    wildcards: set[int] = set()

    # segments[0] is the empty string before the leading slash.
    last = len(segments) - 1
    for index, segment in enumerate(segments[1:], start=1):
        if segment == WILDCARD:
            wildcards.add(index)
        elif WILDCARD in segment:
            # "**" and partial globs such as "abc*" are not part of the language.
            return _invalid(pattern)
        elif not segment and index != last:
            # Empty inner segment ("//").
            return _invalid(pattern)

    return RoutePattern(source=pattern, segments=segments, wildcard_positions=frozenset(wildcards))


def matches(request_path: str, pattern: str) -> bool:
    """Return True if ``request_path`` matches the view route ``pattern``."""

    if not isinstance(request_path, str) or not isinstance(pattern, str):
        return False
    return compile_pattern(pattern).matches(request_path)
