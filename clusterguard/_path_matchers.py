"""Matchers deciding whether a diff path falls under an immutable pattern.

Each pattern kind implements the :class:`PathMatcher` protocol, so new kinds
can be added by extending :func:`compile_pattern` without touching the
immutability checker.

Examples
--------
>>> compile_pattern(".spec.network").matches(("spec", "network", "cidr"))
True
>>> compile_pattern(".spec.nodePools.*.type").matches(("spec", "nodePools", 3, "type"))
True
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from clusterguard._config_tree import WILDCARD, ConfigPath, format_path, parse_path


class PathMatcher(Protocol):
    """Capability shared by every pattern kind."""

    pattern: str
    segments: ConfigPath

    def matches(self, path: ConfigPath) -> bool:
        """Return ``True`` when ``path`` equals or descends from the pattern."""
        ...

    def covers_ancestor(self, path: ConfigPath) -> bool:
        """Return ``True`` when ``path`` is a strict ancestor of the pattern."""
        ...


def _segment_equal(expected: str | int, actual: str | int) -> bool:
    # Mapping keys are strings and indices are ints, but a YAML mapping may
    # use numeric-looking keys, so compare the rendered forms.
    return str(expected) == str(actual)


@dataclass(frozen=True, slots=True)
class PrefixMatcher:
    """Literal pattern matched on whole path segments.

    Examples
    --------
    >>> matcher = PrefixMatcher(".spec.network", ("spec", "network"))
    >>> matcher.matches(("spec", "networkPolicy"))
    False
    """

    pattern: str
    segments: ConfigPath

    def matches(self, path: ConfigPath) -> bool:
        if len(path) < len(self.segments):
            return False
        return all(
            _segment_equal(expected, actual)
            for expected, actual in zip(self.segments, path)
        )

    def covers_ancestor(self, path: ConfigPath) -> bool:
        if len(path) >= len(self.segments):
            return False
        return all(
            _segment_equal(expected, actual)
            for expected, actual in zip(self.segments, path)
        )


@dataclass(frozen=True, slots=True)
class WildcardMatcher:
    """Pattern whose ``*`` segments match any single key or index.

    Examples
    --------
    >>> matcher = compile_pattern(".spec.nodePools.*.type")
    >>> matcher.matches(("spec", "nodePools", 0, "size"))
    False
    """

    pattern: str
    segments: ConfigPath

    def _segments_match(self, path: ConfigPath) -> bool:
        return all(
            expected == WILDCARD or _segment_equal(expected, actual)
            for expected, actual in zip(self.segments, path)
        )

    def matches(self, path: ConfigPath) -> bool:
        if len(path) < len(self.segments):
            return False
        return self._segments_match(path)

    def covers_ancestor(self, path: ConfigPath) -> bool:
        if len(path) >= len(self.segments):
            return False
        return self._segments_match(path)


def compile_pattern(pattern: str) -> PathMatcher:
    """Build the matcher for an immutable path pattern.

    Parameters
    ----------
    pattern
        Dotted or slashed path, optionally with a leading dot. ``*`` or
        ``[*]`` segments make it a wildcard pattern.

    Returns
    -------
    PathMatcher
        Matcher whose ``pattern`` is the canonical dotted rendering.

    Raises
    ------
    ValueError
        If the pattern has no segments.

    Examples
    --------
    >>> compile_pattern("spec/distribution/modules[0]").pattern
    '.spec.distribution.modules.0'
    """
    segments = parse_path(pattern)
    if not segments:
        msg = f"immutable path pattern must not be empty: {pattern!r}"
        raise ValueError(msg)
    canonical = format_path(segments)
    if WILDCARD in segments:
        return WildcardMatcher(canonical, segments)
    return PrefixMatcher(canonical, segments)
