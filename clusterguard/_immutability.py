"""Immutability checks over configuration diffs."""

from __future__ import annotations

import logging
from collections import abc as cabc

from clusterguard._config_tree import contains_path
from clusterguard._diff import MISSING, DiffRecord
from clusterguard._path_matchers import PathMatcher, compile_pattern
from clusterguard._preflight_errors import ImmutableViolation

logger = logging.getLogger(__name__)


def _present(value: object) -> object:
    return None if value is MISSING else value


def _violates(record: DiffRecord, matcher: PathMatcher) -> bool:
    if matcher.matches(record.path):
        return True
    if not matcher.covers_ancestor(record.path):
        return False
    # The immutable path changed only if it exists inside the replaced subtree.
    below = matcher.segments[len(record.path) :]
    return contains_path(record.old, below) or contains_path(record.new, below)


def assert_immutable_violations(
    diffs: cabc.Iterable[DiffRecord],
    immutable_paths: cabc.Iterable[str],
    category: str | None = None,
) -> list[ImmutableViolation]:
    """Return one violation per diff record matching an immutable pattern.

    Every record is checked against every pattern; a record matching several
    patterns yields several violations. Nothing is deduplicated and the check
    never stops at the first match.

    Parameters
    ----------
    diffs
        Records produced by :func:`clusterguard._diff.generate_diff`.
    immutable_paths
        Immutable path patterns, usually from
        :meth:`clusterguard._rules.RulesBuilder.get_immutables`.
    category
        Rule category the patterns belong to, attached to each violation.

    Returns
    -------
    list[ImmutableViolation]
        Violations in diff order, empty when no record matches.

    Examples
    --------
    >>> from clusterguard._diff import generate_diff
    >>> diffs = generate_diff({"spec": {"region": "eu-west-1"}},
    ...                       {"spec": {"region": "eu-south-1"}})
    >>> [v.path for v in assert_immutable_violations(diffs, [".spec.region"])]
    ['.spec.region']
    """
    matchers = [compile_pattern(pattern) for pattern in immutable_paths]
    violations: list[ImmutableViolation] = []
    for record in diffs:
        for matcher in matchers:
            if not _violates(record, matcher):
                continue
            violations.append(
                ImmutableViolation(
                    record.dotted_path,
                    matcher.pattern,
                    _present(record.old),
                    _present(record.new),
                    category=category,
                )
            )
    if violations:
        logger.debug(
            "Found %d immutability violation(s) in category %s",
            len(violations),
            category or "<unnamed>",
        )
    return violations
