"""Exception hierarchy for the cluster pre-flight checks.

Load failures, malformed trees, tool failures and immutability violations all
derive from :class:`ClusterGuardError` so the CLI can catch a single base
error and report it.

Exceptions
----------
ClusterGuardError
ConfigLoadError
RulesLoadError
StateStoreError
DiffStructureError
ToolCommandError
ClusterUnreachableError
ImmutableViolation
ImmutabilityViolationsError

Examples
--------
>>> raise RulesLoadError("rules file not found: dist/rules/ekscluster.yaml")
"""

from __future__ import annotations

from collections import abc as cabc


class ClusterGuardError(Exception):
    """Base error for pre-flight orchestration helpers."""


class ConfigLoadError(ClusterGuardError):
    """Raised when a cluster configuration cannot be read or parsed."""


class RulesLoadError(ClusterGuardError):
    """Raised when the distribution rules file is missing or malformed."""


class StateStoreError(ClusterGuardError):
    """Raised when the last-applied configuration cannot be retrieved."""


class DiffStructureError(ClusterGuardError):
    """Raised when a configuration tree is not rooted at a mapping."""


class ToolCommandError(ClusterGuardError):
    """Raised when an OpenTofu or kubectl command fails.

    Examples
    --------
    >>> raise ToolCommandError("tofu init failed: exit status 1")
    """


class ClusterUnreachableError(ClusterGuardError):
    """Raised when an existing cluster does not answer kubectl."""


class ImmutableViolation(ClusterGuardError):
    """A single change to a path declared immutable.

    Parameters
    ----------
    path
        Rendered path of the offending change (e.g. ``.spec.network.cidr``).
    pattern
        Immutable pattern the change matched.
    old
        Stored value, or ``None`` when the path was added.
    new
        Incoming value, or ``None`` when the path was removed.
    category
        Rule category the pattern belongs to, when known.

    Examples
    --------
    >>> str(ImmutableViolation(".spec.network.cidr", ".spec.network", "a", "b"))
    "immutable path changed: .spec.network.cidr ('a' -> 'b')"
    """

    def __init__(
        self,
        path: str,
        pattern: str,
        old: object = None,
        new: object = None,
        *,
        category: str | None = None,
    ) -> None:
        self.path = path
        self.pattern = pattern
        self.old = old
        self.new = new
        self.category = category
        super().__init__(self.describe())

    def describe(self) -> str:
        """Return the operator-facing description of the violation."""
        text = f"immutable path changed: {self.path} ({self.old!r} -> {self.new!r})"
        if self.category:
            return f"{self.category}: {text}"
        return text


class ImmutabilityViolationsError(ClusterGuardError):
    """Aggregate of every immutability violation found in one check.

    The message lists one violation per line so the operator sees the full
    set of offending changes at once.

    Examples
    --------
    >>> err = ImmutabilityViolationsError(
    ...     [ImmutableViolation(".spec.region", ".spec.region", "a", "b")]
    ... )
    >>> len(err.violations)
    1
    """

    def __init__(self, violations: cabc.Iterable[ImmutableViolation]) -> None:
        self.violations = tuple(violations)
        lines = [f"{len(self.violations)} immutable path(s) changed:"]
        lines.extend(f"  - {violation.describe()}" for violation in self.violations)
        super().__init__("\n".join(lines))
