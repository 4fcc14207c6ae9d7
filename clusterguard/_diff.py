"""Structural diff of two cluster configuration trees.

The stored (last applied) and incoming configurations are walked in
lockstep. Mapping keys present on one side only are reported once for their
whole subtree, sequences are compared index by index, and any other pair of
values is compared as a leaf. Output order is deterministic so violation
reports are reproducible.

Examples
--------
>>> records = generate_diff(
...     {"spec": {"network": {"cidr": "10.0.0.0/16"}}},
...     {"spec": {"network": {"cidr": "10.1.0.0/16"}}},
... )
>>> [record.describe() for record in records]
["changed .spec.network.cidr: '10.0.0.0/16' -> '10.1.0.0/16'"]
"""

from __future__ import annotations

import enum
from collections import abc as cabc
from dataclasses import dataclass

from clusterguard._config_tree import (
    ConfigPath,
    NodeKind,
    format_path,
    key_order,
    node_kind,
    values_equal,
)
from clusterguard._preflight_errors import DiffStructureError


class _Missing:
    """Marker for the absent side of an added or removed path."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "<missing>"


MISSING = _Missing()


class DiffKind(enum.Enum):
    """How a path differs between the stored and incoming trees."""

    ADDED = "added"
    REMOVED = "removed"
    CHANGED = "changed"


@dataclass(frozen=True, slots=True)
class DiffRecord:
    """One difference between the stored and incoming trees.

    Attributes
    ----------
    path
        Segments locating the difference; ``int`` segments are indices.
    kind
        Whether the path was added, removed or changed.
    old
        Stored value, or :data:`MISSING` for added paths.
    new
        Incoming value, or :data:`MISSING` for removed paths.
    """

    path: ConfigPath
    kind: DiffKind
    old: object = MISSING
    new: object = MISSING

    @property
    def dotted_path(self) -> str:
        """Return the path rendered as ``.a.b.0.c``."""
        return format_path(self.path)

    def describe(self) -> str:
        """Return a one-line human-readable description."""
        if self.kind is DiffKind.ADDED:
            return f"added {self.dotted_path}: {self.new!r}"
        if self.kind is DiffKind.REMOVED:
            return f"removed {self.dotted_path}: {self.old!r}"
        return f"changed {self.dotted_path}: {self.old!r} -> {self.new!r}"


def _diff_mappings(
    stored: cabc.Mapping[object, object],
    incoming: cabc.Mapping[object, object],
    prefix: ConfigPath,
) -> cabc.Iterator[DiffRecord]:
    keys = sorted(set(stored) | set(incoming), key=key_order)
    for key in keys:
        path = (*prefix, key)
        if key not in incoming:
            yield DiffRecord(path, DiffKind.REMOVED, old=stored[key])
        elif key not in stored:
            yield DiffRecord(path, DiffKind.ADDED, new=incoming[key])
        else:
            yield from _diff_values(stored[key], incoming[key], path)


def _diff_sequences(
    stored: cabc.Sequence[object],
    incoming: cabc.Sequence[object],
    prefix: ConfigPath,
) -> cabc.Iterator[DiffRecord]:
    common = min(len(stored), len(incoming))
    for index in range(common):
        yield from _diff_values(stored[index], incoming[index], (*prefix, index))
    for index in range(common, len(stored)):
        yield DiffRecord((*prefix, index), DiffKind.REMOVED, old=stored[index])
    for index in range(common, len(incoming)):
        yield DiffRecord((*prefix, index), DiffKind.ADDED, new=incoming[index])


def _diff_values(
    stored: object,
    incoming: object,
    path: ConfigPath,
) -> cabc.Iterator[DiffRecord]:
    kind = node_kind(stored)
    if kind is node_kind(incoming):
        if kind is NodeKind.MAPPING:
            yield from _diff_mappings(stored, incoming, path)  # type: ignore[arg-type]
            return
        if kind is NodeKind.SEQUENCE:
            yield from _diff_sequences(stored, incoming, path)  # type: ignore[arg-type]
            return
    if not values_equal(stored, incoming):
        yield DiffRecord(path, DiffKind.CHANGED, old=stored, new=incoming)


def generate_diff(stored: object, incoming: object) -> list[DiffRecord]:
    """Compute the ordered list of differences between two trees.

    Parameters
    ----------
    stored
        Last applied configuration tree.
    incoming
        Newly supplied configuration tree.

    Returns
    -------
    list[DiffRecord]
        Differences ordered by a depth-first walk with sorted mapping keys.
        Empty when the trees are equal.

    Raises
    ------
    DiffStructureError
        If either tree is not rooted at a mapping.

    Examples
    --------
    >>> generate_diff({"a": 1}, {"a": 1})
    []
    >>> [r.kind.value for r in generate_diff({}, {"spec": {"tags": {"env": "prod"}}})]
    ['added']
    """
    for side, tree in (("stored", stored), ("incoming", incoming)):
        if node_kind(tree) is not NodeKind.MAPPING:
            msg = (
                f"{side} configuration must be a mapping at its root, "
                f"got {type(tree).__name__}"
            )
            raise DiffStructureError(msg)
    return list(_diff_mappings(stored, incoming, ()))  # type: ignore[arg-type]
