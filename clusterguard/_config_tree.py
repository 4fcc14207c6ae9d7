"""Node classification and paths for YAML-derived configuration trees.

Configuration trees are the plain values PyYAML produces: mappings,
sequences and scalar leaves. :func:`node_kind` tags every value with exactly
one :class:`NodeKind` so traversal code can dispatch exhaustively, and
:func:`values_equal` applies the exact scalar equality the diff engine needs.

Examples
--------
>>> node_kind({"spec": {}})
<NodeKind.MAPPING: 'mapping'>
>>> format_path(("spec", "nodePools", 0, "size"))
'.spec.nodePools.0.size'
"""

from __future__ import annotations

import enum
import math
import re
from collections import abc as cabc

ConfigPath = tuple[str | int, ...]

_PATH_TOKEN = re.compile(
    r"(?P<sep>[./])"
    r"|\[\s*\"(?P<dq>[^\"]*)\"\s*\]"
    r"|\[\s*'(?P<sq>[^']*)'\s*\]"
    r"|\[(?P<index>\d+|\*)\]"
    r"|(?P<bare>[^./\[\]]+)"
)
_NEEDS_QUOTING = re.compile(r"[./\[\]\"]")

WILDCARD = "*"


class NodeKind(enum.Enum):
    """Structural kind of a configuration value."""

    MAPPING = "mapping"
    SEQUENCE = "sequence"
    SCALAR = "scalar"


def node_kind(value: object) -> NodeKind:
    """Classify ``value`` as a mapping, a sequence or a scalar leaf.

    Strings and bytes are scalars even though they are sequences in Python.

    Examples
    --------
    >>> node_kind([1, 2]).value
    'sequence'
    >>> node_kind("10.0.0.0/16").value
    'scalar'
    """
    if isinstance(value, cabc.Mapping):
        return NodeKind.MAPPING
    if isinstance(value, cabc.Sequence) and not isinstance(value, (str, bytes)):
        return NodeKind.SEQUENCE
    return NodeKind.SCALAR


def _scalars_equal(left: object, right: object) -> bool:
    # ``True == 1`` in Python, but a YAML boolean never equals a number.
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    # YAML `.nan` on both sides is the same value.
    if isinstance(left, float) and isinstance(right, float):
        if math.isnan(left) and math.isnan(right):
            return True
    return left == right


def values_equal(left: object, right: object) -> bool:
    """Compare two configuration values deeply with exact scalar equality.

    Examples
    --------
    >>> values_equal({"a": [1, 2]}, {"a": [1, 2]})
    True
    >>> values_equal(True, 1)
    False
    """
    kind = node_kind(left)
    if kind is not node_kind(right):
        return False
    if kind is NodeKind.MAPPING:
        if set(left) != set(right):  # type: ignore[arg-type]
            return False
        return all(values_equal(left[key], right[key]) for key in left)  # type: ignore[index]
    if kind is NodeKind.SEQUENCE:
        if len(left) != len(right):  # type: ignore[arg-type]
            return False
        return all(
            values_equal(a, b)
            for a, b in zip(left, right)  # type: ignore[call-overload]
        )
    return _scalars_equal(left, right)

def key_order(key: object) -> tuple[bool, str]:
    """Sort key giving string keys first, lexicographically, then the rest."""
    return (not isinstance(key, str), str(key))


def _format_segment(segment: str | int) -> str:
    text = str(segment)
    if isinstance(segment, str) and (not text or _NEEDS_QUOTING.search(text)):
        if '"' in text:
            return f"['{text}']"
        return f'["{text}"]'
    return f".{text}"


def format_path(path: ConfigPath) -> str:
    """Render ``path`` dotted with a leading dot.

    Keys containing separators or brackets are rendered quoted so the result
    parses back to the same segments.

    Examples
    --------
    >>> format_path(())
    '.'
    >>> format_path(("spec", "network", "cidr"))
    '.spec.network.cidr'
    >>> format_path(("labels", "node.kubernetes.io/role"))
    '.labels["node.kubernetes.io/role"]'
    """
    if not path:
        return "."
    return "".join(_format_segment(segment) for segment in path)


def parse_path(text: str) -> ConfigPath:
    """Split a dotted or slashed path into segments.

    A leading separator is optional. Bare digit segments and ``[N]`` become
    integer indices, ``*`` and ``[*]`` become the wildcard segment, and
    ``["key"]`` or ``['key']`` name a key that contains separators.

    Raises
    ------
    ValueError
        If a bracketed segment is malformed.

    Examples
    --------
    >>> parse_path(".spec.nodePools[0].size")
    ('spec', 'nodePools', 0, 'size')
    >>> parse_path("spec/nodePools/*/size")
    ('spec', 'nodePools', '*', 'size')
    >>> parse_path('.metadata.labels["node.kubernetes.io/role"]')
    ('metadata', 'labels', 'node.kubernetes.io/role')
    """
    text = text.strip()
    segments: list[str | int] = []
    pos = 0
    while pos < len(text):
        match = _PATH_TOKEN.match(text, pos)
        if match is None:
            msg = f"malformed path segment at offset {pos} in {text!r}"
            raise ValueError(msg)
        pos = match.end()
        if match.group("sep"):
            continue
        quoted = match.group("dq")
        if quoted is None:
            quoted = match.group("sq")
        if quoted is not None:
            segments.append(quoted)
            continue
        raw = match.group("index") or match.group("bare")
        segments.append(int(raw) if raw.isdigit() else raw)
    return tuple(segments)


def contains_path(tree: object, segments: ConfigPath) -> bool:
    """Return ``True`` when at least one concrete path ``segments`` exists in ``tree``.

    Wildcard segments expand over every mapping key or sequence index.

    Examples
    --------
    >>> contains_path({"pools": [{"size": 2}, {"type": "spot"}]}, ("pools", "*", "type"))
    True
    >>> contains_path({"pools": [{"size": 2}]}, ("pools", "*", "type"))
    False
    """
    if not segments:
        return True
    head, rest = segments[0], segments[1:]
    kind = node_kind(tree)
    if kind is NodeKind.MAPPING:
        children = [
            child
            for key, child in tree.items()  # type: ignore[attr-defined]
            if head == WILDCARD or str(key) == str(head)
        ]
    elif kind is NodeKind.SEQUENCE:
        children = [
            child
            for index, child in enumerate(tree)  # type: ignore[arg-type]
            if head == WILDCARD or str(index) == str(head)
        ]
    else:
        return False
    return any(contains_path(child, rest) for child in children)
