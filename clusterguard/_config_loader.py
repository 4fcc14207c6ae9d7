"""Load cluster configuration YAML into configuration trees.

Examples
--------
>>> tree = parse_config_text("kind: EKSCluster\\nmetadata:\\n  name: dev\\n")
>>> read_cluster_header(tree).name
'dev'
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from clusterguard._preflight_errors import ConfigLoadError


@dataclass(frozen=True, slots=True)
class ClusterHeader:
    """Identifying fields shared by every cluster configuration.

    Attributes
    ----------
    api_version
        ``apiVersion`` field, e.g. ``kfd.sighup.io/v1alpha2``.
    kind
        ``kind`` field, e.g. ``EKSCluster``.
    name
        ``metadata.name`` of the cluster.
    """

    api_version: str
    kind: str
    name: str


def parse_config_text(text: str, *, source: str = "<string>") -> Any:
    """Parse YAML configuration text.

    An empty document parses to an empty mapping.

    Raises
    ------
    ConfigLoadError
        If ``text`` is not valid YAML.
    """
    try:
        tree = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        msg = f"error while parsing configuration from {source}: {exc}"
        raise ConfigLoadError(msg) from exc
    return {} if tree is None else tree


def load_config_file(path: Path) -> Any:
    """Read and parse the configuration file at ``path``.

    Raises
    ------
    ConfigLoadError
        If the file cannot be read or is not valid YAML.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"error while reading config file {path}: {exc}"
        raise ConfigLoadError(msg) from exc
    return parse_config_text(text, source=str(path))


def _required_str(tree: Any, *keys: str) -> str:
    value = tree
    for key in keys:
        if not isinstance(value, dict) or key not in value:
            msg = f"configuration is missing required field {'.'.join(keys)!r}"
            raise ConfigLoadError(msg)
        value = value[key]
    if not isinstance(value, str) or not value.strip():
        msg = f"configuration field {'.'.join(keys)!r} must be a non-empty string"
        raise ConfigLoadError(msg)
    return value.strip()


def read_cluster_header(tree: Any) -> ClusterHeader:
    """Extract ``apiVersion``, ``kind`` and ``metadata.name`` from ``tree``.

    ``apiVersion`` is optional and defaults to an empty string.
    """
    if not isinstance(tree, dict):
        msg = "configuration must be a mapping at its root"
        raise ConfigLoadError(msg)
    api_version = tree.get("apiVersion") or ""
    if not isinstance(api_version, str):
        msg = "configuration field 'apiVersion' must be a string"
        raise ConfigLoadError(msg)
    return ClusterHeader(
        api_version=api_version.strip(),
        kind=_required_str(tree, "kind"),
        name=_required_str(tree, "metadata", "name"),
    )


def lookup(tree: Any, *keys: str, default: Any = None) -> Any:
    """Return the value at ``keys`` in nested mappings, or ``default``.

    Examples
    --------
    >>> lookup({"spec": {"region": "eu-west-1"}}, "spec", "region")
    'eu-west-1'
    >>> lookup({"spec": {}}, "spec", "region", default="unset")
    'unset'
    """
    value = tree
    for key in keys:
        if not isinstance(value, dict) or key not in value:
            return default
        value = value[key]
    return value
