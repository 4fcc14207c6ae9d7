"""Distribution rules declaring which configuration paths are immutable.

A distribution ships one rules file per configuration kind under its
``rules/`` directory. Each file maps a category (``infrastructure``,
``kubernetes``, ``distribution``, ...) to a list of rules:

.. code-block:: yaml

    infrastructure:
      - path: .spec.infrastructure.vpc.network.cidr
        immutable: true
        description: the VPC CIDR cannot change after creation
    kubernetes:
      - path: .spec.kubernetes.nodePools.*.type
        immutable: true

Only rules with ``immutable: true`` are returned by
:meth:`RulesBuilder.get_immutables`. Categories without declared rules are
unrestricted.
"""

from __future__ import annotations

import logging
import re
from collections import abc as cabc
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from clusterguard._config_loader import ClusterHeader
from clusterguard._path_matchers import compile_pattern
from clusterguard._preflight_errors import RulesLoadError

logger = logging.getLogger(__name__)

RULES_DIRNAME = "rules"
DEFAULT_CATEGORIES: tuple[str, ...] = ("infrastructure", "kubernetes", "distribution")


@dataclass(frozen=True, slots=True)
class Rule:
    """A single path rule from a distribution rules file."""

    path: str
    immutable: bool = False
    description: str | None = None


def rules_filename(header: ClusterHeader) -> str:
    """Return the rules file name for a configuration kind and version.

    Examples
    --------
    >>> rules_filename(ClusterHeader("kfd.sighup.io/v1alpha2", "EKSCluster", "dev"))
    'ekscluster-kfd-v1alpha2.yaml'
    >>> rules_filename(ClusterHeader("", "OnPremises", "dev"))
    'onpremises.yaml'
    """
    parts = [header.kind.lower()]
    if header.api_version:
        group, _, version = header.api_version.rpartition("/")
        group_name = group.split(".", 1)[0]
        parts.extend(part for part in (group_name, version) if part)
    name = "-".join(parts)
    return f"{re.sub(r'[^a-z0-9.-]', '-', name)}.yaml"


def _parse_rule(category: str, index: int, entry: Any) -> Rule:
    where = f"{category}[{index}]"
    if not isinstance(entry, dict):
        msg = f"rule {where} must be a mapping"
        raise RulesLoadError(msg)
    path = entry.get("path")
    if not isinstance(path, str) or not path.strip():
        msg = f"rule {where} must declare a non-empty 'path'"
        raise RulesLoadError(msg)
    immutable = entry.get("immutable", False)
    if not isinstance(immutable, bool):
        msg = f"rule {where} field 'immutable' must be a boolean"
        raise RulesLoadError(msg)
    description = entry.get("description")
    if description is not None and not isinstance(description, str):
        msg = f"rule {where} field 'description' must be a string"
        raise RulesLoadError(msg)
    try:
        compile_pattern(path)
    except ValueError as exc:
        msg = f"rule {where} has an invalid path: {exc}"
        raise RulesLoadError(msg) from exc
    return Rule(path=path.strip(), immutable=immutable, description=description)


def parse_rules(payload: Any, *, source: str = "<rules>") -> dict[str, tuple[Rule, ...]]:
    """Validate a parsed rules document and group its rules by category.

    Raises
    ------
    RulesLoadError
        If the document is not a mapping of category to rule lists.
    """
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        msg = f"rules file {source} must be a mapping of category to rules"
        raise RulesLoadError(msg)
    rules: dict[str, tuple[Rule, ...]] = {}
    for category, entries in payload.items():
        if not isinstance(category, str):
            msg = f"rules file {source} has a non-string category {category!r}"
            raise RulesLoadError(msg)
        if entries is None:
            rules[category] = ()
            continue
        if not isinstance(entries, list):
            msg = f"rules file {source}: category {category!r} must be a list"
            raise RulesLoadError(msg)
        rules[category] = tuple(
            _parse_rule(category, index, entry) for index, entry in enumerate(entries)
        )
    return rules


@dataclass(frozen=True, slots=True)
class RulesBuilder:
    """Read-only view over a distribution's immutable path rules.

    Examples
    --------
    >>> builder = RulesBuilder({"kubernetes": (Rule(".spec.kubernetes.vpcId", True),)})
    >>> builder.get_immutables("kubernetes")
    ('.spec.kubernetes.vpcId',)
    >>> builder.get_immutables("nonexistent")
    ()
    """

    rules: cabc.Mapping[str, tuple[Rule, ...]] = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: Path) -> RulesBuilder:
        """Load rules from an explicit rules file."""
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            msg = f"rules file not found: {path}"
            raise RulesLoadError(msg) from exc
        except OSError as exc:
            msg = f"error while reading rules file {path}: {exc}"
            raise RulesLoadError(msg) from exc
        try:
            payload = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            msg = f"error while parsing rules file {path}: {exc}"
            raise RulesLoadError(msg) from exc
        rules = parse_rules(payload, source=str(path))
        logger.debug("Loaded %d rule categories from %s", len(rules), path)
        return cls(rules)

    @classmethod
    def from_distribution(
        cls,
        distribution_path: Path,
        header: ClusterHeader,
    ) -> RulesBuilder:
        """Load the rules file matching ``header`` from a distribution.

        Parameters
        ----------
        distribution_path
            Root of the distribution checkout.
        header
            Header of the cluster configuration being checked.

        Raises
        ------
        RulesLoadError
            If the rules file is missing or malformed.
        """
        return cls.from_file(
            distribution_path / RULES_DIRNAME / rules_filename(header)
        )

    def categories(self) -> tuple[str, ...]:
        """Return the categories declared in the rules file, sorted."""
        return tuple(sorted(self.rules))

    def get_immutables(self, category: str) -> tuple[str, ...]:
        """Return the immutable path patterns of ``category``.

        Unknown categories have no restrictions and return an empty tuple.
        """
        return tuple(
            rule.path for rule in self.rules.get(category, ()) if rule.immutable
        )
