"""Run the pre-flight checks that guard a cluster update.

The flow prepares the phase working directory, asks OpenTofu whether the
cluster already exists, verifies an existing cluster is reachable, and then
compares the last applied configuration with the incoming one. Any change to
a path the distribution declares immutable fails the whole check, with every
offending change listed in one error.

Prerequisites
-------------
OpenTofu on the PATH (or the binary named in the context), credentials for
the S3 state backend in the environment, and kubectl access to the cluster.

Examples
--------
Check an update of an existing cluster:

>>> context = PreflightContext(  # doctest: +SKIP
...     config_path=Path("cluster.yaml"),
...     distribution_path=Path("distribution"),
...     work_dir=Path(".clusterguard"),
...     state_store=SecretStateStore(KubectlRunner()),
...     kubectl=KubectlRunner(),
... )
>>> run_preflight(context)  # doctest: +SKIP
"""

from __future__ import annotations

import logging
from collections import abc as cabc
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from clusterguard._config_loader import (
    load_config_file,
    parse_config_text,
    read_cluster_header,
)
from clusterguard._diff import DiffRecord, generate_diff
from clusterguard._immutability import assert_immutable_violations
from clusterguard._kubectl import KubectlRunner
from clusterguard._preflight_errors import (
    ClusterUnreachableError,
    ImmutabilityViolationsError,
    ImmutableViolation,
    ToolCommandError,
)
from clusterguard._preflight_workdir import (
    CLUSTER_STATE_ADDRESS,
    prepare_phase_dir,
    read_backend_config,
)
from clusterguard._rules import DEFAULT_CATEGORIES, RulesBuilder
from clusterguard._state_store import StateStore
from clusterguard._tofu import TofuRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PreflightContext:
    """Everything one pre-flight run needs.

    Attributes
    ----------
    config_path
        Incoming cluster configuration file.
    distribution_path
        Distribution checkout holding the ``rules/`` directory.
    work_dir
        Root working directory; the phase lives in ``<work_dir>/preflight``.
    state_store
        Source of the last applied configuration.
    kubectl
        Runner used to check that the cluster is reachable.
    tofu_binary
        OpenTofu (or Terraform) executable.
    """

    config_path: Path
    distribution_path: Path
    work_dir: Path
    state_store: StateStore
    kubectl: KubectlRunner
    tofu_binary: str = "tofu"


@dataclass(frozen=True, slots=True)
class PreflightOutcome:
    """Result of a successful pre-flight run.

    Attributes
    ----------
    cluster_exists
        ``False`` on the first-apply fast path, where nothing was compared.
    diffs
        Differences between the stored and incoming configuration.
    """

    cluster_exists: bool
    diffs: tuple[DiffRecord, ...] = ()


def categories_to_check(rules: RulesBuilder) -> tuple[str, ...]:
    """Return the default categories followed by any others the rules declare.

    Examples
    --------
    >>> from clusterguard._rules import Rule
    >>> categories_to_check(RulesBuilder({"addons": (Rule(".spec.addons", True),)}))
    ('infrastructure', 'kubernetes', 'distribution', 'addons')
    """
    extra = tuple(
        category for category in rules.categories() if category not in DEFAULT_CATEGORIES
    )
    return (*DEFAULT_CATEGORIES, *extra)


def collect_violations(
    diffs: cabc.Sequence[DiffRecord],
    rules: RulesBuilder,
) -> list[ImmutableViolation]:
    """Check ``diffs`` against every rule category and gather the violations.

    Each category is checked on its own, so a path declared immutable in two
    categories is reported once per category.
    """
    violations: list[ImmutableViolation] = []
    for category in categories_to_check(rules):
        violations.extend(
            assert_immutable_violations(
                diffs, rules.get_immutables(category), category=category
            )
        )
    return violations


def compare_configs(
    stored: Any,
    incoming: Any,
    rules: RulesBuilder,
) -> list[DiffRecord]:
    """Diff two configuration trees and fail on immutable changes.

    Raises
    ------
    DiffStructureError
        If either tree is not rooted at a mapping.
    ImmutabilityViolationsError
        If any diff touches an immutable path.
    """
    diffs = generate_diff(stored, incoming)
    for record in diffs:
        logger.debug("Diff: %s", record.describe())

    violations = collect_violations(diffs, rules)
    if violations:
        raise ImmutabilityViolationsError(violations)
    return diffs


def check_state_diffs(
    context: PreflightContext,
    incoming: Any | None = None,
) -> list[DiffRecord]:
    """Compare the stored configuration with the incoming one.

    Parameters
    ----------
    context
        Pre-flight inputs.
    incoming
        Already parsed incoming configuration; read from
        ``context.config_path`` when omitted.

    Returns
    -------
    list[DiffRecord]
        Differences found, none of which touch an immutable path.

    Raises
    ------
    StateStoreError
        If the stored configuration cannot be retrieved.
    ConfigLoadError
        If either configuration cannot be parsed.
    RulesLoadError
        If the distribution rules file is missing or malformed.
    ImmutabilityViolationsError
        If any immutable path changed.
    """
    stored_text = context.state_store.get_config()
    stored = parse_config_text(stored_text, source="stored cluster config")
    if incoming is None:
        incoming = load_config_file(context.config_path)

    rules = RulesBuilder.from_distribution(
        context.distribution_path, read_cluster_header(incoming)
    )
    return compare_configs(stored, incoming, rules)


def run_preflight(context: PreflightContext) -> PreflightOutcome:
    """Run the pre-flight checks for a cluster update.

    Returns
    -------
    PreflightOutcome
        Whether the cluster exists and which differences were found.

    Raises
    ------
    ClusterGuardError
        On the first failing step; nothing is retried.
    """
    logger.info("Running preflight checks")

    incoming = load_config_file(context.config_path)
    header = read_cluster_header(incoming)
    backend = read_backend_config(incoming)
    paths = prepare_phase_dir(context.work_dir, header, backend)

    tofu = TofuRunner(paths.terraform_dir, binary=context.tofu_binary)
    tofu.init()

    state = tofu.state_show(CLUSTER_STATE_ADDRESS)
    if not state.success:
        logger.debug("Cluster does not exist, skipping state checks")
        logger.info("Preflight checks completed successfully")
        return PreflightOutcome(cluster_exists=False)

    logger.info("Checking that the cluster is reachable...")
    try:
        context.kubectl.version()
    except ToolCommandError as exc:
        msg = f"cluster is unreachable, make sure you have access to the cluster: {exc}"
        raise ClusterUnreachableError(msg) from exc

    diffs = check_state_diffs(context, incoming)

    logger.info("Preflight checks completed successfully")
    return PreflightOutcome(cluster_exists=True, diffs=tuple(diffs))


__all__ = [
    "PreflightContext",
    "PreflightOutcome",
    "categories_to_check",
    "check_state_diffs",
    "collect_violations",
    "compare_configs",
    "run_preflight",
]
