#!/usr/bin/env -S uv run python
# /// script
# requires-python = ">=3.12"
# dependencies = ["cyclopts>=2.9", "plumbum", "pyyaml>=6.0"]
# ///
"""Guard cluster updates against changes to immutable configuration.

This script:
- prepares the pre-flight OpenTofu working directory;
- detects whether the cluster already exists in remote state;
- checks that an existing cluster is reachable with kubectl; and
- fails when the incoming configuration changes a path the distribution
  declares immutable.

The ``diff`` command runs the same comparison offline between two
configuration files.
"""

from __future__ import annotations

import logging
import os
import sys
from collections import abc as cabc
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

from cyclopts import App, Parameter

from clusterguard._config_loader import load_config_file, read_cluster_header
from clusterguard._diff import generate_diff
from clusterguard._input_resolution import InputResolution, parse_bool, resolve_input
from clusterguard._kubectl import KubectlRunner
from clusterguard._preflight_errors import ClusterGuardError
from clusterguard._preflight_flow import (
    PreflightContext,
    collect_violations,
    run_preflight,
)
from clusterguard._rules import RulesBuilder
from clusterguard._state_store import FileStateStore, SecretStateStore, StateStore

app = App(help="Guard cluster updates against changes to immutable configuration.")

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True, slots=True)
class PreflightInputs:
    """Resolved inputs for a pre-flight run."""

    config_path: Path
    distribution_path: Path
    work_dir: Path
    kubeconfig: Path | None
    state_file: Path | None
    tofu_binary: str
    kubectl_binary: str


@dataclass(frozen=True, slots=True)
class RawPreflightInputs:
    """Raw pre-flight inputs from CLI or defaults."""

    config_path: Path | None = None
    distribution_path: Path | None = None
    work_dir: Path | None = None
    kubeconfig: Path | None = None
    state_file: Path | None = None
    tofu_binary: str | None = None
    kubectl_binary: str | None = None


def _optional_path(value: str | Path | None) -> Path | None:
    if value is None:
        return None
    return value if isinstance(value, Path) else Path(value)


def resolve_preflight_inputs(
    raw: RawPreflightInputs,
    env: cabc.Mapping[str, str] | None = None,
) -> PreflightInputs:
    """Resolve pre-flight inputs from CLI values, environment and defaults."""
    config_path = resolve_input(
        raw.config_path,
        InputResolution(
            env_key="CLUSTERGUARD_CONFIG", default=Path("cluster.yaml"), as_path=True
        ),
        env,
    )
    distribution_path = resolve_input(
        raw.distribution_path,
        InputResolution(env_key="CLUSTERGUARD_DISTRIBUTION", required=True, as_path=True),
        env,
    )
    work_dir = resolve_input(
        raw.work_dir,
        InputResolution(
            env_key="CLUSTERGUARD_WORKDIR", default=Path(".clusterguard"), as_path=True
        ),
        env,
    )
    kubeconfig = resolve_input(
        raw.kubeconfig, InputResolution(env_key="KUBECONFIG", as_path=True), env
    )
    state_file = resolve_input(
        raw.state_file,
        InputResolution(env_key="CLUSTERGUARD_STATE_FILE", as_path=True),
        env,
    )
    tofu_binary = resolve_input(
        raw.tofu_binary,
        InputResolution(env_key="CLUSTERGUARD_TOFU_BIN", default="tofu"),
        env,
    )
    kubectl_binary = resolve_input(
        raw.kubectl_binary,
        InputResolution(env_key="CLUSTERGUARD_KUBECTL_BIN", default="kubectl"),
        env,
    )

    return PreflightInputs(
        config_path=Path(config_path),
        distribution_path=Path(distribution_path),
        work_dir=Path(work_dir),
        kubeconfig=_optional_path(kubeconfig),
        state_file=_optional_path(state_file),
        tofu_binary=str(tofu_binary),
        kubectl_binary=str(kubectl_binary),
    )


def build_context(inputs: PreflightInputs) -> PreflightContext:
    """Build the pre-flight context, choosing the state store from inputs."""
    kubectl = KubectlRunner(kubeconfig=inputs.kubeconfig, binary=inputs.kubectl_binary)
    state_store: StateStore
    if inputs.state_file is not None:
        state_store = FileStateStore(inputs.state_file)
    else:
        state_store = SecretStateStore(kubectl)
    return PreflightContext(
        config_path=inputs.config_path,
        distribution_path=inputs.distribution_path,
        work_dir=inputs.work_dir,
        state_store=state_store,
        kubectl=kubectl,
        tofu_binary=inputs.tofu_binary,
    )


def configure_logging(*, debug: bool) -> None:
    """Send log records to stderr at INFO, or DEBUG when ``debug`` is set.

    ``CLUSTERGUARD_DEBUG`` enables debug output when the flag is not passed.
    """
    debug = debug or parse_bool(os.environ.get("CLUSTERGUARD_DEBUG"))
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


@app.command()
def check(
    config: Annotated[Path | None, Parameter(help="Cluster configuration file.")] = None,
    distribution: Annotated[
        Path | None, Parameter(help="Distribution checkout with a rules/ directory.")
    ] = None,
    workdir: Annotated[Path | None, Parameter(help="Working directory.")] = None,
    kubeconfig: Annotated[Path | None, Parameter(help="Kubeconfig file.")] = None,
    state_file: Annotated[
        Path | None,
        Parameter(help="Read the last applied config from a file instead of the cluster."),
    ] = None,
    tofu_bin: Annotated[str | None, Parameter(help="OpenTofu executable.")] = None,
    kubectl_bin: Annotated[str | None, Parameter(help="kubectl executable.")] = None,
    debug: bool = False,
) -> int:
    """Run the pre-flight checks for a cluster update."""
    configure_logging(debug=debug)
    inputs = resolve_preflight_inputs(
        RawPreflightInputs(
            config_path=config,
            distribution_path=distribution,
            work_dir=workdir,
            kubeconfig=kubeconfig,
            state_file=state_file,
            tofu_binary=tofu_bin,
            kubectl_binary=kubectl_bin,
        )
    )

    try:
        outcome = run_preflight(build_context(inputs))
    except ClusterGuardError as exc:
        print(f"error: preflight checks failed: {exc}", file=sys.stderr)
        return 1

    if not outcome.cluster_exists:
        print("Cluster not found in remote state; nothing to compare.")
    else:
        print(f"Preflight checks passed with {len(outcome.diffs)} safe change(s).")
    return 0


@app.command()
def diff(
    stored: Annotated[Path, Parameter(help="Last applied configuration file.")],
    incoming: Annotated[Path, Parameter(help="New configuration file.")],
    distribution: Annotated[
        Path | None, Parameter(help="Distribution checkout with a rules/ directory.")
    ] = None,
    debug: bool = False,
) -> int:
    """Diff two configuration files and evaluate the immutability rules."""
    configure_logging(debug=debug)
    distribution_path = resolve_input(
        distribution,
        InputResolution(env_key="CLUSTERGUARD_DISTRIBUTION", required=True, as_path=True),
    )

    try:
        stored_tree = load_config_file(stored)
        incoming_tree = load_config_file(incoming)
        rules = RulesBuilder.from_distribution(
            Path(distribution_path), read_cluster_header(incoming_tree)
        )
        records = generate_diff(stored_tree, incoming_tree)
    except ClusterGuardError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    for record in records:
        print(record.describe())
    violations = collect_violations(records, rules)
    for violation in violations:
        print(f"error: {violation.describe()}", file=sys.stderr)

    if violations:
        return 1
    print(f"{len(records)} change(s), no immutable paths changed.")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(app())
