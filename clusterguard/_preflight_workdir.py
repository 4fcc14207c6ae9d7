"""Working directory generation for the pre-flight phase.

The phase needs just enough OpenTofu configuration to reach the remote state
of the cluster module: an S3 backend taken from the cluster configuration and
a data source reading the cluster. Files are written in OpenTofu's JSON
syntax so no template engine is needed.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from contextlib import suppress
from pathlib import Path
from typing import Any

from clusterguard._config_loader import ClusterHeader, lookup
from clusterguard._preflight_errors import ConfigLoadError
from clusterguard._preflight_models import PhasePaths, S3BackendConfig

logger = logging.getLogger(__name__)

CLUSTER_DATA_SOURCE = "aws_eks_cluster"
CLUSTER_RESOURCE_NAME = "cluster"
CLUSTER_STATE_ADDRESS = f"data.{CLUSTER_DATA_SOURCE}.{CLUSTER_RESOURCE_NAME}"
MAIN_FILENAME = "main.tf.json"


def read_backend_config(tree: Any) -> S3BackendConfig:
    """Extract the S3 state backend from a cluster configuration.

    Raises
    ------
    ConfigLoadError
        If ``spec.toolsConfiguration.terraform.state.s3`` is missing or
        incomplete.

    Examples
    --------
    >>> read_backend_config({"spec": {"toolsConfiguration": {"terraform": {
    ...     "state": {"s3": {"bucketName": "b", "keyPrefix": "dev",
    ...                      "region": "eu-west-1"}}}}}}).bucket_name
    'b'
    """
    s3 = lookup(tree, "spec", "toolsConfiguration", "terraform", "state", "s3")
    if not isinstance(s3, dict):
        msg = "configuration is missing spec.toolsConfiguration.terraform.state.s3"
        raise ConfigLoadError(msg)
    values: dict[str, str] = {}
    for key in ("bucketName", "keyPrefix", "region"):
        value = s3.get(key)
        if not isinstance(value, str) or not value.strip():
            msg = f"spec.toolsConfiguration.terraform.state.s3.{key} must be a non-empty string"
            raise ConfigLoadError(msg)
        values[key] = value.strip()
    skip = s3.get("skipRegionValidation", False)
    if not isinstance(skip, bool):
        msg = "spec.toolsConfiguration.terraform.state.s3.skipRegionValidation must be a boolean"
        raise ConfigLoadError(msg)
    return S3BackendConfig(
        bucket_name=values["bucketName"],
        key_prefix=values["keyPrefix"],
        region=values["region"],
        skip_region_validation=skip,
    )


def build_phase_config(
    header: ClusterHeader,
    backend: S3BackendConfig,
) -> dict[str, object]:
    """Return the OpenTofu JSON configuration for the pre-flight phase.

    Examples
    --------
    >>> header = ClusterHeader("kfd.sighup.io/v1alpha2", "EKSCluster", "dev")
    >>> config = build_phase_config(header, S3BackendConfig("b", "dev", "eu-west-1"))
    >>> config["data"]["aws_eks_cluster"]["cluster"]["name"]
    'dev'
    """
    return {
        "terraform": {
            "backend": {
                "s3": {
                    "bucket": backend.bucket_name,
                    "key": backend.state_key,
                    "region": backend.region,
                    "skip_region_validation": backend.skip_region_validation,
                }
            }
        },
        "provider": {"aws": {"region": backend.region}},
        "data": {
            CLUSTER_DATA_SOURCE: {CLUSTER_RESOURCE_NAME: {"name": header.name}}
        },
    }


def _write_json_atomically(path: Path, payload: dict[str, object]) -> None:
    """Write ``payload`` to ``path`` through a temporary sibling file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)
            handle.write("\n")
    except Exception:
        with suppress(FileNotFoundError):
            tmp_path.unlink()
        raise
    tmp_path.replace(path)


def prepare_phase_dir(
    work_dir: Path,
    header: ClusterHeader,
    backend: S3BackendConfig,
) -> PhasePaths:
    """Create the phase folders and write the OpenTofu configuration.

    Parameters
    ----------
    work_dir
        Root working directory of the cluster operation.
    header
        Header of the incoming cluster configuration.
    backend
        State backend of the cluster module.

    Returns
    -------
    PhasePaths
        Layout of the prepared phase directory.
    """
    paths = PhasePaths.under(work_dir)
    for directory in (paths.root, paths.terraform_dir):
        directory.mkdir(parents=True, exist_ok=True)
    main_file = paths.terraform_dir / MAIN_FILENAME
    _write_json_atomically(main_file, build_phase_config(header, backend))
    logger.debug("Wrote pre-flight OpenTofu configuration to %s", main_file)
    return paths
